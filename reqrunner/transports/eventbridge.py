"""Aliyun EventBridge publish handler (alibabacloud-eventbridge).

The request body is a CloudEvents JSON document. Credentials come from the
``Authorization: Basic accessKeyId:accessKeySecret`` header.
"""

from __future__ import annotations

import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

from reqrunner.errors import EventValidationError, ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import require

ALIYUN_DOMAIN = "aliyuncs"
JSON_CONTENT_TYPE = "application/json"
SPEC_VERSION = "1.0"


def validate_event(body: bytes) -> dict[str, Any]:
    """Parse and validate a CloudEvents JSON body.

    Args:
        body: The request payload.

    Returns:
        The decoded event, with ``id`` filled in when absent.

    Raises:
        EventValidationError: If the body is not a JSON object, lacks
            ``source`` or ``data``, or declares a non-JSON content type.
    """
    try:
        event = json.loads(body or b"null")
    except ValueError as exc:
        raise EventValidationError(f"Body is not valid JSON: {exc}") from exc
    if not isinstance(event, dict):
        raise EventValidationError("Body should be a JSON object!")
    if event.get("source") is None:
        raise EventValidationError("Please supply source field in json body!")
    content_type = event.get("datacontenttype")
    if content_type is not None and not str(content_type).startswith(JSON_CONTENT_TYPE):
        raise EventValidationError(
            "datacontenttype's value should be 'application/json'!"
        )
    if event.get("data") is None:
        raise EventValidationError("data field should be supplied in json body!")
    if not event.get("id"):
        event["id"] = str(uuid.uuid4())
    return event


def _event_data(data: Any) -> str:
    if isinstance(data, (dict, list)):
        return json.dumps(data)
    return str(data)


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Put one event on the event bus named by the target path."""
    url = request.target.url
    credentials = request.basic_credentials()
    if credentials is None:
        print(
            "Please supply access key Id/Secret in Authorization header as: "
            "`Authorization: Basic keyId:secret`",
            file=sys.stderr,
        )
        return
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    try:
        event = validate_event(request.body)
    except EventValidationError as exc:
        print(exc.message, file=sys.stderr)
        return

    try:
        client_module = require("alibabacloud_eventbridge.client", "eventbridge")
        models = require("alibabacloud_eventbridge.models", "eventbridge")
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return

    access_key_id, access_key_secret = credentials
    try:
        config = models.Config(
            access_key_id=access_key_id,
            access_key_secret=access_key_secret,
            endpoint=target.uri,
        )
        client = client_module.Client(config)

        cloud_event = models.CloudEvent()
        cloud_event.id = event["id"]
        cloud_event.source = event["source"]
        cloud_event.type = event.get("type")
        cloud_event.subject = event.get("subject")
        cloud_event.specversion = SPEC_VERSION
        cloud_event.datacontenttype = JSON_CONTENT_TYPE
        cloud_event.time = datetime.now(timezone.utc).isoformat()
        cloud_event.data = _event_data(event["data"]).encode("utf-8")
        cloud_event.aliyuneventbusname = target.subject

        print(f"Begin to send message to {target.subject} with '{event['id']}' ID")
        response = client.put_events([cloud_event])
        print("Succeeded with Aliyun EventBridge Response:")
        print(json.dumps(response.to_map(), indent=2, default=str))
    except Exception as exc:
        report_error("HTX-105-500", url, exc)
