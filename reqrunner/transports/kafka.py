"""Kafka publish/subscribe handlers (kafka-python)."""

from __future__ import annotations

import uuid

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject, query_to_map
from reqrunner.transports.base import (
    SEND_TIMEOUT,
    SubscribeOptions,
    print_message,
    require,
)


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Send the request body as one record to the topic.

    ``key`` and ``partition`` query parameters are passed to the producer.
    """
    url = request.target.url
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    params = query_to_map(url)
    key = params.get("key")
    try:
        partition = int(params["partition"]) if params.get("partition") else None
    except ValueError as exc:
        report_error("HTX-105-400", url, exc)
        return

    try:
        kafka = require("kafka", "kafka")
        producer = kafka.KafkaProducer(bootstrap_servers=target.uri)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-105-401", url, exc)
        return

    try:
        future = producer.send(
            target.subject,
            value=request.body,
            key=key.encode("utf-8") if key is not None else None,
            partition=partition,
        )
        future.get(timeout=SEND_TIMEOUT)
        print(f"Succeeded to send message to {target.subject}!")
    except Exception as exc:
        report_error("HTX-105-500", url, exc)
    finally:
        producer.close()


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Consume records from the topic until the options stop the loop.

    The consumer group comes from the ``group`` query parameter, or a
    random ``reqrunner-*`` group.
    """
    url = request.target.url
    if not target.subject:
        report_error("HTX-106-400", url)
        return
    group_id = query_to_map(url).get("group") or f"reqrunner-{uuid.uuid4()}"

    try:
        kafka = require("kafka", "kafka")
        consumer = kafka.KafkaConsumer(
            target.subject,
            bootstrap_servers=target.uri,
            group_id=group_id,
            enable_auto_commit=True,
        )
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-106-401", url, exc)
        return

    try:
        print(f"Succeeded to subscribe({options.max_messages} max): {target.subject}!")
        received = 0
        deadline = options.deadline()
        timeout_ms = int(options.poll_interval * 1000)
        while not options.should_stop(received, deadline):
            batches = consumer.poll(timeout_ms=timeout_ms)
            for record in (r for records in batches.values() for r in records):
                if options.should_stop(received, None):
                    break
                received += 1
                headers = [("key", record.key.decode("utf-8"))] if record.key else None
                print_message(received, record.topic, record.value or b"", headers)
    except Exception as exc:
        report_error("HTX-106-500", url, exc)
    finally:
        consumer.close()
