"""Exceptions and the shared error-reporting sink.

Every failure that should not abort a batch of requests is reported
through :func:`report_error` with a stable ``HTX-*`` code instead of being
raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("reqrunner")

ERROR_CODES: dict[str, str] = {
    "HTX-002-404": "Failed to read request body from file: {}",
    "HTX-103-500": "Failed to execute HTTP request: {}",
    "HTX-105-400": "No destination could be resolved for publish target: {}",
    "HTX-105-401": "Failed to connect to broker: {}",
    "HTX-105-404": "Publish is not supported for target: {}",
    "HTX-105-500": "Failed to publish message to {}",
    "HTX-106-400": "No destination could be resolved for subscribe target: {}",
    "HTX-106-401": "Failed to connect to broker for subscription: {}",
    "HTX-106-404": "Subscribe is not supported for target: {}",
    "HTX-106-500": "Failed to subscribe {}",
    "HTX-107-501": "Transport client library is not installed: {}",
    "HTX-108-500": "Failed to save response to {}",
}


class ReqRunnerError(Exception):
    """Base exception for all reqrunner errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class RequestParseError(ReqRunnerError, ValueError):
    """Raised when a request document or one of its entries is malformed."""


class BodyFileError(RequestParseError):
    """Raised when a ``< path`` body references a file that cannot be read."""

    def __init__(self, path: str, cause: OSError):
        super().__init__(
            f"Cannot read body file {path!r}: {cause}",
            details={"path": path},
        )
        self.path = path


class TransportError(ReqRunnerError):
    """Raised inside a transport handler when the broker call fails."""


class TransportUnavailable(TransportError):
    """Raised when the client library for a transport is not installed."""


class EventValidationError(ReqRunnerError):
    """Raised when an event bus payload is missing required fields."""


class HttpExecutionError(ReqRunnerError):
    """Raised when an HTTP request could not be sent."""


def format_error(code: str, context: object) -> str:
    """Render the message registered for ``code`` with ``context``."""
    template = ERROR_CODES.get(code, "{}")
    return f"{code}: {template.format(context)}"


def report_error(
    code: str, context: object, cause: BaseException | None = None
) -> None:
    """Report a non-fatal failure to the error log.

    Args:
        code: Stable error code, a key of :data:`ERROR_CODES`.
        context: What failed, usually the request URI.
        cause: Optional exception attached as traceback information.
    """
    message = format_error(code, context)
    if cause is not None:
        message = f"{message} ({cause})"
        logger.error(message, exc_info=(type(cause), cause, cause.__traceback__))
    else:
        logger.error(message)
