"""Shared pieces for the transport handlers.

Handlers are blocking calls. Publish handlers connect, send, wait for the
acknowledgement and close; subscribe handlers loop until a message limit,
a timeout or the cancel event stops them. Broker client libraries are
optional extras and imported only when a handler runs.
"""

from __future__ import annotations

import importlib
import signal
import threading
import time
from contextlib import contextmanager
from types import ModuleType
from typing import Iterator

from reqrunner.errors import TransportUnavailable

DEFAULT_MAX_MESSAGES = 1000
DEFAULT_POLL_INTERVAL = 1.0

# Seconds to wait for a broker acknowledgement
SEND_TIMEOUT = 30

SEPARATOR = "=" * 38


class SubscribeOptions:
    """Limits for a blocking subscribe loop."""

    __slots__ = ("max_messages", "timeout", "poll_interval", "cancel")

    def __init__(
        self,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        timeout: float | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancel: threading.Event | None = None,
    ) -> None:
        self.max_messages = max_messages
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.cancel = cancel if cancel is not None else threading.Event()

    def deadline(self) -> float | None:
        if self.timeout is None:
            return None
        return time.monotonic() + self.timeout

    def should_stop(self, received: int, deadline: float | None) -> bool:
        """Whether the loop has hit its limit, its deadline or a shutdown."""
        if self.cancel.is_set():
            return True
        if received >= self.max_messages:
            return True
        return deadline is not None and time.monotonic() >= deadline


def require(module: str, extra: str) -> ModuleType:
    """Import a broker client library on demand.

    Raises:
        TransportUnavailable: If the library is not installed.
    """
    try:
        return importlib.import_module(module)
    except ImportError as exc:
        raise TransportUnavailable(
            f"{module} is required for {extra} targets but not installed",
            details={"extra": extra, "fix": f"pip install 'reqrunner[{extra}]'"},
        ) from exc


@contextmanager
def shutdown_signal() -> Iterator[threading.Event]:
    """Set the yielded event on SIGINT/SIGTERM for the duration of the block.

    Only the main thread can install signal handlers; elsewhere the event
    is returned without handlers.
    """
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _on_signal(signum, frame):
        print("Shutting down ...")
        cancel.set()

    previous = {
        sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def print_message(count: int, subject: str, data: bytes, headers=None) -> None:
    """Print one received message in the shared subscribe format."""
    if count > 1:
        print(SEPARATOR)
    print(f"Message Received [{count}]")
    if headers:
        print("  Headers:")
        for key, value in headers:
            print(f"    {key}: {value}")
    print(f"  Subject: {subject}")
    print(f"  Data: {data.decode('utf-8', errors='replace')}")
