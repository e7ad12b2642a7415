"""NATS publish/subscribe handlers (nats-py).

nats-py is asyncio based; each handler call runs its own event loop.
"""

from __future__ import annotations

import asyncio

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import (
    SEND_TIMEOUT,
    SubscribeOptions,
    print_message,
    require,
)


async def _publish(nats, target: UriAndSubject, body: bytes) -> None:
    nc = await nats.connect(target.uri)
    try:
        await nc.publish(target.subject, body)
        await nc.flush(timeout=SEND_TIMEOUT)
    finally:
        await nc.close()


async def _subscribe(nats, target: UriAndSubject, options: SubscribeOptions) -> None:
    nc = await nats.connect(target.uri)
    try:
        sub = await nc.subscribe(target.subject)
        await nc.flush(timeout=SEND_TIMEOUT)
        print(f"Succeeded to subscribe({options.max_messages} max): {target.subject}!")
        received = 0
        deadline = options.deadline()
        while not options.should_stop(received, deadline):
            try:
                msg = await sub.next_msg(timeout=options.poll_interval)
            except asyncio.TimeoutError:
                continue
            received += 1
            headers = list((msg.headers or {}).items())
            print_message(received, msg.subject, msg.data, headers)
        await sub.unsubscribe()
    finally:
        await nc.close()


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Publish the body to the subject and flush before closing."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    try:
        nats = require("nats", "nats")
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    try:
        asyncio.run(_publish(nats, target, request.body))
        print(f"Succeeded to send message to {target.subject}!")
    except Exception as exc:
        report_error("HTX-105-500", url, exc)


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Print messages on the subject until the options stop the loop."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-106-400", url)
        return
    try:
        nats = require("nats", "nats")
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    try:
        asyncio.run(_subscribe(nats, target, options))
    except Exception as exc:
        report_error("HTX-106-500", url, exc)
