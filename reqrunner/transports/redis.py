"""Redis pub/sub subscribe handler (redis-py)."""

from __future__ import annotations

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import SubscribeOptions, print_message, require


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Listen on the channel until the options stop the loop."""
    if not target.subject:
        report_error("HTX-106-400", request.target.url)
        return
    try:
        redis = require("redis", "redis")
        client = redis.Redis.from_url(target.uri)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", target.uri, exc)
        return
    except Exception as exc:
        report_error("HTX-106-401", target.uri, exc)
        return

    pubsub = client.pubsub(ignore_subscribe_messages=True)
    try:
        pubsub.subscribe(target.subject)
        print(f"Succeeded to subscribe: {target.subject}!")
        received = 0
        deadline = options.deadline()
        while not options.should_stop(received, deadline):
            message = pubsub.get_message(timeout=options.poll_interval)
            if message is None:
                continue
            received += 1
            channel = message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode("utf-8")
            data = message["data"]
            if isinstance(data, str):
                data = data.encode("utf-8")
            print_message(received, channel, data)
        pubsub.unsubscribe()
    except Exception as exc:
        report_error("HTX-106-500", target.uri, exc)
    finally:
        pubsub.close()
        client.close()
