"""RabbitMQ publish/subscribe handlers (pika)."""

from __future__ import annotations

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import SubscribeOptions, print_message, require


def _connect(target: UriAndSubject):
    pika = require("pika", "amqp")
    return pika.BlockingConnection(pika.URLParameters(target.uri))


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Publish the body to the queue through the default exchange."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    try:
        connection = _connect(target)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-105-401", url, exc)
        return

    try:
        channel = connection.channel()
        channel.confirm_delivery()
        channel.basic_publish(exchange="", routing_key=target.subject, body=request.body)
        print(f"Succeeded to send message to {target.subject}!")
    except Exception as exc:
        report_error("HTX-105-500", url, exc)
    finally:
        connection.close()


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Consume from the queue with auto-ack until the options stop the loop."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-106-400", url)
        return
    try:
        connection = _connect(target)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-106-401", url, exc)
        return

    try:
        channel = connection.channel()
        print(f"Succeeded to subscribe({options.max_messages} max): {target.subject}!")
        received = 0
        deadline = options.deadline()
        for method, properties, body in channel.consume(
            target.subject,
            auto_ack=True,
            inactivity_timeout=options.poll_interval,
        ):
            if method is not None:
                received += 1
                headers = list((properties.headers or {}).items())
                print_message(received, method.routing_key, body, headers)
            if options.should_stop(received, deadline):
                break
        channel.cancel()
    except Exception as exc:
        report_error("HTX-106-500", url, exc)
    finally:
        connection.close()
