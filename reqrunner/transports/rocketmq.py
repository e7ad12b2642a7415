"""RocketMQ publish/subscribe handlers (rocketmq-client-python)."""

from __future__ import annotations

import queue
import uuid

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import SubscribeOptions, print_message, require

PRODUCER_GROUP = "reqrunner"


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Send the body synchronously through a short-lived producer."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    try:
        rocketmq = require("rocketmq.client", "rocketmq")
        producer = rocketmq.Producer(PRODUCER_GROUP)
        producer.set_name_server_address(target.uri)
        producer.start()
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-105-401", url, exc)
        return

    try:
        message = rocketmq.Message(target.subject)
        message.set_body(request.body)
        result = producer.send_sync(message)
        print(f"Succeeded to send message to {target.subject}!")
        print(f"SendResult [status={result.status}, msgId={result.msg_id}]")
    except Exception as exc:
        report_error("HTX-105-500", url, exc)
    finally:
        producer.shutdown()


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Run a push consumer in a random group until the options stop it."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-106-400", url)
        return
    inbox: queue.Queue = queue.Queue()
    try:
        rocketmq = require("rocketmq.client", "rocketmq")
        consumer = rocketmq.PushConsumer(f"reqrunner-{uuid.uuid4()}")
        consumer.set_name_server_address(target.uri)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-106-401", url, exc)
        return

    def _on_message(message):
        inbox.put(message)
        return rocketmq.ConsumeStatus.CONSUME_SUCCESS

    try:
        consumer.subscribe(target.subject, _on_message)
        consumer.start()
        print(f"Succeeded to subscribe({options.max_messages} max): {target.subject}!")
        received = 0
        deadline = options.deadline()
        while not options.should_stop(received, deadline):
            try:
                message = inbox.get(timeout=options.poll_interval)
            except queue.Empty:
                continue
            received += 1
            print_message(received, target.subject, message.body, [("msgId", message.id)])
    except Exception as exc:
        report_error("HTX-106-500", url, exc)
    finally:
        consumer.shutdown()
