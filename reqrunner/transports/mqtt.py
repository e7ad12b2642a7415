"""MQTT publish/subscribe handlers (paho-mqtt).

The resolved endpoint carries the network transport as its scheme:
``tcp://`` by default, or whatever ``mqtt+<transport>://`` selected.
"""

from __future__ import annotations

import queue
from urllib.parse import urlsplit

from reqrunner.errors import ReqRunnerError, report_error
from reqrunner.parser import RequestDocument
from reqrunner.resolver import UriAndSubject
from reqrunner.transports.base import (
    SEND_TIMEOUT,
    SubscribeOptions,
    print_message,
    require,
)

TLS_TRANSPORTS = {"ssl", "tls", "mqtts", "wss"}
WEBSOCKET_TRANSPORTS = {"ws", "wss"}


def _connect(target: UriAndSubject):
    mqtt = require("paho.mqtt.client", "mqtt")
    parts = urlsplit(target.uri)
    tls = parts.scheme in TLS_TRANSPORTS
    transport = "websockets" if parts.scheme in WEBSOCKET_TRANSPORTS else "tcp"

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, transport=transport)
    if parts.username:
        client.username_pw_set(parts.username, parts.password)
    if tls:
        client.tls_set()
    client.connect(parts.hostname, parts.port or (8883 if tls else 1883))
    return client


def publish(target: UriAndSubject, request: RequestDocument) -> None:
    """Publish the body with QoS 1 and wait for the broker's PUBACK."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-105-400", url)
        return
    try:
        client = _connect(target)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-105-401", url, exc)
        return

    client.loop_start()
    try:
        info = client.publish(target.subject, request.body, qos=1)
        info.wait_for_publish(timeout=SEND_TIMEOUT)
        if info.is_published():
            print(f"Succeeded to send message to {target.subject}!")
        else:
            report_error("HTX-105-500", url)
    except Exception as exc:
        report_error("HTX-105-500", url, exc)
    finally:
        client.loop_stop()
        client.disconnect()


def subscribe(
    target: UriAndSubject, request: RequestDocument, options: SubscribeOptions
) -> None:
    """Print messages on the topic until the options stop the loop."""
    url = request.target.url
    if not target.subject:
        report_error("HTX-106-400", url)
        return
    try:
        client = _connect(target)
    except ReqRunnerError as exc:
        report_error("HTX-107-501", url, exc)
        return
    except Exception as exc:
        report_error("HTX-106-401", url, exc)
        return

    inbox: queue.Queue = queue.Queue()
    client.on_message = lambda _client, _userdata, message: inbox.put(message)
    client.loop_start()
    try:
        client.subscribe(target.subject, qos=1)
        print(f"Succeeded to subscribe({options.max_messages} max): {target.subject}!")
        received = 0
        deadline = options.deadline()
        while not options.should_stop(received, deadline):
            try:
                message = inbox.get(timeout=options.poll_interval)
            except queue.Empty:
                continue
            received += 1
            print_message(received, message.topic, message.payload)
        client.unsubscribe(target.subject)
    except Exception as exc:
        report_error("HTX-106-500", url, exc)
    finally:
        client.loop_stop()
        client.disconnect()
