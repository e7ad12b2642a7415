"""Target resolution for pub/sub transports.

Each resolver turns a request's target URL (plus its ``Host`` override, if
any) into the connection endpoint and the destination for one transport
family. Resolvers never perform I/O; when no destination can be derived
they return ``None`` as the subject and leave reporting to the handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple
from urllib.parse import parse_qsl, urlsplit

if TYPE_CHECKING:
    from reqrunner.parser import RequestDocument

DEFAULT_KAFKA_PORT = 9092
DEFAULT_ROCKETMQ_PORT = 9876
DEFAULT_MQTT_TRANSPORT = "tcp"


class UriAndSubject(NamedTuple):
    """Connection endpoint and destination resolved for one transport."""

    uri: str
    subject: str | None


def query_to_map(url: str) -> dict[str, str]:
    """Return the query parameters of ``url``, first value per name."""
    params: dict[str, str] = {}
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        params.setdefault(key, value)
    return params


def _path_subject(url: str) -> str | None:
    return urlsplit(url).path[1:] or None


def _host_port(url: str, default_port: int) -> str:
    parts = urlsplit(url)
    port = parts.port or default_port
    return f"{parts.hostname}:{port}"


def _host_override(request: RequestDocument) -> UriAndSubject | None:
    host_header = request.header("Host")
    if host_header is None:
        return None
    return UriAndSubject(host_header, request.target.request_line)


def resolve_channel(url: str, request: RequestDocument) -> UriAndSubject:
    """Redis pub/sub: the last path segment names the channel."""
    override = _host_override(request)
    if override is not None:
        return override
    offset = url.rfind("/")
    return UriAndSubject(url[:offset], url[offset + 1 :] or None)


def resolve_queue(url: str, request: RequestDocument) -> UriAndSubject:
    """AMQP: the ``queue`` query parameter names the queue."""
    override = _host_override(request)
    if override is not None:
        return override
    return UriAndSubject(url, query_to_map(url).get("queue") or None)


def resolve_topic_path(url: str, request: RequestDocument) -> UriAndSubject:
    """MQTT: the path is the topic, ``mqtt+ssl://`` selects the transport."""
    parts = urlsplit(url)
    if "+" in parts.scheme:
        scheme = parts.scheme.split("+", 1)[1]
    else:
        scheme = DEFAULT_MQTT_TRANSPORT
    return UriAndSubject(f"{scheme}://{parts.netloc}", _path_subject(url))


def resolve_stream(url: str, request: RequestDocument) -> UriAndSubject:
    """Kafka: ``host:port`` bootstrap server and the topic from the path."""
    return UriAndSubject(_host_port(url, DEFAULT_KAFKA_PORT), _path_subject(url))


def resolve_name_server(url: str, request: RequestDocument) -> UriAndSubject:
    """RocketMQ: name server address and the topic from the path."""
    return UriAndSubject(_host_port(url, DEFAULT_ROCKETMQ_PORT), _path_subject(url))


def resolve_subject(url: str, request: RequestDocument) -> UriAndSubject:
    """NATS: server URL without the path, subject from the path."""
    parts = urlsplit(url)
    return UriAndSubject(f"{parts.scheme}://{parts.netloc}", _path_subject(url))


def resolve_event_bus(url: str, request: RequestDocument) -> UriAndSubject:
    """EventBridge: API endpoint host and the event bus name."""
    return UriAndSubject(urlsplit(url).hostname or "", _path_subject(url))
