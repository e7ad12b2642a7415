"""Pub/sub dispatch.

Routes a request to the transport family selected by its URI scheme. New
transports are added with :func:`register`; the dispatcher itself never
changes.
"""

from __future__ import annotations

from typing import Callable, NamedTuple

from reqrunner.errors import report_error
from reqrunner.parser import Operation, RequestDocument
from reqrunner.resolver import (
    UriAndSubject,
    resolve_channel,
    resolve_event_bus,
    resolve_name_server,
    resolve_queue,
    resolve_stream,
    resolve_subject,
    resolve_topic_path,
)
from reqrunner.transports import amqp, eventbridge, kafka, mqtt, nats, redis, rocketmq
from reqrunner.transports.base import SubscribeOptions

Resolver = Callable[[str, RequestDocument], UriAndSubject]
PublishHandler = Callable[[UriAndSubject, RequestDocument], None]
SubscribeHandler = Callable[[UriAndSubject, RequestDocument, SubscribeOptions], None]

UNSUPPORTED_CODES = {
    Operation.PUBLISH: "HTX-105-404",
    Operation.SUBSCRIBE: "HTX-106-404",
}


class Route(NamedTuple):
    """Resolver and handlers for one transport family."""

    family: str
    resolver: Resolver
    publish: PublishHandler | None = None
    subscribe: SubscribeHandler | None = None
    host_check: Callable[[str], bool] | None = None

    def handler(self, operation: Operation):
        return self.publish if operation is Operation.PUBLISH else self.subscribe


ROUTES: dict[str, Route] = {}


def register(schemes: tuple[str, ...], route: Route) -> None:
    """Add ``route`` to the routing table under every scheme in ``schemes``."""
    for scheme in schemes:
        ROUTES[scheme] = route


def find_route(scheme: str, host: str | None = None) -> Route | None:
    """Look up the route for ``scheme``.

    Composed schemes such as ``mqtt+ssl`` fall back to their logical part
    when they have no entry of their own.
    """
    route = ROUTES.get(scheme)
    if route is None and "+" in scheme:
        route = ROUTES.get(scheme.split("+", 1)[0])
    if route is not None and route.host_check is not None:
        if not route.host_check(host or ""):
            return None
    return route


def dispatch(
    request: RequestDocument,
    operation: Operation,
    options: SubscribeOptions | None = None,
) -> list[bytes]:
    """Run the publish or subscribe handler matching the request's scheme.

    Handlers block until they finish and report their own failures, so
    dispatch never raises for transport problems.

    Args:
        request: A cleaned request document.
        operation: Publish or subscribe.
        options: Limits for subscribe loops.

    Returns:
        Result blocks; currently always empty.
    """
    url = request.target.url
    uri = request.target.uri
    print(f"{operation.value} {url}")
    print()

    route = find_route(uri.scheme, uri.hostname)
    handler = route.handler(operation) if route is not None else None
    if handler is None:
        report_error(UNSUPPORTED_CODES[operation], url)
        return []

    target = route.resolver(url, request)
    if operation is Operation.PUBLISH:
        handler(target, request)
    else:
        handler(target, request, options or SubscribeOptions())
    return []


register(("kafka",), Route("kafka", resolve_stream, kafka.publish, kafka.subscribe))
register(("amqp", "amqps"), Route("amqp", resolve_queue, amqp.publish, amqp.subscribe))
register(("nats",), Route("nats", resolve_subject, nats.publish, nats.subscribe))
register(
    ("rocketmq",),
    Route("rocketmq", resolve_name_server, rocketmq.publish, rocketmq.subscribe),
)
register(("redis",), Route("redis", resolve_channel, subscribe=redis.subscribe))
register(("mqtt",), Route("mqtt", resolve_topic_path, mqtt.publish, mqtt.subscribe))
register(
    ("eventbridge",),
    Route(
        "eventbridge",
        resolve_event_bus,
        publish=eventbridge.publish,
        host_check=lambda host: eventbridge.ALIYUN_DOMAIN in host,
    ),
)
