"""Falcon resources for the webhook callback and metrics endpoints.

Usage
-----
Register the resources on the Falcon app::

    app.add_route(identity.path, CallbackResource(dispatcher, identity.secret))
    app.add_route("/metrics", MetricsResource(metrics, allow_list))
    app.add_sink(deny_sink)

"""

from __future__ import annotations

import ipaddress
import typing as typ
from http import HTTPStatus

import falcon

from hookrelay.dispatch import DeliveryContext, Handshake, InboundEvent
from hookrelay.logging import get_logger, log_info
from hookrelay.signature import (
    DELIVERY_ID_HEADER,
    EVENT_TYPE_HEADER,
    SHA1_SIGNATURE_HEADER,
    SHA256_SIGNATURE_HEADER,
    validate_payload,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

    from hookrelay.dispatch import Dispatcher
    from hookrelay.metrics import HttpMetrics

__all__ = [
    "CallbackResource",
    "IPNetwork",
    "MetricsResource",
    "deny_sink",
    "is_address_allowed",
]

logger = get_logger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


class CallbackResource:
    """The per-run webhook endpoint.

    Verification happens before anything else looks at the body: a
    delivery that fails it raises, is answered with a 400 by the app's
    error handler, and is never dispatched.
    """

    metrics_handler = "callback"

    def __init__(
        self,
        dispatcher: Dispatcher,
        secret: str,
        *,
        metrics: HttpMetrics | None = None,
    ) -> None:
        """Serve deliveries signed with ``secret`` through ``dispatcher``."""
        self._dispatcher = dispatcher
        self._secret = secret
        self._metrics = metrics

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle a webhook delivery.

        Parameters
        ----------
        req
            Falcon request carrying the signed body and GitHub headers.
        resp
            Falcon response: 200 with the ping greeting, otherwise 204.

        """
        body = await req.stream.read()
        payload = validate_payload(
            body,
            self._secret,
            content_type=req.content_type,
            signature_256=req.get_header(SHA256_SIGNATURE_HEADER),
            signature_1=req.get_header(SHA1_SIGNATURE_HEADER),
        )

        event = InboundEvent(
            event_type=req.get_header(EVENT_TYPE_HEADER, default=""),
            delivery_id=req.get_header(DELIVERY_ID_HEADER, default=""),
            payload=payload,
        )
        context = DeliveryContext(
            event_type=event.event_type,
            delivery_id=event.delivery_id,
            remote_addr=req.remote_addr,
        )
        log_info(logger, "Incoming request %s", context.log_fields())
        if self._metrics is not None:
            self._metrics.delivery_received(event.event_type)

        outcome = self._dispatcher.dispatch(event, context)
        if isinstance(outcome, Handshake):
            resp.status = HTTPStatus.OK
            resp.content_type = falcon.MEDIA_TEXT
            resp.text = outcome.greeting
            return

        resp.status = HTTPStatus.NO_CONTENT


def is_address_allowed(
    remote_addr: str | None, allow_list: cabc.Iterable[IPNetwork]
) -> bool:
    """Return whether ``remote_addr`` falls inside any allowed network."""
    if not remote_addr:
        return False
    try:
        address = ipaddress.ip_address(remote_addr)
    except ValueError:
        return False
    return any(
        address.version == network.version and address in network
        for network in allow_list
    )


class MetricsResource:
    """Prometheus exposition, restricted to an IP allow-list."""

    metrics_handler = "metrics"

    def __init__(
        self, metrics: HttpMetrics, allow_list: cabc.Iterable[IPNetwork]
    ) -> None:
        """Expose ``metrics`` to clients inside ``allow_list``."""
        self._metrics = metrics
        self._allow_list = tuple(allow_list)

    async def on_get(self, req: Request, resp: Response) -> None:
        """Handle GET /metrics requests.

        Raises
        ------
        falcon.HTTPForbidden
            If the client address is not in the allow-list.

        """
        if not is_address_allowed(req.remote_addr, self._allow_list):
            raise falcon.HTTPForbidden(
                title="Forbidden",
                description=f"{req.remote_addr} may not read metrics",
            )
        resp.data = self._metrics.render()
        resp.content_type = self._metrics.content_type
        resp.status = HTTPStatus.OK


async def deny_sink(_req: Request, resp: Response, **_kwargs: typ.Any) -> None:
    """Answer every unrouted path with an empty 404."""
    resp.status = HTTPStatus.NOT_FOUND
    resp.content_type = falcon.MEDIA_TEXT
