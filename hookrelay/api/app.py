"""Application factory for the responder's Falcon ASGI app.

Both listeners serve the same routing table:

* the per-run callback path, handled by :class:`CallbackResource`;
* ``/metrics``, limited to an IP allow-list;
* everything else, an empty 404.

Usage
-----
::

    from hookrelay.api.app import AppDependencies, create_app

    app = create_app(
        AppDependencies(
            dispatcher=dispatcher,
            callback_path=identity.path,
            secret=identity.secret,
        )
    )

"""

from __future__ import annotations

import dataclasses as dc
import ipaddress

import falcon.asgi

from hookrelay.api.errors import REJECTED_DELIVERY_ERRORS, handle_rejected_delivery
from hookrelay.api.middleware import AccessLogMiddleware
from hookrelay.api.resources import (
    CallbackResource,
    IPNetwork,
    MetricsResource,
    deny_sink,
)
from hookrelay.dispatch import Dispatcher
from hookrelay.metrics import HttpMetrics

__all__ = ["DEFAULT_METRICS_ALLOW", "METRICS_PATH", "AppDependencies", "create_app"]

METRICS_PATH = "/metrics"

DEFAULT_METRICS_ALLOW: tuple[IPNetwork, ...] = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "127.0.0.0/8",
        "::1/128",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "fc00::/7",
    )
)


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Everything the Falcon app needs from the running responder.

    Attributes
    ----------
    dispatcher
        Routes verified deliveries to the ping responder or handlers.
    callback_path
        Random per-run path the webhook delivers to.
    secret
        Shared secret deliveries are signed with.
    metrics
        Metrics registry for this app.
    metrics_allow
        Networks allowed to read ``/metrics``.

    """

    dispatcher: Dispatcher
    callback_path: str
    secret: str
    metrics: HttpMetrics = dc.field(default_factory=HttpMetrics)
    metrics_allow: tuple[IPNetwork, ...] = DEFAULT_METRICS_ALLOW


def create_app(dependencies: AppDependencies) -> falcon.asgi.App:
    """Create the Falcon ASGI app for one responder run.

    Parameters
    ----------
    dependencies
        Dispatcher, callback identity and metrics wiring.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App(middleware=[AccessLogMiddleware(dependencies.metrics)])  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route(
        dependencies.callback_path,
        CallbackResource(
            dependencies.dispatcher,
            dependencies.secret,
            metrics=dependencies.metrics,
        ),
    )
    app.add_route(
        METRICS_PATH,
        MetricsResource(dependencies.metrics, dependencies.metrics_allow),
    )
    # Routes are matched before sinks, so this only sees unrouted paths.
    app.add_sink(deny_sink)

    app.add_error_handler(REJECTED_DELIVERY_ERRORS, handle_rejected_delivery)

    return app
