"""Access logging and HTTP metrics middleware for the Falcon app.

Every request, including those answered by the catch-all 404 sink, is
timed, logged and counted. Routed resources name their metrics label via a
``metrics_handler`` attribute; anything else is labelled ``default``.

Usage
-----
::

    app = falcon.asgi.App(middleware=[AccessLogMiddleware(metrics)])

"""

from __future__ import annotations

import time
import typing as typ

from hookrelay.logging import format_fields, get_logger, log_debug, log_warning
from hookrelay.signature import DELIVERY_ID_HEADER, EVENT_TYPE_HEADER

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from hookrelay.metrics import HttpMetrics

__all__ = ["DEFAULT_HANDLER_LABEL", "AccessLogMiddleware"]

logger = get_logger(__name__)

DEFAULT_HANDLER_LABEL = "default"

_WARN_STATUS_THRESHOLD = 400


def _status_code(resp: Response) -> int:
    status = resp.status
    if isinstance(status, int):
        return status
    return int(str(status).split(" ", 1)[0])


def _body_size(resp: Response) -> int:
    if resp.data is not None:
        return len(resp.data)
    if resp.text is not None:
        return len(resp.text.encode("utf-8"))
    return 0


class AccessLogMiddleware:
    """Falcon middleware that logs and measures each request."""

    def __init__(self, metrics: HttpMetrics) -> None:
        """Record requests against ``metrics``."""
        self._metrics = metrics

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Stamp the request start time."""
        req.context.started_at = time.perf_counter()
        req.context.handler_label = DEFAULT_HANDLER_LABEL

    async def process_resource(
        self,
        req: Request,
        _resp: Response,
        resource: object,
        _params: dict[str, typ.Any],
    ) -> None:
        """Resolve the metrics label once routing has picked a resource."""
        label = getattr(resource, "metrics_handler", DEFAULT_HANDLER_LABEL)
        req.context.handler_label = label
        self._metrics.request_started(label)
        req.context.in_flight = True

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature
    ) -> None:
        """Log the access line and record the request's metrics."""
        del req_succeeded
        started_at = getattr(req.context, "started_at", None)
        duration_s = 0.0 if started_at is None else time.perf_counter() - started_at
        label = getattr(req.context, "handler_label", DEFAULT_HANDLER_LABEL)
        status = _status_code(resp)

        self._metrics.request_finished(
            label,
            req.method,
            status,
            duration_s,
            was_in_flight=getattr(req.context, "in_flight", False),
        )

        log = log_warning if status >= _WARN_STATUS_THRESHOLD else log_debug
        log(
            logger,
            "%s %s - %d %s",
            req.method,
            req.path,
            status,
            format_fields(
                status=status,
                size=_body_size(resp),
                duration_ms=f"{duration_s * 1000:.2f}",
                event_type=req.get_header(EVENT_TYPE_HEADER),
                delivery_id=req.get_header(DELIVERY_ID_HEADER),
                remote_addr=req.remote_addr,
                user_agent=req.user_agent,
                handler=label,
            ),
        )
