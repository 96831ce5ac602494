"""Falcon error handlers for rejected webhook deliveries.

Signature, payload and ping decoding failures are per-request problems:
they become a 400 with the error message as a plain-text body, are logged,
and never reach a handler.

Usage
-----
::

    app.add_error_handler(REJECTED_DELIVERY_ERRORS, handle_rejected_delivery)

"""

from __future__ import annotations

import typing as typ

import falcon

from hookrelay.dispatch import PingEventError
from hookrelay.logging import format_fields, get_logger, log_error
from hookrelay.signature import (
    DELIVERY_ID_HEADER,
    EVENT_TYPE_HEADER,
    PayloadError,
    SignatureError,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["REJECTED_DELIVERY_ERRORS", "handle_rejected_delivery"]

logger = get_logger(__name__)

REJECTED_DELIVERY_ERRORS: tuple[type[Exception], ...] = (
    SignatureError,
    PayloadError,
    PingEventError,
)


async def handle_rejected_delivery(
    req: Request,
    resp: Response,
    ex: SignatureError | PayloadError | PingEventError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a rejected delivery to ``400 Bad Request`` with a text body.

    Parameters
    ----------
    req
        Falcon request carrying the GitHub delivery headers.
    resp
        Falcon response whose status and body are set.
    ex
        The verification or decoding failure.
    _params
        URI template parameters (unused).

    """
    log_error(
        logger,
        "invalid payload: %s %s",
        ex,
        format_fields(
            event_type=req.get_header(EVENT_TYPE_HEADER),
            delivery_id=req.get_header(DELIVERY_ID_HEADER),
            remote_addr=req.remote_addr,
        ),
    )
    resp.status = falcon.HTTP_400
    resp.content_type = falcon.MEDIA_TEXT
    resp.text = f"{ex}\n"
