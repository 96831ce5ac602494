"""Route verified webhook deliveries to the ping responder or to handlers.

A verified delivery takes one of two branches:

* ``ping`` is GitHub's handshake. Its ``zen`` greeting is returned so the
  HTTP layer can echo it back.
* Every other event is fanned out: one :class:`asyncio.Task` per handler,
  started before :meth:`Dispatcher.dispatch` returns and never awaited by
  it. Handler failures are logged inside the handler's own task and never
  reach the HTTP response or sibling handlers.

Usage
-----
::

    async def on_push(context, event_type, delivery_id, payload):
        ...

    dispatcher = Dispatcher([on_push])
    outcome = dispatcher.dispatch(event, context)

"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import inspect
import typing as typ
import uuid

import msgspec

from hookrelay.github.models import PingEvent
from hookrelay.logging import (
    format_fields,
    get_logger,
    log_debug,
    log_exception,
    log_warning,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

PING_EVENT = "ping"


@dataclasses.dataclass(frozen=True, slots=True)
class DeliveryContext:
    """Request-scoped details handed to every handler of one delivery."""

    event_type: str
    delivery_id: str
    request_id: str = dataclasses.field(default_factory=lambda: uuid.uuid4().hex)
    remote_addr: str | None = None
    received_at: dt.datetime = dataclasses.field(
        default_factory=lambda: dt.datetime.now(dt.UTC)
    )

    def log_fields(self) -> str:
        """Return the context as ``key=value`` log fields."""
        return format_fields(
            request_id=self.request_id,
            event_type=self.event_type,
            delivery_id=self.delivery_id,
        )


class HookHandler(typ.Protocol):
    """A consumer of verified, non-ping webhook deliveries.

    Handlers may be coroutine functions or plain callables. Plain callables
    run in a worker thread, and an awaitable they return is awaited on the
    event loop. The payload is the raw JSON body and can be decoded with
    :func:`msgspec.json.decode` if needed. Return values are ignored and
    exceptions are logged, so a handler that needs to report failure must
    do so itself.
    """

    def __call__(
        self,
        context: DeliveryContext,
        event_type: str,
        delivery_id: str,
        payload: bytes,
    ) -> cabc.Awaitable[None] | None: ...


@dataclasses.dataclass(frozen=True, slots=True)
class InboundEvent:
    """One webhook delivery, built from a request after verification."""

    event_type: str
    delivery_id: str
    payload: bytes


@dataclasses.dataclass(frozen=True, slots=True)
class Handshake:
    """Outcome for a ping: the greeting to write back."""

    greeting: str


@dataclasses.dataclass(frozen=True, slots=True)
class FannedOut:
    """Outcome for any other event: how many handler tasks were started."""

    handler_count: int


DispatchOutcome = Handshake | FannedOut


class PingEventError(ValueError):
    """Raised when a ping delivery does not decode as a ping event."""

    @classmethod
    def undecodable(cls, detail: object) -> PingEventError:
        """Return an error describing why the ping payload was rejected."""
        return cls(f"failed to parse ping payload: {detail}")


def parse_ping(payload: bytes) -> PingEvent:
    """Decode a ping payload.

    Raises
    ------
    PingEventError
        If the payload is not JSON or lacks a string ``zen`` field.

    """
    try:
        return msgspec.json.decode(payload, type=PingEvent)
    except msgspec.DecodeError as exc:
        raise PingEventError.undecodable(exc) from exc


def _is_async_callable(handler: object) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)  # noqa: B004 - instances with async __call__
    return inspect.iscoroutinefunction(call)


def _handler_name(handler: object) -> str:
    return getattr(handler, "__qualname__", type(handler).__qualname__)


class Dispatcher:
    """Fan verified deliveries out to a fixed set of handlers.

    The handler tuple is captured at construction and never changes, so
    concurrent deliveries read it without locking.
    """

    def __init__(self, handlers: cabc.Iterable[HookHandler] = ()) -> None:
        """Capture ``handlers`` for the lifetime of the dispatcher."""
        self._handlers: tuple[HookHandler, ...] = tuple(handlers)
        # Strong references keep running tasks from being garbage collected.
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def handlers(self) -> tuple[HookHandler, ...]:
        """Return the registered handlers."""
        return self._handlers

    @property
    def pending(self) -> int:
        """Return the number of handler tasks still running."""
        return len(self._tasks)

    def dispatch(
        self, event: InboundEvent, context: DeliveryContext
    ) -> DispatchOutcome:
        """Answer a ping or start one task per handler, without waiting.

        Must be called from a running event loop.

        Raises
        ------
        PingEventError
            If ``event`` is a ping whose payload does not decode.

        """
        if event.event_type == PING_EVENT:
            return Handshake(greeting=parse_ping(event.payload).zen)

        for handler in self._handlers:
            task = asyncio.create_task(
                self._run_handler(handler, context, event),
                name=f"hookrelay-handler:{_handler_name(handler)}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return FannedOut(handler_count=len(self._handlers))

    async def _run_handler(
        self,
        handler: HookHandler,
        context: DeliveryContext,
        event: InboundEvent,
    ) -> None:
        try:
            if _is_async_callable(handler):
                await typ.cast(
                    "cabc.Awaitable[None]",
                    handler(context, event.event_type, event.delivery_id, event.payload),
                )
            else:
                result = await asyncio.to_thread(
                    handler,
                    context,
                    event.event_type,
                    event.delivery_id,
                    event.payload,
                )
                # Plain callables may still hand back a coroutine.
                if inspect.isawaitable(result):
                    await result
        except Exception as exc:  # noqa: BLE001 - handler failures stay in their task
            log_exception(
                logger,
                f"Handler {_handler_name(handler)} failed {context.log_fields()}",
                exc,
            )

    async def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for running handlers to finish.

        Handlers are never cancelled. Returns how many were still running
        when the wait ended.
        """
        if not self._tasks:
            return 0
        log_debug(logger, "Waiting for %d handler task(s)", len(self._tasks))
        _done, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            log_warning(
                logger,
                "%d handler task(s) still running after %.1fs",
                len(still_running),
                timeout,
            )
        return len(still_running)


__all__ = [
    "PING_EVENT",
    "DeliveryContext",
    "DispatchOutcome",
    "Dispatcher",
    "FannedOut",
    "Handshake",
    "HookHandler",
    "InboundEvent",
    "PingEventError",
    "parse_ping",
]
