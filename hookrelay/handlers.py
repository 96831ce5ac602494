"""Ready-made handlers for the command-line responder.

:class:`LogEventHandler` records every delivery. :class:`CommandHandler`
runs an external command per delivery, passing the event type and delivery
id as trailing arguments and the JSON payload on stdin, so shell scripts
can react to repository activity.
"""

from __future__ import annotations

import asyncio
import typing as typ

from hookrelay.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from hookrelay.dispatch import DeliveryContext

__all__ = ["CommandHandler", "LogEventHandler"]

logger = get_logger(__name__)


class LogEventHandler:
    """Log each delivery's type, id and size."""

    async def __call__(
        self,
        context: DeliveryContext,
        event_type: str,
        delivery_id: str,
        payload: bytes,
    ) -> None:
        """Log the delivery."""
        del event_type, delivery_id
        log_info(logger, "Received event %s bytes=%d", context.log_fields(), len(payload))


class CommandHandler:
    """Run ``command`` once per delivery.

    The process is invoked as ``command... <event_type> <delivery_id>``
    with the payload on stdin. A non-zero exit is logged with the tail of
    stderr; it is not retried.
    """

    def __init__(self, command: cabc.Sequence[str], *, timeout_s: float | None = None) -> None:
        """Store the command line and an optional per-run timeout."""
        if not command:
            msg = "command must not be empty"
            raise ValueError(msg)
        self._command = tuple(command)
        self._timeout_s = timeout_s

    @property
    def command(self) -> tuple[str, ...]:
        """Return the configured command line."""
        return self._command

    async def __call__(
        self,
        context: DeliveryContext,
        event_type: str,
        delivery_id: str,
        payload: bytes,
    ) -> None:
        """Run the command for one delivery."""
        process = await asyncio.create_subprocess_exec(
            *self._command,
            event_type,
            delivery_id,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(payload), timeout=self._timeout_s
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            log_error(
                logger,
                "Command %s timed out after %.1fs %s",
                self._command[0],
                self._timeout_s,
                context.log_fields(),
            )
            return

        if process.returncode != 0:
            log_error(
                logger,
                "Command %s exited with %d %s stderr=%r",
                self._command[0],
                process.returncode,
                context.log_fields(),
                stderr.decode("utf-8", errors="replace")[-500:],
            )
            return
        log_info(
            logger,
            "Command %s succeeded %s stdout_bytes=%d",
            self._command[0],
            context.log_fields(),
            len(stdout),
        )
