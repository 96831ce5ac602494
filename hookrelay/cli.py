"""Command-line entry point for the webhook responder.

Registers a temporary webhook on a repository, handles deliveries until
interrupted, then deletes the webhook::

    hookrelay --repo octo/reef --domain hooks.example.com \\
        --event push --event pull_request -- ./on-event.sh

Without a command, deliveries are only logged. Configuration beyond the
flags comes from ``HOOKRELAY_*`` environment variables, described in
:mod:`hookrelay.config`.
"""

from __future__ import annotations

import argparse
import asyncio
import typing as typ

from hookrelay.config import ResponderConfig, ResponderConfigError
from hookrelay.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from hookrelay.handlers import CommandHandler, LogEventHandler
from hookrelay.logging import configure_logging, get_logger, log_error, log_warning
from hookrelay.responder import Responder, ShutdownReason

if typ.TYPE_CHECKING:
    from hookrelay.dispatch import HookHandler

__all__ = ["build_parser", "main", "run"]

logger = get_logger(__name__)

_STARTUP_ERRORS = (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    ResponderConfigError,
)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``hookrelay``."""
    parser = argparse.ArgumentParser(
        prog="hookrelay",
        description="Relay GitHub webhook deliveries to local handlers.",
    )
    parser.add_argument(
        "-r", "--repo", required=True, help="repository to watch, as owner/name"
    )
    parser.add_argument(
        "-d",
        "--domain",
        required=True,
        help="public domain name GitHub delivers webhooks to",
    )
    parser.add_argument(
        "-e",
        "--event",
        dest="events",
        action="append",
        default=None,
        help="event to subscribe to (repeatable, default: push)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="seconds before a running command is killed",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="command to run per event, after --",
    )
    return parser


def _handlers(command: list[str], timeout_s: float | None) -> list[HookHandler]:
    handlers: list[HookHandler] = [LogEventHandler()]
    if command and command[0] == "--":
        command = command[1:]
    if command:
        handlers.append(CommandHandler(command, timeout_s=timeout_s))
    return handlers


async def _serve(args: argparse.Namespace, config: ResponderConfig) -> int:
    responder = Responder.from_env(args.repo, args.domain, config=config)
    try:
        reason = await responder.register_and_listen(
            args.events or ["push"],
            *_handlers(args.command, args.timeout),
        )
    finally:
        await responder.aclose()
    return 0 if reason is ShutdownReason.SIGNAL else 1


def main(argv: list[str] | None = None) -> int:
    """Run the responder until interrupted.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 after a signal, 1 on startup failure or cancellation.

    """
    args = build_parser().parse_args(argv)

    try:
        config = ResponderConfig.from_env()
    except ResponderConfigError as exc:
        print(f"hookrelay: {exc}")  # noqa: T201 - logging is not configured yet
        return 1

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid HOOKRELAY_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )

    try:
        return asyncio.run(_serve(args, config))
    except _STARTUP_ERRORS as exc:
        log_error(logger, "hookrelay failed to start: %s", exc)
        return 1


def run() -> None:
    """Console-script wrapper around :func:`main`."""
    raise SystemExit(main())


if __name__ == "__main__":
    run()
