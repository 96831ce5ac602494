"""Registration lifecycle for a short-lived GitHub webhook.

A :class:`Responder` owns one webhook for the lifetime of the process:

1. :meth:`Responder.register` creates the hook on GitHub and returns a
   :class:`HookLease`, the one-shot cleanup token for that hook.
2. :meth:`Responder.listen` starts the listeners serving the callback path.
3. :meth:`Responder.register_and_listen` does both, waits for SIGINT,
   SIGTERM or the caller's stop event, and releases the lease on every
   exit path so no orphaned webhook is left on the repository.

Usage
-----
::

    responder = Responder.from_env("octo/reef", "hooks.example.com")
    try:
        reason = await responder.register_and_listen(["push"], on_push)
    finally:
        await responder.aclose()

"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import signal
import typing as typ

import httpx

from hookrelay.api.app import AppDependencies, create_app
from hookrelay.common.slug import parse_repo_slug, repo_slug
from hookrelay.config import ResponderConfig, ResponderConfigError
from hookrelay.dispatch import Dispatcher, HookHandler
from hookrelay.github.client import GitHubHooksClient, GitHubHooksConfig
from hookrelay.github.errors import GitHubAPIError
from hookrelay.identity import CallbackIdentity, build_callback_identity
from hookrelay.listeners import (
    ListenerGroup,
    ServerFactory,
    StaticCertificateProvider,
    build_server,
)
from hookrelay.logging import (
    format_fields,
    get_logger,
    log_debug,
    log_error,
    log_info,
)
from hookrelay.metrics import HttpMetrics

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from hookrelay.github.client import HookRegistrar
    from hookrelay.listeners import CertificateProvider

__all__ = [
    "ActiveRegistration",
    "HookLease",
    "Registration",
    "Responder",
    "ShutdownReason",
]

logger = get_logger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownReason(enum.StrEnum):
    """Why :meth:`Responder.register_and_listen` returned."""

    SIGNAL = "signal"
    CANCELLED = "cancelled"


@dataclasses.dataclass(frozen=True, slots=True)
class Registration:
    """What is about to be registered: repository, events and identity."""

    owner: str
    name: str
    events: tuple[str, ...]
    identity: CallbackIdentity

    @property
    def slug(self) -> str:
        """Return the repository as ``owner/name``."""
        return repo_slug(self.owner, self.name)


@dataclasses.dataclass(frozen=True, slots=True)
class ActiveRegistration:
    """A registration GitHub accepted, bundled with its handlers."""

    registration: Registration
    hook_id: int
    hook_url: str
    handlers: tuple[HookHandler, ...]


class HookLease:
    """One-shot cleanup token for a created webhook.

    Only :meth:`Responder.register` issues leases, and only after GitHub
    accepted the hook. :meth:`release` deletes that hook once; later calls
    do nothing. Deletion failures are logged with the hook id for manual
    remediation and never raised, since release runs during shutdown.
    """

    def __init__(self, active: ActiveRegistration, registrar: HookRegistrar) -> None:
        """Bind the lease to ``active``'s hook id."""
        self._active = active
        self._registrar = registrar
        self._released = False

    @property
    def active(self) -> ActiveRegistration:
        """Return the registration this lease cleans up."""
        return self._active

    @property
    def released(self) -> bool:
        """Return whether :meth:`release` has run."""
        return self._released

    async def release(self) -> None:
        """Delete the webhook, once."""
        hook_id = self._active.hook_id
        if self._released:
            log_debug(logger, "Webhook already cleaned up hook_id=%d", hook_id)
            return
        self._released = True

        registration = self._active.registration
        log_info(logger, "Cleaning up webhook hook_id=%d", hook_id)
        try:
            await self._registrar.delete_hook(
                registration.owner, registration.name, hook_id
            )
        except (GitHubAPIError, httpx.HTTPError) as exc:
            log_error(
                logger,
                "failed to delete webhook %s error=%s",
                format_fields(hook_id=hook_id, repo=registration.slug),
                exc,
                exc_info=exc,
            )

    async def __aenter__(self) -> ActiveRegistration:
        """Return the active registration for the ``async with`` block."""
        return self._active

    async def __aexit__(self, *_exc_info: object) -> None:
        """Release the lease however the block exits."""
        await self.release()


def _parse_target(repo: str, domain: str) -> tuple[str, str, str]:
    """Return ``(owner, name, domain)`` or raise :class:`ResponderConfigError`."""
    if not repo.strip():
        raise ResponderConfigError.missing_repo()
    try:
        owner, name = parse_repo_slug(repo)
    except ValueError as exc:
        raise ResponderConfigError.invalid_repo(str(exc)) from exc
    if not domain.strip():
        raise ResponderConfigError.missing_domain()
    return owner, name, domain.strip()


class Responder:
    """Registers a webhook, serves its callback, and cleans it up."""

    def __init__(  # noqa: PLR0913 - collaborators are injectable for tests
        self,
        repo: str,
        domain: str,
        *,
        registrar: HookRegistrar,
        config: ResponderConfig | None = None,
        identity: CallbackIdentity | None = None,
        certificates: CertificateProvider | None = None,
        server_factory: ServerFactory = build_server,
    ) -> None:
        """Prepare a responder for ``repo`` reachable at ``domain``.

        The callback identity is generated here, once, and never changes.

        Raises
        ------
        ResponderConfigError
            If ``repo`` is not ``owner/name`` or ``domain`` is empty.

        """
        self._owner, self._name, self._domain = _parse_target(repo, domain)
        self._config = config or ResponderConfig()
        self._registrar = registrar
        self._identity = identity or build_callback_identity(
            self._domain, tls_enabled=self._config.tls_enabled
        )
        self._certificates = certificates or StaticCertificateProvider.from_config(
            self._config
        )
        self._server_factory = server_factory
        self._owned_client: GitHubHooksClient | None = None
        self._active: ActiveRegistration | None = None
        self._dispatcher: Dispatcher | None = None
        self._interrupted = asyncio.Event()

    @classmethod
    def from_env(
        cls,
        repo: str,
        domain: str,
        *,
        config: ResponderConfig | None = None,
    ) -> Responder:
        """Build a responder talking to GitHub with the environment's token.

        The repository and domain are checked before the token is read, so
        a bad slug is reported even when credentials are also missing, and
        no HTTP client is created for a responder that cannot be built.

        Raises
        ------
        GitHubConfigError
            If no GitHub token is configured.
        ResponderConfigError
            If the repository, domain or listener settings are invalid.

        """
        _parse_target(repo, domain)
        resolved = config or ResponderConfig.from_env()
        client = GitHubHooksClient(GitHubHooksConfig.from_env())
        responder = cls(repo, domain, registrar=client, config=resolved)
        responder._owned_client = client  # noqa: SLF001 - set by own factory
        return responder

    @property
    def identity(self) -> CallbackIdentity:
        """Return this run's callback URL and secret."""
        return self._identity

    @property
    def active(self) -> ActiveRegistration | None:
        """Return the accepted registration, if any."""
        return self._active

    @property
    def dispatcher(self) -> Dispatcher | None:
        """Return the dispatcher serving deliveries once listening."""
        return self._dispatcher

    async def aclose(self) -> None:
        """Close the GitHub client if this responder created it."""
        if self._owned_client is not None:
            await self._owned_client.aclose()

    async def register(
        self, events: cabc.Sequence[str], *handlers: HookHandler
    ) -> HookLease:
        """Create the webhook and return its cleanup lease.

        Raises
        ------
        GitHubAPIError
            If GitHub could not be reached or answered with a non-2xx status.
        GitHubResponseShapeError
            If GitHub's answer carried no hook id.
        RuntimeError
            If this responder already registered a webhook.

        """
        if self._active is not None:
            msg = f"webhook already registered hook_id={self._active.hook_id}"
            raise RuntimeError(msg)

        registration = Registration(
            owner=self._owner,
            name=self._name,
            events=tuple(events),
            identity=self._identity,
        )
        record = await self._registrar.create_hook(
            registration.owner,
            registration.name,
            events=registration.events,
            callback_url=self._identity.callback_url,
            secret=self._identity.secret,
        )
        log_info(
            logger,
            "Registered WebHook %s",
            format_fields(
                hook_url=record.url,
                hook_id=record.id,
                callback=self._identity.callback_url,
            ),
        )
        self._active = ActiveRegistration(
            registration=registration,
            hook_id=record.id,
            hook_url=record.url,
            handlers=tuple(handlers),
        )
        return HookLease(self._active, self._registrar)

    def listen(self) -> ListenerGroup:
        """Start the listeners for the registered callback path.

        Returns as soon as the listener tasks are scheduled.

        Raises
        ------
        RuntimeError
            If no webhook has been registered yet.

        """
        if self._active is None:
            msg = "register a webhook before listening"
            raise RuntimeError(msg)

        self._dispatcher = Dispatcher(self._active.handlers)
        app = create_app(
            AppDependencies(
                dispatcher=self._dispatcher,
                callback_path=self._identity.path,
                secret=self._identity.secret,
                metrics=HttpMetrics(),
                metrics_allow=self._config.metrics_allow,
            )
        )
        listeners = ListenerGroup(
            app,
            self._config,
            domain=self._domain,
            certificates=self._certificates,
            server_factory=self._server_factory,
        )
        listeners.start()
        return listeners

    def interrupt(self, source: str = "interrupt") -> None:
        """Trigger a graceful shutdown, as SIGINT would."""
        log_debug(logger, "Received %s", source)
        self._interrupted.set()

    async def register_and_listen(
        self,
        events: cabc.Sequence[str],
        *handlers: HookHandler,
        stop: asyncio.Event | None = None,
    ) -> ShutdownReason:
        """Register, listen, and block until shutdown is requested.

        Shutdown is requested by SIGINT/SIGTERM (or :meth:`interrupt`),
        which returns :attr:`ShutdownReason.SIGNAL`, or by ``stop`` being
        set, which returns :attr:`ShutdownReason.CANCELLED`. Cancelling the
        calling task propagates after cleanup. The webhook is deleted on
        every one of these paths; registration errors propagate before
        anything is started.
        """
        lease = await self.register(events, *handlers)
        listeners: ListenerGroup | None = None
        try:
            listeners = self.listen()
            return await self._wait_for_shutdown(stop)
        finally:
            await lease.release()
            if listeners is not None:
                await self._wind_down(listeners)

    async def _wait_for_shutdown(self, stop: asyncio.Event | None) -> ShutdownReason:
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.interrupt, sig.name)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not the main thread, or no signal support on this platform.
                continue
            installed.append(sig)

        waiters = {asyncio.create_task(self._interrupted.wait())}
        if stop is not None:
            waiters.add(asyncio.create_task(stop.wait()))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
            for sig in installed:
                loop.remove_signal_handler(sig)

        if self._interrupted.is_set():
            log_debug(logger, "shutting down gracefully...")
            return ShutdownReason.SIGNAL
        log_error(logger, "context cancelled, shutting down")
        return ShutdownReason.CANCELLED

    async def _wind_down(self, listeners: ListenerGroup) -> None:
        grace = self._config.shutdown_grace_s
        if self._dispatcher is not None:
            await self._dispatcher.drain(grace)
        await listeners.stop(grace)
