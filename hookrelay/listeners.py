"""Plain and TLS listeners serving the responder's ASGI app.

Both listeners run as tasks on the responder's event loop, each an
embedded :class:`uvicorn.Server`. They are independent: a listener that
fails to obtain certificates, bind or serve is logged and left down, and
neither the other listener nor the responder is affected. The plain
listener only exists for environments without TLS.

Certificates come from a :class:`CertificateProvider`, treated as a black
box; :class:`StaticCertificateProvider` serves files issued elsewhere
(for example by an ACME sidecar).
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import typing as typ

import uvicorn

from hookrelay.logging import get_logger, log_exception, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from hookrelay.config import ResponderConfig

__all__ = [
    "CertificateError",
    "CertificateProvider",
    "ListenerGroup",
    "ListenerSpec",
    "StaticCertificateProvider",
    "TLSMaterial",
    "build_server",
]

logger = get_logger(__name__)


class CertificateError(RuntimeError):
    """Raised when TLS material for the secure listener is unavailable."""

    @classmethod
    def not_configured(cls) -> CertificateError:
        """Return an error when no certificate files were configured."""
        return cls(
            "TLS certificate not configured - set HOOKRELAY_TLS_CERT_FILE "
            "and HOOKRELAY_TLS_KEY_FILE"
        )

    @classmethod
    def missing_file(cls, path: Path) -> CertificateError:
        """Return an error for a configured file that does not exist."""
        return cls(f"TLS material {path} does not exist")


@dataclasses.dataclass(frozen=True, slots=True)
class TLSMaterial:
    """Certificate chain and private key for the secure listener."""

    certfile: Path
    keyfile: Path


class CertificateProvider(typ.Protocol):
    """Supplies TLS material for the domains the responder serves."""

    def material_for(self, domains: cabc.Sequence[str]) -> TLSMaterial:
        """Return certificate and key files valid for ``domains``."""
        ...


class StaticCertificateProvider:
    """Certificate provider backed by files on disk."""

    def __init__(self, certfile: Path | None, keyfile: Path | None) -> None:
        """Serve ``certfile`` and ``keyfile`` for any domain."""
        self._certfile = certfile
        self._keyfile = keyfile

    @classmethod
    def from_config(cls, config: ResponderConfig) -> StaticCertificateProvider:
        """Build a provider from the configured certificate paths."""
        return cls(config.cert_file, config.key_file)

    def material_for(self, domains: cabc.Sequence[str]) -> TLSMaterial:
        """Return the configured files, checking that they exist."""
        del domains
        if self._certfile is None or self._keyfile is None:
            raise CertificateError.not_configured()
        for path in (self._certfile, self._keyfile):
            if not path.is_file():
                raise CertificateError.missing_file(path)
        return TLSMaterial(certfile=self._certfile, keyfile=self._keyfile)


@dataclasses.dataclass(frozen=True, slots=True)
class ListenerSpec:
    """Where and how one listener binds."""

    name: str
    host: str
    port: int
    tls: TLSMaterial | None = None

    @property
    def scheme(self) -> str:
        """Return ``https`` for TLS listeners and ``http`` otherwise."""
        return "https" if self.tls is not None else "http"


class _Server(typ.Protocol):
    should_exit: bool

    async def serve(self) -> None: ...


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the responder."""

    def install_signal_handlers(self) -> None:
        """Skip uvicorn's handlers (older uvicorn releases)."""

    @contextlib.contextmanager
    def capture_signals(self) -> cabc.Iterator[None]:
        """Skip uvicorn's handlers (current uvicorn releases)."""
        yield


def build_server(app: object, spec: ListenerSpec) -> _Server:
    """Build an embedded uvicorn server for ``spec``."""
    config = uvicorn.Config(
        app,
        host=spec.host,
        port=spec.port,
        ssl_certfile=str(spec.tls.certfile) if spec.tls else None,
        ssl_keyfile=str(spec.tls.keyfile) if spec.tls else None,
        lifespan="off",
        log_config=None,
        access_log=False,
    )
    return _EmbeddedServer(config)


ServerFactory = typ.Callable[[object, ListenerSpec], _Server]


class ListenerGroup:
    """Starts and stops the responder's listeners."""

    def __init__(
        self,
        app: object,
        config: ResponderConfig,
        *,
        domain: str,
        certificates: CertificateProvider,
        server_factory: ServerFactory = build_server,
    ) -> None:
        """Serve ``app`` according to ``config``."""
        self._app = app
        self._config = config
        self._domain = domain
        self._certificates = certificates
        self._server_factory = server_factory
        self._servers: list[_Server] = []
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def tasks(self) -> tuple[asyncio.Task[None], ...]:
        """Return the running listener tasks."""
        return tuple(self._tasks)

    def start(self) -> None:
        """Start the listeners as tasks and return immediately.

        The plain listener starts only when TLS is disabled; the TLS
        listener always starts.
        """
        if self._config.tls_disabled:
            self._spawn("http", self._plain_spec)
        self._spawn("https", self._tls_spec)

    def _spawn(self, name: str, spec_factory: cabc.Callable[[], ListenerSpec]) -> None:
        task = asyncio.create_task(
            self._run(name, spec_factory), name=f"hookrelay-listener:{name}"
        )
        self._tasks.append(task)

    def _plain_spec(self) -> ListenerSpec:
        return ListenerSpec(
            name="http", host=self._config.host, port=self._config.http_port
        )

    def _tls_spec(self) -> ListenerSpec:
        return ListenerSpec(
            name="https",
            host=self._config.host,
            port=self._config.https_port,
            tls=self._certificates.material_for([self._domain]),
        )

    async def _run(
        self, name: str, spec_factory: cabc.Callable[[], ListenerSpec]
    ) -> None:
        try:
            spec = spec_factory()
            server = self._server_factory(self._app, spec)
            self._servers.append(server)
            log_info(
                logger,
                "Listening for webhook callbacks listener=%s scheme=%s port=%d",
                spec.name,
                spec.scheme,
                spec.port,
            )
            await server.serve()
        except asyncio.CancelledError:
            raise
        # uvicorn raises SystemExit when it cannot bind.
        except (Exception, SystemExit) as exc:  # noqa: BLE001 - listeners fail independently
            log_exception(logger, f"Listener {name} failed: {exc}", exc)
        else:
            log_info(logger, "Listener %s stopped", name)

    async def stop(self, timeout: float) -> None:
        """Ask running servers to exit and wait up to ``timeout`` seconds."""
        for server in self._servers:
            server.should_exit = True
        if self._tasks:
            await asyncio.wait(self._tasks, timeout=timeout)
