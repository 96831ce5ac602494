"""Environment configuration for the responder process.

Usage
-----
Create a configuration with defaults:

>>> config = ResponderConfig()
>>> config.https_port
443

Or load from environment variables:

>>> import os
>>> os.environ["HOOKRELAY_TLS_DISABLE"] = "true"
>>> ResponderConfig.from_env().tls_disabled
True

The GitHub token is configured separately by
:meth:`hookrelay.github.GitHubHooksConfig.from_env`.

"""

from __future__ import annotations

import dataclasses as dc
import ipaddress
import os
from pathlib import Path

from hookrelay.api.app import DEFAULT_METRICS_ALLOW
from hookrelay.api.resources import IPNetwork

__all__ = ["ResponderConfig", "ResponderConfigError", "parse_bool"]

_DEFAULT_HOST = "0.0.0.0"  # noqa: S104 - listeners face the internet
_DEFAULT_HTTP_PORT = 80
_DEFAULT_HTTPS_PORT = 443
_DEFAULT_SHUTDOWN_GRACE_S = 5.0
_DEFAULT_LOG_LEVEL = "INFO"

_MIN_PORT = 1
_MAX_PORT = 65535

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class ResponderConfigError(ValueError):
    """Raised when the responder is configured with unusable values."""

    @classmethod
    def missing_repo(cls) -> ResponderConfigError:
        """Return an error for an empty repository slug."""
        return cls("must provide repo")

    @classmethod
    def invalid_repo(cls, detail: str) -> ResponderConfigError:
        """Return an error for a slug not in ``owner/name`` form."""
        return cls(detail)

    @classmethod
    def missing_domain(cls) -> ResponderConfigError:
        """Return an error for an empty callback domain."""
        return cls("must provide the domain GitHub should deliver to")

    @classmethod
    def invalid_value(cls, env_var: str, raw: str, reason: str) -> ResponderConfigError:
        """Return an error for an environment variable that does not parse."""
        return cls(f"{env_var}={raw!r} is invalid: {reason}")


def parse_bool(raw: str) -> bool | None:
    """Parse a boolean the way Go's ``strconv.ParseBool`` does.

    Returns ``None`` when ``raw`` is not a recognised spelling.

    >>> parse_bool("T"), parse_bool("0"), parse_bool("yes")
    (True, False, None)

    """
    value = raw.strip()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


def _env(name: str) -> str:
    return os.environ.get(name, "").strip()


def _parse_port(env_var: str, default: int) -> int:
    raw = _env(env_var)
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError as exc:
        raise ResponderConfigError.invalid_value(
            env_var, raw, "not an integer"
        ) from exc
    if not (_MIN_PORT <= port <= _MAX_PORT):
        raise ResponderConfigError.invalid_value(
            env_var, raw, f"outside {_MIN_PORT}-{_MAX_PORT}"
        )
    return port


def _parse_networks(env_var: str) -> tuple[IPNetwork, ...]:
    raw = _env(env_var)
    if not raw:
        return DEFAULT_METRICS_ALLOW
    networks: list[IPNetwork] = []
    for item in raw.split(","):
        cidr = item.strip()
        if not cidr:
            continue
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError as exc:
            raise ResponderConfigError.invalid_value(env_var, raw, str(exc)) from exc
    return tuple(networks)


def _parse_grace(env_var: str, default: float) -> float:
    raw = _env(env_var)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ResponderConfigError.invalid_value(env_var, raw, "not a number") from exc
    if value < 0:
        raise ResponderConfigError.invalid_value(env_var, raw, "must not be negative")
    return value


def _optional_path(env_var: str) -> Path | None:
    raw = _env(env_var)
    return Path(raw) if raw else None


@dc.dataclass(frozen=True, slots=True)
class ResponderConfig:
    """Process-level settings for the listeners and shutdown.

    Attributes
    ----------
    tls_disabled
        When true the callback URL uses ``http`` and the plain listener
        starts. The TLS listener starts either way.
    host
        Address both listeners bind to.
    http_port
        Port of the plain listener.
    https_port
        Port of the TLS listener.
    cert_file
        Certificate chain handed to the certificate provider.
    key_file
        Private key handed to the certificate provider.
    metrics_allow
        Networks allowed to read ``/metrics``.
    shutdown_grace_s
        How long shutdown waits for running handlers before leaving them.
    log_level
        Raw log level, normalised when logging is configured.

    """

    tls_disabled: bool = False
    host: str = _DEFAULT_HOST
    http_port: int = _DEFAULT_HTTP_PORT
    https_port: int = _DEFAULT_HTTPS_PORT
    cert_file: Path | None = None
    key_file: Path | None = None
    metrics_allow: tuple[IPNetwork, ...] = DEFAULT_METRICS_ALLOW
    shutdown_grace_s: float = _DEFAULT_SHUTDOWN_GRACE_S
    log_level: str = _DEFAULT_LOG_LEVEL

    @property
    def tls_enabled(self) -> bool:
        """Return whether the callback URL uses ``https``."""
        return not self.tls_disabled

    @classmethod
    def from_env(cls) -> ResponderConfig:
        """Create configuration from ``HOOKRELAY_*`` environment variables.

        - ``HOOKRELAY_TLS_DISABLE``: Go-style boolean; unrecognised values
          leave TLS enabled.
        - ``HOOKRELAY_HOST``, ``HOOKRELAY_HTTP_PORT``,
          ``HOOKRELAY_HTTPS_PORT``: listener binds.
        - ``HOOKRELAY_TLS_CERT_FILE``, ``HOOKRELAY_TLS_KEY_FILE``: TLS
          material.
        - ``HOOKRELAY_METRICS_ALLOW``: comma-separated CIDRs.
        - ``HOOKRELAY_SHUTDOWN_GRACE_S``: seconds, non-negative.
        - ``HOOKRELAY_LOG_LEVEL``: log level name.

        Raises
        ------
        ResponderConfigError
            If a port, CIDR or grace period does not parse.

        """
        return cls(
            tls_disabled=parse_bool(_env("HOOKRELAY_TLS_DISABLE")) is True,
            host=_env("HOOKRELAY_HOST") or _DEFAULT_HOST,
            http_port=_parse_port("HOOKRELAY_HTTP_PORT", _DEFAULT_HTTP_PORT),
            https_port=_parse_port("HOOKRELAY_HTTPS_PORT", _DEFAULT_HTTPS_PORT),
            cert_file=_optional_path("HOOKRELAY_TLS_CERT_FILE"),
            key_file=_optional_path("HOOKRELAY_TLS_KEY_FILE"),
            metrics_allow=_parse_networks("HOOKRELAY_METRICS_ALLOW"),
            shutdown_grace_s=_parse_grace(
                "HOOKRELAY_SHUTDOWN_GRACE_S", _DEFAULT_SHUTDOWN_GRACE_S
            ),
            log_level=_env("HOOKRELAY_LOG_LEVEL") or _DEFAULT_LOG_LEVEL,
        )
