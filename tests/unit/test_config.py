"""Unit tests for responder environment configuration."""

from __future__ import annotations

import ipaddress
from pathlib import Path

import pytest

from hookrelay.api.app import DEFAULT_METRICS_ALLOW
from hookrelay.config import ResponderConfig, ResponderConfigError, parse_bool

_ENV_VARS = (
    "HOOKRELAY_TLS_DISABLE",
    "HOOKRELAY_HOST",
    "HOOKRELAY_HTTP_PORT",
    "HOOKRELAY_HTTPS_PORT",
    "HOOKRELAY_TLS_CERT_FILE",
    "HOOKRELAY_TLS_KEY_FILE",
    "HOOKRELAY_METRICS_ALLOW",
    "HOOKRELAY_SHUTDOWN_GRACE_S",
    "HOOKRELAY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without HOOKRELAY_* variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1", True),
        ("t", True),
        ("T", True),
        ("TRUE", True),
        ("true", True),
        ("True", True),
        ("0", False),
        ("f", False),
        ("FALSE", False),
        ("False", False),
        ("yes", None),
        ("tRuE", None),
        ("", None),
    ],
)
def test_parse_bool_accepts_go_spellings(raw: str, expected: bool | None) -> None:
    """Only the ParseBool spellings are recognised."""
    assert parse_bool(raw) is expected


def test_defaults() -> None:
    """An empty environment yields TLS on standard ports."""
    config = ResponderConfig.from_env()

    assert config == ResponderConfig()
    assert config.tls_enabled
    assert (config.http_port, config.https_port) == (80, 443)
    assert config.metrics_allow == DEFAULT_METRICS_ALLOW
    assert config.shutdown_grace_s == 5.0


@pytest.mark.parametrize(
    ("raw", "disabled"), [("true", True), ("1", True), ("false", False), ("nah", False)]
)
def test_tls_disable(
    monkeypatch: pytest.MonkeyPatch, raw: str, *, disabled: bool
) -> None:
    """Unparseable values leave TLS enabled."""
    monkeypatch.setenv("HOOKRELAY_TLS_DISABLE", raw)

    config = ResponderConfig.from_env()

    assert config.tls_disabled is disabled
    assert config.tls_enabled is not disabled


def test_full_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every variable is read."""
    monkeypatch.setenv("HOOKRELAY_HOST", "127.0.0.1")
    monkeypatch.setenv("HOOKRELAY_HTTP_PORT", "8080")
    monkeypatch.setenv("HOOKRELAY_HTTPS_PORT", "8443")
    monkeypatch.setenv("HOOKRELAY_TLS_CERT_FILE", "/etc/hookrelay/cert.pem")
    monkeypatch.setenv("HOOKRELAY_TLS_KEY_FILE", "/etc/hookrelay/key.pem")
    monkeypatch.setenv("HOOKRELAY_METRICS_ALLOW", "10.1.0.0/16, 2001:db8::/32,")
    monkeypatch.setenv("HOOKRELAY_SHUTDOWN_GRACE_S", "1.5")
    monkeypatch.setenv("HOOKRELAY_LOG_LEVEL", "debug")

    config = ResponderConfig.from_env()

    assert config.host == "127.0.0.1"
    assert (config.http_port, config.https_port) == (8080, 8443)
    assert config.cert_file == Path("/etc/hookrelay/cert.pem")
    assert config.key_file == Path("/etc/hookrelay/key.pem")
    assert config.metrics_allow == (
        ipaddress.ip_network("10.1.0.0/16"),
        ipaddress.ip_network("2001:db8::/32"),
    )
    assert config.shutdown_grace_s == 1.5
    assert config.log_level == "debug"


@pytest.mark.parametrize(
    ("name", "raw", "match"),
    [
        ("HOOKRELAY_HTTP_PORT", "http", "not an integer"),
        ("HOOKRELAY_HTTPS_PORT", "0", "outside 1-65535"),
        ("HOOKRELAY_HTTPS_PORT", "70000", "outside 1-65535"),
        ("HOOKRELAY_METRICS_ALLOW", "10.0.0.0/33", "HOOKRELAY_METRICS_ALLOW"),
        ("HOOKRELAY_SHUTDOWN_GRACE_S", "soon", "not a number"),
        ("HOOKRELAY_SHUTDOWN_GRACE_S", "-1", "must not be negative"),
    ],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, name: str, raw: str, match: str
) -> None:
    """Unparseable numeric and network settings fail loudly."""
    monkeypatch.setenv(name, raw)

    with pytest.raises(ResponderConfigError, match=match):
        ResponderConfig.from_env()
