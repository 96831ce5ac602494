"""Unit tests for the femtologging helpers.

Run with:
    pytest tests/unit/test_logging.py
"""

from __future__ import annotations

import pytest

from hookrelay.logging import (
    configure_logging,
    format_fields,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)
from tests.helpers.webhooks import RecordingLogger


@pytest.mark.parametrize(
    ("input_level", "expected_level", "expected_invalid"),
    [
        ("warning", "WARNING", False),
        (" debug ", "DEBUG", False),
        (None, "INFO", True),
        ("", "INFO", True),
        ("nope", "INFO", True),
    ],
)
def test_normalize_log_level(
    input_level: str | None, expected_level: str, *, expected_invalid: bool
) -> None:
    """Normalize log levels and flag invalid inputs."""
    level, invalid = normalize_log_level(input_level)
    assert level == expected_level, f"{input_level!r} should be {expected_level}"
    assert invalid is expected_invalid, f"wrong invalid flag for {input_level!r}"


def test_format_log_message_uses_percent_formatting() -> None:
    """Percent formatting produces the expected message."""
    assert format_log_message("hook %s (%d)", "created", 3) == "hook created (3)"


def test_format_fields_renders_none_as_dash() -> None:
    """Missing values keep their field so log lines stay aligned."""
    rendered = format_fields(hook_id=7, delivery_id=None, event_type="push")
    assert rendered == "hook_id=7 delivery_id=- event_type=push"


@pytest.mark.parametrize(
    ("log_fn", "level"),
    [
        (log_debug, "DEBUG"),
        (log_info, "INFO"),
        (log_warning, "WARNING"),
        (log_error, "ERROR"),
    ],
)
def test_level_helpers_format_and_pass_level(log_fn: object, level: str) -> None:
    """Each helper formats its template and logs at its own level."""
    logger = RecordingLogger()

    log_fn(logger, "hook_id=%d", 9)  # type: ignore[operator]

    assert logger.calls == [(level, "hook_id=9", None)]


def test_log_exception_passes_exc_info() -> None:
    """log_exception forwards the exception payload to the logger."""
    logger = RecordingLogger()
    exc = ValueError("boom")

    log_exception(logger, "handler failed", exc)

    assert logger.calls == [("ERROR", "handler failed", exc)]


def test_configure_logging_normalizes_and_configures(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """configure_logging hands the normalized level to femtologging."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("hookrelay.logging.basicConfig", fake_basic_config)

    normalized, invalid = configure_logging("bogus")

    assert (normalized, invalid) == ("INFO", True)
    assert captured == {"level": "INFO", "force": False}
