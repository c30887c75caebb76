"""Unit tests for the femtologging helpers."""

from __future__ import annotations

import pytest

from releasewire.logging import (
    configure_logging,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)


class _FakeLogger:
    """Collects log calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message


@pytest.mark.parametrize(
    ("raw", "expected", "invalid"),
    [
        ("debug", "DEBUG", False),
        (" warn ", "WARN", False),
        ("TRACE", "TRACE", False),
        (None, "INFO", True),
        ("", "INFO", True),
        ("verbose", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, invalid: bool) -> None:
    """Known levels are upper-cased; anything else falls back to INFO."""
    assert normalize_log_level(raw) == (expected, invalid), (
        f"unexpected normalisation for {raw!r}"
    )


def test_format_log_message_interpolates_percent_args() -> None:
    """Templates use percent-style interpolation."""
    assert format_log_message("[%s] id=%d", "poll.cycle.started", 7) == (
        "[poll.cycle.started] id=7"
    ), "expected eager percent formatting"


@pytest.mark.parametrize(
    ("helper", "level"),
    [
        (log_debug, "DEBUG"),
        (log_info, "INFO"),
        (log_warning, "WARNING"),
        (log_error, "ERROR"),
    ],
)
def test_level_helpers_emit_formatted_message(helper: object, level: str) -> None:
    """Each helper formats the template and logs at its level."""
    logger = _FakeLogger()

    helper(logger, "resource=%s", "acme/widget")  # type: ignore[operator]

    assert logger.calls == [(level, "resource=acme/widget", None, False)], (
        f"expected one {level} entry"
    )


def test_log_exception_attaches_exception() -> None:
    """log_exception forwards the exception as exc_info."""
    logger = _FakeLogger()
    exc = RuntimeError("boom")

    log_exception(logger, "cycle failed", exc)

    assert logger.calls == [("ERROR", "cycle failed", exc, False)], (
        "expected ERROR entry carrying the exception"
    )


def test_configure_logging_passes_normalised_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """configure_logging hands the normalised level to basicConfig."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("releasewire.logging.basicConfig", fake_basic_config)

    assert configure_logging("bogus", force=True) == ("INFO", True), (
        "invalid level should fall back to INFO"
    )
    assert captured == {"level": "INFO", "force": True}, (
        "basicConfig should receive the fallback level and force flag"
    )
