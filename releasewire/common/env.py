"""Environment variable parsing shared by the configuration dataclasses."""

from __future__ import annotations

import datetime as dt
import os


def parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def parse_positive_float(env_var: str, default: float) -> float:
    """Read a positive float env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def parse_seconds(env_var: str, default: dt.timedelta) -> dt.timedelta:
    """Read a whole number of seconds as a ``timedelta``."""
    seconds = parse_positive_int(env_var, int(default.total_seconds()))
    return dt.timedelta(seconds=seconds)


def optional_str(env_var: str) -> str | None:
    """Return the stripped env var value, or ``None`` when blank."""
    value = os.environ.get(env_var, "").strip()
    return value or None
