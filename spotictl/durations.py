"""Parsing and formatting of playback offsets."""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_MICROSECONDS = {
    "us": 1,
    "µs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}

_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(us|µs|ms|s|m|h)", re.IGNORECASE)


class DurationError(ValueError):
    """Raised when a duration expression cannot be parsed."""


def parse_duration(expression: str) -> timedelta:
    """Parse ``"1m30s"``, ``"-5s"``, ``"250ms"`` or a bare microsecond count."""

    text = expression.strip()
    sign = 1
    if text[:1] in {"-", "+"}:
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if not text:
        raise DurationError(f"Invalid duration: {expression!r}")

    if text.isascii() and text.isdigit():
        return timedelta(microseconds=sign * int(text))

    total = 0
    pos = 0
    for match in _PATTERN.finditer(text):
        if match.start() != pos:
            raise DurationError(f"Invalid duration: {expression!r}")
        value = float(match.group(1))
        unit = match.group(2).lower()
        total += round(value * _UNIT_MICROSECONDS[unit])
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise DurationError(f"Invalid duration: {expression!r}")
    return timedelta(microseconds=sign * total)


def format_duration(delta: timedelta) -> str:
    """Render ``delta`` as ``M:SS`` or ``H:MM:SS``."""

    total = int(delta.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"
    return f"{sign}{minutes}:{seconds:02d}"
