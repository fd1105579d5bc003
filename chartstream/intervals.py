from __future__ import annotations

"""Duration utilities for bucket widths and window spans.

``parse_duration()`` accepts integers (already milliseconds), floats (seconds
are *not* assumed – floats are rejected to avoid silent unit mistakes) and
strings with a unit suffix: ``"1ms"``, ``"300ms"``, ``"1s"``, ``"5m"``,
``"1h"``, ``"1d"``. A bare digit string is read as milliseconds.
"""

import re
from typing import Dict, Union

from .exceptions import ConfigError

__all__ = ["parse_duration", "format_duration", "UNIT_MS"]

UNIT_MS: Dict[str, int] = {
    "ms": 1,
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}

_DURATION_RE = re.compile(r"^\s*(?P<num>\d+)\s*(?P<unit>ms|s|m|h|d)?\s*$", re.IGNORECASE)

Duration = Union[int, str]


def parse_duration(raw: Duration) -> int:
    """Return *raw* as a positive number of milliseconds."""

    if isinstance(raw, bool):
        raise ConfigError(f"Unsupported duration: {raw!r}")
    if isinstance(raw, int):
        ms = raw
    elif isinstance(raw, str):
        m = _DURATION_RE.match(raw)
        if not m:
            raise ConfigError(f"Unsupported duration: {raw!r}")
        unit = (m.group("unit") or "ms").lower()
        ms = int(m.group("num")) * UNIT_MS[unit]
    else:
        raise ConfigError(f"Unsupported duration: {raw!r}")

    if ms <= 0:
        raise ConfigError(f"Duration must be positive: {raw!r}")
    return ms


def format_duration(ms: int) -> str:
    """Return the most compact string for *ms* (``60000`` → ``"1m"``)."""

    for unit in ("d", "h", "m", "s"):
        size = UNIT_MS[unit]
        if ms % size == 0:
            return f"{ms // size}{unit}"
    return f"{ms}ms"
