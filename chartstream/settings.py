"""Environment-driven defaults.

Values are read once at import time. Every name can be overridden through the
environment variable of the same name prefixed with ``CHARTSTREAM_``.
"""

from __future__ import annotations

import os

__all__ = [
    "API_URL",
    "WS_URL",
    "HISTORY_RETRIES",
    "HISTORY_RETRY_DELAY",
    "HISTORY_TIMEOUT",
    "RECONNECT_MAX_DELAY",
    "DEFAULT_FALLBACK_PRICE",
    "HUB_BACKLOG",
]


def _env(name: str, default: str) -> str:
    return os.getenv(f"CHARTSTREAM_{name}", default)


API_URL: str = _env("API_URL", "http://localhost:1002")
WS_URL: str = _env("WS_URL", "ws://localhost:1002/hl_price")

# Historical fetch: bounded retry before falling back to an empty seed.
HISTORY_RETRIES: int = int(_env("HISTORY_RETRIES", "3"))
HISTORY_RETRY_DELAY: float = float(_env("HISTORY_RETRY_DELAY", "1.0"))
HISTORY_TIMEOUT: float = float(_env("HISTORY_TIMEOUT", "10.0"))

# Upper bound for the live feed reconnect backoff, seconds.
RECONNECT_MAX_DELAY: float = float(_env("RECONNECT_MAX_DELAY", "30.0"))

DEFAULT_FALLBACK_PRICE: float = float(_env("FALLBACK_PRICE", "96741.0"))

# Per-subscriber backlog of the live event hub.
HUB_BACKLOG: int = int(_env("HUB_BACKLOG", "10000"))
