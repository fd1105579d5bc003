from __future__ import annotations

import json
from typing import Any, Collection, Mapping, Optional

__all__ = ["LIVE_EVENTS", "decode_event_frame"]

# Event names the price backend pushes on its /hl_price namespace.
LIVE_EVENTS = ("tradeUpdate", "chartUpdate")


def decode_event_frame(
    raw: str | bytes | Mapping[str, Any],
    events: Collection[str] = LIVE_EVENTS,
) -> Optional[Mapping[str, Any]]:
    """Return the data mapping carried by a live frame or ``None``.

    Two frame layouts are accepted: an envelope
    ``{"event": "tradeUpdate", "data": {...}}`` and a bare payload
    ``{"time": ..., "value": ...}``. Envelopes whose event name is not in
    *events* are ignored. Field validation is left to the reconciler.

    Example
    -------
    >>> decode_event_frame('{"event":"tradeUpdate","data":{"time":1.5,"value":2}}')
    {'time': 1.5, 'value': 2}
    """

    if isinstance(raw, (str, bytes)):
        try:
            msg = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
    else:
        msg = raw

    if not isinstance(msg, Mapping):
        return None

    if "event" in msg:
        if msg["event"] not in events:
            return None
        data = msg.get("data")
        return data if isinstance(data, Mapping) else None

    return msg if "time" in msg else None
