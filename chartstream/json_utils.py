from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any


def to_json(obj: Any) -> str:
    """Return a compact JSON string for snapshots, samples and configs.

    Objects exposing ``as_dict()`` (samples, snapshots, configs) are encoded
    through it so timestamps come out in seconds; other dataclasses fall back to
    :func:`dataclasses.asdict`.

    >>> to_json(ScalarSample(time_ms=1500, value=2.0))
    '{"time":1.5,"value":2.0}'
    """

    def _encoder(o: Any) -> Any:  # noqa: D401
        as_dict = getattr(o, "as_dict", None)
        if callable(as_dict):
            return as_dict()
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return dataclasses.asdict(o)
        if isinstance(o, Enum):
            return o.value
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serialisable")

    return json.dumps(obj, default=_encoder, separators=(",", ":"))
