from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from .exceptions import MalformedSampleError

__all__ = [
    "SeriesShape",
    "ScalarSample",
    "CandleSample",
    "Sample",
    "BaselinePoint",
    "parse_sample",
    "coerce_sample",
    "is_finite_sample",
    "to_ms",
]


class SeriesShape(str, Enum):
    """Shape of every sample held by one buffer."""

    SCALAR = "scalar"
    OHLC = "ohlc"


@dataclass(frozen=True)
class ScalarSample:
    """Timestamped scalar point (line / baseline / area series)."""

    time_ms: int
    value: float

    @property
    def time(self) -> float:
        """Timestamp in seconds since epoch."""
        return self.time_ms / 1000

    @property
    def close(self) -> float:
        return self.value

    def at(self, time_ms: int) -> "ScalarSample":
        return ScalarSample(time_ms=time_ms, value=self.value)

    def as_dict(self) -> dict[str, float]:
        return {"time": self.time, "value": self.value}


@dataclass(frozen=True)
class CandleSample:
    """OHLC quad keyed by its bucket start."""

    time_ms: int
    open: float
    high: float
    low: float
    close: float

    @property
    def time(self) -> float:
        """Timestamp in seconds since epoch."""
        return self.time_ms / 1000

    @property
    def value(self) -> float:
        return self.close

    def at(self, time_ms: int) -> "CandleSample":
        return CandleSample(
            time_ms=time_ms, open=self.open, high=self.high, low=self.low, close=self.close
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    @classmethod
    def flat(cls, time_ms: int, price: float) -> "CandleSample":
        """Return a candle with ``open == high == low == close == price``."""
        return cls(time_ms=time_ms, open=price, high=price, low=price, close=price)


Sample = Union[ScalarSample, CandleSample]


@dataclass(frozen=True)
class BaselinePoint:
    """One rolling-baseline value aligned with a buffer entry."""

    time_ms: int
    value: float

    @property
    def time(self) -> float:
        return self.time_ms / 1000

    def as_dict(self) -> dict[str, float]:
        return {"time": self.time, "value": self.value}


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

_OHLC_KEYS = ("open", "high", "low", "close")


def _number(payload: Mapping[str, Any], key: str) -> float:
    try:
        raw = payload[key]
    except KeyError:
        raise MalformedSampleError(f"missing field {key!r}") from None
    # bool is an int subclass; a JSON ``true`` is never a price.
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedSampleError(f"field {key!r} is not a number: {raw!r}")
    try:
        return float(raw)
    except OverflowError:
        raise MalformedSampleError(f"field {key!r} is out of range") from None


def to_ms(raw_time: float, time_unit: str) -> int:
    """Convert a raw timestamp to integer milliseconds.

    Seconds are rounded to the nearest millisecond: ``1.001 * 1000`` evaluates
    to ``1000.9999999999999`` and must still land in the ``1001`` bucket.
    """

    if time_unit == "s":
        scaled = raw_time * 1000
    elif time_unit == "ms":
        scaled = raw_time
    else:
        raise ValueError(f"unknown time unit: {time_unit!r}")
    # A finite time in seconds can still overflow once scaled to ms.
    if not math.isfinite(scaled):
        raise MalformedSampleError(f"non-finite time: {raw_time!r}")
    return int(round(scaled))


def parse_sample(
    payload: Any, shape: SeriesShape, *, time_unit: str = "s"
) -> Sample:
    """Return a sample of *shape* built from a raw feed payload.

    *payload* is a mapping with ``time`` and either ``value`` or the four OHLC
    fields. Missing fields and wrong types raise :class:`MalformedSampleError`;
    non-finite numbers pass through so the buffer can reject and count them.
    """

    if not isinstance(payload, Mapping):
        raise MalformedSampleError(f"payload is not a mapping: {type(payload).__name__}")

    raw_time = _number(payload, "time")
    time_ms = to_ms(raw_time, time_unit)

    if all(k in payload for k in _OHLC_KEYS):
        o, h, l, c = (_number(payload, k) for k in _OHLC_KEYS)  # noqa: E741
        candle = CandleSample(time_ms=time_ms, open=o, high=h, low=l, close=c)
        return coerce_sample(candle, shape)
    if "value" in payload:
        return coerce_sample(ScalarSample(time_ms=time_ms, value=_number(payload, "value")), shape)
    if "close" in payload:
        return coerce_sample(ScalarSample(time_ms=time_ms, value=_number(payload, "close")), shape)
    raise MalformedSampleError("payload has neither 'value' nor OHLC fields")


def coerce_sample(sample: Sample, shape: SeriesShape) -> Sample:
    """Return *sample* converted to *shape*.

    A scalar fed to an OHLC series becomes a flat candle; a candle fed to a
    scalar series contributes its close.
    """

    if shape is SeriesShape.OHLC:
        if isinstance(sample, CandleSample):
            return sample
        return CandleSample.flat(sample.time_ms, sample.value)
    if isinstance(sample, ScalarSample):
        return sample
    return ScalarSample(time_ms=sample.time_ms, value=sample.close)


def is_finite_sample(sample: Sample) -> bool:
    """Return ``True`` when the time is non-negative and every number is finite."""

    if sample.time_ms < 0:
        return False
    if isinstance(sample, CandleSample):
        values = (sample.open, sample.high, sample.low, sample.close)
    else:
        values = (sample.value,)
    return all(math.isfinite(v) for v in values)
