"""Fixed-width interval bucketing.

Every raw event is mapped to the start of the interval it falls in and folded
into that interval's running aggregate. Keys are computed on integer
milliseconds so sub-second widths never split one logical interval in two.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import CandleSample, Sample, ScalarSample, SeriesShape

__all__ = ["bucket_key", "fold", "fold_many"]


def bucket_key(time_ms: int, width_ms: int) -> int:
    """Return the start of the *width_ms* interval containing *time_ms*."""

    if width_ms <= 0:
        raise ValueError(f"bucket width must be positive: {width_ms}")
    return (time_ms // width_ms) * width_ms


def _shape_of(event: Sample, existing: Optional[Sample]) -> SeriesShape:
    ref = existing if existing is not None else event
    return SeriesShape.OHLC if isinstance(ref, CandleSample) else SeriesShape.SCALAR


def fold(
    event: Sample,
    width_ms: int,
    existing: Optional[Sample] = None,
    *,
    shape: SeriesShape | None = None,
) -> Sample:
    """Fold *event* into the bucket aggregate *existing*.

    Scalar series: last tick in the interval wins.

    Candle series: a new bucket starts from the event (a raw tick yields a flat
    candle); an existing bucket keeps its ``open`` and tracks the event's
    close in ``high``/``low``/``close``. ``open`` is set once and never bounds
    ``high``/``low`` afterwards.

    *shape* defaults to the shape of *existing*, or of *event* for a new bucket.
    """

    key = bucket_key(event.time_ms, width_ms)
    shape = shape or _shape_of(event, existing)

    if shape is SeriesShape.SCALAR:
        return ScalarSample(time_ms=key, value=event.value)

    if existing is None:
        if isinstance(event, CandleSample):
            return event.at(key)
        return CandleSample.flat(key, event.value)

    price = event.close
    return CandleSample(
        time_ms=key,
        open=existing.open,  # type: ignore[union-attr]
        high=max(existing.high, price),  # type: ignore[union-attr]
        low=min(existing.low, price),  # type: ignore[union-attr]
        close=price,
    )


def fold_many(
    events: Iterable[Sample], width_ms: int, *, shape: SeriesShape | None = None
) -> List[Sample]:
    """Fold *events* in arrival order and return the buckets sorted by key."""

    buckets: dict[int, Sample] = {}
    for event in events:
        key = bucket_key(event.time_ms, width_ms)
        buckets[key] = fold(event, width_ms, buckets.get(key), shape=shape)
    return [buckets[k] for k in sorted(buckets)]
