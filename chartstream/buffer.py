"""Ordered, de-duplicated, time-bounded sample buffer."""

from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Iterator, List, Optional, Tuple

from .bucketing import bucket_key, fold
from .logging_utils import TRACE_LEVEL
from .models import CandleSample, Sample, SeriesShape, is_finite_sample

__all__ = ["TimeWindowBuffer"]

logger = logging.getLogger(__name__)


class TimeWindowBuffer:
    """
    Samples keyed by bucket start, strictly increasing, at most one per key.

    Two bounds apply: a time horizon enforced by :meth:`evict_older_than`
    (the owner decides what "now" is) and a hard ``max_entries`` cap enforced on
    every insert by dropping the oldest entries.

    Keys live in a sorted list next to the samples so lookup and insertion
    position are found with :func:`bisect.bisect_left`; appends at the leading
    edge, by far the common case, never shift existing entries.
    """

    def __init__(
        self,
        shape: SeriesShape,
        interval_ms: int,
        window_span_ms: int,
        max_entries: int,
    ) -> None:
        if interval_ms <= 0 or window_span_ms <= 0 or max_entries <= 0:
            raise ValueError("interval, window span and max_entries must be positive")
        self.shape = shape
        self.interval_ms = interval_ms
        self.window_span_ms = window_span_ms
        self.max_entries = max_entries
        self._keys: List[int] = []
        self._samples: List[Sample] = []
        self.rejected = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Sample]:
        return iter(tuple(self._samples))

    def __bool__(self) -> bool:
        return bool(self._keys)

    def get(self, key_ms: int) -> Optional[Sample]:
        idx = bisect_left(self._keys, key_ms)
        if idx < len(self._keys) and self._keys[idx] == key_ms:
            return self._samples[idx]
        return None

    @property
    def latest(self) -> Optional[Sample]:
        return self._samples[-1] if self._samples else None

    @property
    def earliest(self) -> Optional[Sample]:
        return self._samples[0] if self._samples else None

    def snapshot(self) -> Tuple[Sample, ...]:
        """Return an immutable ordered copy of the buffer contents."""
        return tuple(self._samples)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _accepts(self, sample: Sample) -> bool:
        wants_candle = self.shape is SeriesShape.OHLC
        if isinstance(sample, CandleSample) is not wants_candle:
            return False
        return is_finite_sample(sample)

    def upsert(self, sample: Sample) -> Optional[Sample]:
        """Fold *sample* into its bucket and return the stored aggregate.

        Samples with a negative or non-finite field, or of the wrong shape, are
        dropped: the call logs a warning, bumps :attr:`rejected` and returns
        ``None``.
        """

        if not self._accepts(sample):
            self.rejected += 1
            logger.warning(
                "Rejected sample %r for %s buffer",
                sample,
                self.shape.value,
                extra={"code_path": f"{__name__}.TimeWindowBuffer.upsert"},
            )
            return None

        key = bucket_key(sample.time_ms, self.interval_ms)
        idx = bisect_left(self._keys, key)
        if idx < len(self._keys) and self._keys[idx] == key:
            merged = fold(sample, self.interval_ms, self._samples[idx], shape=self.shape)
            self._samples[idx] = merged
        else:
            merged = fold(sample, self.interval_ms, None, shape=self.shape)
            if idx == len(self._keys):
                self._keys.append(key)
                self._samples.append(merged)
            else:
                self._keys.insert(idx, key)
                self._samples.insert(idx, merged)
            self._enforce_cap()

        logger.log(
            TRACE_LEVEL,
            "upsert key=%d -> %r",
            key,
            merged,
            extra={"code_path": f"{__name__}.TimeWindowBuffer.upsert"},
        )
        return merged

    def _enforce_cap(self) -> None:
        overflow = len(self._keys) - self.max_entries
        if overflow > 0:
            del self._keys[:overflow]
            del self._samples[:overflow]

    def evict_older_than(self, cutoff_ms: int) -> int:
        """Remove every entry with ``time_ms < cutoff_ms``; return how many went."""

        n = 0
        for key in self._keys:
            if key >= cutoff_ms:
                break
            n += 1
        if n:
            del self._keys[:n]
            del self._samples[:n]
        return n

    def clear(self) -> None:
        self._keys.clear()
        self._samples.clear()
