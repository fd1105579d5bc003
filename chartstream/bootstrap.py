"""Seed a chart window from a coarse historical batch.

Historical endpoints return one-minute candles while the live feed ticks at
sub-second cadence. Joining the two as-is leaves a visible density step at the
seam, so the batch is densified to the live bucket width by linear
interpolation before it is committed to the buffer.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List

from .exceptions import MalformedSampleError
from .models import (
    CandleSample,
    Sample,
    ScalarSample,
    SeriesShape,
    is_finite_sample,
    parse_sample,
)

__all__ = ["HistoricalBootstrapper"]

logger = logging.getLogger(__name__)


class HistoricalBootstrapper:
    """Turn a raw historical batch into a dense, ordered seed.

    Args:
        shape: series shape of the target buffer.
        step_ms: spacing of synthesised points (the live bucket width).
        target_density: maximum number of samples in the seed; only the most
            recent ones are produced.
        time_unit: unit of the ``time`` field in the raw batch (``"s"``/``"ms"``).
    """

    def __init__(
        self,
        shape: SeriesShape,
        step_ms: int,
        target_density: int,
        *,
        time_unit: str = "s",
    ) -> None:
        if step_ms <= 0:
            raise ValueError("step_ms must be positive")
        if target_density <= 0:
            raise ValueError("target_density must be positive")
        self.shape = shape
        self.step_ms = step_ms
        self.target_density = target_density
        self.time_unit = time_unit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def bootstrap(
        self,
        batch: Iterable[Any],
        *,
        window_start_ms: int,
        now_ms: int,
        fallback_price: float,
    ) -> List[Sample]:
        """Return the seed for a window ``[window_start_ms, now_ms]``.

        Never returns an empty list: without usable history a single fallback
        sample is placed at *window_start_ms*.
        """

        points = self._clean(batch)
        in_window = [p for p in points if window_start_ms <= p.time_ms <= now_ms]

        if not in_window:
            price = points[-1].close if points else fallback_price
            logger.warning(
                "No usable history in window; seeding fallback price %s",
                price,
                extra={"code_path": f"{__name__}.HistoricalBootstrapper.bootstrap"},
            )
            return [self._flat(window_start_ms, price)]

        if len(in_window) == 1:
            seed = self._replicate(in_window[0])
        else:
            seed = self._interpolate(in_window)

        logger.debug(
            "Seeded %d samples from %d historical points",
            len(seed),
            len(in_window),
            extra={"code_path": f"{__name__}.HistoricalBootstrapper.bootstrap"},
        )
        return seed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clean(self, batch: Iterable[Any]) -> List[Sample]:
        by_time: dict[int, Sample] = {}
        for raw in batch or ():
            try:
                sample = parse_sample(raw, self.shape, time_unit=self.time_unit)
            except MalformedSampleError as exc:
                logger.warning(
                    "Dropping malformed historical entry %r: %s",
                    raw,
                    exc,
                    extra={"code_path": f"{__name__}.HistoricalBootstrapper._clean"},
                )
                continue
            if not is_finite_sample(sample):
                logger.warning(
                    "Dropping non-finite historical entry %r",
                    raw,
                    extra={"code_path": f"{__name__}.HistoricalBootstrapper._clean"},
                )
                continue
            by_time[sample.time_ms] = sample
        return [by_time[t] for t in sorted(by_time)]

    def _flat(self, time_ms: int, price: float) -> Sample:
        if self.shape is SeriesShape.OHLC:
            return CandleSample.flat(time_ms, price)
        return ScalarSample(time_ms=time_ms, value=price)

    def _replicate(self, point: Sample) -> List[Sample]:
        n = self.target_density
        start = point.time_ms - (n - 1) * self.step_ms
        seed: List[Sample] = []
        for j in range(n):
            # Replicas that would precede the epoch pile up at 0; the buffer
            # folds them into one bucket.
            t = max(start + j * self.step_ms, 0)
            seed.append(point if t == point.time_ms else self._flat(t, point.close))
        return seed

    def _interpolate(self, points: List[Sample]) -> List[Sample]:
        step = self.step_ms
        last = points[-1]
        # Earliest timestamp that can survive truncation to target_density.
        cut = last.time_ms - (self.target_density - 1) * step

        seed: List[Sample] = []
        for p0, p1 in zip(points, points[1:]):
            if p1.time_ms <= cut:
                continue
            t0, t1 = p0.time_ms, p1.time_ms
            v0, v1 = p0.close, p1.close
            steps = (t1 - t0) / step
            j = 0 if t0 >= cut else math.ceil((cut - t0) / step)
            while t0 + j * step < t1:
                t = t0 + j * step
                if j == 0:
                    seed.append(p0)
                else:
                    seed.append(self._flat(t, v0 + (v1 - v0) * (j / steps)))
                j += 1
        seed.append(last)
        return seed[-self.target_density :]
