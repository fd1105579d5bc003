"""Trailing simple moving average over the last *k* buffer entries."""

from __future__ import annotations

from typing import Sequence, Tuple

from .exceptions import ConfigError
from .models import BaselinePoint, Sample

__all__ = ["RollingBaseline", "DEFAULT_BASELINE_WINDOW"]

DEFAULT_BASELINE_WINDOW = 5


class RollingBaseline:
    """Stateless view deriving baseline points from buffer contents.

    ``recompute()`` starts from scratch on every call: the buffer evicts and
    re-orders eagerly, so a running sum kept across calls would drift.
    """

    def __init__(self, window: int = DEFAULT_BASELINE_WINDOW) -> None:
        if window < 1:
            raise ConfigError(f"baseline window must be >= 1, got {window}")
        self.window = window

    def recompute(self, samples: Sequence[Sample]) -> Tuple[BaselinePoint, ...]:
        """Return points aligned one-to-one with ``samples[window - 1:]``."""

        k = self.window
        if len(samples) < k:
            return ()
        values = [s.value for s in samples]
        points = []
        for i in range(k - 1, len(values)):
            window = values[i - k + 1 : i + 1]
            points.append(BaselinePoint(time_ms=samples[i].time_ms, value=sum(window) / k))
        return tuple(points)
