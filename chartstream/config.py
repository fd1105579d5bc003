"""Reconciler configuration and the named chart presets."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from . import settings
from .baseline import DEFAULT_BASELINE_WINDOW
from .exceptions import ConfigError
from .intervals import Duration, format_duration, parse_duration
from .models import SeriesShape

__all__ = ["EmissionPolicy", "ReconcilerConfig", "PRESETS", "get_preset"]

IMMEDIATE = "immediate"
BATCHED = "batched"


@dataclass(frozen=True)
class EmissionPolicy:
    """When snapshots are handed to the sink.

    ``immediate`` emits after every accepted event; ``batched`` accumulates
    events for ``quantum_ms`` and emits once per quantum.
    """

    kind: str = IMMEDIATE
    quantum_ms: int = 100

    def __post_init__(self) -> None:
        if self.kind not in (IMMEDIATE, BATCHED):
            raise ConfigError(f"unknown emission policy: {self.kind!r}")
        if self.quantum_ms <= 0:
            raise ConfigError("batch quantum must be positive")

    @classmethod
    def immediate(cls) -> "EmissionPolicy":
        return cls(IMMEDIATE)

    @classmethod
    def batched(cls, quantum_ms: int = 100) -> "EmissionPolicy":
        return cls(BATCHED, quantum_ms)

    @property
    def is_batched(self) -> bool:
        return self.kind == BATCHED

    @classmethod
    def parse(cls, raw: "str | EmissionPolicy") -> "EmissionPolicy":
        """Parse ``"immediate"``, ``"batched"`` or ``"batched:250ms"``."""
        if isinstance(raw, EmissionPolicy):
            return raw
        kind, _, quantum = str(raw).strip().lower().partition(":")
        if kind == IMMEDIATE and not quantum:
            return cls.immediate()
        if kind == BATCHED:
            return cls.batched(parse_duration(quantum) if quantum else 100)
        raise ConfigError(f"unknown emission policy: {raw!r}")

    def __str__(self) -> str:
        if self.is_batched:
            return f"{BATCHED}:{format_duration(self.quantum_ms)}"
        return IMMEDIATE


@dataclass(frozen=True)
class ReconcilerConfig:
    """Every knob of one chart session.

    Durations are stored in milliseconds; the constructor accepts strings such
    as ``"1ms"`` or ``"5m"`` and normalises them.
    """

    interval_width: int = 1_000
    window_span: int = 300_000
    max_entries: int = 300_000
    baseline_window: int = DEFAULT_BASELINE_WINDOW
    emission_policy: EmissionPolicy = field(default_factory=EmissionPolicy)
    series_shape: SeriesShape = SeriesShape.SCALAR
    time_unit: str = "s"
    history_time_unit: str = "s"
    target_density: int = 2_000
    history_span: int = 3_600_000
    history_limit: int = 60
    fallback_price: float = settings.DEFAULT_FALLBACK_PRICE
    symbol: str = "BTCUSDT"

    def __post_init__(self) -> None:
        # Normalise on a frozen instance.
        set_ = object.__setattr__
        for name in ("interval_width", "window_span", "history_span"):
            set_(self, name, parse_duration(getattr(self, name)))
        set_(self, "emission_policy", EmissionPolicy.parse(self.emission_policy))
        try:
            set_(self, "series_shape", SeriesShape(self.series_shape))
        except ValueError:
            raise ConfigError(f"unknown series shape: {self.series_shape!r}") from None

        for name in ("max_entries", "baseline_window", "target_density", "history_limit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        for name in ("time_unit", "history_time_unit"):
            if getattr(self, name) not in ("s", "ms"):
                raise ConfigError(f"{name} must be 's' or 'ms'")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReconcilerConfig":
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {sorted(unknown)}")
        return cls(**dict(data))

    def replace(self, **changes: Any) -> "ReconcilerConfig":
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "interval_width": format_duration(self.interval_width),
            "window_span": format_duration(self.window_span),
            "max_entries": self.max_entries,
            "baseline_window": self.baseline_window,
            "emission_policy": str(self.emission_policy),
            "series_shape": self.series_shape.value,
            "time_unit": self.time_unit,
            "target_density": self.target_density,
        }


# ---------------------------------------------------------------------------
# Presets – one per chart variant
# ---------------------------------------------------------------------------

PRESETS: Dict[str, ReconcilerConfig] = {
    # 1 ms line, five-minute horizon, renders in 100 ms batches.
    "line": ReconcilerConfig(
        interval_width="1ms",
        window_span="300s",
        max_entries=300_000,
        emission_policy=EmissionPolicy.batched(100),
        history_span="60m",
        history_limit=60,
    ),
    # 1 s candles from raw ticks, 2000 s horizon.
    "candlestick": ReconcilerConfig(
        interval_width="1s",
        window_span="2000s",
        max_entries=2_000,
        series_shape=SeriesShape.OHLC,
        history_span="2000s",
        history_limit=2_000,
    ),
    # 1 ms line with a 5-point trailing baseline, 30 s horizon.
    "baseline": ReconcilerConfig(
        interval_width="1ms",
        window_span="30s",
        max_entries=30_000,
        baseline_window=5,
        history_span="2m",
        history_limit=2,
    ),
    # Full candles pushed by the feed with millisecond timestamps.
    "bcandlestick": ReconcilerConfig(
        interval_width="1s",
        window_span="30s",
        max_entries=30,
        series_shape=SeriesShape.OHLC,
        time_unit="ms",
        history_time_unit="ms",
        history_span="2m",
        history_limit=30,
    ),
    "area": ReconcilerConfig(
        interval_width="1s",
        window_span="1000m",
        max_entries=1_000,
        history_span="1000m",
        history_limit=1_000,
    ),
    # 300 ms throttled line, 100 s horizon, at most 200 points.
    "options": ReconcilerConfig(
        interval_width="300ms",
        window_span="100s",
        max_entries=200,
        target_density=200,
        history_span="100s",
        history_limit=100,
    ),
}


def get_preset(name: str, **overrides: Any) -> ReconcilerConfig:
    """Return the preset *name*, optionally with fields replaced."""
    try:
        cfg = PRESETS[name.lower()]
    except KeyError:
        raise ConfigError(
            f"unknown preset {name!r}; choose from {', '.join(sorted(PRESETS))}"
        ) from None
    return cfg.replace(**overrides) if overrides else cfg
