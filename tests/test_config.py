from __future__ import annotations

import pytest

from chartstream.config import PRESETS, EmissionPolicy, ReconcilerConfig, get_preset
from chartstream.exceptions import ConfigError
from chartstream.models import SeriesShape


def test_defaults() -> None:
    cfg = ReconcilerConfig()
    assert cfg.interval_width == 1_000
    assert cfg.window_span == 300_000
    assert cfg.emission_policy == EmissionPolicy.immediate()
    assert cfg.series_shape is SeriesShape.SCALAR
    assert cfg.fallback_price == 96741.0


def test_durations_and_enums_are_normalised() -> None:
    cfg = ReconcilerConfig(
        interval_width="1ms",
        window_span="30s",
        emission_policy="batched:250ms",
        series_shape="ohlc",
    )
    assert cfg.interval_width == 1
    assert cfg.window_span == 30_000
    assert cfg.emission_policy == EmissionPolicy.batched(250)
    assert cfg.series_shape is SeriesShape.OHLC


@pytest.mark.parametrize(
    "kwargs",
    [
        {"interval_width": 0},
        {"window_span": "soon"},
        {"max_entries": 0},
        {"baseline_window": 0},
        {"target_density": True},
        {"series_shape": "bars"},
        {"emission_policy": "sometimes"},
        {"time_unit": "us"},
    ],
)
def test_invalid_config(kwargs) -> None:
    with pytest.raises(ConfigError):
        ReconcilerConfig(**kwargs)


def test_from_mapping_rejects_unknown_keys() -> None:
    assert ReconcilerConfig.from_mapping({"interval_width": "1s"}).interval_width == 1000
    with pytest.raises(ConfigError, match="colour"):
        ReconcilerConfig.from_mapping({"colour": "red"})


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("immediate", EmissionPolicy.immediate()),
        ("batched", EmissionPolicy.batched(100)),
        ("Batched:1s", EmissionPolicy.batched(1000)),
    ],
)
def test_emission_policy_parse(raw, expected) -> None:
    policy = EmissionPolicy.parse(raw)
    assert policy == expected
    assert EmissionPolicy.parse(str(policy)) == policy


def test_emission_policy_invalid() -> None:
    with pytest.raises(ConfigError):
        EmissionPolicy.parse("immediate:5ms")
    with pytest.raises(ConfigError):
        EmissionPolicy.batched(0)


def test_presets_match_chart_variants() -> None:
    assert set(PRESETS) == {"line", "candlestick", "baseline", "bcandlestick", "area", "options"}

    line = PRESETS["line"]
    assert (line.interval_width, line.window_span, line.max_entries) == (1, 300_000, 300_000)
    assert line.emission_policy == EmissionPolicy.batched(100)

    candles = PRESETS["candlestick"]
    assert candles.series_shape is SeriesShape.OHLC
    assert candles.interval_width == 1_000

    baseline = PRESETS["baseline"]
    assert (baseline.window_span, baseline.baseline_window) == (30_000, 5)

    assert PRESETS["bcandlestick"].time_unit == "ms"
    assert PRESETS["options"].interval_width == 300
    assert PRESETS["options"].max_entries == 200


def test_get_preset_with_overrides() -> None:
    cfg = get_preset("Line", emission_policy="immediate", symbol="ETHUSDT")
    assert cfg.emission_policy == EmissionPolicy.immediate()
    assert cfg.symbol == "ETHUSDT"
    assert PRESETS["line"].symbol == "BTCUSDT"


def test_get_preset_unknown() -> None:
    with pytest.raises(ConfigError, match="unknown preset"):
        get_preset("pie")


def test_as_dict_is_readable() -> None:
    d = PRESETS["line"].as_dict()
    assert d["interval_width"] == "1ms"
    assert d["window_span"] == "5m"
    assert d["emission_policy"] == "batched:100ms"
