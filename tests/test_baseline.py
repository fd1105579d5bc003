import pytest

from chartstream.baseline import RollingBaseline
from chartstream.exceptions import ConfigError
from chartstream.models import BaselinePoint, CandleSample, ScalarSample


def _series(values):
    return [ScalarSample(i * 1000, float(v)) for i, v in enumerate(values)]


@pytest.mark.parametrize("n", range(0, 9))
def test_length_matches_window(n: int) -> None:
    assert len(RollingBaseline(5).recompute(_series(range(n)))) == max(0, n - 4)


def test_trailing_mean_aligned_with_samples() -> None:
    points = RollingBaseline(3).recompute(_series([1, 2, 3, 4, 5]))
    assert points == (
        BaselinePoint(2000, 2.0),
        BaselinePoint(3000, 3.0),
        BaselinePoint(4000, 4.0),
    )


def test_window_of_one_mirrors_series() -> None:
    samples = _series([3, 1, 4])
    assert [p.value for p in RollingBaseline(1).recompute(samples)] == [3.0, 1.0, 4.0]


def test_candles_use_close() -> None:
    candles = [CandleSample(0, 1, 9, 0, 2.0), CandleSample(1000, 1, 9, 0, 4.0)]
    (point,) = RollingBaseline(2).recompute(candles)
    assert point == BaselinePoint(1000, 3.0)


def test_invalid_window() -> None:
    with pytest.raises(ConfigError):
        RollingBaseline(0)
