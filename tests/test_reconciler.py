from __future__ import annotations

import logging
from typing import List

import pytest

from chartstream.config import EmissionPolicy, ReconcilerConfig
from chartstream.exceptions import InvalidStateError
from chartstream.models import CandleSample, ScalarSample
from chartstream.reconciler import SessionState, Snapshot, StreamReconciler

NOW = 1_700_000_000.0
NOW_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _config(**overrides) -> ReconcilerConfig:
    base = dict(interval_width="1s", window_span="60s", baseline_window=2, fallback_price=100.0)
    base.update(overrides)
    return ReconcilerConfig(**base)


def _reconciler(**overrides):
    clock = FakeClock()
    rec = StreamReconciler(_config(**overrides), clock=clock)
    out: List[Snapshot] = []
    rec.on_snapshot(out.append)
    return rec, clock, out


def test_state_machine() -> None:
    rec, _, _ = _reconciler()
    assert rec.state is SessionState.UNINITIALIZED
    rec.begin_bootstrap()
    assert rec.state is SessionState.BOOTSTRAPPING
    with pytest.raises(InvalidStateError):
        rec.begin_bootstrap()
    rec.commit_seed([])
    assert rec.state is SessionState.READY
    with pytest.raises(InvalidStateError):
        rec.commit_seed([])
    rec.close()
    assert rec.state is SessionState.CLOSED
    rec.close()


def test_fallback_seed_then_live_tick() -> None:
    rec, _, out = _reconciler()
    first = rec.commit_seed([])
    assert first.samples == (ScalarSample(NOW_MS - 60_000, 100.0),)

    assert rec.submit({"time": NOW, "value": 105.0})
    snap = out[-1]
    assert len(snap) == 2
    assert snap.latest == ScalarSample(NOW_MS, 105.0)
    assert [b.value for b in snap.baseline] == [102.5]
    assert snap.visible_range == (NOW - 60, NOW)
    assert [s.seq for s in out] == [1, 2]


def test_events_during_bootstrap_are_replayed() -> None:
    rec, _, out = _reconciler()
    rec.begin_bootstrap()
    assert rec.submit({"time": NOW - 1, "value": 101.0})
    assert rec.submit({"time": NOW, "value": 102.0})
    assert rec.pending == 2
    assert out == []

    snap = rec.commit_seed([{"time": NOW - 30, "value": 99.0}])
    assert rec.pending == 0
    assert snap.latest == ScalarSample(NOW_MS, 102.0)
    assert ScalarSample(NOW_MS - 1000, 101.0) in snap.samples
    assert len(out) == 1


def test_seed_is_interpolated_at_bucket_width() -> None:
    rec, _, _ = _reconciler()
    snap = rec.commit_seed(
        [{"time": NOW - 4, "value": 10.0}, {"time": NOW, "value": 14.0}]
    )
    assert [s.value for s in snap.samples] == [10.0, 11.0, 12.0, 13.0, 14.0]


def test_duplicate_event_is_idempotent() -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([])
    rec.submit({"time": NOW, "value": 105.0})
    before = out[-1].samples
    rec.submit({"time": NOW, "value": 105.0})
    assert out[-1].samples == before


def test_stale_entries_are_evicted_as_clock_advances() -> None:
    rec, clock, out = _reconciler()
    rec.commit_seed([])
    clock.now = NOW + 1
    rec.submit({"time": NOW + 1, "value": 105.0})
    assert [s.time_ms for s in out[-1].samples] == [NOW_MS + 1000]
    assert out[-1].visible_range == (NOW - 59, NOW + 1)


def test_snapshots_are_immutable_views() -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([])
    first = out[-1]
    rec.submit({"time": NOW, "value": 1.0})
    assert len(first) == 1
    assert isinstance(first.samples, tuple)


def test_millisecond_events_do_not_collapse() -> None:
    rec, _, out = _reconciler(interval_width="1ms")
    rec.commit_seed([])
    rec.submit({"time": NOW + 0.001, "value": 1.0})
    rec.submit({"time": NOW + 0.002, "value": 2.0})
    assert [s.time_ms for s in out[-1].samples][-2:] == [NOW_MS + 1, NOW_MS + 2]


def test_candle_series_folds_ticks() -> None:
    rec, _, out = _reconciler(series_shape="ohlc")
    rec.commit_seed([])
    for offset, price in ((0.0, 5.0), (0.25, 2.0), (0.5, 8.0), (0.75, 3.0)):
        rec.submit({"time": NOW + offset, "value": price})
    assert out[-1].latest == CandleSample(NOW_MS, open=5.0, high=8.0, low=2.0, close=3.0)


def test_malformed_and_non_finite_events_are_dropped(caplog) -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([])
    with caplog.at_level(logging.WARNING):
        assert not rec.submit({"time": "soon", "value": 1.0})
        assert not rec.submit({"time": NOW, "value": float("nan")})
        assert not rec.submit(["not", "a", "mapping"])
    assert rec.rejected == 3
    assert rec.accepted == 0
    assert len(out) == 1
    assert "Dropping malformed live event" in caplog.text


def test_batched_policy_coalesces_until_flush() -> None:
    rec, _, out = _reconciler(emission_policy=EmissionPolicy.batched(100))
    rec.commit_seed([])
    for price in (1.0, 2.0, 3.0):
        assert rec.submit({"time": NOW, "value": price})
    assert len(out) == 1
    assert rec.pending == 3

    snap = rec.flush()
    assert len(out) == 2
    assert snap.latest == ScalarSample(NOW_MS, 3.0)
    assert rec.flush() is None
    assert len(out) == 2


def test_flush_with_only_rejected_events_does_not_emit() -> None:
    rec, _, out = _reconciler(emission_policy="batched")
    rec.commit_seed([])
    rec.submit({"time": NOW})
    assert rec.flush() is None
    assert len(out) == 1


def test_failing_callback_does_not_stop_others(caplog) -> None:
    rec, _, out = _reconciler()

    def boom(snap: Snapshot) -> None:
        raise RuntimeError("renderer gone")

    rec.on_snapshot(boom)
    later: List[Snapshot] = []
    rec.on_snapshot(later.append)
    with caplog.at_level(logging.ERROR):
        rec.commit_seed([])
    assert len(out) == 1 and len(later) == 1
    assert "Snapshot callback failed" in caplog.text


def test_dispose_unregisters_callback() -> None:
    rec, _, out = _reconciler()
    seen: List[Snapshot] = []
    dispose = rec.on_snapshot(seen.append)
    dispose()
    dispose()
    rec.commit_seed([])
    assert seen == []
    assert len(out) == 1


def test_nothing_is_emitted_after_close() -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([])
    rec.close()
    assert not rec.submit({"time": NOW, "value": 1.0})
    assert rec.flush() is None
    assert len(out) == 1
    assert len(rec.buffer) == 0


def test_close_during_bootstrap_discards_queue() -> None:
    rec, _, out = _reconciler()
    rec.begin_bootstrap()
    rec.submit({"time": NOW, "value": 1.0})
    rec.close()
    assert rec.pending == 0
    with pytest.raises(InvalidStateError):
        rec.commit_seed([])
    assert out == []


def test_degraded_flag_is_carried() -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([], degraded=True)
    rec.submit({"time": NOW, "value": 1.0})
    assert all(s.degraded for s in out)
    assert out[-1].as_dict()["degraded"] is True


def test_max_entries_caps_snapshot() -> None:
    rec, _, out = _reconciler(max_entries=3)
    rec.commit_seed([])
    for i in range(5):
        rec.submit({"time": NOW - 4 + i, "value": float(i)})
    assert [s.value for s in out[-1].samples] == [2.0, 3.0, 4.0]


@pytest.mark.parametrize(
    "payload",
    [
        {"time": 1e306, "value": 1.0},
        {"time": 10**400, "value": 1.0},
        {"time": NOW, "value": 10**400},
        {"time": NOW, "open": 1, "high": 10**400, "low": 0, "close": 1},
    ],
)
def test_out_of_range_numbers_are_rejected_not_raised(payload) -> None:
    rec, _, out = _reconciler()
    rec.commit_seed([])
    assert rec.submit(payload) is False
    assert rec.rejected == 1
    assert rec.state is SessionState.READY
    assert rec.submit({"time": NOW, "value": 105.0})
    assert out[-1].latest == ScalarSample(NOW_MS, 105.0)


def test_out_of_range_history_seeds_fallback() -> None:
    rec, _, _ = _reconciler()
    snap = rec.commit_seed([{"time": NOW - 1, "value": 10**400}])
    assert snap.samples == (ScalarSample(NOW_MS - 60_000, 100.0),)
