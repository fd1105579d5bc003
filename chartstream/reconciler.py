"""
Streaming reconciliation engine.

:class:`StreamReconciler` owns one :class:`~chartstream.buffer.TimeWindowBuffer`
per chart session. It seeds the buffer from history, folds live events into it,
evicts stale entries, recomputes the rolling baseline and hands immutable
:class:`Snapshot` objects to registered sinks.

Every reconciliation step samples the clock exactly once; bucketing, eviction
and the visible range of the emitted snapshot all use that single value.

The reconciler is synchronous and single-writer. Callers running several
tasks (see :mod:`chartstream.session`) must funnel every call for one instance
through the same task.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Iterable, List, Optional, Tuple

from .baseline import RollingBaseline
from .bootstrap import HistoricalBootstrapper
from .buffer import TimeWindowBuffer
from .config import ReconcilerConfig
from .exceptions import InvalidStateError, MalformedSampleError
from .logging_utils import TRACE_LEVEL, trace
from .models import BaselinePoint, Sample, parse_sample

__all__ = ["SessionState", "Snapshot", "StreamReconciler"]

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
SnapshotCallback = Callable[["Snapshot"], Any]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of one chart session at one reconciliation step."""

    seq: int
    samples: Tuple[Sample, ...]
    baseline: Tuple[BaselinePoint, ...]
    visible_range: Tuple[float, float]
    degraded: bool = False

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def latest(self) -> Optional[Sample]:
        return self.samples[-1] if self.samples else None

    def as_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "samples": [s.as_dict() for s in self.samples],
            "baseline": [b.as_dict() for b in self.baseline],
            "visible_range": {"from": self.visible_range[0], "to": self.visible_range[1]},
            "degraded": self.degraded,
        }


class StreamReconciler:
    """
    Single-session state machine: ``UNINITIALIZED → BOOTSTRAPPING → READY → CLOSED``.

    Example
    -------
    >>> rec = StreamReconciler(get_preset("baseline"))
    >>> rec.on_snapshot(print)
    >>> rec.begin_bootstrap()
    >>> rec.commit_seed(history)
    >>> rec.submit({"time": 1_700_000_000.25, "value": 42_000.0})
    """

    def __init__(self, config: ReconcilerConfig, *, clock: Clock = time.time) -> None:
        self.config = config
        self._clock = clock
        self._buffer = TimeWindowBuffer(
            config.series_shape,
            config.interval_width,
            config.window_span,
            config.max_entries,
        )
        self._baseline = RollingBaseline(config.baseline_window)
        self._bootstrapper = HistoricalBootstrapper(
            config.series_shape,
            config.interval_width,
            config.target_density,
            time_unit=config.history_time_unit,
        )
        self._state = SessionState.UNINITIALIZED
        self._pending: Deque[Any] = deque()
        self._callbacks: List[SnapshotCallback] = []
        self._seq = 0
        self._degraded = False
        self._last: Optional[Snapshot] = None
        self.accepted = 0
        self.rejected = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def latest(self) -> Optional[Snapshot]:
        """Last emitted snapshot, ``None`` before the first emission."""
        return self._last

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def buffer(self) -> TimeWindowBuffer:
        return self._buffer

    # ------------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------------

    def on_snapshot(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register *callback* for every emitted snapshot; return a disposer."""

        self._callbacks.append(callback)

        def _dispose() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _dispose

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _transition(self, target: SessionState, *allowed: SessionState) -> None:
        if self._state not in allowed:
            raise InvalidStateError(f"cannot move from {self._state.value} to {target.value}")
        logger.info(
            "%s session %s -> %s",
            self.config.symbol,
            self._state.value,
            target.value,
            extra={"code_path": f"{__name__}.StreamReconciler._transition"},
        )
        self._state = target

    def begin_bootstrap(self) -> None:
        """A rendering surface exists; history may now be fetched."""
        self._transition(SessionState.BOOTSTRAPPING, SessionState.UNINITIALIZED)

    @trace
    def commit_seed(
        self,
        batch: Iterable[Any],
        *,
        degraded: bool = False,
        now: float | None = None,
    ) -> Optional[Snapshot]:
        """Seed the buffer from *batch*, replay queued live events, emit.

        *degraded* marks a session whose history fetch failed; the empty seed
        falls back to the configured price and live updates still render.
        """

        if self._state is SessionState.UNINITIALIZED:
            self.begin_bootstrap()
        self._transition(SessionState.READY, SessionState.BOOTSTRAPPING)
        self._degraded = degraded

        now_ms = self._now_ms(now)
        seed = self._bootstrapper.bootstrap(
            batch,
            window_start_ms=now_ms - self.config.window_span,
            now_ms=now_ms,
            fallback_price=self.config.fallback_price,
        )
        for sample in seed:
            self._buffer.upsert(sample)

        queued = list(self._pending)
        self._pending.clear()
        for payload in queued:
            self._apply(payload)
        if queued:
            logger.debug(
                "Replayed %d live events queued during bootstrap",
                len(queued),
                extra={"code_path": f"{__name__}.StreamReconciler.commit_seed"},
            )
        return self._publish(now_ms)

    def close(self) -> None:
        """Tear the session down; nothing is emitted afterwards."""

        if self._state is SessionState.CLOSED:
            return
        self._transition(
            SessionState.CLOSED,
            SessionState.UNINITIALIZED,
            SessionState.BOOTSTRAPPING,
            SessionState.READY,
        )
        self._callbacks.clear()
        self._pending.clear()
        self._buffer.clear()

    # ------------------------------------------------------------------
    # Live events
    # ------------------------------------------------------------------

    def submit(self, payload: Any, *, now: float | None = None) -> bool:
        """Hand one raw live event to the engine. Never blocks, never raises.

        Returns ``True`` when the event was applied or queued.
        """

        if self._state is SessionState.CLOSED:
            logger.log(
                TRACE_LEVEL,
                "Ignoring event after close",
                extra={"code_path": f"{__name__}.StreamReconciler.submit"},
            )
            return False

        if self._state is not SessionState.READY or self.config.emission_policy.is_batched:
            self._pending.append(payload)
            return True

        if not self._apply(payload):
            return False
        self._publish(self._now_ms(now))
        return True

    def flush(self, now: float | None = None) -> Optional[Snapshot]:
        """Apply every queued event in one step and emit once if any landed."""

        if self._state is not SessionState.READY or not self._pending:
            return None
        queued = list(self._pending)
        self._pending.clear()
        changed = 0
        for payload in queued:
            changed += self._apply(payload)
        if not changed:
            return None
        return self._publish(self._now_ms(now))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now_ms(self, now: float | None) -> int:
        return int(round((self._clock() if now is None else now) * 1000))

    def _apply(self, payload: Any) -> bool:
        try:
            sample = parse_sample(payload, self.config.series_shape, time_unit=self.config.time_unit)
        except MalformedSampleError as exc:
            self.rejected += 1
            logger.warning(
                "Dropping malformed live event %r: %s",
                payload,
                exc,
                extra={"code_path": f"{__name__}.StreamReconciler._apply"},
            )
            return False
        if self._buffer.upsert(sample) is None:
            self.rejected += 1
            return False
        self.accepted += 1
        return True

    def _publish(self, now_ms: int) -> Optional[Snapshot]:
        cutoff = now_ms - self.config.window_span
        evicted = self._buffer.evict_older_than(cutoff)
        samples = self._buffer.snapshot()
        self._seq += 1
        snap = Snapshot(
            seq=self._seq,
            samples=samples,
            baseline=self._baseline.recompute(samples),
            visible_range=(cutoff / 1000, now_ms / 1000),
            degraded=self._degraded,
        )
        self._last = snap
        logger.log(
            TRACE_LEVEL,
            "emit seq=%d size=%d evicted=%d",
            snap.seq,
            len(samples),
            evicted,
            extra={"code_path": f"{__name__}.StreamReconciler._publish"},
        )
        for cb in list(self._callbacks):
            if self._state is SessionState.CLOSED:
                break
            try:
                cb(snap)
            except Exception:
                logger.exception(
                    "Snapshot callback failed",
                    extra={"code_path": f"{__name__}.StreamReconciler._publish"},
                )
        return snap
