"""Async facade binding one reconciler to the shared feed and a history source.

This is the surface an application uses: ``start()``, ``on_snapshot()``,
``stop()`` (or ``async with``).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional

import anyio
import anyio.abc
from anyio.streams.memory import MemoryObjectReceiveStream

from . import settings
from .config import ReconcilerConfig
from .exceptions import HistoricalFetchError, InvalidStateError
from .historic import HistoricalSource, fetch_with_retry
from .hub import EventHub
from .reconciler import Snapshot, SnapshotCallback, StreamReconciler

__all__ = ["ChartSession"]

logger = logging.getLogger(__name__)


class ChartSession:
    """
    One chart's live series: history seed, live merge, snapshot fan-out.

    All reconciler calls happen on the event loop thread, from the consumer
    task, the batch timer or :meth:`start`. None of them awaits while mutating,
    so the reconciler sees a single writer.

    Example
    -------
    >>> async with FeedConnection(url) as feed:
    ...     session = ChartSession(get_preset("baseline"), hub=feed.hub,
    ...                            source=HttpHistoricalSource())
    ...     session.on_snapshot(render)
    ...     async with session:
    ...         await anyio.sleep_forever()
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        *,
        hub: EventHub[Any],
        source: Optional[HistoricalSource] = None,
        clock: Callable[[], float] = time.time,
        retries: int = settings.HISTORY_RETRIES,
        retry_delay: float = settings.HISTORY_RETRY_DELAY,
    ) -> None:
        self.config = config
        self._hub = hub
        self._source = source
        self._clock = clock
        self._retries = retries
        self._retry_delay = retry_delay
        self._reconciler = StreamReconciler(config, clock=clock)
        self._reconciler.on_snapshot(self._forward)
        self._callbacks: List[SnapshotCallback] = []
        self._recv: MemoryObjectReceiveStream[Any] | None = None
        self._tg: anyio.abc.TaskGroup | None = None
        self._closing = False
        self.degraded = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def reconciler(self) -> StreamReconciler:
        return self._reconciler

    @property
    def latest(self) -> Optional[Snapshot]:
        return self._reconciler.latest

    def on_snapshot(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a sink; return a disposer that unregisters it."""

        self._callbacks.append(callback)

        def _dispose() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _dispose

    async def start(self) -> Snapshot | None:
        """Subscribe, fetch history, commit the seed and return the first snapshot."""

        if self._tg is not None:
            raise InvalidStateError("session already started")
        self._reconciler.begin_bootstrap()

        # Subscribe before fetching so live events arriving meanwhile queue up.
        self._recv = self._hub.subscribe()
        self._tg = anyio.create_task_group()
        await self._tg.__aenter__()
        self._tg.start_soon(self._consume, self._recv)

        try:
            batch = await self._load_history()
            first = self._reconciler.commit_seed(batch, degraded=self.degraded)

            policy = self.config.emission_policy
            if policy.is_batched:
                self._tg.start_soon(self._flush_loop, policy.quantum_ms / 1000)
        except BaseException:
            # The task group is entered by hand; leave it before propagating.
            await self.stop()
            raise
        return first

    async def stop(self) -> None:
        """Unsubscribe, stop the batch timer, then release the buffer."""

        if self._closing:
            return
        self._closing = True
        if self._tg is not None:
            self._tg.cancel_scope.cancel()
            await self._tg.__aexit__(None, None, None)
        if self._recv is not None:
            await self._recv.aclose()
        self._reconciler.close()
        self._callbacks.clear()
        logger.info(
            "%s session stopped",
            self.config.symbol,
            extra={"code_path": f"{__name__}.ChartSession.stop"},
        )

    async def __aenter__(self) -> "ChartSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_history(self) -> List[Any]:
        if self._source is None:
            return []
        end_ms = int(self._clock() * 1000) - 1000
        start_ms = end_ms - self.config.history_span
        try:
            return await fetch_with_retry(
                self._source,
                self.config.symbol,
                start_ms,
                end_ms,
                self.config.history_limit,
                attempts=self._retries,
                delay=self._retry_delay,
            )
        except HistoricalFetchError as exc:
            self.degraded = True
            logger.warning(
                "Starting %s without history: %s",
                self.config.symbol,
                exc,
                extra={"code_path": f"{__name__}.ChartSession._load_history"},
            )
            return []
        except Exception:
            # Any failing source means a degraded start, not a dead session.
            self.degraded = True
            logger.exception(
                "History source for %s failed; starting without history",
                self.config.symbol,
                extra={"code_path": f"{__name__}.ChartSession._load_history"},
            )
            return []

    async def _consume(self, recv: MemoryObjectReceiveStream[Any]) -> None:
        async for payload in recv:
            self._reconciler.submit(payload)

    async def _flush_loop(self, quantum: float) -> None:
        while True:
            await anyio.sleep(quantum)
            self._reconciler.flush()

    def _forward(self, snapshot: Snapshot) -> None:
        if self._closing:
            return
        for cb in list(self._callbacks):
            try:
                cb(snapshot)
            except Exception:
                logger.exception(
                    "Snapshot sink failed",
                    extra={"code_path": f"{__name__}.ChartSession._forward"},
                )
