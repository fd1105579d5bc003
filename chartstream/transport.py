"""Lifetime-scoped live feed connection.

:class:`FeedConnection` replaces the process-wide socket singleton: it is
constructed explicitly, owns one websocket and one :class:`EventHub`, and is
shared by passing it (or its hub) to every chart session that needs it.
"""

from __future__ import annotations

import logging
import random
from typing import Any, AsyncContextManager, Callable, Collection, Optional

import anyio
import anyio.abc
import websockets

from . import settings
from .decoder import LIVE_EVENTS, decode_event_frame
from .hub import EventHub
from .logging_utils import TRACE_LEVEL

__all__ = ["FeedConnection"]

logger = logging.getLogger(__name__)

Connect = Callable[[], AsyncContextManager[Any]]


class FeedConnection:
    """Pump decoded live frames from a websocket into an :class:`EventHub`.

    Reconnects with capped exponential backoff and jitter; sessions simply see
    a gap in events while the socket is down.

    Example
    -------
    >>> async with FeedConnection("ws://localhost:1002/hl_price") as feed:
    ...     async with ChartSession(get_preset("line"), hub=feed.hub) as session:
    ...         ...
    """

    def __init__(
        self,
        url: str = settings.WS_URL,
        *,
        hub: Optional[EventHub[Any]] = None,
        connect: Optional[Connect] = None,
        events: Collection[str] = LIVE_EVENTS,
        reconnect_delay: float = 1.0,
        max_delay: float = settings.RECONNECT_MAX_DELAY,
    ) -> None:
        self.url = url
        self._hub: EventHub[Any] = hub if hub is not None else EventHub()
        self._connect: Connect = connect or (lambda: websockets.connect(self.url))
        self._events = tuple(events)
        self._delay = reconnect_delay
        self._max_delay = max_delay
        self._tg: anyio.abc.TaskGroup | None = None
        self.connected = False
        self.frames = 0

    @property
    def hub(self) -> EventHub[Any]:
        """Broadcast hub carrying decoded payloads."""
        return self._hub

    async def __aenter__(self) -> "FeedConnection":
        self._tg = anyio.create_task_group()
        await self._tg.__aenter__()
        self._tg.start_soon(self._run)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        assert self._tg is not None
        self._tg.cancel_scope.cancel()
        await self._tg.__aexit__(exc_type, exc, tb)
        await self._hub.aclose()
        self.connected = False

    def _backoff(self, attempt: int) -> float:
        delay = min(self._delay * (2**attempt), self._max_delay)
        return delay * (0.8 + random.random() * 0.4)

    async def _run(self) -> None:
        attempt = 0
        while True:
            try:
                logger.info(
                    "Connecting live feed %s",
                    self.url,
                    extra={"code_path": f"{__name__}.FeedConnection._run"},
                )
                async with self._connect() as ws:
                    self.connected = True
                    attempt = 0
                    async for raw in ws:
                        self.frames += 1
                        data = decode_event_frame(raw, self._events)
                        if data is None:
                            logger.log(
                                TRACE_LEVEL,
                                "skip frame %r",
                                raw,
                                extra={"code_path": f"{__name__}.FeedConnection._run"},
                            )
                            continue
                        self._hub.publish_nowait(data)
                self.connected = False
                logger.info(
                    "Live feed closed by peer",
                    extra={"code_path": f"{__name__}.FeedConnection._run"},
                )
            except anyio.get_cancelled_exc_class():
                raise
            except Exception:
                self.connected = False
                logger.exception(
                    "Live feed error", extra={"code_path": f"{__name__}.FeedConnection._run"}
                )
            attempt += 1
            await anyio.sleep(self._backoff(attempt))
