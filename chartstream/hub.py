"""In-memory pub-sub hub for the shared live event stream.

One :class:`EventHub` sits behind one transport connection. Every chart session
subscribes and gets an independent ``anyio`` memory stream, so a slow session
never back-pressures the transport or its siblings. ``publish`` is
non-blocking and drops an item when a subscriber's backlog is full, emitting a
TRACE log for observability.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Generic, Set, TypeVar

import anyio
from anyio.streams.memory import (
    MemoryObjectReceiveStream,
    MemoryObjectSendStream,
)

from . import settings
from .logging_utils import TRACE_LEVEL

__all__ = ["EventHub"]

T = TypeVar("T")

logger = logging.getLogger(__name__)


class EventHub(Generic[T]):
    """Broadcast hub fanning raw feed payloads out to chart sessions.

    Example
    -------
    >>> hub = EventHub(maxsize=10)
    >>> recv = hub.subscribe()
    >>> hub.publish_nowait({"time": 1.0, "value": 2.0})
    >>> await recv.receive()
    """

    def __init__(self, maxsize: int = settings.HUB_BACKLOG) -> None:
        self._maxsize = maxsize
        self._subs: Set[MemoryObjectSendStream[T]] = set()
        self.dropped = 0

    def subscribe(self) -> MemoryObjectReceiveStream[T]:
        """Return a receive stream for published items."""
        send, recv = anyio.create_memory_object_stream[T](self._maxsize)
        self._subs.add(send)
        return recv

    def publish_nowait(self, item: T) -> None:
        """Broadcast *item* to all subscribers without waiting."""
        for send in list(self._subs):
            try:
                send.send_nowait(item)
            except anyio.WouldBlock:
                self.dropped += 1
                logger.log(
                    TRACE_LEVEL,
                    "drop item: subscriber backlog full",
                    extra={"code_path": __name__},
                )
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                # Subscriber closed its receive side: forget it.
                self._subs.discard(send)
                send.close()

    async def publish(self, item: T) -> None:
        """Async alias of :meth:`publish_nowait` for use inside tasks."""
        self.publish_nowait(item)

    async def aclose(self) -> None:
        """Close all subscriber streams."""
        for send in list(self._subs):
            await send.aclose()
        self._subs.clear()

    @property
    def subscribers(self) -> int:
        return len(self._subs)

    @property
    def metrics(self) -> Dict[str, Any]:
        """Return observability metrics."""
        qlen = sum(s.statistics().current_buffer_used for s in self._subs)
        return {"queue_len": qlen, "subscribers": len(self._subs), "dropped": self.dropped}
