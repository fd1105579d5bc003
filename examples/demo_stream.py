#!/usr/bin/env python3
"""Demo script: two charts sharing one live feed."""

import anyio

from chartstream import ChartSession, FeedConnection, HttpHistoricalSource, get_preset
from chartstream.models import CandleSample
from chartstream.reconciler import Snapshot


def handle_line(snap: Snapshot) -> None:
    """Print the newest point and baseline value of the line chart."""
    last = snap.latest
    base = snap.baseline[-1].value if snap.baseline else None
    print(f"[Line] #{snap.seq} n={len(snap)} t={last.time} v={last.value} sma={base}")


def handle_candles(snap: Snapshot) -> None:
    """Print the forming candle."""
    c = snap.latest
    if isinstance(c, CandleSample):
        print(f"[OHLC] #{snap.seq} t={c.time} o={c.open} h={c.high} l={c.low} c={c.close}")


async def main() -> None:
    """Open one feed, attach a baseline chart and a candlestick chart to it."""
    source = HttpHistoricalSource("http://localhost:1002")
    async with FeedConnection("ws://localhost:1002/hl_price") as feed:
        line = ChartSession(get_preset("baseline"), hub=feed.hub, source=source)
        candles = ChartSession(get_preset("candlestick"), hub=feed.hub, source=source)
        line.on_snapshot(handle_line)
        candles.on_snapshot(handle_candles)
        async with line, candles:
            await anyio.sleep_forever()


if __name__ == "__main__":
    anyio.run(main)
