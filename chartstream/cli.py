"""chartstream.cli – Typer-powered command-line interface.

Commands:

* ``presets`` – list the built-in chart configurations.
* ``replay``  – feed a JSON-lines file of live events through a reconciler and
  print the resulting snapshot.
* ``watch``   – run a live session against the price backend and print one
  snapshot per emission as JSON lines.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import anyio
import typer

from . import settings
from .config import PRESETS, ReconcilerConfig, get_preset
from .exceptions import ChartStreamError
from .historic import HttpHistoricalSource
from .json_utils import to_json
from .logging_utils import configure_logging
from .models import to_ms
from .reconciler import Snapshot, StreamReconciler

app = typer.Typer(add_completion=False, pretty_exceptions_enable=False)


def _fail(msg: str) -> NoReturn:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


def _load_config(preset: str, emission: Optional[str], fallback_price: Optional[float]) -> ReconcilerConfig:
    overrides: dict[str, Any] = {}
    if emission is not None:
        overrides["emission_policy"] = emission
    if fallback_price is not None:
        overrides["fallback_price"] = fallback_price
    try:
        return get_preset(preset, **overrides)
    except ChartStreamError as exc:
        _fail(str(exc))


def _read_jsonl(path: Path) -> List[Any]:
    items: List[Any] = []
    with path.open(encoding="utf-8") as fp:
        for lineno, line in enumerate(fp, 1):
            line = line.strip()
            if not line:
                continue
            try:
                items.append(json.loads(line))
            except json.JSONDecodeError as exc:
                _fail(f"{path}:{lineno}: {exc.msg}")
    return items


def _event_time_s(payload: Any, time_unit: str) -> Optional[float]:
    try:
        return to_ms(float(payload["time"]), time_unit) / 1000
    except (KeyError, TypeError, ValueError, OverflowError, ChartStreamError):
        return None


@app.callback()
def main(
    debug: bool = typer.Option(False, "-d", "--debug", help="Verbose logging to logs/"),
) -> None:
    """Reconcile live price ticks into bounded chart series."""

    if debug:
        configure_logging(debug=True)


@app.command()
def presets() -> None:
    """List built-in chart presets."""

    for name in sorted(PRESETS):
        typer.echo(f"{name}: {json.dumps(PRESETS[name].as_dict())}")


@app.command()
def replay(
    events: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON-lines live events"),
    preset: str = typer.Option("line", "-p", "--preset", help="Chart preset name"),
    seed: Optional[Path] = typer.Option(
        None, "--seed", exists=True, dir_okay=False, help="JSON file with the historical batch"
    ),
    emission: Optional[str] = typer.Option(None, "--emission", help="immediate | batched:100ms"),
    fallback_price: Optional[float] = typer.Option(None, "--fallback-price"),
    baseline: bool = typer.Option(True, "--baseline/--no-baseline", help="Include the rolling baseline"),
) -> None:
    """Replay recorded events offline; the clock follows the event timestamps."""

    cfg = _load_config(preset, emission, fallback_price)
    payloads = _read_jsonl(events)

    batch: List[Any] = []
    if seed is not None:
        try:
            batch = json.loads(seed.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            _fail(f"{seed}: {exc.msg}")
        if not isinstance(batch, list):
            _fail(f"{seed}: expected a JSON list")

    times = [t for t in (_event_time_s(p, cfg.time_unit) for p in payloads) if t is not None]
    clock_now = times[0] if times else time.time()

    rec = StreamReconciler(cfg, clock=lambda: clock_now)
    rec.commit_seed(batch)
    for payload in payloads:
        t = _event_time_s(payload, cfg.time_unit)
        if t is not None and t > clock_now:
            clock_now = t
        rec.submit(payload)
    rec.flush()

    snap = rec.latest
    if snap is None:
        _fail("no snapshot produced")
    out = snap.as_dict()
    if not baseline:
        out.pop("baseline")
    out["accepted"] = rec.accepted
    out["rejected"] = rec.rejected
    typer.echo(json.dumps(out))


@app.command()
def watch(
    preset: str = typer.Option("line", "-p", "--preset", help="Chart preset name"),
    symbol: str = typer.Option("BTCUSDT", "-s", "--symbol", help="Symbol passed to the history endpoint"),
    api_url: str = typer.Option(settings.API_URL, "--api-url", help="Price backend base URL"),
    ws_url: str = typer.Option(settings.WS_URL, "--ws-url", help="Live feed websocket URL"),
    emission: Optional[str] = typer.Option(None, "--emission", help="immediate | batched:100ms"),
) -> None:
    """Stream snapshots of a live chart session as JSON lines."""

    from .session import ChartSession
    from .transport import FeedConnection

    cfg = _load_config(preset, emission, None).replace(symbol=symbol)

    def _print(snap: Snapshot) -> None:
        typer.echo(to_json(snap), nl=True)

    async def _run() -> None:
        async with FeedConnection(ws_url) as feed:
            session = ChartSession(cfg, hub=feed.hub, source=HttpHistoricalSource(api_url))
            session.on_snapshot(_print)
            async with session:
                await anyio.sleep_forever()

    try:
        anyio.run(_run)
    except KeyboardInterrupt:
        pass


def run() -> None:
    """Console-script entrypoint for the ``chartstream`` command."""

    app()
