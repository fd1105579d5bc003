"""chartstream package.

Streaming time-series reconciliation for live price charts: seed a bounded
window from history, merge pushed ticks into fixed-width buckets, keep a
trailing baseline, and emit immutable snapshots to a renderer.

Public API
----------
* ``StreamReconciler`` – synchronous single-session engine.
* ``ChartSession``     – async facade (``start`` / ``on_snapshot`` / ``stop``).
* ``FeedConnection``   – lifetime-scoped live feed shared by sessions.
* ``EventHub``         – in-memory fan-out of the live stream.
* ``ReconcilerConfig`` / ``EmissionPolicy`` / ``get_preset`` – configuration.
* ``TimeWindowBuffer``, ``RollingBaseline``, ``HistoricalBootstrapper`` – the
  building blocks, usable on their own.
* ``configure_logging`` / ``trace`` – logging helpers.

Anything else is internal and may change without notice.
"""

import logging as _logging
from importlib import metadata as _metadata

from .logging_utils import configure_logging, trace

from .baseline import RollingBaseline
from .bootstrap import HistoricalBootstrapper
from .buffer import TimeWindowBuffer
from .config import PRESETS, EmissionPolicy, ReconcilerConfig, get_preset
from .exceptions import (
    ChartStreamError,
    ConfigError,
    HistoricalFetchError,
    InvalidStateError,
    MalformedSampleError,
)
from .historic import HttpHistoricalSource
from .hub import EventHub
from .models import BaselinePoint, CandleSample, ScalarSample, SeriesShape
from .reconciler import SessionState, Snapshot, StreamReconciler
from .session import ChartSession
from .transport import FeedConnection

__all__ = [
    "StreamReconciler",
    "ChartSession",
    "FeedConnection",
    "EventHub",
    "HttpHistoricalSource",
    "ReconcilerConfig",
    "EmissionPolicy",
    "PRESETS",
    "get_preset",
    "TimeWindowBuffer",
    "RollingBaseline",
    "HistoricalBootstrapper",
    "ScalarSample",
    "CandleSample",
    "BaselinePoint",
    "SeriesShape",
    "SessionState",
    "Snapshot",
    "ChartStreamError",
    "ConfigError",
    "HistoricalFetchError",
    "InvalidStateError",
    "MalformedSampleError",
    "configure_logging",
    "trace",
]

# --------------------------------------------------------------------
# Single-source versioning – importlib.metadata keeps the value in sync with
# pyproject.toml; a source checkout reads the TOML directly.
# --------------------------------------------------------------------

try:
    __version__: str = _metadata.version(__name__)
except _metadata.PackageNotFoundError:  # pragma: no cover – dev environment only
    import pathlib as _pl
    import tomllib as _tomllib

    _toml_path = _pl.Path(__file__).resolve().parents[1] / "pyproject.toml"
    if _toml_path.exists():
        with _toml_path.open("rb") as _fp:
            __version__ = _tomllib.load(_fp)["project"]["version"]
    else:
        __version__ = "0.0.0.dev0"

# --------------------------------------------------------------------
# Logging – auto-configure on first import unless the host application already
# installed handlers on the root logger.
# --------------------------------------------------------------------

if not _logging.getLogger().handlers:
    try:
        configure_logging()
    except OSError:  # pragma: no cover – read-only working directory
        _logging.getLogger(__name__).addHandler(_logging.NullHandler())
