from __future__ import annotations

"""Custom exceptions used across :mod:`chartstream`."""


class ChartStreamError(Exception):
    """Base class for every error raised by the package."""


class ConfigError(ChartStreamError, ValueError):
    """Raised when a reconciler configuration or preset is invalid."""


class MalformedSampleError(ChartStreamError, ValueError):
    """Raised when a raw payload cannot be turned into a sample."""


class HistoricalFetchError(ChartStreamError):
    """Raised when the historical data source fails (network, HTTP, payload)."""


class InvalidStateError(ChartStreamError):
    """Raised on an illegal session state transition."""
