from __future__ import annotations

"""Historical batch sources.

The core treats history as an external capability: anything with an async
``fetch(symbol, start_ms, end_ms, limit)`` returning a list of raw mappings
works. :class:`HttpHistoricalSource` talks to the price backend's
``/binance/historical`` endpoint.
"""

import logging
from typing import Any, List, Optional, Protocol

import anyio
import httpx

from . import settings
from .exceptions import HistoricalFetchError

__all__ = ["HistoricalSource", "HttpHistoricalSource", "fetch_with_retry"]

logger = logging.getLogger(__name__)


class HistoricalSource(Protocol):
    async def fetch(
        self, symbol: str, start_ms: int, end_ms: int, limit: int
    ) -> List[Any]: ...


class HttpHistoricalSource:
    """Fetch candles from ``GET {base_url}/binance/historical``.

    Example
    -------
    >>> source = HttpHistoricalSource("http://localhost:1002")
    >>> await source.fetch("BTCUSDT", start_ms, end_ms, 60)
    """

    PATH = "/binance/historical"

    def __init__(
        self,
        base_url: str = settings.API_URL,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.HISTORY_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def _get(self, client: httpx.AsyncClient, params: dict[str, Any]) -> httpx.Response:
        return await client.get(f"{self.base_url}{self.PATH}", params=params, timeout=self._timeout)

    async def fetch(self, symbol: str, start_ms: int, end_ms: int, limit: int) -> List[Any]:
        if start_ms >= end_ms:
            raise HistoricalFetchError(
                f"invalid time range: startTime ({start_ms}) must be less than endTime ({end_ms})"
            )
        params = {"symbol": symbol, "startTime": start_ms, "endTime": end_ms, "limit": limit}
        try:
            if self._client is not None:
                response = await self._get(self._client, params)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._get(client, params)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise HistoricalFetchError(
                f"HTTP error {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise HistoricalFetchError(f"history request failed: {exc}") from exc

        if not isinstance(body, list):
            raise HistoricalFetchError(f"expected a JSON list, got {type(body).__name__}")
        logger.debug(
            "Fetched %d historical entries for %s",
            len(body),
            symbol,
            extra={"code_path": f"{__name__}.HttpHistoricalSource.fetch"},
        )
        return body


async def fetch_with_retry(
    source: HistoricalSource,
    symbol: str,
    start_ms: int,
    end_ms: int,
    limit: int,
    *,
    attempts: int = settings.HISTORY_RETRIES,
    delay: float = settings.HISTORY_RETRY_DELAY,
) -> List[Any]:
    """Call ``source.fetch`` up to *attempts* times, sleeping *delay* between tries.

    Raises the last :class:`HistoricalFetchError` when every attempt fails.
    """

    last: HistoricalFetchError | None = None
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            return await source.fetch(symbol, start_ms, end_ms, limit)
        except HistoricalFetchError as exc:
            last = exc
            logger.warning(
                "History fetch for %s failed (attempt %d/%d): %s",
                symbol,
                attempt,
                attempts,
                exc,
                extra={"code_path": f"{__name__}.fetch_with_retry"},
            )
            if attempt < attempts:
                await anyio.sleep(delay)
    assert last is not None
    raise last
