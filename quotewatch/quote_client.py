"""
Finnhub quote client: one outbound lookup per call.

Returns a QuoteRecord:
  {symbol, open, high, low, close, previousClose, fetchedAt}

Notes / Pitfalls:
- Finnhub answers unknown symbols with 200 and an all-zero body; the trade
  timestamp `t == 0` is the only reliable "no data" marker.
- Missing FINNHUB_API_KEY is reported on every call, never defaulted.
- No retry and no caching here; the scheduler decides what to do with a failure.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Any

import httpx

from quotewatch.errors import (
    ConfigurationError,
    QuoteWatchError,
    TransportError,
    UnknownSymbol,
    UpstreamParseError,
)
from quotewatch.observability import QUOTE_FETCHES
from quotewatch.schemas import QuoteRecord
from quotewatch.settings import Settings

logger = logging.getLogger(__name__)

# Finnhub short field names -> QuoteRecord fields
_PRICE_FIELDS = {"o": "open", "h": "high", "l": "low", "c": "close", "pc": "previous_close"}


def _as_price(value: Any, key: str, symbol: str) -> float | None:
    if value is None:
        return None
    # bool is an int subclass; a bool price means the payload is not what we think it is
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise UpstreamParseError(f"Non-numeric '{key}' in quote for {symbol}: {value!r}")
    price = float(value)
    if math.isnan(price):
        return None
    return price


def normalize_finnhub_quote(data: Any, symbol: str) -> QuoteRecord:
    """
    Convert a Finnhub /quote body into a QuoteRecord.
    We expect:
      {"c": ..., "h": ..., "l": ..., "o": ..., "pc": ..., "t": <epoch seconds>}
    """
    if not data:
        raise UnknownSymbol(f"No data for symbol: {symbol}")
    if not isinstance(data, dict):
        raise UpstreamParseError(f"Unexpected quote payload for {symbol}: {type(data).__name__}")
    if not data.get("t"):
        raise UnknownSymbol(f"No data for symbol: {symbol}")

    prices = {field: _as_price(data.get(key), key, symbol) for key, field in _PRICE_FIELDS.items()}
    return QuoteRecord(symbol=symbol, fetched_at=datetime.now(UTC), **prices)


class QuoteClient:
    """Thin async wrapper around Finnhub's /quote endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.fetch_timeout_sec)

    async def fetch(self, symbol: str) -> QuoteRecord:
        """Fetch the current quote for an already-normalized symbol."""
        try:
            record = await self._fetch(symbol)
        except QuoteWatchError as e:
            QUOTE_FETCHES.labels(outcome=e.code.value).inc()
            raise
        QUOTE_FETCHES.labels(outcome="ok").inc()
        return record

    async def _fetch(self, symbol: str) -> QuoteRecord:
        api_key = self._settings.finnhub_api_key
        if not api_key:
            raise ConfigurationError(
                "Missing FINNHUB_API_KEY in environment",
                hint="Set FINNHUB_API_KEY or add it to .env",
            )

        url = f"{self._settings.finnhub_base_url}/quote"
        try:
            r = await self._client.get(url, params={"symbol": symbol, "token": api_key})
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Finnhub error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Finnhub request failed: {e.__class__.__name__}") from e

        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamParseError(f"Malformed quote body for {symbol}") from e

        record = normalize_finnhub_quote(data, symbol)
        logger.debug("Fetched quote", extra={"symbol": symbol})
        return record

    async def aclose(self) -> None:
        await self._client.aclose()
