"""
Monitoring scheduler: per-symbol recurring quote polling on top of JobRegistry + HistoryStore.

Classes:
    QuoteFetcher          Protocol for anything with `async fetch(symbol) -> QuoteRecord`
    MonitoringScheduler   start_monitoring / refresh / get_history

Functions:
    normalize_symbol(symbol) -> str   strip + upper, InvalidInput if empty

Behavior:
    - Validation happens before any store is touched.
    - Background ticks log and count failures; they never raise and never stop the timer.
    - refresh() is the synchronous path: failures go back to the caller.
    - There is no stop operation. A symbol, once monitored, stays monitored until replaced
      by another start_monitoring call or the process exits.
"""

from __future__ import annotations

import logging
from typing import Protocol

from quotewatch.errors import InvalidInput, InvalidInterval, QuoteWatchError
from quotewatch.history_store import HistoryStore
from quotewatch.job_registry import JobRegistry, MonitorJob
from quotewatch.observability import TICKS
from quotewatch.schemas import QuoteRecord

logger = logging.getLogger(__name__)


class QuoteFetcher(Protocol):
    async def fetch(self, symbol: str) -> QuoteRecord: ...


def normalize_symbol(symbol: object) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidInput("Symbol required", hint="Pass a ticker such as AAPL")
    return symbol.strip().upper()


class MonitoringScheduler:
    def __init__(self, fetcher: QuoteFetcher, history: HistoryStore, registry: JobRegistry):
        self._fetcher = fetcher
        self.history = history
        self.registry = registry

    def start_monitoring(self, symbol: str, interval: float) -> str:
        """
        Begin polling `symbol` every `interval` seconds, replacing any existing job for it.
        Returns the normalized symbol.
        """
        sym = normalize_symbol(symbol)
        if not interval > 0:
            raise InvalidInterval(f"Interval must be > 0 (got {interval})")

        async def tick() -> None:
            await self._tick(sym)

        # install() can still refuse (no running loop, non-finite interval); slot comes after
        self.registry.install(sym, interval, tick)
        self.history.ensure(sym)
        return sym

    async def _tick(self, sym: str) -> None:
        try:
            record = await self._fetcher.fetch(sym)
        except QuoteWatchError as e:
            TICKS.labels(outcome=e.code.value).inc()
            logger.warning(
                "Fetch error: %s", e.message, extra={"symbol": sym, "error_code": e.code.value}
            )
            return
        except Exception:
            TICKS.labels(outcome="INTERNAL_ERROR").inc()
            logger.exception("Unexpected fetch error", extra={"symbol": sym})
            return
        self.history.append(sym, record)
        TICKS.labels(outcome="ok").inc()

    async def refresh(self, symbol: str) -> QuoteRecord:
        """Fetch once right now, append to history and return the new record."""
        sym = normalize_symbol(symbol)
        record = await self._fetcher.fetch(sym)
        self.history.append(sym, record)
        return record

    def get_history(self, symbol: str) -> list[QuoteRecord]:
        return self.history.snapshot(normalize_symbol(symbol))

    def monitored(self) -> list[MonitorJob]:
        return self.registry.jobs()

    async def shutdown(self) -> None:
        await self.registry.shutdown()
