"""
Shared fixtures: an in-memory quote fetcher and a record factory.
"""

import asyncio
from datetime import UTC, datetime

import pytest

from quotewatch.history_store import HistoryStore
from quotewatch.job_registry import JobRegistry
from quotewatch.scheduler import MonitoringScheduler
from quotewatch.schemas import QuoteRecord


def build_record(symbol: str, close: float = 100.0) -> QuoteRecord:
    return QuoteRecord(
        symbol=symbol,
        open=close - 1,
        high=close + 2,
        low=close - 2,
        close=close,
        previous_close=close - 0.5,
        fetched_at=datetime.now(UTC),
    )


class FakeFetcher:
    """
    Stand-in for QuoteClient.

    `outcomes` is consumed one per call: an exception instance is raised, anything
    else returns a fresh record. Once exhausted every call succeeds.
    """

    def __init__(self, outcomes=None, delay: float = 0.0):
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, symbol: str) -> QuoteRecord:
        self.calls.append(symbol)
        call_no = len(self.calls)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        return build_record(symbol, close=100.0 + call_no)


@pytest.fixture(scope="session")
def make_record():
    return build_record


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture(scope="session")
def fetcher_factory():
    return FakeFetcher


@pytest.fixture
def scheduler(fake_fetcher):
    return MonitoringScheduler(fake_fetcher, HistoryStore(), JobRegistry())
