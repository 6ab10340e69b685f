"""
Unit tests for the monitoring scheduler.
"""

import asyncio
from datetime import UTC, datetime

import pytest

from quotewatch.errors import InvalidInput, InvalidInterval, TransportError, UnknownSymbol
from quotewatch.history_store import HistoryStore
from quotewatch.job_registry import JobRegistry
from quotewatch.scheduler import MonitoringScheduler, normalize_symbol


class TestNormalizeSymbol:
    """Test symbol normalization."""

    @pytest.mark.parametrize("raw", ["aapl", "AAPL", " aapl ", "\tAaPl\n"])
    def test_case_and_whitespace_collapse(self, raw):
        assert normalize_symbol(raw) == "AAPL"

    @pytest.mark.parametrize("raw", ["", "   ", None, 123, ["AAPL"]])
    def test_rejects_missing_or_non_string(self, raw):
        with pytest.raises(InvalidInput):
            normalize_symbol(raw)


class TestStartMonitoring:
    """Test start_monitoring validation and job installation."""

    def test_zero_interval_mutates_nothing(self, scheduler):
        """Test InvalidInterval leaves both stores untouched."""
        with pytest.raises(InvalidInterval):
            scheduler.start_monitoring("AAPL", 0)

        assert scheduler.monitored() == []
        assert scheduler.history.symbols() == []

    def test_blank_symbol_mutates_nothing(self, scheduler):
        """Test InvalidInput is raised before any store is touched."""
        with pytest.raises(InvalidInput):
            scheduler.start_monitoring("  ", 5)

        assert scheduler.monitored() == []
        assert scheduler.history.symbols() == []

    def test_start_normalizes_and_creates_history_slot(self, scheduler):
        """Test the returned symbol is normalized and an empty history exists."""

        async def scenario():
            sym = scheduler.start_monitoring(" aapl ", 60)
            jobs = [(j.symbol, j.interval) for j in scheduler.monitored()]
            await scheduler.shutdown()
            return sym, jobs

        sym, jobs = asyncio.run(scenario())
        assert sym == "AAPL"
        assert jobs == [("AAPL", 60.0)]
        assert scheduler.history.symbols() == ["AAPL"]
        assert scheduler.get_history("aapl") == []

    def test_case_variants_share_one_job(self, scheduler):
        """Test restarting with a different casing replaces the same job slot."""

        async def scenario():
            scheduler.start_monitoring("aapl", 60)
            scheduler.start_monitoring("AAPL ", 30)
            jobs = [(j.symbol, j.interval) for j in scheduler.monitored()]
            await scheduler.shutdown()
            return jobs

        assert asyncio.run(scenario()) == [("AAPL", 30.0)]

    def test_ticks_append_to_history(self, fake_fetcher):
        """Test each successful tick lands in the symbol's history."""
        scheduler = MonitoringScheduler(fake_fetcher, HistoryStore(), JobRegistry())

        async def scenario():
            started = datetime.now(UTC)
            scheduler.start_monitoring("ibm", 0.1)
            await asyncio.sleep(0.25)
            await scheduler.shutdown()
            return started

        started = asyncio.run(scenario())
        history = scheduler.get_history("IBM")
        assert len(history) >= 1
        assert all(r.symbol == "IBM" for r in history)
        assert history[-1].fetched_at > started
        assert set(fake_fetcher.calls) == {"IBM"}

    def test_failed_tick_does_not_stop_monitoring(self, fetcher_factory):
        """Test a tick failure is contained and the next tick still fetches."""
        fetcher = fetcher_factory(outcomes=[UnknownSymbol("No data for symbol: ZZZZ")])
        scheduler = MonitoringScheduler(fetcher, HistoryStore(), JobRegistry())

        async def scenario():
            scheduler.start_monitoring("ZZZZ", 0.1)
            await asyncio.sleep(0.35)
            active = [j.active for j in scheduler.monitored()]
            await scheduler.shutdown()
            return active

        assert asyncio.run(scenario()) == [True]
        assert len(fetcher.calls) >= 2
        # first call failed, the rest made it in
        assert len(scheduler.get_history("ZZZZ")) == len(fetcher.calls) - 1

    def test_unexpected_tick_error_is_contained(self, fetcher_factory, caplog):
        """Test a non-taxonomy exception in a tick is logged, not raised."""
        fetcher = fetcher_factory(outcomes=[RuntimeError("socket exploded")])
        scheduler = MonitoringScheduler(fetcher, HistoryStore(), JobRegistry())

        async def scenario():
            scheduler.start_monitoring("AAPL", 0.1)
            await asyncio.sleep(0.25)
            await scheduler.shutdown()

        with caplog.at_level("WARNING", logger="quotewatch"):
            asyncio.run(scenario())

        assert "Unexpected fetch error" in caplog.text
        assert len(scheduler.get_history("AAPL")) == len(fetcher.calls) - 1


class TestRefresh:
    """Test the synchronous refresh path."""

    def test_refresh_appends_exactly_one_record(self, scheduler):
        """Test refresh returns the record it appended."""
        record = asyncio.run(scheduler.refresh("aapl"))

        history = scheduler.get_history("AAPL")
        assert history == [record]
        assert record.symbol == "AAPL"

    def test_refresh_failure_propagates(self, fetcher_factory):
        """Test refresh surfaces upstream errors and appends nothing."""
        fetcher = fetcher_factory(outcomes=[TransportError("Finnhub error: 502")])
        scheduler = MonitoringScheduler(fetcher, HistoryStore(), JobRegistry())

        with pytest.raises(TransportError):
            asyncio.run(scheduler.refresh("AAPL"))

        assert scheduler.get_history("AAPL") == []

    def test_refresh_rejects_blank_symbol_without_fetching(self, scheduler, fake_fetcher):
        with pytest.raises(InvalidInput):
            asyncio.run(scheduler.refresh(""))

        assert fake_fetcher.calls == []

    def test_concurrent_refreshes_all_land(self, fetcher_factory):
        """Test overlapping refreshes for one symbol each append one record."""
        fetcher = fetcher_factory(delay=0.01)
        scheduler = MonitoringScheduler(fetcher, HistoryStore(), JobRegistry())

        async def scenario():
            return await asyncio.gather(*(scheduler.refresh("msft") for _ in range(25)))

        records = asyncio.run(scenario())
        history = scheduler.get_history("MSFT")
        assert len(history) == 25
        assert sorted(r.close for r in history) == sorted(r.close for r in records)


class TestGetHistory:
    def test_unknown_symbol_is_empty(self, scheduler):
        assert scheduler.get_history("MSFT") == []

    def test_blank_symbol_is_invalid(self, scheduler):
        with pytest.raises(InvalidInput):
            scheduler.get_history(" ")

    def test_refresh_and_history_share_case_insensitive_slot(self, scheduler):
        asyncio.run(scheduler.refresh("Msft"))
        asyncio.run(scheduler.refresh("MSFT "))

        assert len(scheduler.get_history("msft")) == 2
