# quotewatch/history_store.py
# Purpose: Append-only, per-symbol quote history kept in memory.
# Pitfalls: Not persistent and never trimmed; grows for the life of the process.

from __future__ import annotations

import threading

from quotewatch.schemas import QuoteRecord


class _SymbolHistory:
    __slots__ = ("lock", "records")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.records: list[QuoteRecord] = []


class HistoryStore:
    """
    Symbol -> ordered list of QuoteRecord.

    Each symbol has its own lock, so appends for one symbol never wait on
    another. The store-level lock only guards creation of new slots.
    Callers pass already-normalized symbols.
    """

    def __init__(self) -> None:
        self._slots: dict[str, _SymbolHistory] = {}
        self._slots_lock = threading.Lock()

    def _slot(self, symbol: str, create: bool) -> _SymbolHistory | None:
        slot = self._slots.get(symbol)
        if slot is not None or not create:
            return slot
        with self._slots_lock:
            # Re-check: another thread may have created it while we waited
            return self._slots.setdefault(symbol, _SymbolHistory())

    def ensure(self, symbol: str) -> None:
        """Create an empty history for symbol if none exists yet."""
        self._slot(symbol, create=True)

    def append(self, symbol: str, record: QuoteRecord) -> None:
        slot = self._slot(symbol, create=True)
        with slot.lock:
            slot.records.append(record)

    def snapshot(self, symbol: str) -> list[QuoteRecord]:
        """Return a copy of the history as of now (empty if never observed)."""
        slot = self._slot(symbol, create=False)
        if slot is None:
            return []
        with slot.lock:
            return list(slot.records)

    def symbols(self) -> list[str]:
        with self._slots_lock:
            return sorted(self._slots)
