"""
Caller-held map of symbol -> SecurityRecord.

The registry decides which records exist; the reconciler decides how a record
changes when a quote arrives.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from threading import Lock

from .reconciler import QuoteReconciler
from .security import PartialQuote, SecurityRecord


class SecurityRegistry:
    """Thread-safe store of the security records a session cares about."""

    def __init__(self, reconciler: QuoteReconciler, records: Iterable[SecurityRecord] = ()) -> None:
        self._reconciler = reconciler
        self._lock = Lock()
        self._records: dict[str, SecurityRecord] = {record.symbol: record for record in records}
        self.logger = logging.getLogger(__name__)

    def get(self, symbol: str) -> SecurityRecord | None:
        with self._lock:
            return self._records.get(symbol)

    def __contains__(self, symbol: object) -> bool:
        with self._lock:
            return symbol in self._records

    def snapshot(self) -> dict[str, SecurityRecord]:
        with self._lock:
            return dict(self._records)

    def prices(self) -> dict[str, Decimal]:
        """Latest price per symbol, for portfolio valuation."""
        with self._lock:
            return {symbol: record.price for symbol, record in self._records.items()}

    def put(self, record: SecurityRecord) -> SecurityRecord:
        """Insert or replace a record."""
        with self._lock:
            self._records[record.symbol] = record
        return record

    def observe(self, record: SecurityRecord) -> SecurityRecord:
        """Register ``record`` unless the symbol is already known; returns the stored record."""
        with self._lock:
            return self._records.setdefault(record.symbol, record)

    def discard(self, symbol: str) -> bool:
        """Remove the record for ``symbol``; returns True if one existed."""
        with self._lock:
            return self._records.pop(symbol, None) is not None

    def retain(self, symbols: Iterable[str]) -> list[str]:
        """Discard every record whose symbol is not in ``symbols``; returns the discarded symbols."""
        keep = set(symbols)
        with self._lock:
            dropped = [symbol for symbol in self._records if symbol not in keep]
            for symbol in dropped:
                del self._records[symbol]
        if dropped:
            self.logger.debug(f'Discarded records: {dropped}')
        return dropped

    def apply_quotes(self, quotes: Sequence[PartialQuote]) -> list[str]:
        """
        Merge quotes into the records they belong to.

        Quotes for symbols the registry no longer holds are dropped, which is
        how late results for discarded symbols are ignored.

        Returns:
            Symbols whose records were updated.
        """
        updated: list[str] = []
        with self._lock:
            for quote in quotes:
                current = self._records.get(quote.symbol)
                if current is None:
                    self.logger.debug(f'Ignoring quote for untracked symbol {quote.symbol}')
                    continue
                self._records[quote.symbol] = self._reconciler.merge(current, quote)
                updated.append(quote.symbol)
        return updated
