"""Watchlist membership."""

from __future__ import annotations

from collections.abc import Iterable
from threading import Lock
from typing import Protocol


class _HasSymbol(Protocol):
    symbol: str


def contains(symbols: Iterable[str], symbol: str) -> bool:
    return symbol in symbols


def toggle(symbols: tuple[str, ...], security: _HasSymbol) -> tuple[str, ...]:
    """Remove ``security`` if present, otherwise prepend it."""
    if security.symbol in symbols:
        return tuple(s for s in symbols if s != security.symbol)
    return (security.symbol, *symbols)


class Watchlist:
    """Ordered set of tracked symbols, newest first."""

    def __init__(self, symbols: Iterable[str] = ()) -> None:
        self._lock = Lock()
        # Drop duplicates, keep first occurrence
        self._symbols: tuple[str, ...] = tuple(dict.fromkeys(symbols))

    @property
    def symbols(self) -> tuple[str, ...]:
        with self._lock:
            return self._symbols

    def __contains__(self, symbol: object) -> bool:
        with self._lock:
            return symbol in self._symbols

    def __len__(self) -> int:
        with self._lock:
            return len(self._symbols)

    def toggle(self, security: _HasSymbol) -> bool:
        """Toggle membership; returns True when the symbol is now watched."""
        with self._lock:
            self._symbols = toggle(self._symbols, security)
            return security.symbol in self._symbols
