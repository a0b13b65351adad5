"""Market data provider protocol interfaces."""

from __future__ import annotations

from typing import Protocol

from ..security import PartialQuote, SymbolMatch


class QuoteProviderProtocol(Protocol):
    """Source of partial quotes.

    Implementations may return fewer quotes than symbols requested (a missing
    entry means "no update") and are expected to return an empty list rather
    than raise when the upstream fails.
    """

    def fetch_quotes(self, symbols: list[str]) -> list[PartialQuote]:
        """Fetch the latest quotes for ``symbols``."""
        ...


class SymbolLookupProtocol(Protocol):
    """Resolves free-text queries (code or company name) to a listed symbol."""

    def resolve_symbol(self, query: str) -> SymbolMatch | None:
        """Return the matching symbol, or None when nothing matches."""
        ...
