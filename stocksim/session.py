"""Trading session controller - owns the state one user session works on."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .calendar import MarketStatus, session_state
from .config import SessionConfig
from .portfolio import Ledger, TradeOutcome, TradeSide, Valuation
from .reconciler import QuoteReconciler
from .recommendation import Recommendation, neutral_recommendation
from .refresh import RefreshScheduler
from .registry import SecurityRegistry
from .security import DEFAULT_SECURITIES, UNCLASSIFIED_INDUSTRY, SecurityRecord, new_security
from .watchlist import Watchlist

if TYPE_CHECKING:
    from .interfaces import QuoteProviderProtocol, RecommendationProviderProtocol, SymbolLookupProtocol


@dataclass(frozen=True)
class RefreshResult:
    """What one refresh cycle did."""

    ran: bool
    requested: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    reason: str | None = None


class TradingSession:
    """Coordinates watchlist, security records, ledger and the refresh loop.

    Responsibilities:
    - Decide which symbols to refresh and hand quotes to the registry
    - Route user actions (search, watchlist toggle, trade, reset)
    - Start/stop the periodic refresh

    Does NOT:
    - Compute record updates (QuoteReconciler)
    - Apply trades (Ledger)
    """

    def __init__(
        self,
        quote_provider: QuoteProviderProtocol,
        symbol_lookup: SymbolLookupProtocol | None = None,
        recommender: RecommendationProviderProtocol | None = None,
        config: SessionConfig | None = None,
        securities: Iterable[SecurityRecord] = DEFAULT_SECURITIES,
        reconciler: QuoteReconciler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.config.validate()

        self.quote_provider = quote_provider
        self.symbol_lookup = symbol_lookup
        self.recommender = recommender
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        securities = tuple(securities)
        self.reconciler = reconciler or QuoteReconciler(self.config.reconciler)
        self.registry = SecurityRegistry(self.reconciler, securities)
        self.watchlist = Watchlist(record.symbol for record in securities)
        self.ledger = Ledger(self.config.ledger)

        self._selected: str | None = None
        self._selection_lock = threading.Lock()

        # In-flight flag for refresh; acquired non-blocking so overlapping ticks are skipped
        self._refresh_guard = threading.Lock()
        # Guards the closed flag and generation; a refresh merges its result while holding it
        self._state_lock = threading.Lock()
        # Bumped on close so a refresh that completes afterwards is dropped
        self._generation = 0
        self._closed = False

        self.market_status = MarketStatus.CLOSED
        self.last_update: datetime | None = None

        self._scheduler = RefreshScheduler(self.tick, self.config.refresh.interval_seconds)
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    def start(self) -> None:
        """Start the periodic refresh (and fetch once up front if configured)."""
        if self._closed:
            raise RuntimeError('Session is closed')
        self.market_status = session_state(self._clock())
        if self.config.refresh.refresh_on_start:
            self.refresh()
        self._scheduler.start()

    def close(self) -> None:
        """Cancel the timer; results of any refresh still in flight are ignored."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
        self._scheduler.stop()
        self.logger.info('Trading session closed')

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> TradingSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Refresh
    def tick(self) -> RefreshResult:
        """One scheduler tick: update the session state and refresh while the market is open."""
        self.market_status = session_state(self._clock())
        if self.market_status is not MarketStatus.OPEN:
            return RefreshResult(ran=False, reason=f'market {self.market_status.value}')
        return self.refresh()

    def symbols_to_refresh(self) -> tuple[str, ...]:
        """Watchlist symbols plus the currently viewed one, without duplicates."""
        symbols = list(self.watchlist.symbols)
        selected = self.selected_symbol
        if selected and selected not in symbols:
            symbols.append(selected)
        return tuple(symbols)

    def refresh(self) -> RefreshResult:
        """
        Fetch quotes for the symbols of interest and merge them.

        Returns without doing anything when another refresh is still running
        or the session is closed. Provider errors leave every record as it was.
        """
        if self._closed:
            return RefreshResult(ran=False, reason='closed')
        if not self._refresh_guard.acquire(blocking=False):
            self.logger.debug('Refresh already in flight, skipping tick')
            return RefreshResult(ran=False, reason='in flight')

        try:
            generation = self._generation
            symbols = self.symbols_to_refresh()
            if not symbols:
                return RefreshResult(ran=False, reason='nothing to refresh')

            try:
                quotes = self.quote_provider.fetch_quotes(list(symbols))
            except Exception as exc:
                self.logger.warning(f'Quote provider failed, keeping stale data: {exc}')
                return RefreshResult(ran=True, requested=symbols, reason='provider failure')

            with self._state_lock:
                if self._closed or generation != self._generation:
                    self.logger.info('Discarding refresh result for closed session')
                    return RefreshResult(ran=False, requested=symbols, reason='closed')
                self._drop_uninteresting()
                updated = self.registry.apply_quotes(quotes)
                self.last_update = self._clock()
            self.logger.debug(f'Refreshed {len(updated)}/{len(symbols)} symbols')
            return RefreshResult(ran=True, requested=symbols, updated=tuple(updated))
        finally:
            self._refresh_guard.release()

    def _drop_uninteresting(self) -> None:
        """Discard records that are neither watched, held nor selected."""
        keep = set(self.symbols_to_refresh()) | set(self.ledger.snapshot().holdings)
        self.registry.retain(keep)

    # ------------------------------------------------------------------
    # Selection / search
    @property
    def selected_symbol(self) -> str | None:
        with self._selection_lock:
            return self._selected

    @property
    def selected(self) -> SecurityRecord | None:
        symbol = self.selected_symbol
        return self.registry.get(symbol) if symbol else None

    def select(self, symbol: str | None) -> SecurityRecord | None:
        """View ``symbol`` (or clear the selection with None)."""
        with self._selection_lock:
            self._selected = symbol
        return self.selected

    def search(self, query: str) -> SecurityRecord | None:
        """
        Find a security by code or name and make it the selected one.

        Watched records are matched locally first; otherwise the symbol lookup
        provider is asked and the new record is fetched once right away.
        """
        query = query.strip()
        if not query:
            return None

        records = self.registry.snapshot()
        for symbol in self.watchlist.symbols:
            record = records.get(symbol)
            if record is not None and (record.symbol == query or (record.name and query in record.name)):
                return self.select(record.symbol)

        if self.symbol_lookup is None:
            return None
        try:
            match = self.symbol_lookup.resolve_symbol(query)
        except Exception as exc:
            self.logger.warning(f'Symbol lookup failed for {query!r}: {exc}')
            return None
        if match is None:
            self.logger.info(f'No security found for {query!r}')
            return None

        record = self.registry.observe(new_security(match.symbol, match.name, UNCLASSIFIED_INDUSTRY))
        self.select(record.symbol)
        try:
            quotes = self.quote_provider.fetch_quotes([record.symbol])
        except Exception as exc:
            self.logger.warning(f'Initial quote fetch failed for {record.symbol}: {exc}')
            quotes = []
        with self._state_lock:
            if self._closed:
                self.logger.info(f'Discarding quote for {record.symbol}: session closed')
            else:
                self.registry.apply_quotes([quote for quote in quotes if quote.symbol == record.symbol][:1])
        return self.registry.get(record.symbol)

    # ------------------------------------------------------------------
    # Watchlist
    def toggle_watchlist(self, symbol: str) -> bool:
        """Add or remove ``symbol``; returns True when it is now watched."""
        record = self.registry.get(symbol) or self.registry.observe(new_security(symbol))
        watched = self.watchlist.toggle(record)
        self.logger.info(f'{"Added" if watched else "Removed"} {symbol} {"to" if watched else "from"} watchlist')
        return watched

    def watchlist_records(self) -> list[SecurityRecord]:
        records = self.registry.snapshot()
        return [records[symbol] for symbol in self.watchlist.symbols if symbol in records]

    # ------------------------------------------------------------------
    # Trading
    def trade(self, side: TradeSide | str, symbol: str, quantity: int) -> TradeOutcome:
        """Execute a market order at the latest known price of ``symbol``."""
        record = self.registry.get(symbol)
        if record is None:
            portfolio = self.ledger.snapshot()
            self.logger.info(f'Trade rejected: no market data for {symbol}')
            return TradeOutcome(portfolio, rejection=f'no market data for {symbol}')
        return self.ledger.execute_trade(side, record, quantity)

    def max_buy(self, symbol: str) -> int:
        record = self.registry.get(symbol)
        return self.ledger.max_buy(record) if record else 0

    def reset_portfolio(self, initial_capital: object) -> None:
        """Reset the ledger; raises CapitalValidationError for a rejected capital."""
        self.ledger.reset(initial_capital)

    def valuation(self) -> Valuation:
        return self.ledger.valuation(self.registry.prices())

    # ------------------------------------------------------------------
    # Analysis
    def recommend(self, symbol: str) -> Recommendation:
        """Recommendation for ``symbol``; neutral when unavailable."""
        record = self.registry.get(symbol)
        if record is None or self.recommender is None:
            return neutral_recommendation()
        try:
            return self.recommender.recommend(record)
        except Exception as exc:
            self.logger.warning(f'Recommendation provider failed for {symbol}: {exc}')
            return neutral_recommendation()
