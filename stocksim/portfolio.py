"""
Paper-trading ledger.

Cash, holdings and the trade log live in an immutable ``Portfolio`` value.
``execute_trade`` is a pure reducer: it returns a new portfolio for an accepted
trade and the very same portfolio (plus a rejection reason) otherwise.
``Ledger`` is the single owner of the current portfolio for a session.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from threading import Lock
from types import MappingProxyType
from typing import Any

from .config import DEFAULT_MAX_CAPITAL, LedgerConfig
from .security import ZERO, SecurityRecord


class TradeSide(str, Enum):
    BUY = 'BUY'
    SELL = 'SELL'


class CapitalValidationError(ValueError):
    """Raised when a reset is requested with an unusable starting capital."""


@dataclass(frozen=True)
class Holding:
    """Shares of one symbol held at a weighted-average cost."""

    symbol: str
    name: str
    quantity: int
    average_cost: Decimal

    @property
    def cost_value(self) -> Decimal:
        return self.average_cost * self.quantity


@dataclass(frozen=True)
class TradeRecord:
    """Append-only log entry for an executed trade."""

    id: str
    symbol: str
    side: TradeSide
    price: Decimal
    quantity: int
    amount: Decimal
    timestamp: datetime


@dataclass(frozen=True)
class Portfolio:
    """Cash, holdings keyed by symbol, and the chronological trade log."""

    cash: Decimal
    holdings: Mapping[str, Holding] = field(default_factory=lambda: MappingProxyType({}))
    history: tuple[TradeRecord, ...] = ()

    def __post_init__(self) -> None:
        # Freeze the holdings map so the value cannot be edited in place
        if not isinstance(self.holdings, MappingProxyType):
            object.__setattr__(self, 'holdings', MappingProxyType(dict(self.holdings)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Portfolio):
            return NotImplemented
        return self.cash == other.cash and dict(self.holdings) == dict(other.holdings) and self.history == other.history

    def holding(self, symbol: str) -> Holding | None:
        return self.holdings.get(symbol)

    def quantity_of(self, symbol: str) -> int:
        held = self.holdings.get(symbol)
        return held.quantity if held else 0


@dataclass(frozen=True)
class TradeOutcome:
    """Result of ``execute_trade``.

    On rejection ``portfolio`` is the unchanged input, ``trade`` is None and
    ``rejection`` says why.
    """

    portfolio: Portfolio
    trade: TradeRecord | None = None
    rejection: str | None = None

    @property
    def accepted(self) -> bool:
        return self.trade is not None


def _with_holding(holdings: Mapping[str, Holding], symbol: str, holding: Holding | None) -> dict[str, Holding]:
    """Copy ``holdings`` with ``symbol`` set to ``holding``, or removed when None."""
    updated = dict(holdings)
    if holding is None:
        updated.pop(symbol, None)
    else:
        updated[symbol] = holding
    return updated


def execute_trade(
    portfolio: Portfolio,
    side: TradeSide | str,
    security: SecurityRecord,
    quantity: int,
    *,
    trade_id: str | None = None,
    timestamp: datetime | None = None,
) -> TradeOutcome:
    """
    Execute an immediate market order at ``security.price``.

    Args:
        portfolio: Current ledger state (never mutated).
        side: BUY or SELL.
        security: Record supplying symbol, display name and execution price.
        quantity: Whole shares, must be positive.
        trade_id: Id for the trade record (random when omitted).
        timestamp: Execution time (now, UTC, when omitted).

    Returns:
        TradeOutcome holding the new portfolio, or the unchanged one with a
        rejection reason. Never raises for bad input.
    """
    try:
        side = TradeSide(side)
    except ValueError:
        return TradeOutcome(portfolio, rejection=f'unknown side {side!r}')

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        return TradeOutcome(portfolio, rejection=f'quantity must be a positive integer, got {quantity!r}')

    price = security.price
    if not price.is_finite() or price <= 0:
        return TradeOutcome(portfolio, rejection=f'no valid price for {security.symbol}')

    amount = price * quantity
    current = portfolio.holdings.get(security.symbol)

    if side is TradeSide.BUY:
        if portfolio.cash < amount:
            return TradeOutcome(portfolio, rejection=f'insufficient cash: need {amount}, have {portfolio.cash}')
        cash = portfolio.cash - amount
        if current is None:
            holding = Holding(security.symbol, security.name, quantity, price)
        else:
            new_quantity = current.quantity + quantity
            average_cost = (current.average_cost * current.quantity + amount) / new_quantity
            holding = Holding(current.symbol, current.name, new_quantity, average_cost)
        holdings = _with_holding(portfolio.holdings, security.symbol, holding)
    else:
        if current is None or current.quantity < quantity:
            held = current.quantity if current else 0
            return TradeOutcome(portfolio, rejection=f'insufficient shares: need {quantity}, hold {held}')
        cash = portfolio.cash + amount
        remaining = current.quantity - quantity
        # Cost basis of the remaining shares is left untouched
        holding = Holding(current.symbol, current.name, remaining, current.average_cost) if remaining else None
        holdings = _with_holding(portfolio.holdings, security.symbol, holding)

    trade = TradeRecord(
        id=trade_id or uuid.uuid4().hex,
        symbol=security.symbol,
        side=side,
        price=price,
        quantity=quantity,
        amount=amount,
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    return TradeOutcome(Portfolio(cash=cash, holdings=holdings, history=(*portfolio.history, trade)), trade=trade)


def parse_capital(raw: Any, max_capital: Decimal = DEFAULT_MAX_CAPITAL) -> Decimal:
    """
    Validate a starting capital.

    Raises:
        CapitalValidationError: If the value is not a finite number within
            ``[0, max_capital]``.
    """
    if isinstance(raw, bool):
        raise CapitalValidationError(f'Initial capital must be a number, got {raw!r}')
    try:
        capital = Decimal(str(raw).replace(',', '').strip())
    except (InvalidOperation, ValueError):
        raise CapitalValidationError(f'Initial capital must be a number, got {raw!r}') from None
    if not capital.is_finite():
        raise CapitalValidationError(f'Initial capital must be finite, got {raw!r}')
    if capital < 0 or capital > max_capital:
        raise CapitalValidationError(f'Initial capital must be between 0 and {max_capital}, got {capital}')
    return capital


def reset_portfolio(initial_capital: Any, max_capital: Decimal = DEFAULT_MAX_CAPITAL) -> Portfolio:
    """Return a fresh portfolio: all cash, no holdings, empty trade log."""
    return Portfolio(cash=parse_capital(initial_capital, max_capital))


def max_affordable_quantity(cash: Decimal, price: Decimal, lot_size: int = 1) -> int:
    """Whole shares (rounded down to ``lot_size``) that ``cash`` buys at ``price``."""
    if not price.is_finite() or not cash.is_finite() or price <= 0 or cash <= 0 or lot_size < 1:
        return 0
    lots = int(cash // (price * lot_size))
    return lots * lot_size


def holding_pnl(holding: Holding, price: Decimal) -> tuple[Decimal, Decimal]:
    """Unrealized (P&L, P&L percent) of ``holding`` valued at ``price``."""
    pnl = (price - holding.average_cost) * holding.quantity
    if holding.average_cost <= 0:
        return pnl, ZERO
    return pnl, (price - holding.average_cost) / holding.average_cost * 100


def total_assets(portfolio: Portfolio, prices: Mapping[str, Decimal]) -> Decimal:
    """
    Cash plus holdings at the latest known price.

    A holding without a known finite, positive price is valued at its average cost.
    """
    value = portfolio.cash
    for symbol, held in portfolio.holdings.items():
        price = prices.get(symbol)
        if price is None or not price.is_finite() or price <= 0:
            price = held.average_cost
        value += price * held.quantity
    return value


def total_pnl(portfolio: Portfolio, initial_capital: Decimal, prices: Mapping[str, Decimal]) -> Decimal:
    return total_assets(portfolio, prices) - initial_capital


@dataclass(frozen=True)
class Valuation:
    """Summary figures for the account view."""

    cash: Decimal
    securities_value: Decimal
    total_assets: Decimal
    total_pnl: Decimal


class Ledger:
    """
    Single owner of a session's portfolio.

    All mutations go through one lock so trades and resets issued from
    different threads are applied one at a time.
    """

    def __init__(self, config: LedgerConfig | None = None) -> None:
        self.config = config or LedgerConfig()
        self.config.validate()
        self._lock = Lock()
        self._initial_capital = self.config.initial_capital
        self._portfolio = Portfolio(cash=self._initial_capital)
        self._trade_seq = itertools.count(start=1)
        self.logger = logging.getLogger(__name__)

    @property
    def initial_capital(self) -> Decimal:
        with self._lock:
            return self._initial_capital

    def snapshot(self) -> Portfolio:
        """Current portfolio (immutable, safe to hand out)."""
        with self._lock:
            return self._portfolio

    def _next_trade_id(self, timestamp: datetime) -> str:
        # Millisecond prefix plus a per-ledger sequence keeps ids sortable by creation
        return f'{int(timestamp.timestamp() * 1000)}-{next(self._trade_seq):06d}'

    def execute_trade(self, side: TradeSide | str, security: SecurityRecord, quantity: int) -> TradeOutcome:
        """Execute a market order against the current portfolio."""
        with self._lock:
            timestamp = datetime.now(timezone.utc)
            outcome = execute_trade(
                self._portfolio,
                side,
                security,
                quantity,
                trade_id=self._next_trade_id(timestamp),
                timestamp=timestamp,
            )
            self._portfolio = outcome.portfolio

        if outcome.trade is not None:
            trade = outcome.trade
            self.logger.info(
                f'{trade.side.value} {trade.quantity} {trade.symbol} @ {trade.price} (amount {trade.amount})',
                extra={'trade_id': trade.id, 'cash': str(outcome.portfolio.cash)},
            )
        else:
            self.logger.info(
                f'Trade rejected: {outcome.rejection}',
                extra={'symbol': security.symbol, 'side': getattr(side, 'value', side), 'quantity': quantity},
            )
        return outcome

    def reset(self, initial_capital: Any) -> Portfolio:
        """
        Replace the whole portfolio with a fresh one funded by ``initial_capital``.

        Raises:
            CapitalValidationError: If the capital is rejected; state is untouched.
        """
        portfolio = reset_portfolio(initial_capital, self.config.max_capital)
        with self._lock:
            self._portfolio = portfolio
            self._initial_capital = portfolio.cash
        self.logger.warning(f'Portfolio reset with capital {portfolio.cash}')
        return portfolio

    def max_buy(self, security: SecurityRecord) -> int:
        """Largest BUY quantity the current cash allows at the security's price."""
        with self._lock:
            cash = self._portfolio.cash
        return max_affordable_quantity(cash, security.price, self.config.lot_size)

    def valuation(self, prices: Mapping[str, Decimal]) -> Valuation:
        with self._lock:
            portfolio = self._portfolio
            initial_capital = self._initial_capital
        assets = total_assets(portfolio, prices)
        return Valuation(
            cash=portfolio.cash,
            securities_value=assets - portfolio.cash,
            total_assets=assets,
            total_pnl=assets - initial_capital,
        )
