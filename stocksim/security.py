"""
Security records and partial quote updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal('0')


@dataclass(frozen=True)
class SecurityRecord:
    """Per-symbol market snapshot with rolling history and derived indicators.

    Records are immutable; the reconciler returns a new record on every merge.
    ``synthetic_points`` counts the leading history entries that come from the
    random-walk seed rather than from real quotes.
    """

    symbol: str
    name: str = ''
    industry: str = ''
    price: Decimal = ZERO
    change: Decimal = ZERO
    change_percent: Decimal = ZERO
    open: Decimal = ZERO
    high: Decimal = ZERO
    low: Decimal = ZERO
    volume: int = 0
    eps: Decimal = ZERO
    history: tuple[Decimal, ...] = ()
    synthetic_points: int = 0
    ma5: Decimal = ZERO
    ma10: Decimal = ZERO
    ma20: Decimal = ZERO
    obv: int = 0

    @property
    def history_is_synthetic(self) -> bool:
        """True while any seeded (non-market) point remains in the window."""
        return self.synthetic_points > 0

    @property
    def is_up(self) -> bool:
        return self.change >= 0


@dataclass(frozen=True)
class PartialQuote:
    """A quote update in which every market field is optional.

    ``None`` means "no new information", which is not the same as zero.
    """

    symbol: str
    price: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    volume: int | None = None
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PartialQuote | None:
        """Build a quote from a decoded provider payload.

        Unparsable fields are dropped individually; a payload without a symbol
        yields None.
        """
        symbol = str(payload.get('symbol') or '').strip()
        if not symbol:
            return None
        volume = to_decimal(payload.get('volume'))
        return cls(
            symbol=symbol,
            price=to_decimal(payload.get('price')),
            change=to_decimal(payload.get('change')),
            change_percent=to_decimal(payload.get('changePercent', payload.get('change_percent'))),
            volume=int(volume) if volume is not None and volume >= 0 else None,
            open=to_decimal(payload.get('open')),
            high=to_decimal(payload.get('high')),
            low=to_decimal(payload.get('low')),
        )


@dataclass(frozen=True)
class SymbolMatch:
    """Result of a symbol lookup."""

    symbol: str
    name: str


def to_decimal(value: Any) -> Decimal | None:
    """Convert a JSON number (or numeric string) to a finite Decimal, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).replace(',', '').strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def new_security(symbol: str, name: str = '', industry: str = '', price: Decimal = ZERO, eps: Decimal = ZERO) -> SecurityRecord:
    """Create the record for a newly observed symbol (empty history)."""
    return SecurityRecord(
        symbol=symbol,
        name=name,
        industry=industry,
        price=price,
        open=price,
        high=price,
        low=price,
        eps=eps,
    )


# Starting watchlist; prices are placeholders until the first quote arrives.
DEFAULT_SECURITIES: tuple[SecurityRecord, ...] = (
    new_security('2330', '台積電', '半導體', Decimal('1080'), Decimal('42.5')),
    new_security('2317', '鴻海', '電子代工', Decimal('210'), Decimal('11.5')),
    new_security('2454', '聯發科', 'IC設計', Decimal('1260'), Decimal('55.2')),
    new_security('2603', '長榮', '航運', Decimal('215'), Decimal('22.5')),
)

UNCLASSIFIED_INDUSTRY = '其他'
