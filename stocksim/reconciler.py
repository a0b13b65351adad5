"""
Quote reconciliation.

Merges partial quote updates into security records and maintains the rolling
price window plus the MA5/MA10/MA20 and OBV figures derived from it.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from .config import ReconcilerConfig
from .security import ZERO, PartialQuote, SecurityRecord

logger = logging.getLogger(__name__)

_CENT = Decimal('0.01')


def simple_moving_average(history: Sequence[Decimal], period: int) -> Decimal:
    """Mean of the last ``period`` entries rounded to 2 dp, or 0 when too short."""
    if period <= 0 or len(history) < period:
        return ZERO
    window = history[-period:]
    return (sum(window, ZERO) / period).quantize(_CENT, rounding=ROUND_HALF_UP)


def synthesize_history(price: Decimal, points: int, jitter_pct: Decimal, rng: random.Random) -> tuple[Decimal, ...]:
    """
    Build a backward random walk that ends at ``price``.

    Each earlier point moves the later one by up to +/- ``jitter_pct`` of its
    value. The result is presentation-only seed data, not market history.
    """
    walk: list[Decimal] = []
    current = price
    for _ in range(points):
        walk.append(current)
        step = Decimal(str(rng.uniform(-1.0, 1.0))) * current * jitter_pct
        current = (current + step).quantize(_CENT, rounding=ROUND_HALF_UP)
    walk.reverse()
    return tuple(walk)


class QuoteReconciler:
    """Applies partial quotes to security records."""

    def __init__(self, config: ReconcilerConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or ReconcilerConfig()
        self.config.validate()
        self._rng = rng or random.Random()

    def merge(self, existing: SecurityRecord, update: PartialQuote) -> SecurityRecord:
        """
        Return ``existing`` updated with whatever ``update`` carries.

        Absent fields keep their current values. The history window always
        advances by one point (or is seeded when empty), so an empty update
        still rolls the window at the unchanged price.
        """
        fresh = update.price
        price = fresh if fresh is not None and fresh.is_finite() and fresh > 0 else existing.price

        window = self.config.window_size
        if not existing.history:
            history = synthesize_history(price, window, self.config.seed_jitter_pct, self._rng)
            synthetic_points = window - 1
        else:
            history = (*existing.history, price)[-window:]
            dropped = len(existing.history) + 1 - len(history)
            synthetic_points = max(0, existing.synthetic_points - dropped)

        averages = {period: simple_moving_average(history, period) for period in (5, 10, 20)}

        volume = update.volume if update.volume else existing.volume

        merged = replace(
            existing,
            price=price,
            change=update.change if update.change is not None else existing.change,
            change_percent=update.change_percent if update.change_percent is not None else existing.change_percent,
            open=update.open if update.open is not None else existing.open,
            high=update.high if update.high is not None else existing.high,
            low=update.low if update.low is not None else existing.low,
            volume=volume,
            history=history,
            synthetic_points=synthetic_points,
            ma5=averages[5],
            ma10=averages[10],
            ma20=averages[20],
            # Running volume total; does not subtract on down moves
            obv=existing.obv + (update.volume or 0),
        )
        logger.debug(
            'Merged quote',
            extra={'symbol': existing.symbol, 'price': str(price), 'history_len': len(history)},
        )
        return merged

