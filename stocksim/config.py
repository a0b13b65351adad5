"""
Configuration dataclasses for quote reconciliation, the ledger and the refresh loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ReconcilerConfig:
    """Rolling history and indicator settings."""

    window_size: int = 30
    seed_jitter_pct: Decimal = Decimal('0.02')  # Max step of the synthetic seed walk

    def validate(self) -> None:
        # MA20 needs at least 20 points
        if self.window_size < 20:
            raise ValueError('window_size must be at least 20')
        if not Decimal('0') <= self.seed_jitter_pct < Decimal('1'):
            raise ValueError('seed_jitter_pct must be in [0, 1)')


DEFAULT_MAX_CAPITAL = Decimal('10000000')


@dataclass(frozen=True)
class LedgerConfig:
    """Paper account settings."""

    initial_capital: Decimal = Decimal('5000000')
    max_capital: Decimal = DEFAULT_MAX_CAPITAL
    lot_size: int = 1  # Shares per tradable unit

    def validate(self) -> None:
        if self.max_capital < 0:
            raise ValueError('max_capital cannot be negative')
        if not Decimal('0') <= self.initial_capital <= self.max_capital:
            raise ValueError(f'initial_capital must be between 0 and {self.max_capital}')
        if self.lot_size < 1:
            raise ValueError('lot_size must be at least 1')


@dataclass(frozen=True)
class RefreshConfig:
    """Quote refresh loop settings."""

    interval_seconds: float = 5.0
    refresh_on_start: bool = True  # Fetch once at start regardless of session state

    def validate(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError('interval_seconds must be positive')


@dataclass(frozen=True)
class SessionConfig:
    """Complete trading session configuration."""

    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)

    def validate(self) -> None:
        """Validate all nested sections."""
        self.reconciler.validate()
        self.ledger.validate()
        self.refresh.validate()
