"""
stocksim - quote tracking and paper trading

This package provides:
- Exchange session clock (Taiwan Stock Exchange hours)
- Quote reconciliation with a rolling 30-point history and MA5/MA10/MA20
- Paper-trading ledger with weighted-average cost accounting
- Watchlist management and a periodic quote refresh loop
- Gemini-backed quote, symbol lookup and recommendation providers
"""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import calendar as calendar
    from . import chart as chart
    from . import config as config
    from . import portfolio as portfolio
    from . import reconciler as reconciler
    from . import recommendation as recommendation
    from . import registry as registry
    from . import security as security
    from . import session as session
    from . import watchlist as watchlist

__version__ = '1.0.0'
__all__ = [
    'calendar',
    'chart',
    'config',
    'portfolio',
    'reconciler',
    'recommendation',
    'registry',
    'security',
    'session',
    'watchlist',
]


def __getattr__(name: str) -> ModuleType:  # pragma: no cover
    """Lazy-load submodules so pandas is only imported when charts are used."""
    if name in __all__:
        module = importlib.import_module(f'{__name__}.{name}')
        globals()[name] = module
        return module
    raise AttributeError(f'module {__name__!r} has no attribute {name!r}')


def __dir__() -> list[str]:  # pragma: no cover
    return sorted(set(list(globals()) + __all__))
