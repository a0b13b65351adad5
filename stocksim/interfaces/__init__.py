"""Protocol interfaces for the external collaborators of a trading session.

Quote, symbol lookup and recommendation sources are injected into the
session, so tests and alternative backends can stand in for the live ones.
"""

from .market_data import QuoteProviderProtocol, SymbolLookupProtocol
from .recommendation import RecommendationProviderProtocol

__all__ = [
    'QuoteProviderProtocol',
    'RecommendationProviderProtocol',
    'SymbolLookupProtocol',
]
