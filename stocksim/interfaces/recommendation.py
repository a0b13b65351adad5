"""Recommendation provider protocol interface."""

from __future__ import annotations

from typing import Protocol

from ..recommendation import Recommendation
from ..security import SecurityRecord


class RecommendationProviderProtocol(Protocol):
    """Produces buy/sell/hold advice for a security snapshot."""

    def recommend(self, record: SecurityRecord) -> Recommendation:
        """Analyse ``record``; may fall back to a neutral recommendation."""
        ...
