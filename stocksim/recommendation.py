"""
Recommendation payloads from an external analysis provider.

Only the shape is checked here; the advice itself is displayed, never acted on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class RecommendationAction(str, Enum):
    BUY = 'BUY'
    SELL = 'SELL'
    HOLD = 'HOLD'


class MalformedRecommendation(ValueError):
    """Provider payload does not match the recommendation contract."""


@dataclass(frozen=True)
class Recommendation:
    action: RecommendationAction
    confidence: float
    summary: str
    technical_note: str
    fundamental_note: str
    is_fallback: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> Recommendation:
        """
        Validate a decoded provider payload.

        Accepts ``technicalAnalysis``/``fundamentalAnalysis`` as well as the
        snake_case note keys.

        Raises:
            MalformedRecommendation: If a required field is missing or invalid.
        """
        if not isinstance(payload, dict):
            raise MalformedRecommendation(f'expected an object, got {type(payload).__name__}')

        try:
            action = RecommendationAction(str(payload.get('recommendation', '')).strip().upper())
        except ValueError:
            raise MalformedRecommendation(f'invalid recommendation {payload.get("recommendation")!r}') from None

        raw_confidence = payload.get('confidence')
        if isinstance(raw_confidence, bool):
            raise MalformedRecommendation('confidence must be a number')
        try:
            confidence = float(raw_confidence)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise MalformedRecommendation(f'confidence must be a number, got {raw_confidence!r}') from None
        if not 0.0 <= confidence <= 100.0:
            raise MalformedRecommendation(f'confidence must be within 0..100, got {confidence}')

        summary = payload.get('summary')
        technical = payload.get('technicalAnalysis', payload.get('technical_note'))
        fundamental = payload.get('fundamentalAnalysis', payload.get('fundamental_note'))
        for key, value in (('summary', summary), ('technical note', technical), ('fundamental note', fundamental)):
            if not isinstance(value, str):
                raise MalformedRecommendation(f'{key} must be text')

        return cls(
            action=action,
            confidence=confidence,
            summary=summary,
            technical_note=technical,
            fundamental_note=fundamental,
        )


def neutral_recommendation(reason: str = 'Analysis service unavailable; no live recommendation.') -> Recommendation:
    """HOLD with zero confidence, used whenever a real recommendation cannot be obtained."""
    return Recommendation(
        action=RecommendationAction.HOLD,
        confidence=0.0,
        summary=reason,
        technical_note='No data',
        fundamental_note='No data',
        is_fallback=True,
    )


def recommendation_or_fallback(payload: Any) -> Recommendation:
    """Validate ``payload``, substituting the neutral recommendation when it is malformed."""
    try:
        return Recommendation.from_payload(payload)
    except MalformedRecommendation as exc:
        logger.warning(f'Malformed recommendation payload: {exc}')
        return neutral_recommendation()
