"""External data providers."""

from .gemini import GeminiConfig, GeminiMarketProvider

__all__ = ['GeminiConfig', 'GeminiMarketProvider']
