"""
Gemini-backed market data and analysis provider.

Quotes, symbol lookups and recommendations are obtained by prompting a Gemini
model with Google Search grounding and decoding the JSON it returns. Every
public method recovers locally: transport errors and malformed responses are
logged and turned into "no data" results, so callers keep working on the
records they already have.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from ..recommendation import Recommendation, neutral_recommendation, recommendation_or_fallback
from ..security import PartialQuote, SecurityRecord, SymbolMatch

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'```(?:json)?', re.IGNORECASE)


@dataclass
class GeminiConfig:
    """
    Configuration for Gemini API access.

    Attributes:
        api_key: Gemini API key.
        model: Model name used for every request.
        market_suffix: Suffix appended to symbols in prompts (e.g. "TW").
        timeout_seconds: Per-request HTTP timeout.
        use_search: Enable Google Search grounding.
    """

    api_key: str
    model: str = 'gemini-2.5-flash'
    market_suffix: str = 'TW'
    timeout_seconds: float = 30.0
    use_search: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.api_key:
            raise ValueError('API key is required')
        if not self.model:
            raise ValueError('Model name is required')
        if self.timeout_seconds <= 0:
            raise ValueError('Timeout must be positive')


def extract_json(text: str | None) -> Any:
    """
    Decode the JSON document in a model response.

    Markdown code fences are stripped; if the text still does not parse, the
    outermost ``[...]`` or ``{...}`` span is tried.

    Raises:
        ValueError: If no JSON document can be decoded.
    """
    if not text or not text.strip():
        raise ValueError('Empty response')
    cleaned = _FENCE_RE.sub('', text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    for opener, closer in (('[', ']'), ('{', '}')):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f'Invalid JSON response: {text[:200]!r}')


def parse_quotes(payload: Any) -> list[PartialQuote]:
    """Turn a decoded quote payload (list of objects, or one object) into quotes."""
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise ValueError(f'Expected a list of quotes, got {type(payload).__name__}')
    quotes: list[PartialQuote] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        quote = PartialQuote.from_payload(entry)
        if quote is not None:
            quotes.append(quote)
    return quotes


def parse_symbol_match(payload: Any) -> SymbolMatch | None:
    if not isinstance(payload, dict):
        return None
    symbol = str(payload.get('symbol') or '').strip()
    if not symbol:
        return None
    name = str(payload.get('name') or symbol).strip()
    return SymbolMatch(symbol=symbol, name=name)


class GeminiMarketProvider:
    """
    Quote source, symbol resolver and recommendation provider backed by Gemini.

    Implements QuoteProviderProtocol, SymbolLookupProtocol and
    RecommendationProviderProtocol.
    """

    def __init__(self, config: GeminiConfig, client: Any = None) -> None:
        self._config = config
        # Created lazily so importing the package does not require google-genai
        self._client: Any = client

    def _get_client(self) -> Any:
        """Get or create the Gemini client."""
        if self._client is None:
            try:
                from google import genai
                from google.genai import types
            except ImportError as e:
                raise ImportError('google-genai package not installed. Run: pip install google-genai') from e

            self._client = genai.Client(
                api_key=self._config.api_key,
                http_options=types.HttpOptions(timeout=int(self._config.timeout_seconds * 1000)),
            )
        return self._client

    def _request_config(self) -> Any:
        from google.genai import types

        tools = [types.Tool(google_search=types.GoogleSearch())] if self._config.use_search else None
        return types.GenerateContentConfig(tools=tools, temperature=0.1)

    def _generate(self, prompt: str) -> str:
        """Send ``prompt`` and return the raw response text."""
        client = self._get_client()
        logger.debug(f'[LLM REQUEST] model={self._config.model} prompt_len={len(prompt)}')
        response = client.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=self._request_config(),
        )
        text = response.text or ''
        logger.debug(f'[LLM RESPONSE] length={len(text)}')
        return text

    # ------------------------------------------------------------------
    def fetch_quotes(self, symbols: list[str]) -> list[PartialQuote]:
        """Fetch the latest quotes; returns [] on any failure."""
        if not symbols:
            return []
        try:
            quotes = parse_quotes(extract_json(self._generate(self._quote_prompt(symbols))))
        except Exception as exc:
            logger.error(f'Quote fetch failed for {symbols}: {exc}')
            return []

        wanted = set(symbols)
        filtered = [quote for quote in quotes if quote.symbol in wanted]
        if len(filtered) < len(symbols):
            missing = sorted(wanted - {quote.symbol for quote in filtered})
            logger.info(f'No quote returned for {missing}')
        return filtered

    def resolve_symbol(self, query: str) -> SymbolMatch | None:
        """Resolve a code or company name; returns None when not found or on failure."""
        query = query.strip()
        if not query:
            return None
        try:
            return parse_symbol_match(extract_json(self._generate(self._lookup_prompt(query))))
        except Exception as exc:
            logger.error(f'Symbol lookup failed for {query!r}: {exc}')
            return None

    def recommend(self, record: SecurityRecord) -> Recommendation:
        """Ask for buy/sell/hold advice; returns the neutral recommendation on failure."""
        try:
            payload = extract_json(self._generate(self._analysis_prompt(record)))
        except Exception as exc:
            logger.error(f'Analysis failed for {record.symbol}: {exc}')
            return neutral_recommendation()
        return recommendation_or_fallback(payload)

    # ------------------------------------------------------------------
    def _quote_prompt(self, symbols: list[str]) -> str:
        targets = ', '.join(f'{symbol} {self._config.market_suffix}' for symbol in symbols)
        return (
            'Use Google Search to look up the latest quotes on Google Finance.\n'
            f'Target securities: {targets}.\n'
            'If the Taiwan market is closed (after 13:30 local time or on a weekend), '
            'return the last closing price.\n'
            'Respond with a JSON array only. Each element must contain:\n'
            '- symbol (string, the code without suffix, e.g. "2330")\n'
            '- price (number)\n'
            '- change (number, absolute change)\n'
            '- changePercent (number, percent change)\n'
            '- volume (number, shares traded; 0 if unavailable)\n'
        )

    def _lookup_prompt(self, query: str) -> str:
        return (
            f'A user is searching for a Taiwan-listed stock: "{query}".\n'
            'Use Google Search to confirm it is a valid listed security.\n'
            'If it is, respond with a JSON object {"symbol": <code>, "name": <Traditional Chinese name>}.\n'
            'If it is not, respond with {"symbol": null}.\n'
        )

    def _analysis_prompt(self, record: SecurityRecord) -> str:
        return (
            'You are a professional Taiwan equity analyst. Using the figures below and the latest '
            'news found with Google Search, give an investment recommendation in Traditional Chinese.\n\n'
            f'Symbol: {record.symbol}\n'
            f'Name: {record.name}\n'
            f'Industry: {record.industry}\n'
            f'Price: {record.price} TWD\n'
            f'Change: {record.change} ({record.change_percent}%)\n'
            f'Volume: {record.volume}\n'
            f'EPS: {record.eps}\n'
            f'MA5: {record.ma5}\n'
            f'MA10: {record.ma10}\n'
            f'MA20: {record.ma20}\n\n'
            'Compare the price with its moving averages and consider recent company news.\n'
            'Respond with a JSON object only, with keys: recommendation ("BUY", "SELL" or "HOLD"), '
            'confidence (number 0-100), summary, technicalAnalysis, fundamentalAnalysis.\n'
        )
