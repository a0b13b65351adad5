"""
Runtime settings helpers for environment-driven configuration.

Reads provider credentials, logging knobs and session defaults from the
environment, with `.env` in the working directory supplying defaults. Fails
fast when a value is present but malformed.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from .config import LedgerConfig, RefreshConfig, SessionConfig
from .portfolio import CapitalValidationError, parse_capital


@dataclass(frozen=True)
class GeminiEnvSettings:
    """Gemini access knobs sourced from environment variables."""

    api_key: str | None
    model: str

    def require_api_key(self) -> str:
        """Return the API key or raise if it is missing."""
        if not self.api_key:
            raise ValueError('GEMINI_API_KEY must be set in the environment or .env to fetch live quotes.')
        return self.api_key


@dataclass(frozen=True)
class RuntimeSettings:
    """Top-level runtime settings consumed by the CLI."""

    log_level: str
    log_structured: bool
    initial_capital: Decimal
    refresh_interval_seconds: float
    gemini: GeminiEnvSettings

    def session_config(self) -> SessionConfig:
        config = SessionConfig(
            ledger=LedgerConfig(initial_capital=self.initial_capital),
            refresh=RefreshConfig(interval_seconds=self.refresh_interval_seconds),
        )
        config.validate()
        return config


def load_runtime_settings(env: Mapping[str, str] | None = None) -> RuntimeSettings:
    """
    Parse runtime settings from environment variables.

    Args:
        env: Optional mapping for testability. Defaults to os.environ.
    """
    source = _apply_dotenv_overrides(os.environ) if env is None else env

    log_level = (_clean_str(source.get('LOG_LEVEL', 'INFO')) or 'INFO').upper()
    log_structured = _parse_bool(source.get('LOG_STRUCTURED'), 'LOG_STRUCTURED', default=False)

    raw_capital = _clean_str(source.get('INITIAL_CAPITAL'))
    initial_capital = LedgerConfig().initial_capital
    if raw_capital is not None:
        try:
            initial_capital = parse_capital(raw_capital)
        except CapitalValidationError as exc:
            raise ValueError(f'INITIAL_CAPITAL: {exc}') from None

    interval = _parse_positive_float(source.get('REFRESH_INTERVAL_SECONDS'), 'REFRESH_INTERVAL_SECONDS', default=5.0)

    gemini = GeminiEnvSettings(
        api_key=_clean_str(source.get('GEMINI_API_KEY')),
        model=_clean_str(source.get('GEMINI_MODEL')) or 'gemini-2.5-flash',
    )

    return RuntimeSettings(
        log_level=log_level,
        log_structured=log_structured,
        initial_capital=initial_capital,
        refresh_interval_seconds=interval,
        gemini=gemini,
    )


def _apply_dotenv_overrides(env: Mapping[str, str]) -> Mapping[str, str]:
    """
    Load `.env` from the current working directory (if present) and apply it as defaults.

    Explicit environment variables stay authoritative.
    """
    dotenv = _load_dotenv_file(Path('.env'))
    if not dotenv:
        return env
    merged = dict(env)
    for key, value in dotenv.items():
        merged.setdefault(key, value)
    return merged


def _load_dotenv_file(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding='utf-8')
    except OSError:
        return {}

    parsed: dict[str, str] = {}
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue
        if stripped.startswith('export '):
            stripped = stripped[len('export ') :].lstrip()
        if '=' not in stripped:
            continue
        key, value = stripped.split('=', 1)
        key = key.strip()
        if not key:
            continue
        parsed[key] = _parse_dotenv_value(value)
    return parsed


def _parse_dotenv_value(raw: str) -> str:
    value = raw.strip()
    if not value:
        return ''
    quote = value[0]
    if quote in {'"', "'"}:
        if len(value) >= 2 and value[-1] == quote:
            return value[1:-1]
        return value[1:]

    # Inline comment needs whitespace before the '#'
    for idx, char in enumerate(value):
        if char == '#' and idx > 0 and value[idx - 1].isspace():
            value = value[:idx].rstrip()
            break
    return value


def _clean_str(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _parse_bool(raw: str | None, key: str, default: bool) -> bool:
    cleaned = _clean_str(raw)
    if cleaned is None:
        return default
    lowered = cleaned.lower()
    if lowered in {'1', 'true', 'yes', 'on'}:
        return True
    if lowered in {'0', 'false', 'no', 'off'}:
        return False
    raise ValueError(f'{key} must be a boolean, got {raw!r}')


def _parse_positive_float(raw: str | None, key: str, default: float) -> float:
    cleaned = _clean_str(raw)
    if cleaned is None:
        return default
    try:
        value = float(cleaned)
    except (TypeError, ValueError):
        raise ValueError(f'{key} must be a number, got {raw!r}') from None
    if value <= 0:
        raise ValueError(f'{key} must be positive, got {value}')
    return value
