"""
Command-line entry point.

Usage:
    python -m stocksim status                    # Show the exchange session state
    python -m stocksim watch [--symbols ...]     # Refresh and print quotes until CTRL+C
    python -m stocksim watch --once              # Fetch and print one round of quotes
    python -m stocksim trade BUY 2330 1000       # Paper trade at the latest fetched price
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from datetime import datetime, timezone

from .calendar import exchange_time, session_state
from .log_config import configure_logger
from .portfolio import TradeSide
from .runtime_settings import RuntimeSettings, load_runtime_settings
from .security import DEFAULT_SECURITIES, SecurityRecord, new_security
from .session import TradingSession

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='stocksim', description='Quote tracking and paper trading.')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('status', help='Print the exchange session state.')

    watch = sub.add_parser('watch', help='Refresh quotes for the watchlist and print them.')
    watch.add_argument('--symbols', nargs='+', default=None, help='Symbols to watch (default: built-in list).')
    watch.add_argument('--interval', type=float, default=None, help='Refresh interval in seconds.')
    watch.add_argument('--once', action='store_true', help='Fetch a single round and exit.')

    trade = sub.add_parser('trade', help='Execute one paper trade at the latest fetched price.')
    trade.add_argument('side', type=str.upper, choices=[side.value for side in TradeSide])
    trade.add_argument('symbol')
    trade.add_argument('quantity', type=int)
    trade.add_argument('--capital', default=None, help='Starting capital (default: INITIAL_CAPITAL).')
    return parser


class CLIArgs(argparse.Namespace):
    command: str
    symbols: list[str] | None
    interval: float | None
    once: bool
    side: str
    symbol: str
    quantity: int
    capital: str | None


def _format_record(record: SecurityRecord) -> str:
    sign = '+' if record.change > 0 else ''
    seeded = ' (seeded history)' if record.history_is_synthetic else ''
    return (
        f'{record.symbol:<6} {record.name:<8} {record.price:>10} {sign}{record.change} '
        f'({record.change_percent}%) MA5={record.ma5} MA20={record.ma20} vol={record.volume}{seeded}'
    )


def _build_session(settings: RuntimeSettings, securities: tuple[SecurityRecord, ...]) -> TradingSession:
    from .providers import GeminiConfig, GeminiMarketProvider

    provider = GeminiMarketProvider(GeminiConfig(api_key=settings.gemini.require_api_key(), model=settings.gemini.model))
    return TradingSession(
        quote_provider=provider,
        symbol_lookup=provider,
        recommender=provider,
        config=settings.session_config(),
        securities=securities,
    )


def _run_status() -> int:
    now = datetime.now(timezone.utc)
    print(f'{exchange_time(now):%Y-%m-%d %H:%M} exchange time: {session_state(now).value}')
    return 0


def _run_watch(settings: RuntimeSettings, args: CLIArgs) -> int:
    if args.symbols:
        securities = tuple(new_security(symbol.strip()) for symbol in args.symbols if symbol.strip())
    else:
        securities = DEFAULT_SECURITIES
    if args.interval is not None:
        settings = replace(settings, refresh_interval_seconds=args.interval)

    session = _build_session(settings, securities)
    if args.once:
        session.refresh()
        for record in session.watchlist_records():
            print(_format_record(record))
        return 0

    done = threading.Event()

    def _signal_handler(signum: int, frame: object) -> None:
        signal_name = 'SIGINT' if signum == signal.SIGINT else 'SIGTERM'
        logger.info(f'{signal_name} received - stopping refresh loop')
        done.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    with session:
        session.start()
        while not done.wait(settings.refresh_interval_seconds):
            print(f'--- {session.market_status.value} ---')
            for record in session.watchlist_records():
                print(_format_record(record))
    return 0


def _run_trade(settings: RuntimeSettings, args: CLIArgs) -> int:
    session = _build_session(settings, DEFAULT_SECURITIES)
    if args.capital is not None:
        session.reset_portfolio(args.capital)
    record = session.search(args.symbol)
    if record is None:
        print(f'Security not found: {args.symbol}', file=sys.stderr)
        return 1
    session.refresh()

    outcome = session.trade(args.side, record.symbol, args.quantity)
    if not outcome.accepted:
        print(f'Rejected: {outcome.rejection}', file=sys.stderr)
        return 1
    valuation = session.valuation()
    print(f'Executed {outcome.trade}')
    print(f'Cash {valuation.cash}  Securities {valuation.securities_value}  P&L {valuation.total_pnl}')
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv, namespace=CLIArgs())
    try:
        settings = load_runtime_settings()
    except ValueError as exc:
        raise SystemExit(f'Configuration error: {exc}') from None
    configure_logger('stocksim', settings.log_level, structured=settings.log_structured)

    if args.command == 'status':
        return _run_status()
    try:
        if args.command == 'watch':
            return _run_watch(settings, args)
        return _run_trade(settings, args)
    except ValueError as exc:
        raise SystemExit(str(exc)) from None


if __name__ == '__main__':
    raise SystemExit(main())
