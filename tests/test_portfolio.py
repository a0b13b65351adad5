import unittest
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from stocksim.config import LedgerConfig
from stocksim.portfolio import (
    CapitalValidationError,
    Holding,
    Ledger,
    Portfolio,
    TradeSide,
    execute_trade,
    holding_pnl,
    max_affordable_quantity,
    parse_capital,
    reset_portfolio,
    total_assets,
    total_pnl,
)
from stocksim.security import new_security


def _priced(symbol: str, price: str, name: str = ''):
    return new_security(symbol, name or symbol, price=Decimal(price))


class ExecuteTradeScenarioTests(unittest.TestCase):
    def setUp(self) -> None:
        self.timestamp = datetime(2024, 7, 9, 1, 15, tzinfo=timezone.utc)
        self.portfolio = Portfolio(cash=Decimal('5000000'))

    def _trade(self, portfolio, side, price, quantity):
        return execute_trade(portfolio, side, _priced('2330', price, '台積電'), quantity, timestamp=self.timestamp)

    def test_buy_then_average_up_then_sell_all(self):
        first = self._trade(self.portfolio, TradeSide.BUY, '1080', 1000)
        self.assertTrue(first.accepted)
        self.assertEqual(first.portfolio.cash, Decimal('3920000'))
        holding = first.portfolio.holding('2330')
        self.assertEqual(holding.quantity, 1000)
        self.assertEqual(holding.average_cost, Decimal('1080'))
        self.assertEqual(holding.name, '台積電')

        second = self._trade(first.portfolio, TradeSide.BUY, '1100', 500)
        holding = second.portfolio.holding('2330')
        self.assertEqual(holding.quantity, 1500)
        self.assertEqual(holding.average_cost.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP), Decimal('1086.67'))
        self.assertEqual(second.portfolio.cash, Decimal('3370000'))

        third = self._trade(second.portfolio, TradeSide.SELL, '1200', 1500)
        self.assertEqual(third.portfolio.cash, second.portfolio.cash + Decimal('1800000'))
        self.assertNotIn('2330', third.portfolio.holdings)
        self.assertEqual(len(third.portfolio.history), 3)
        trade = third.portfolio.history[-1]
        self.assertEqual(trade.side, TradeSide.SELL)
        self.assertEqual(trade.quantity, 1500)
        self.assertEqual(trade.amount, Decimal('1800000'))
        self.assertEqual(trade.price, Decimal('1200'))
        self.assertEqual(trade.timestamp, self.timestamp)

    def test_round_trip_restores_cash(self):
        for quantity in (1, 7, 250, 4629):
            bought = self._trade(self.portfolio, TradeSide.BUY, '1080', quantity)
            sold = self._trade(bought.portfolio, TradeSide.SELL, '1080', quantity)
            self.assertEqual(sold.portfolio.cash, self.portfolio.cash, quantity)
            self.assertEqual(dict(sold.portfolio.holdings), {})

    def test_partial_sell_keeps_average_cost(self):
        bought = self._trade(self.portfolio, TradeSide.BUY, '100', 10)
        sold = self._trade(bought.portfolio, TradeSide.SELL, '150', 4)
        holding = sold.portfolio.holding('2330')
        self.assertEqual(holding.quantity, 6)
        self.assertEqual(holding.average_cost, Decimal('100'))

    def test_trade_records_are_appended_in_order(self):
        outcome = self._trade(self.portfolio, TradeSide.BUY, '100', 10)
        outcome = self._trade(outcome.portfolio, TradeSide.SELL, '110', 5)
        sides = [trade.side for trade in outcome.portfolio.history]
        self.assertEqual(sides, [TradeSide.BUY, TradeSide.SELL])
        self.assertNotEqual(outcome.portfolio.history[0].id, outcome.portfolio.history[1].id)

    def test_side_given_as_string(self):
        outcome = self._trade(self.portfolio, 'BUY', '100', 1)
        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.trade.side, TradeSide.BUY)

    def test_input_portfolio_is_not_mutated(self):
        bought = self._trade(self.portfolio, TradeSide.BUY, '100', 10)
        self._trade(bought.portfolio, TradeSide.SELL, '100', 10)
        self.assertEqual(bought.portfolio.quantity_of('2330'), 10)
        with self.assertRaises(TypeError):
            bought.portfolio.holdings['2330'] = None  # type: ignore[index]


class ExecuteTradeRejectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.portfolio = execute_trade(Portfolio(cash=Decimal('10000')), TradeSide.BUY, _priced('2317', '200'), 10).portfolio

    def assertRejected(self, outcome):
        self.assertFalse(outcome.accepted)
        self.assertIsNone(outcome.trade)
        self.assertIsNotNone(outcome.rejection)
        self.assertIs(outcome.portfolio, self.portfolio)
        self.assertEqual(outcome.portfolio, self.portfolio)

    def test_insufficient_cash(self):
        self.assertRejected(execute_trade(self.portfolio, TradeSide.BUY, _priced('2330', '1080'), 8))

    def test_exactly_affordable_buy_is_accepted(self):
        outcome = execute_trade(self.portfolio, TradeSide.BUY, _priced('2330', '1000'), 8)
        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.portfolio.cash, Decimal('0'))

    def test_sell_more_than_held(self):
        self.assertRejected(execute_trade(self.portfolio, TradeSide.SELL, _priced('2317', '210'), 11))

    def test_sell_without_holding(self):
        self.assertRejected(execute_trade(self.portfolio, TradeSide.SELL, _priced('2454', '1260'), 1))

    def test_non_positive_quantity(self):
        for quantity in (0, -5):
            self.assertRejected(execute_trade(self.portfolio, TradeSide.BUY, _priced('2317', '200'), quantity))

    def test_non_integer_quantity(self):
        self.assertRejected(execute_trade(self.portfolio, TradeSide.BUY, _priced('2317', '200'), 1.5))  # type: ignore[arg-type]
        self.assertRejected(execute_trade(self.portfolio, TradeSide.BUY, _priced('2317', '200'), True))  # type: ignore[arg-type]

    def test_unpriced_security(self):
        self.assertRejected(execute_trade(self.portfolio, TradeSide.BUY, _priced('9999', '0'), 1))

    def test_non_finite_price(self):
        for price in ('NaN', 'sNaN', 'Infinity', '-Infinity'):
            for side in (TradeSide.BUY, TradeSide.SELL):
                self.assertRejected(execute_trade(self.portfolio, side, _priced('2317', price), 1))

    def test_unknown_side(self):
        self.assertRejected(execute_trade(self.portfolio, 'SHORT', _priced('2317', '200'), 1))

    def test_cash_never_negative_over_random_sequence(self):
        import random

        rng = random.Random(42)
        portfolio = Portfolio(cash=Decimal('100000'))
        for _ in range(500):
            side = rng.choice([TradeSide.BUY, TradeSide.SELL])
            security = _priced(rng.choice(['A', 'B', 'C']), str(rng.randint(1, 500)))
            portfolio = execute_trade(portfolio, side, security, rng.randint(1, 300)).portfolio
            self.assertGreaterEqual(portfolio.cash, 0)
            for holding in portfolio.holdings.values():
                self.assertGreater(holding.quantity, 0)


class ResetTests(unittest.TestCase):
    def test_reset_returns_fresh_portfolio(self):
        portfolio = reset_portfolio('3000000')
        self.assertEqual(portfolio.cash, Decimal('3000000'))
        self.assertEqual(dict(portfolio.holdings), {})
        self.assertEqual(portfolio.history, ())

    def test_bounds_are_inclusive(self):
        self.assertEqual(parse_capital(0), Decimal('0'))
        self.assertEqual(parse_capital('10,000,000'), Decimal('10000000'))

    def test_invalid_capital_rejected(self):
        for raw in ('-1', '10000001', 'abc', '', 'NaN', 'Infinity', None, True):
            with self.assertRaises(CapitalValidationError, msg=repr(raw)):
                reset_portfolio(raw)

    def test_custom_upper_bound(self):
        with self.assertRaises(CapitalValidationError):
            parse_capital('2000', max_capital=Decimal('1000'))


class ValuationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.portfolio = Portfolio(
            cash=Decimal('1000'),
            holdings={
                'A': Holding('A', 'Alpha', 10, Decimal('50')),
                'B': Holding('B', 'Beta', 2, Decimal('100')),
            },
        )

    def test_total_assets_uses_latest_price_or_cost(self):
        self.assertEqual(total_assets(self.portfolio, {'A': Decimal('60')}), Decimal('1000') + 600 + 200)

    def test_zero_price_falls_back_to_cost(self):
        self.assertEqual(total_assets(self.portfolio, {'A': Decimal('0'), 'B': Decimal('90')}), Decimal('1680'))

    def test_non_finite_price_falls_back_to_cost(self):
        prices = {'A': Decimal('NaN'), 'B': Decimal('Infinity')}
        self.assertEqual(total_assets(self.portfolio, prices), Decimal('1700'))

    def test_total_pnl(self):
        self.assertEqual(total_pnl(self.portfolio, Decimal('1500'), {'A': Decimal('60')}), Decimal('300'))

    def test_holding_pnl(self):
        pnl, pct = holding_pnl(Holding('A', 'Alpha', 10, Decimal('50')), Decimal('55'))
        self.assertEqual(pnl, Decimal('50'))
        self.assertEqual(pct, Decimal('10'))

    def test_max_affordable_quantity(self):
        self.assertEqual(max_affordable_quantity(Decimal('5000000'), Decimal('1080')), 4629)
        self.assertEqual(max_affordable_quantity(Decimal('5000000'), Decimal('1080'), lot_size=1000), 4000)
        self.assertEqual(max_affordable_quantity(Decimal('100'), Decimal('0')), 0)
        self.assertEqual(max_affordable_quantity(Decimal('0'), Decimal('10')), 0)
        self.assertEqual(max_affordable_quantity(Decimal('100'), Decimal('NaN')), 0)
        self.assertEqual(max_affordable_quantity(Decimal('100'), Decimal('Infinity')), 0)


class LedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = Ledger(LedgerConfig(initial_capital=Decimal('5000000')))
        self.tsmc = _priced('2330', '1080', '台積電')

    def test_execute_trade_updates_owned_state(self):
        outcome = self.ledger.execute_trade(TradeSide.BUY, self.tsmc, 1000)
        self.assertTrue(outcome.accepted)
        self.assertIs(self.ledger.snapshot(), outcome.portfolio)
        self.assertEqual(self.ledger.snapshot().cash, Decimal('3920000'))

    def test_rejection_keeps_state(self):
        before = self.ledger.snapshot()
        outcome = self.ledger.execute_trade(TradeSide.SELL, self.tsmc, 1)
        self.assertFalse(outcome.accepted)
        self.assertIs(self.ledger.snapshot(), before)

    def test_trade_ids_sort_by_creation(self):
        for _ in range(5):
            self.ledger.execute_trade(TradeSide.BUY, self.tsmc, 1)
        ids = [trade.id for trade in self.ledger.snapshot().history]
        self.assertEqual(len(set(ids)), 5)
        self.assertEqual(ids, sorted(ids))

    def test_reset_replaces_everything(self):
        self.ledger.execute_trade(TradeSide.BUY, self.tsmc, 1000)
        self.ledger.reset('1000000')
        portfolio = self.ledger.snapshot()
        self.assertEqual(portfolio, Portfolio(cash=Decimal('1000000')))
        self.assertEqual(self.ledger.initial_capital, Decimal('1000000'))

    def test_failed_reset_keeps_state(self):
        self.ledger.execute_trade(TradeSide.BUY, self.tsmc, 1000)
        before = self.ledger.snapshot()
        with self.assertRaises(CapitalValidationError):
            self.ledger.reset('20000000')
        self.assertIs(self.ledger.snapshot(), before)
        self.assertEqual(self.ledger.initial_capital, Decimal('5000000'))

    def test_max_buy_and_valuation(self):
        self.assertEqual(self.ledger.max_buy(self.tsmc), 4629)
        self.ledger.execute_trade(TradeSide.BUY, self.tsmc, 1000)
        valuation = self.ledger.valuation({'2330': Decimal('1100')})
        self.assertEqual(valuation.cash, Decimal('3920000'))
        self.assertEqual(valuation.securities_value, Decimal('1100000'))
        self.assertEqual(valuation.total_assets, Decimal('5020000'))
        self.assertEqual(valuation.total_pnl, Decimal('20000'))

    def test_invalid_config_rejected(self):
        with self.assertRaises(ValueError):
            Ledger(LedgerConfig(initial_capital=Decimal('-1')))


if __name__ == '__main__':
    unittest.main()
