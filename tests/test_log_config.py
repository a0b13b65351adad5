import json
import logging
import sys
import unittest
from decimal import Decimal

from stocksim.log_config import StructuredFormatter, configure_logger, resolve_level
from stocksim.portfolio import TradeSide


def _record(msg='BUY %s', args=('2330',), **extra):
    record = logging.LogRecord('stocksim.portfolio', logging.INFO, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


class LogConfigTests(unittest.TestCase):
    def test_resolve_level(self):
        self.assertEqual(resolve_level('debug'), logging.DEBUG)
        self.assertEqual(resolve_level('bogus'), logging.INFO)

    def test_configure_logger_replaces_handlers(self):
        logger = configure_logger('stocksim.test', 'WARNING')
        configure_logger('stocksim.test', 'WARNING', structured=True)
        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0].formatter, StructuredFormatter)
        self.assertEqual(logger.level, logging.WARNING)


class StructuredFormatterTests(unittest.TestCase):
    def test_includes_extra_fields(self):
        payload = json.loads(StructuredFormatter().format(_record(trade_id='abc')))
        self.assertEqual(payload['message'], 'BUY 2330')
        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['logger'], 'stocksim.portfolio')
        self.assertEqual(payload['trade_id'], 'abc')
        self.assertNotIn('args', payload)
        self.assertNotIn('msg', payload)

    def test_decimal_and_enum_extras_are_exact(self):
        payload = json.loads(StructuredFormatter().format(_record(cash=Decimal('3920000.10'), side=TradeSide.SELL)))
        self.assertEqual(payload['cash'], '3920000.10')
        self.assertEqual(payload['side'], 'SELL')

    def test_non_ascii_message_kept(self):
        line = StructuredFormatter().format(_record('%s', ('台積電',)))
        self.assertIn('台積電', line)

    def test_exception_is_included(self):
        try:
            raise RuntimeError('provider down')
        except RuntimeError:
            record = logging.LogRecord('stocksim', logging.ERROR, __file__, 1, 'failed', (), sys.exc_info())
        payload = json.loads(StructuredFormatter().format(record))
        self.assertIn('provider down', payload['exception'])


if __name__ == '__main__':
    unittest.main()
