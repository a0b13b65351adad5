import unittest
from datetime import datetime, timedelta, timezone

from stocksim.calendar import ExchangeHours, MarketStatus, exchange_time, is_trading_time, session_state

TAIPEI = timezone(timedelta(hours=8))


class SessionStateTests(unittest.TestCase):
    def test_tuesday_morning_is_open(self):
        tuesday = datetime(2024, 7, 9, 9, 15, tzinfo=TAIPEI)
        self.assertEqual(session_state(tuesday), MarketStatus.OPEN)

    def test_before_open_is_pre_market(self):
        tuesday = datetime(2024, 7, 9, 8, 59, tzinfo=TAIPEI)
        self.assertEqual(session_state(tuesday), MarketStatus.PRE_MARKET)

    def test_after_close_is_closed(self):
        tuesday = datetime(2024, 7, 9, 13, 31, tzinfo=TAIPEI)
        self.assertEqual(session_state(tuesday), MarketStatus.CLOSED)

    def test_session_bounds_are_inclusive(self):
        self.assertEqual(session_state(datetime(2024, 7, 9, 9, 0, tzinfo=TAIPEI)), MarketStatus.OPEN)
        self.assertEqual(session_state(datetime(2024, 7, 9, 13, 30, 59, tzinfo=TAIPEI)), MarketStatus.OPEN)

    def test_midnight_is_pre_market_on_weekday(self):
        self.assertEqual(session_state(datetime(2024, 7, 9, 0, 0, tzinfo=TAIPEI)), MarketStatus.PRE_MARKET)

    def test_saturday_closed_all_day(self):
        for hour in range(24):
            saturday = datetime(2024, 7, 13, hour, 30, tzinfo=TAIPEI)
            self.assertEqual(session_state(saturday), MarketStatus.CLOSED, hour)

    def test_sunday_closed(self):
        self.assertEqual(session_state(datetime(2024, 7, 14, 10, 0, tzinfo=TAIPEI)), MarketStatus.CLOSED)

    def test_utc_input_is_converted(self):
        # 01:15 UTC Tuesday is 09:15 in Taipei
        self.assertEqual(session_state(datetime(2024, 7, 9, 1, 15, tzinfo=timezone.utc)), MarketStatus.OPEN)

    def test_utc_friday_evening_is_saturday_in_taipei(self):
        friday_evening_utc = datetime(2024, 7, 12, 17, 0, tzinfo=timezone.utc)
        self.assertEqual(exchange_time(friday_evening_utc).weekday(), 5)
        self.assertEqual(session_state(friday_evening_utc), MarketStatus.CLOSED)

    def test_naive_time_uses_offset(self):
        naive_new_york = datetime(2024, 7, 8, 21, 15)  # 21:15 EDT Monday = 09:15 Tuesday Taipei
        self.assertEqual(session_state(naive_new_york, timezone_offset_minutes=-240), MarketStatus.OPEN)
        self.assertEqual(session_state(naive_new_york), MarketStatus.CLOSED)

    def test_custom_hours(self):
        hours = ExchangeHours(utc_offset_minutes=0, open_minute=14 * 60, close_minute=21 * 60)
        now = datetime(2024, 7, 9, 15, 0, tzinfo=timezone.utc)
        self.assertTrue(is_trading_time(now, hours=hours))
        self.assertFalse(is_trading_time(now))


if __name__ == '__main__':
    unittest.main()
