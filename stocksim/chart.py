"""
Chart series for the price history window.

Produces the frame a presentation layer plots: one row per history point with
the rolling MA5/MA10/MA20 lines and a flag marking seeded (synthetic) points.
"""

from __future__ import annotations

import math

import pandas as pd

from .reconciler import simple_moving_average
from .security import SecurityRecord

MA_PERIODS = (5, 10, 20)


def history_frame(record: SecurityRecord) -> pd.DataFrame:
    """Return the record's history as a DataFrame with rolling averages.

    Columns: ``price``, ``ma5``, ``ma10``, ``ma20`` (NaN until enough points)
    and ``synthetic``. Averages use the same half-up cent rounding as the
    record, so the last row equals ``record.ma5``/``ma10``/``ma20``.
    """
    prices = pd.Series([float(p) for p in record.history], dtype=float, name='price')
    frame = pd.DataFrame({'price': prices})
    for period in MA_PERIODS:
        frame[f'ma{period}'] = pd.Series(
            [
                float(simple_moving_average(record.history[: end + 1], period)) if end + 1 >= period else math.nan
                for end in range(len(record.history))
            ],
            dtype=float,
        )
    frame['synthetic'] = [index < record.synthetic_points for index in range(len(prices))]
    return frame


def chart_domain(record: SecurityRecord, padding: float = 0.1) -> tuple[float, float] | None:
    """Y-axis bounds: the history range widened by ``padding`` of its span on each side."""
    if not record.history:
        return None
    prices = pd.Series([float(p) for p in record.history], dtype=float)
    low, high = float(prices.min()), float(prices.max())
    margin = (high - low) * padding
    return low - margin, high + margin
