"""
Chart period helpers

Periods are the zoom levels of the chart views, ordered from the widest
to the narrowest one. The "-" button moves to the wider neighbour and the
"+" button to the narrower one.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import pandas as pd

from cores.data_client import DAILY_INTERVAL, INTRADAY_INTERVAL, PriceData

logger = logging.getLogger(__name__)

PERIODS = ["5y", "1y", "3mo", "1mo", "1wk", "1d"]
DEFAULT_PERIOD = "1y"

_FRIENDLY_NAMES = {
    "1d": "1 Day",
    "1wk": "1 Week",
    "1mo": "1 Month",
    "3mo": "3 Month",
    "1y": "1 Year",
    "5y": "5 Year",
}

_OFFSETS = {
    "1d": pd.DateOffset(days=1),
    "1wk": pd.DateOffset(days=7),
    "1mo": pd.DateOffset(months=1, days=1),
    "3mo": pd.DateOffset(months=3, days=1),
    "1y": pd.DateOffset(years=1),
    "5y": pd.DateOffset(years=5),
}


def shift_off_weekend(moment: datetime) -> datetime:
    """Move a Saturday or Sunday back to the preceding Friday."""
    if moment.weekday() == 5:
        return moment - timedelta(days=1)
    if moment.weekday() == 6:
        return moment - timedelta(days=2)
    return moment


def is_supported(period: str) -> bool:
    return period in _OFFSETS


def friendly_name(period: str) -> str:
    return _FRIENDLY_NAMES.get(period, "")


def period_window(period: str, now: datetime = None) -> Tuple[datetime, datetime, str]:
    """
    Compute the fetch window of a period.

    Args:
        period: One of PERIODS
        now: Reference instant (defaults to now, UTC)

    Returns:
        Tuple of (start, end, interval); start and end never fall on a weekend

    Raises:
        ValueError: If the period is not supported
    """
    if period not in _OFFSETS:
        raise ValueError(f"unsupported period: {period}")

    end = now or datetime.now(timezone.utc)
    start = (pd.Timestamp(end) - _OFFSETS[period]).to_pydatetime()
    interval = INTRADAY_INTERVAL if period == "1d" else DAILY_INTERVAL

    return shift_off_weekend(start), shift_off_weekend(end), interval


def period_change(period: str, hist: Dict[str, PriceData], now: datetime = None) -> str:
    """
    Percent change of the close price over a period.

    Args:
        period: One of the daily PERIODS
        hist: Daily history keyed by YYYY-MM-DD
        now: Reference instant (defaults to now, UTC)

    Returns:
        "12.34%", "N/A" when the boundary days are missing, "" for unsupported periods
    """
    if period not in _OFFSETS or period == "1d":
        return ""

    start, end, _ = period_window(period, now)
    start_key = start.strftime("%Y-%m-%d")
    end_key = end.strftime("%Y-%m-%d")

    if start_key not in hist or end_key not in hist or len(hist) < 2:
        return "N/A"

    start_price = hist[start_key].close
    end_price = hist[end_key].close
    if start_price == 0:
        return "N/A"

    percent_change = ((end_price - start_price) / start_price) * 100
    return f"{percent_change:.2f}%"


def adjacent_periods(period: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Return the (wider, narrower) neighbours of a period in PERIODS.
    """
    if period not in PERIODS:
        return None, None

    index = PERIODS.index(period)
    wider = PERIODS[index - 1] if index > 0 else None
    narrower = PERIODS[index + 1] if index < len(PERIODS) - 1 else None
    return wider, narrower
