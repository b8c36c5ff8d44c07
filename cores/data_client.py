"""
Market Data Client

Thin wrapper around yfinance for the two lookups the bot needs:
- current quote (price, percent change, currency, exchange, name)
- OHLCV history keyed by date string

Usage:
    from cores.data_client import MarketDataClient

    client = MarketDataClient()
    quote = client.get_quote("AAPL")
    hist = client.get_history("AAPL", date(2024, 1, 1), date(2024, 1, 31), "1d")
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Union

import pandas as pd
import yfinance as yf

logger = logging.getLogger(__name__)

DAILY_INTERVAL = "1d"
INTRADAY_INTERVAL = "1m"
INTERVALS = (DAILY_INTERVAL, INTRADAY_INTERVAL)

DATE_KEY_FORMAT = "%Y-%m-%d"
INTRADAY_KEY_FORMAT = "%Y-%m-%d %H:%M"


class MarketDataError(Exception):
    """Raised when the market data provider fails or returns nothing."""


class NoHistoryError(MarketDataError):
    """Raised when the provider answers but has no rows for the window."""


@dataclass
class PriceData:
    """One OHLCV bar."""
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass
class Quote:
    """Current quote snapshot. Never persisted."""
    symbol: str
    price: float
    percent_change: float = 0.0
    currency: str = "USD"
    exchange: str = ""
    long_name: str = ""

    @property
    def price_text(self) -> str:
        return f"{self.price:.2f}"

    @property
    def change_text(self) -> str:
        return f"{self.percent_change:.2f}%"


def frame_to_history(df: pd.DataFrame, interval: str = DAILY_INTERVAL) -> Dict[str, PriceData]:
    """
    Convert a yfinance OHLCV DataFrame into a date-keyed mapping.

    Args:
        df: DataFrame indexed by timestamp with Open/High/Low/Close/Volume columns
        interval: Interval the frame was fetched with (selects the key format)

    Returns:
        Dict of date key -> PriceData
    """
    key_format = INTRADAY_KEY_FORMAT if interval == INTRADAY_INTERVAL else DATE_KEY_FORMAT
    columns = {col.lower().replace(" ", "_"): col for col in df.columns}

    history = {}
    for ts, row in df.iterrows():
        key = pd.Timestamp(ts).strftime(key_format)
        volume = row[columns["volume"]] if "volume" in columns else 0
        history[key] = PriceData(
            open=float(row[columns["open"]]),
            high=float(row[columns["high"]]),
            low=float(row[columns["low"]]),
            close=float(row[columns["close"]]),
            volume=0 if pd.isna(volume) else int(volume),
        )
    return history


class MarketDataClient:
    """
    Market data client backed by Yahoo Finance.

    No API key required. Every call goes to the provider; nothing is cached.
    """

    def _ticker(self, symbol: str) -> yf.Ticker:
        return yf.Ticker(symbol)

    def get_quote(self, symbol: str) -> Quote:
        """
        Get the current quote for a symbol.

        Args:
            symbol: Stock ticker symbol (e.g., "AAPL")

        Returns:
            Quote snapshot

        Raises:
            MarketDataError: If the provider fails or has no price
        """
        try:
            info = self._ticker(symbol).info
        except Exception as e:
            raise MarketDataError(f"Error fetching quote for {symbol}: {e}") from e

        if not info:
            raise MarketDataError(f"No quote found for {symbol}")

        price = info.get("currentPrice") or info.get("regularMarketPrice")
        if price is None:
            raise MarketDataError(f"No market price in quote for {symbol}")

        return Quote(
            symbol=info.get("symbol") or symbol,
            price=float(price),
            percent_change=float(info.get("regularMarketChangePercent") or 0.0),
            currency=info.get("currency") or "USD",
            exchange=info.get("exchange") or "",
            long_name=info.get("longName") or info.get("shortName") or symbol,
        )

    def get_history(
        self,
        symbol: str,
        start: Union[date, datetime],
        end: Union[date, datetime],
        interval: str = DAILY_INTERVAL
    ) -> Dict[str, PriceData]:
        """
        Get OHLCV history between start and end.

        Args:
            symbol: Stock ticker symbol
            start: First day (or instant) to include
            end: Last day to include; a datetime is used as an exclusive instant
            interval: "1d" or "1m"

        Returns:
            Dict of date key -> PriceData, never empty

        Raises:
            NoHistoryError: If the provider returns no rows
            MarketDataError: If the provider fails
        """
        if interval not in INTERVALS:
            raise ValueError(f"Unsupported interval: {interval}")

        # yfinance treats end as exclusive
        if not isinstance(end, datetime):
            end = end + timedelta(days=1)

        try:
            df = self._ticker(symbol).history(start=start, end=end, interval=interval)
        except Exception as e:
            raise MarketDataError(f"Error fetching history for {symbol}: {e}") from e

        if df is None or df.empty:
            raise NoHistoryError(f"No history found for {symbol} between {start} and {end}")

        history = frame_to_history(df, interval)
        logger.debug(f"Retrieved {len(history)} {interval} records for {symbol}")
        return history

    def get_lookback_history(self, symbol: str, years: int = 5, today: date = None) -> Dict[str, PriceData]:
        """
        Get daily history for the last `years` years.

        Args:
            symbol: Stock ticker symbol
            years: Length of the window
            today: Last day of the window (defaults to today, UTC)

        Returns:
            Dict of date key -> PriceData
        """
        today = today or datetime.now(timezone.utc).date()
        start = (pd.Timestamp(today) - pd.DateOffset(years=years)).date()
        return self.get_history(symbol, start, today, DAILY_INTERVAL)
