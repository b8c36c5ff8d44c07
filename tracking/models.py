"""
Data models for stock tracking.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List

from tracking.database import Direction

logger = logging.getLogger(__name__)


@dataclass
class PricePoint:
    """Daily OHLCV of a symbol, keyed by (symbol, date)."""
    symbol: str
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass
class PortfolioEntry:
    """Holding of a user, keyed by (user_id, symbol)."""
    user_id: str
    symbol: str
    shares: float


@dataclass
class WatchlistEntry:
    """One-time price target alert, keyed by (user_id, symbol)."""
    user_id: str
    symbol: str
    price_target: float
    direction: Direction = Direction.ABOVE
    triggered: bool = False

    def is_satisfied_by(self, price: float) -> bool:
        """Check whether a price reaches the target on the watched side."""
        if self.direction == Direction.ABOVE:
            return price >= self.price_target
        return price <= self.price_target


def points_from_history(symbol: str, hist) -> List[PricePoint]:
    """
    Build price points from a date-keyed history mapping.

    Args:
        symbol: Stock ticker symbol
        hist: Dict of YYYY-MM-DD -> PriceData

    Returns:
        Price points in date order; keys that are not calendar dates are skipped
    """
    points = []
    for key in sorted(hist):
        try:
            day = datetime.strptime(key, "%Y-%m-%d").date()
        except ValueError:
            logger.warning(f"Skipping non-daily history key {key!r} for {symbol}")
            continue
        price = hist[key]
        points.append(PricePoint(
            symbol=symbol,
            date=day,
            open=price.open,
            high=price.high,
            low=price.low,
            close=price.close,
            volume=int(price.volume or 0),
        ))
    return points
