"""
Tracked-symbol onboarding

A symbol enters the registry the first time a user holds or watches it.
At that moment the lookback window of daily history is backfilled once.
"""

import logging
from datetime import date

from cores.data_client import MarketDataClient, MarketDataError
from tracking.models import points_from_history
from tracking.store import PriceStore

logger = logging.getLogger(__name__)


class SymbolTracker:
    """Registers symbols and backfills their price history."""

    def __init__(self, store: PriceStore, client: MarketDataClient, lookback_years: int = 5):
        self.store = store
        self.client = client
        self.lookback_years = lookback_years

    def ensure_tracked(self, symbol: str, today: date = None) -> int:
        """
        Make sure a symbol is tracked. Idempotent.

        A symbol that is already registered is left alone. A new one is
        registered first, then backfilled. If the history fetch fails the
        symbol stays registered without prices; this is logged, not raised.

        Args:
            symbol: Stock ticker symbol
            today: Last day of the backfill window (defaults to today, UTC)

        Returns:
            int: Number of price points written
        """
        if self.store.is_tracked(symbol):
            return 0

        if not self.store.add_tracked_symbol(symbol):
            # registered concurrently by another request
            return 0
        logger.info(f"Tracking new symbol {symbol}")

        try:
            hist = self.client.get_lookback_history(symbol, years=self.lookback_years, today=today)
        except MarketDataError as e:
            logger.error(f"Failed getting {self.lookback_years} year history for {symbol}: {e}")
            return 0

        written = self.store.upsert_price_points(points_from_history(symbol, hist))
        logger.info(f"Backfilled {written} price points for {symbol}")
        return written
