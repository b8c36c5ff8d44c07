"""
Watchlist alert evaluation

Every few seconds on market days, compares the live price of each watched
symbol with the pending targets. A satisfied entry notifies its user once
and is marked triggered, whether or not the message went through.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from check_market_day import is_market_day
from cores.data_client import MarketDataClient, MarketDataError, Quote
from cores.utils import run_blocking
from tracking.database import Direction
from tracking.models import WatchlistEntry
from tracking.store import PriceStore
from tracking.telegram import AlertNotifier

logger = logging.getLogger(__name__)


def format_alert_message(entry: WatchlistEntry, quote: Quote) -> str:
    side = "above" if entry.direction == Direction.ABOVE else "below"
    return (
        f"This is a price alert for {entry.symbol}\n"
        f"The current price is {quote.price_text} which is {side} your target of {entry.price_target:.2f}"
    )


def group_by_symbol(entries: List[WatchlistEntry]) -> Dict[str, List[WatchlistEntry]]:
    grouped: Dict[str, List[WatchlistEntry]] = OrderedDict()
    for entry in entries:
        grouped.setdefault(entry.symbol, []).append(entry)
    return grouped


class AlertEvaluator:
    """Evaluates pending watchlist entries against live quotes."""

    def __init__(
        self,
        store: PriceStore,
        client: MarketDataClient,
        notifier: AlertNotifier,
        timeout: Optional[float] = None,
        skip_holidays: bool = False,
    ):
        self.store = store
        self.client = client
        self.notifier = notifier
        self.timeout = timeout
        self.skip_holidays = skip_holidays

    async def tick(self, now: datetime = None) -> int:
        """Scheduled entry point: evaluate unless the market is closed today."""
        now = now or datetime.now(timezone.utc)
        if not is_market_day(now.date(), skip_holidays=self.skip_holidays):
            return 0
        return await self.evaluate()

    async def evaluate(self) -> int:
        """
        Run one evaluation pass.

        Returns:
            int: Number of entries triggered
        """
        try:
            pending = await run_blocking(self.store.get_pending_watchlist)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching watchlists: {e}")
            return 0

        triggered = 0
        for symbol, entries in group_by_symbol(pending).items():
            try:
                quote = await run_blocking(self.client.get_quote, symbol, timeout=self.timeout)
            except (MarketDataError, asyncio.TimeoutError) as e:
                logger.error(f"Error fetching quote for {symbol}: {e!r}")
                continue

            for entry in entries:
                if not entry.is_satisfied_by(quote.price):
                    continue

                delivered = await self.notifier.send_direct(entry.user_id, format_alert_message(entry, quote))
                if not delivered:
                    logger.warning(f"Alert for {entry.user_id}/{symbol} not delivered, marking triggered anyway")

                try:
                    await run_blocking(self.store.mark_watchlist_triggered, entry.user_id, entry.symbol)
                except SQLAlchemyError as e:
                    logger.error(f"Failed to mark watchlist {entry.user_id}/{symbol} triggered: {e}")
                    continue
                triggered += 1

        if triggered:
            logger.info(f"Triggered {triggered} watchlist alerts")
        return triggered
