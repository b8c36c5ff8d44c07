"""
Daily price refresh

Appends the latest daily bar of every tracked symbol to the price store.
Runs once a day at a fixed UTC hour; on start-up a catch-up pass fills in
the days missed while the process was down.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from cores.data_client import DAILY_INTERVAL, MarketDataClient, MarketDataError, NoHistoryError, PriceData
from cores.utils import run_blocking
from tracking.models import PricePoint, points_from_history
from tracking.pacing import FixedDelayPacer, Pacer
from tracking.store import PriceStore

logger = logging.getLogger(__name__)


def resolve_daily_point(symbol: str, day: date, hist: Dict[str, PriceData]) -> Optional[PricePoint]:
    """
    Pick the bar to store for `day`.

    The exact day is used when present, otherwise the latest day in the
    response. Returns None when the response holds no day at all.
    """
    key = day.strftime("%Y-%m-%d")
    if key not in hist:
        if not hist:
            return None
        key = max(hist)

    try:
        resolved = datetime.strptime(key, "%Y-%m-%d").date()
    except ValueError:
        resolved = day

    price = hist[key]
    return PricePoint(
        symbol=symbol,
        date=resolved,
        open=price.open,
        high=price.high,
        low=price.low,
        close=price.close,
        volume=int(price.volume or 0),
    )


def expected_latest_date(now: datetime, refresh_hour_utc: int) -> date:
    """
    Most recent day whose close should already be stored at `now`.
    """
    day = now.date() if now.hour >= refresh_hour_utc else now.date() - timedelta(days=1)
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


class DailyRefresher:
    """Daily refresh of the stored prices of every tracked symbol."""

    def __init__(
        self,
        store: PriceStore,
        client: MarketDataClient,
        pacer: Pacer = None,
        timeout: Optional[float] = None,
        lookback_years: int = 5,
        refresh_hour_utc: int = 23,
    ):
        self.store = store
        self.client = client
        self.pacer = pacer or FixedDelayPacer(0.5)
        self.timeout = timeout
        self.lookback_years = lookback_years
        self.refresh_hour_utc = refresh_hour_utc

    async def refresh_symbol(self, symbol: str, day: date) -> Optional[PricePoint]:
        """
        Fetch and store the bar of a single trading day.

        Raises:
            MarketDataError: If the fetch fails
            asyncio.TimeoutError: If the fetch exceeds the timeout
            SQLAlchemyError: If the upsert fails
        """
        try:
            hist = await run_blocking(
                self.client.get_history, symbol, day, day, DAILY_INTERVAL, timeout=self.timeout
            )
        except NoHistoryError:
            hist = {}

        point = resolve_daily_point(symbol, day, hist)
        if point is None:
            logger.debug(f"No history rows returned for {symbol}")
            return None

        await run_blocking(self.store.upsert_price_point, point)
        return point

    async def refresh_all(self, day: date = None) -> int:
        """
        Refresh every tracked symbol, one after another.

        A failure for one symbol is logged and the next symbol proceeds.

        Returns:
            int: Number of symbols with a stored bar
        """
        day = day or datetime.now(timezone.utc).date()

        try:
            symbols = await run_blocking(self.store.get_tracked_symbols)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching tracked stocks: {e}")
            return 0

        logger.info(f"Daily refresh of {len(symbols)} tracked symbols for {day}")
        refreshed = 0
        for symbol in symbols:
            await self.pacer.wait()
            try:
                point = await self.refresh_symbol(symbol, day)
            except (MarketDataError, asyncio.TimeoutError) as e:
                logger.error(f"Error fetching history for {symbol}: {e!r}")
                continue
            except SQLAlchemyError as e:
                logger.error(f"Failed to set stock price for {symbol}: {e}")
                continue

            if point is not None:
                refreshed += 1

        logger.info(f"Daily refresh finished: {refreshed}/{len(symbols)} symbols updated")
        return refreshed

    async def catch_up(self, now: datetime = None) -> int:
        """
        Backfill symbols whose latest stored day is older than expected.

        Meant to run once at start-up, so a refresh missed while the
        process was down is not lost. Symbols without any stored price get
        the full lookback window.

        Returns:
            int: Number of symbols backfilled
        """
        now = now or datetime.now(timezone.utc)
        expected = expected_latest_date(now, self.refresh_hour_utc)
        today = now.date()

        try:
            symbols = await run_blocking(self.store.get_tracked_symbols)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching tracked stocks: {e}")
            return 0

        caught_up = 0
        for symbol in symbols:
            try:
                latest = await run_blocking(self.store.get_latest_price_date, symbol)
            except SQLAlchemyError as e:
                logger.error(f"Error reading latest price of {symbol}: {e}")
                continue

            if latest is not None and latest >= expected:
                continue

            if latest is None:
                start = (pd.Timestamp(today) - pd.DateOffset(years=self.lookback_years)).date()
            else:
                start = latest + timedelta(days=1)

            await self.pacer.wait()
            try:
                hist = await run_blocking(
                    self.client.get_history, symbol, start, today, DAILY_INTERVAL, timeout=self.timeout
                )
                written = await run_blocking(self.store.upsert_price_points, points_from_history(symbol, hist))
            except NoHistoryError:
                logger.debug(f"No new history rows for {symbol} since {start}")
                continue
            except (MarketDataError, asyncio.TimeoutError) as e:
                logger.error(f"Catch-up fetch failed for {symbol}: {e!r}")
                continue
            except SQLAlchemyError as e:
                logger.error(f"Catch-up store failed for {symbol}: {e}")
                continue

            logger.info(f"Caught up {symbol}: {written} price points since {start}")
            caught_up += 1

        return caught_up
