"""
Chart component pipeline

Builds the messages of /stock and /portfolio: quote, price history, chart
and caption per symbol. Portfolio holdings are rendered concurrently with a
bounded fan-out that keeps the input order of the results.
"""

import asyncio
import html
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from cores.data_client import (
    DAILY_INTERVAL,
    DATE_KEY_FORMAT,
    INTRADAY_INTERVAL,
    MarketDataClient,
    MarketDataError,
    PriceData,
    Quote,
)
from cores.periods import adjacent_periods, period_change, period_window
from cores.stock_chart import ChartImage, render_line_chart
from cores.utils import run_blocking
from tracking.models import PortfolioEntry
from tracking.store import PriceStore

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4
PORTFOLIO_PERIOD = "1y"


# =============================================================================
# Fan-out
# =============================================================================

async def fan_out(
    items: Sequence[Any],
    worker: Callable[[int, Any], Awaitable[Any]],
    limit: int = DEFAULT_CONCURRENCY
) -> List[Any]:
    """
    Run `worker(index, item)` for every item with at most `limit` in flight.

    Each task publishes `(index, result)` to a queue as it finishes; once all
    N results are in they are put back in input order. Failed slots (None
    result or an exception in the worker) are dropped.

    Returns:
        Non-None results in input order
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    semaphore = asyncio.Semaphore(limit)
    results: asyncio.Queue = asyncio.Queue()

    async def run(index: int, item: Any):
        async with semaphore:
            try:
                result = await worker(index, item)
            except Exception as e:
                logger.warning(f"Worker failed for slot {index}: {e!r}")
                result = None
        await results.put((index, result))

    tasks = [asyncio.create_task(run(index, item)) for index, item in enumerate(items)]

    collected = []
    for _ in range(len(tasks)):
        collected.append(await results.get())
    collected.sort(key=lambda pair: pair[0])

    ordered = [result for _, result in collected if result is not None]
    dropped = len(collected) - len(ordered)
    if dropped:
        logger.warning(f"Dropped {dropped} of {len(collected)} slots")
    return ordered


# =============================================================================
# History loading
# =============================================================================

@dataclass
class PriceHistory:
    """Chart series of a period plus one year of daily rows."""
    chart: Dict[str, PriceData] = field(default_factory=dict)
    yearly: Dict[str, PriceData] = field(default_factory=dict)


class HistoryLoader:
    """
    Loads chart history, preferring the stored daily rows.

    The 1 day view always uses live minute bars. Other periods read the
    stored rows and only ask the provider when the store has nothing for
    the window (e.g. a symbol looked up with /stock but never tracked).
    """

    def __init__(self, store: PriceStore, client: MarketDataClient):
        self.store = store
        self.client = client

    def _stored_daily(self, symbol: str, start: date, end: date) -> Dict[str, PriceData]:
        try:
            points = self.store.get_price_points(symbol, start, end)
        except SQLAlchemyError as e:
            logger.error(f"Error reading stored prices of {symbol}: {e}")
            return {}

        return {
            point.date.strftime(DATE_KEY_FORMAT): PriceData(
                open=point.open,
                high=point.high,
                low=point.low,
                close=point.close,
                volume=point.volume,
            )
            for point in points
        }

    def _daily(self, symbol: str, start: date, end: date) -> Dict[str, PriceData]:
        hist = self._stored_daily(symbol, start, end)
        if hist:
            return hist
        logger.debug(f"No stored prices for {symbol} between {start} and {end}, asking the provider")
        return self.client.get_history(symbol, start, end, DAILY_INTERVAL)

    def load(self, symbol: str, period: str, now: datetime = None) -> PriceHistory:
        """
        Load the history needed to render one symbol.

        Raises:
            ValueError: If the period is not supported
            MarketDataError: If the chart series cannot be fetched
        """
        now = now or datetime.now(timezone.utc)
        start, end, interval = period_window(period, now)

        year_start, year_end, _ = period_window("1y", now)
        try:
            yearly = self._daily(symbol, year_start.date(), year_end.date())
        except MarketDataError as e:
            logger.warning(f"No yearly history for {symbol}: {e}")
            yearly = {}

        if interval == INTRADAY_INTERVAL:
            chart = self.client.get_history(symbol, start, end, INTRADAY_INTERVAL)
        elif period == "1y" and yearly:
            chart = yearly
        else:
            chart = self._daily(symbol, start.date(), end.date())

        return PriceHistory(chart=chart, yearly=yearly)


# =============================================================================
# Components
# =============================================================================

@dataclass
class ChartComponent:
    """One chart message: photo, caption and period buttons."""
    index: int
    symbol: str
    period: str
    caption: str
    image: ChartImage
    buttons: InlineKeyboardMarkup


def period_keyboard(prefix: str, period: str) -> InlineKeyboardMarkup:
    """
    "-" zooms out to the wider period, "+" zooms in to the narrower one.
    A button without a neighbour is left out.
    """
    wider, narrower = adjacent_periods(period)
    row = []
    if wider:
        row.append(InlineKeyboardButton("-", callback_data=f"{prefix};{wider}"))
    if narrower:
        row.append(InlineKeyboardButton("+", callback_data=f"{prefix};{narrower}"))
    return InlineKeyboardMarkup([row])


def stock_caption(quote: Quote) -> str:
    return (
        f"<b>Name:</b> {html.escape(quote.long_name or quote.symbol)}\n"
        f"<b>Market Price:</b> {quote.price_text}\n"
        f"<b>Market Change:</b> ({quote.change_text})"
    )


def holding_caption(entry: PortfolioEntry, quote: Quote, yearly: Dict[str, PriceData], now: datetime = None) -> str:
    return (
        f"<b>{html.escape(entry.symbol)}</b>\n"
        f"<b>Amount of Shares:</b> {entry.shares:.2f}\n\n"
        f"<b>Daily % Change:</b> {quote.change_text}\n"
        f"<b>Weekly % Change:</b> {period_change('1wk', yearly, now)}\n"
        f"<b>Yearly % Change:</b> {period_change('1y', yearly, now)}"
    )


class ComponentBuilder:
    """Renders chart components for stocks and portfolio holdings."""

    def __init__(
        self,
        store: PriceStore,
        client: MarketDataClient,
        timeout: Optional[float] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.client = client
        self.loader = HistoryLoader(store, client)
        self.timeout = timeout
        self.concurrency = concurrency

    def _render_stock(self, symbol: str, period: str) -> Optional[ChartComponent]:
        quote = self.client.get_quote(symbol)
        history = self.loader.load(symbol, period)
        image = render_line_chart(history.chart, quote.symbol, quote.currency, period)
        if image is None:
            return None

        return ChartComponent(
            index=0,
            symbol=symbol,
            period=period,
            caption=stock_caption(quote),
            image=image,
            buttons=period_keyboard(f"stock;{symbol}", period),
        )

    def _render_holding(self, index: int, entry: PortfolioEntry, period: str) -> Optional[ChartComponent]:
        quote = self.client.get_quote(entry.symbol)
        history = self.loader.load(entry.symbol, period)
        image = render_line_chart(history.chart, quote.symbol, quote.currency, period)
        if image is None:
            return None

        return ChartComponent(
            index=index,
            symbol=entry.symbol,
            period=period,
            caption=holding_caption(entry, quote, history.yearly),
            image=image,
            buttons=period_keyboard(f"portfolio;{index};{entry.symbol}", period),
        )

    async def build_stock(self, symbol: str, period: str) -> Optional[ChartComponent]:
        """Render the /stock view of a symbol. Returns None on any failure."""
        try:
            return await run_blocking(self._render_stock, symbol, period, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Timed out rendering {symbol} ({period})")
        except Exception as e:
            logger.error(f"Error rendering {symbol} ({period}): {e}")
        return None

    async def build_holding(self, index: int, entry: PortfolioEntry, period: str) -> Optional[ChartComponent]:
        """Render one portfolio holding. Returns None on any failure."""
        try:
            return await run_blocking(self._render_holding, index, entry, period, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Timed out rendering holding {entry.symbol} ({period})")
        except Exception as e:
            logger.error(f"Error rendering holding {entry.symbol} ({period}): {e}")
        return None

    async def build_portfolio(
        self,
        entries: Sequence[PortfolioEntry],
        period: str = PORTFOLIO_PERIOD
    ) -> List[ChartComponent]:
        """Render every holding concurrently; failed holdings are left out."""

        async def worker(index: int, entry: PortfolioEntry) -> Optional[ChartComponent]:
            return await self.build_holding(index, entry, period)

        return await fan_out(entries, worker, limit=self.concurrency)
