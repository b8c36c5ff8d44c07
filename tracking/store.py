"""
Price Store

Persistence for tracked symbols, daily prices, portfolios and watchlists.
One PriceStore is created at start-up and shared by the command handlers
and the background jobs. Every operation runs in its own transaction:
commit on success, rollback and re-raise on error.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracking.database import (
    Direction,
    Portfolio,
    StockPrice,
    TrackedStock,
    WatchList,
    create_db_engine,
    create_session_factory,
    init_db,
)
from tracking.models import PortfolioEntry, PricePoint, WatchlistEntry

logger = logging.getLogger(__name__)


def _to_price_point(row: StockPrice) -> PricePoint:
    return PricePoint(
        symbol=row.symbol,
        date=row.date,
        open=row.open,
        high=row.high,
        low=row.low,
        close=row.close,
        volume=row.volume,
    )


def _to_watchlist_entry(row: WatchList) -> WatchlistEntry:
    return WatchlistEntry(
        user_id=row.user_id,
        symbol=row.symbol,
        price_target=row.price_target,
        direction=Direction(row.direction),
        triggered=bool(row.triggered),
    )


def _price_upsert(point: PricePoint):
    stmt = insert(StockPrice).values(
        symbol=point.symbol,
        date=point.date,
        open=point.open,
        high=point.high,
        low=point.low,
        close=point.close,
        volume=int(point.volume or 0),
    )
    return stmt.on_conflict_do_update(
        index_elements=[StockPrice.symbol, StockPrice.date],
        set_={
            "open": stmt.excluded.open,
            "high": stmt.excluded.high,
            "low": stmt.excluded.low,
            "close": stmt.excluded.close,
            "volume": stmt.excluded.volume,
        },
    )


class PriceStore:
    """SQLite-backed store shared by every component of the bot."""

    def __init__(self, db_url: str = "sqlite:///stockbot.db"):
        self.db_url = db_url
        self.engine = create_db_engine(db_url)
        self.SessionLocal = create_session_factory(self.engine)

    def init_db(self):
        """Create the tables if they do not exist."""
        init_db(self.engine)
        logger.info(f"Price store initialized: {self.db_url}")

    def close(self):
        self.engine.dispose()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            if isinstance(e, SQLAlchemyError):
                logger.error(f"Store transaction rolled back: {e}")
            raise
        finally:
            session.close()

    # =========================================================================
    # Price points
    # =========================================================================

    def upsert_price_point(self, point: PricePoint):
        """Insert or overwrite the OHLCV row of (symbol, date)."""
        with self._transaction() as session:
            session.execute(_price_upsert(point))

    def upsert_price_points(self, points: Iterable[PricePoint]) -> int:
        """Insert or overwrite many rows in one transaction. Returns the row count."""
        count = 0
        with self._transaction() as session:
            for point in points:
                session.execute(_price_upsert(point))
                count += 1
        return count

    def get_price_points(self, symbol: str, start: date, end: date) -> List[PricePoint]:
        """Rows of a symbol between start and end (inclusive), ordered by date."""
        with self._transaction() as session:
            rows = session.execute(
                select(StockPrice)
                .where(StockPrice.symbol == symbol, StockPrice.date >= start, StockPrice.date <= end)
                .order_by(StockPrice.date.asc())
            ).scalars().all()
            return [_to_price_point(row) for row in rows]

    def get_latest_price_date(self, symbol: str) -> Optional[date]:
        with self._transaction() as session:
            return session.execute(
                select(func.max(StockPrice.date)).where(StockPrice.symbol == symbol)
            ).scalar()

    def remove_price_point(self, symbol: str, day: date):
        with self._transaction() as session:
            session.execute(delete(StockPrice).where(StockPrice.symbol == symbol, StockPrice.date == day))

    # =========================================================================
    # Tracked symbols
    # =========================================================================

    def add_tracked_symbol(self, symbol: str) -> bool:
        """Register a symbol. Returns True when it was not tracked before."""
        with self._transaction() as session:
            result = session.execute(
                insert(TrackedStock).values(symbol=symbol).on_conflict_do_nothing()
            )
            return result.rowcount == 1

    def is_tracked(self, symbol: str) -> bool:
        with self._transaction() as session:
            return session.get(TrackedStock, symbol) is not None

    def get_tracked_symbols(self) -> List[str]:
        with self._transaction() as session:
            return list(session.execute(
                select(TrackedStock.symbol).order_by(TrackedStock.symbol)
            ).scalars().all())

    def remove_tracked_symbol(self, symbol: str):
        """Unregister a symbol and delete its stored prices."""
        with self._transaction() as session:
            session.execute(delete(StockPrice).where(StockPrice.symbol == symbol))
            session.execute(delete(TrackedStock).where(TrackedStock.symbol == symbol))

    # =========================================================================
    # Portfolios
    # =========================================================================

    def upsert_portfolio_entry(self, entry: PortfolioEntry):
        """Insert a holding or overwrite the share count of an existing one."""
        with self._transaction() as session:
            stmt = insert(Portfolio).values(
                user_id=entry.user_id, symbol=entry.symbol, shares=entry.shares
            )
            session.execute(stmt.on_conflict_do_update(
                index_elements=[Portfolio.user_id, Portfolio.symbol],
                set_={"shares": stmt.excluded.shares},
            ))

    def get_portfolio(self, user_id: str) -> List[PortfolioEntry]:
        with self._transaction() as session:
            rows = session.execute(
                select(Portfolio).where(Portfolio.user_id == user_id).order_by(Portfolio.symbol)
            ).scalars().all()
            return [PortfolioEntry(user_id=r.user_id, symbol=r.symbol, shares=r.shares) for r in rows]

    def get_portfolio_entry(self, user_id: str, symbol: str) -> Optional[PortfolioEntry]:
        with self._transaction() as session:
            row = session.get(Portfolio, (user_id, symbol))
            if row is None:
                return None
            return PortfolioEntry(user_id=row.user_id, symbol=row.symbol, shares=row.shares)

    def remove_portfolio_entry(self, user_id: str, symbol: str) -> bool:
        with self._transaction() as session:
            result = session.execute(
                delete(Portfolio).where(Portfolio.user_id == user_id, Portfolio.symbol == symbol)
            )
            return result.rowcount > 0

    # =========================================================================
    # Watchlists
    # =========================================================================

    def upsert_watchlist_entry(self, entry: WatchlistEntry):
        """Insert an alert or overwrite target and direction. `triggered` is left as is."""
        direction = Direction(entry.direction).value
        with self._transaction() as session:
            stmt = insert(WatchList).values(
                user_id=entry.user_id,
                symbol=entry.symbol,
                price_target=entry.price_target,
                direction=direction,
                triggered=False,
            )
            session.execute(stmt.on_conflict_do_update(
                index_elements=[WatchList.user_id, WatchList.symbol],
                set_={
                    "price_target": stmt.excluded.price_target,
                    "direction": stmt.excluded.direction,
                },
            ))

    def get_user_watchlist(self, user_id: str) -> List[WatchlistEntry]:
        with self._transaction() as session:
            rows = session.execute(
                select(WatchList).where(WatchList.user_id == user_id).order_by(WatchList.symbol)
            ).scalars().all()
            return [_to_watchlist_entry(row) for row in rows]

    def get_pending_watchlist(self) -> List[WatchlistEntry]:
        """Every alert that has not fired yet."""
        with self._transaction() as session:
            rows = session.execute(
                select(WatchList)
                .where(WatchList.triggered.is_(False))
                .order_by(WatchList.symbol, WatchList.user_id)
            ).scalars().all()
            return [_to_watchlist_entry(row) for row in rows]

    def mark_watchlist_triggered(self, user_id: str, symbol: str):
        with self._transaction() as session:
            session.execute(
                update(WatchList)
                .where(WatchList.user_id == user_id, WatchList.symbol == symbol)
                .values(triggered=True)
            )

    def remove_watchlist_entry(self, user_id: str, symbol: str) -> bool:
        with self._transaction() as session:
            result = session.execute(
                delete(WatchList).where(WatchList.user_id == user_id, WatchList.symbol == symbol)
            )
            return result.rowcount > 0
