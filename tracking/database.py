"""
Database models for stock tracking

Tables:
- tracked_symbols: every symbol held in a portfolio or watchlist
- stock_prices: daily OHLCV rows keyed by (symbol, date)
- portfolios: user holdings keyed by (user_id, symbol)
- watchlists: one-time price target alerts keyed by (user_id, symbol)
"""

import enum

from sqlalchemy import Boolean, Column, Date, Float, Integer, String, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class Direction(str, enum.Enum):
    """Side of the target a watched price has to reach."""
    ABOVE = "above"
    BELOW = "below"


class TrackedStock(Base):
    """
    Symbol registered for the daily price refresh.
    """
    __tablename__ = 'tracked_symbols'

    symbol = Column(String, primary_key=True)

    def __repr__(self):
        return f"<TrackedStock(symbol='{self.symbol}')>"


class StockPrice(Base):
    """
    Daily OHLCV row. Re-inserting the same (symbol, date) overwrites it.
    """
    __tablename__ = 'stock_prices'

    symbol = Column(String, primary_key=True)
    date = Column(Date, primary_key=True)
    open = Column(Float, nullable=False, default=0.0)
    high = Column(Float, nullable=False, default=0.0)
    low = Column(Float, nullable=False, default=0.0)
    close = Column(Float, nullable=False, default=0.0)
    volume = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<StockPrice(symbol='{self.symbol}', date={self.date}, close={self.close})>"


class Portfolio(Base):
    """
    Shares of a symbol held by a user.
    """
    __tablename__ = 'portfolios'

    user_id = Column(String, primary_key=True)
    symbol = Column(String, primary_key=True)
    shares = Column(Float, nullable=False)

    def __repr__(self):
        return f"<Portfolio(user_id='{self.user_id}', symbol='{self.symbol}', shares={self.shares})>"


class WatchList(Base):
    """
    Price target alert. `triggered` flips to True once and is never reset.
    """
    __tablename__ = 'watchlists'

    user_id = Column(String, primary_key=True)
    symbol = Column(String, primary_key=True)
    price_target = Column(Float, nullable=False)
    direction = Column(String, nullable=False, default=Direction.ABOVE.value)
    triggered = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return (f"<WatchList(user_id='{self.user_id}', symbol='{self.symbol}', "
                f"price_target={self.price_target}, direction='{self.direction}', "
                f"triggered={self.triggered})>")


def create_db_engine(db_url: str) -> Engine:
    """Create an engine whose connections may be shared across threads."""
    kwargs = {"connect_args": {"check_same_thread": False}}
    # An in-memory database only exists on a single connection
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    Base.metadata.create_all(bind=engine)
