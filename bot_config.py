#!/usr/bin/env python3
"""
Bot configuration module

Centralizes the settings of the stock tracker bot. Values are loaded from
the environment (a .env file is read first) unless passed explicitly.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "stockbot.db"
DEFAULT_REFRESH_HOUR_UTC = 23
DEFAULT_ALERT_INTERVAL_SECONDS = 5.0
DEFAULT_REFRESH_DELAY_SECONDS = 0.5
DEFAULT_RENDER_CONCURRENCY = 4
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_HISTORY_LOOKBACK_YEARS = 5

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default, cast):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}")


class BotConfig:
    """
    Stock tracker bot configuration

    Holds the Telegram token, the database location and the timing knobs of
    the background jobs.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        db_path: Optional[str] = None,
        debug: Optional[bool] = None,
        refresh_hour_utc: Optional[int] = None,
        alert_interval_seconds: Optional[float] = None,
        refresh_delay_seconds: Optional[float] = None,
        refresh_rate_per_second: Optional[float] = None,
        render_concurrency: Optional[int] = None,
        fetch_timeout_seconds: Optional[float] = None,
        history_lookback_years: Optional[int] = None,
        skip_market_holidays: Optional[bool] = None,
        load_env: bool = True,
    ):
        """
        Initialize bot configuration

        Args:
            bot_token: Telegram bot token (TELEGRAM_BOT_TOKEN)
            db_path: SQLite database file (STOCKBOT_DB_PATH)
            debug: Enable debug logging (DEBUG)
            refresh_hour_utc: Hour of the daily price refresh (REFRESH_HOUR_UTC)
            alert_interval_seconds: Watchlist evaluation interval (ALERT_INTERVAL_SECONDS)
            refresh_delay_seconds: Delay between symbols in the refresh (REFRESH_DELAY_SECONDS)
            refresh_rate_per_second: Token-bucket rate replacing the fixed delay (REFRESH_RATE_PER_SECOND)
            render_concurrency: Max charts rendered at once (RENDER_CONCURRENCY)
            fetch_timeout_seconds: Timeout for each market data call (FETCH_TIMEOUT_SECONDS)
            history_lookback_years: Years of history backfilled for new symbols (HISTORY_LOOKBACK_YEARS)
            skip_market_holidays: Also skip NYSE holidays in the alert loop (SKIP_MARKET_HOLIDAYS)
            load_env: Load the .env file before reading the environment
        """
        if load_env:
            self._load_env()

        self._bot_token = bot_token if bot_token is not None else os.getenv("TELEGRAM_BOT_TOKEN")
        self._db_path = db_path or os.getenv("STOCKBOT_DB_PATH") or DEFAULT_DB_PATH
        self._debug = debug if debug is not None else _env_bool("DEBUG")
        self._refresh_hour_utc = refresh_hour_utc if refresh_hour_utc is not None else \
            _env_number("REFRESH_HOUR_UTC", DEFAULT_REFRESH_HOUR_UTC, int)
        self._alert_interval_seconds = alert_interval_seconds if alert_interval_seconds is not None else \
            _env_number("ALERT_INTERVAL_SECONDS", DEFAULT_ALERT_INTERVAL_SECONDS, float)
        self._refresh_delay_seconds = refresh_delay_seconds if refresh_delay_seconds is not None else \
            _env_number("REFRESH_DELAY_SECONDS", DEFAULT_REFRESH_DELAY_SECONDS, float)
        self._refresh_rate_per_second = refresh_rate_per_second if refresh_rate_per_second is not None else \
            _env_number("REFRESH_RATE_PER_SECOND", None, float)
        self._render_concurrency = render_concurrency if render_concurrency is not None else \
            _env_number("RENDER_CONCURRENCY", DEFAULT_RENDER_CONCURRENCY, int)
        self._fetch_timeout_seconds = fetch_timeout_seconds if fetch_timeout_seconds is not None else \
            _env_number("FETCH_TIMEOUT_SECONDS", DEFAULT_FETCH_TIMEOUT_SECONDS, float)
        self._history_lookback_years = history_lookback_years if history_lookback_years is not None else \
            _env_number("HISTORY_LOOKBACK_YEARS", DEFAULT_HISTORY_LOOKBACK_YEARS, int)
        self._skip_market_holidays = skip_market_holidays if skip_market_holidays is not None else \
            _env_bool("SKIP_MARKET_HOLIDAYS")

    def _load_env(self):
        """
        Load environment variables from .env file
        """
        load_dotenv()
        logger.debug(".env file loaded")

    @property
    def bot_token(self) -> Optional[str]:
        """Return telegram bot token"""
        return self._bot_token

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def database_url(self) -> str:
        """Return the SQLAlchemy URL of the price store"""
        if self._db_path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self._db_path}"

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def refresh_hour_utc(self) -> int:
        return self._refresh_hour_utc

    @property
    def alert_interval_seconds(self) -> float:
        return self._alert_interval_seconds

    @property
    def refresh_delay_seconds(self) -> float:
        return self._refresh_delay_seconds

    @property
    def refresh_rate_per_second(self) -> Optional[float]:
        return self._refresh_rate_per_second

    @property
    def render_concurrency(self) -> int:
        return self._render_concurrency

    @property
    def fetch_timeout_seconds(self) -> float:
        return self._fetch_timeout_seconds

    @property
    def history_lookback_years(self) -> int:
        return self._history_lookback_years

    @property
    def skip_market_holidays(self) -> bool:
        return self._skip_market_holidays

    def validate_or_raise(self) -> None:
        """
        Validate the configuration

        Raises:
            ValueError: When the token is missing or a setting is out of range
        """
        if not self._bot_token:
            raise ValueError(
                "Telegram bot token is not configured. "
                "Set environment variable TELEGRAM_BOT_TOKEN."
            )

        if not 0 <= self._refresh_hour_utc <= 23:
            raise ValueError(f"REFRESH_HOUR_UTC must be between 0 and 23, got {self._refresh_hour_utc}")

        if self._alert_interval_seconds <= 0:
            raise ValueError("ALERT_INTERVAL_SECONDS must be positive")

        if self._refresh_delay_seconds < 0:
            raise ValueError("REFRESH_DELAY_SECONDS must not be negative")

        if self._refresh_rate_per_second is not None and self._refresh_rate_per_second <= 0:
            raise ValueError("REFRESH_RATE_PER_SECOND must be positive")

        if self._render_concurrency < 1:
            raise ValueError("RENDER_CONCURRENCY must be at least 1")

        if self._fetch_timeout_seconds <= 0:
            raise ValueError("FETCH_TIMEOUT_SECONDS must be positive")

        if self._history_lookback_years < 1:
            raise ValueError("HISTORY_LOOKBACK_YEARS must be at least 1")

        logger.info("Bot configuration validated")

    def log_status(self) -> None:
        """Log current configuration status"""
        logger.info(f"Database: {self._db_path}")
        logger.info(f"Bot token: {'Configured' if self._bot_token else 'Not configured'}")
        logger.info(f"Daily refresh at {self._refresh_hour_utc:02d}:00 UTC, "
                    f"alerts every {self._alert_interval_seconds:g}s")
        logger.info(f"Render concurrency: {self._render_concurrency}, "
                    f"fetch timeout: {self._fetch_timeout_seconds:g}s")

    def __repr__(self) -> str:
        return (
            f"BotConfig(db_path={self._db_path!r}, "
            f"bot_token={'***' if self._bot_token else None}, "
            f"debug={self._debug})"
        )
