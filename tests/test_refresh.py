"""
Daily refresh tests
"""
import logging
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pandas as pd
import pytest

from conftest import make_point
from cores.data_client import MarketDataClient, MarketDataError, PriceData
from tracking.refresh import DailyRefresher, expected_latest_date, resolve_daily_point


def make_refresher(store, client):
    pacer = MagicMock()
    pacer.wait = AsyncMock()
    return DailyRefresher(store, client, pacer=pacer, timeout=5.0, refresh_hour_utc=23)


class TestResolveDailyPoint:
    """Picking the bar of the refreshed day"""

    def test_exact_day(self, sample_history):
        point = resolve_daily_point("ABC", date(2024, 1, 3), sample_history)
        assert point.date == date(2024, 1, 3)
        assert point.close == 102.5

    def test_falls_back_to_latest_day(self, sample_history):
        point = resolve_daily_point("ABC", date(2024, 1, 6), sample_history)
        assert point.date == date(2024, 1, 4)
        assert point.close == 103.0

    def test_empty_response(self):
        assert resolve_daily_point("ABC", date(2024, 1, 3), {}) is None


class TestExpectedLatestDate:
    """Most recent day that should already be stored"""

    def test_before_refresh_hour(self):
        assert expected_latest_date(datetime(2024, 1, 10, 22, 0), 23) == date(2024, 1, 9)

    def test_after_refresh_hour(self):
        assert expected_latest_date(datetime(2024, 1, 10, 23, 30), 23) == date(2024, 1, 10)

    def test_weekend_maps_to_friday(self):
        assert expected_latest_date(datetime(2024, 1, 13, 23, 30), 23) == date(2024, 1, 12)
        assert expected_latest_date(datetime(2024, 1, 15, 10, 0), 23) == date(2024, 1, 12)


class TestRefreshAll:
    """Sequential refresh of every tracked symbol"""

    @pytest.mark.asyncio
    async def test_same_day_overwrites(self, store, mock_client):
        store.add_tracked_symbol("ABC")
        store.upsert_price_point(make_point("ABC", date(2024, 1, 3), 90.0))
        mock_client.get_history.return_value = {
            "2024-01-03": PriceData(open=95.0, high=99.0, low=94.0, close=98.0, volume=10),
        }
        refresher = make_refresher(store, mock_client)

        refreshed = await refresher.refresh_all(day=date(2024, 1, 3))

        assert refreshed == 1
        points = store.get_price_points("ABC", date(2024, 1, 3), date(2024, 1, 3))
        assert len(points) == 1
        assert points[0].close == 98.0
        mock_client.get_history.assert_called_once_with("ABC", date(2024, 1, 3), date(2024, 1, 3), "1d")

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_other_symbols(self, store, mock_client, sample_history):
        for symbol in ("AAA", "BBB", "CCC"):
            store.add_tracked_symbol(symbol)

        def get_history(symbol, start, end, interval):
            if symbol == "BBB":
                raise MarketDataError("no data")
            return sample_history

        mock_client.get_history.side_effect = get_history
        refresher = make_refresher(store, mock_client)

        refreshed = await refresher.refresh_all(day=date(2024, 1, 4))

        assert refreshed == 2
        assert store.get_latest_price_date("AAA") == date(2024, 1, 4)
        assert store.get_latest_price_date("BBB") is None
        assert store.get_latest_price_date("CCC") == date(2024, 1, 4)

    @pytest.mark.asyncio
    async def test_pacer_runs_before_each_fetch(self, store, mock_client):
        for symbol in ("AAA", "BBB"):
            store.add_tracked_symbol(symbol)
        refresher = make_refresher(store, mock_client)

        await refresher.refresh_all(day=date(2024, 1, 4))

        assert refresher.pacer.wait.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_response_is_skipped_quietly(self, store, caplog):
        """A non-trading day returns no rows: DEBUG skip, nothing stored"""
        store.add_tracked_symbol("ABC")
        refresher = make_refresher(store, MarketDataClient())

        with patch("cores.data_client.yf.Ticker") as mock_ticker, caplog.at_level(logging.DEBUG):
            mock_ticker.return_value.history.return_value = pd.DataFrame()
            refreshed = await refresher.refresh_all(day=date(2024, 1, 13))

        assert refreshed == 0
        assert store.get_latest_price_date("ABC") is None
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert "No history rows returned for ABC" in caplog.text

    @pytest.mark.asyncio
    async def test_no_tracked_symbols(self, store, mock_client):
        refresher = make_refresher(store, mock_client)
        assert await refresher.refresh_all(day=date(2024, 1, 4)) == 0
        mock_client.get_history.assert_not_called()


class TestCatchUp:
    """Start-up backfill of missed refreshes"""

    @pytest.mark.asyncio
    async def test_stale_symbol_is_backfilled_from_next_day(self, store, mock_client):
        store.add_tracked_symbol("AAA")
        store.upsert_price_point(make_point("AAA", date(2024, 1, 5), 10.0))
        mock_client.get_history.return_value = {
            "2024-01-08": PriceData(open=11.0, high=11.0, low=11.0, close=11.0),
            "2024-01-09": PriceData(open=12.0, high=12.0, low=12.0, close=12.0),
            "2024-01-10": PriceData(open=13.0, high=13.0, low=13.0, close=13.0),
        }
        refresher = make_refresher(store, mock_client)

        caught_up = await refresher.catch_up(now=datetime(2024, 1, 10, 23, 30, tzinfo=timezone.utc))

        assert caught_up == 1
        mock_client.get_history.assert_called_once_with("AAA", date(2024, 1, 6), date(2024, 1, 10), "1d")
        assert store.get_latest_price_date("AAA") == date(2024, 1, 10)

    @pytest.mark.asyncio
    async def test_up_to_date_symbol_is_skipped(self, store, mock_client):
        store.add_tracked_symbol("AAA")
        store.upsert_price_point(make_point("AAA", date(2024, 1, 10), 10.0))
        refresher = make_refresher(store, mock_client)

        caught_up = await refresher.catch_up(now=datetime(2024, 1, 10, 23, 30, tzinfo=timezone.utc))

        assert caught_up == 0
        mock_client.get_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_new_rows_is_not_an_error(self, store, caplog):
        store.add_tracked_symbol("AAA")
        store.upsert_price_point(make_point("AAA", date(2024, 1, 5), 10.0))
        refresher = make_refresher(store, MarketDataClient())

        with patch("cores.data_client.yf.Ticker") as mock_ticker, caplog.at_level(logging.DEBUG):
            mock_ticker.return_value.history.return_value = pd.DataFrame()
            caught_up = await refresher.catch_up(now=datetime(2024, 1, 8, 23, 30, tzinfo=timezone.utc))

        assert caught_up == 0
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    @pytest.mark.asyncio
    async def test_symbol_without_prices_gets_full_lookback(self, store, mock_client):
        store.add_tracked_symbol("AAA")
        refresher = make_refresher(store, mock_client)

        await refresher.catch_up(now=datetime(2024, 1, 10, 23, 30, tzinfo=timezone.utc))

        args = mock_client.get_history.call_args[0]
        assert args[1] == date(2019, 1, 10)
        assert args[2] == date(2024, 1, 10)
