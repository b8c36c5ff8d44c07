"""
Price store tests

Covers upsert semantics of every table and the ordering of the queries.
"""
from datetime import date

from conftest import make_point
from tracking.database import Direction
from tracking.models import PortfolioEntry, WatchlistEntry
from tracking.store import PriceStore


class TestPricePoints:
    """Daily price rows"""

    def test_second_upsert_overwrites_same_date(self, store):
        """Two upserts of the same date leave one row with the latest close"""
        store.upsert_price_point(make_point("ABC", date(2024, 1, 2), 100.0))
        store.upsert_price_point(make_point("ABC", date(2024, 1, 2), 105.5))

        points = store.get_price_points("ABC", date(2024, 1, 1), date(2024, 1, 31))
        assert len(points) == 1
        assert points[0].close == 105.5

    def test_range_is_inclusive_and_ordered(self, store):
        store.upsert_price_points([
            make_point("ABC", date(2024, 1, 4), 3.0),
            make_point("ABC", date(2024, 1, 2), 1.0),
            make_point("ABC", date(2024, 1, 3), 2.0),
            make_point("XYZ", date(2024, 1, 3), 9.0),
        ])

        points = store.get_price_points("ABC", date(2024, 1, 2), date(2024, 1, 3))
        assert [p.date for p in points] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert [p.close for p in points] == [1.0, 2.0]

    def test_upsert_many_returns_count(self, store):
        written = store.upsert_price_points([
            make_point("ABC", date(2024, 1, 2), 1.0),
            make_point("ABC", date(2024, 1, 3), 2.0),
        ])
        assert written == 2

    def test_latest_price_date(self, store):
        assert store.get_latest_price_date("ABC") is None

        store.upsert_price_points([
            make_point("ABC", date(2024, 1, 2), 1.0),
            make_point("ABC", date(2024, 1, 5), 2.0),
        ])
        assert store.get_latest_price_date("ABC") == date(2024, 1, 5)

    def test_remove_price_point(self, store):
        store.upsert_price_point(make_point("ABC", date(2024, 1, 2), 1.0))
        store.remove_price_point("ABC", date(2024, 1, 2))
        assert store.get_price_points("ABC", date(2024, 1, 1), date(2024, 1, 31)) == []


class TestTrackedSymbols:
    """Tracked-symbol registry"""

    def test_add_is_idempotent(self, store):
        assert store.add_tracked_symbol("ABC") is True
        assert store.add_tracked_symbol("ABC") is False
        assert store.get_tracked_symbols() == ["ABC"]

    def test_symbols_are_sorted(self, store):
        for symbol in ("MSFT", "AAPL", "GOOG"):
            store.add_tracked_symbol(symbol)
        assert store.get_tracked_symbols() == ["AAPL", "GOOG", "MSFT"]

    def test_is_tracked(self, store):
        assert store.is_tracked("ABC") is False
        store.add_tracked_symbol("ABC")
        assert store.is_tracked("ABC") is True

    def test_remove_deletes_prices(self, store):
        store.add_tracked_symbol("ABC")
        store.upsert_price_point(make_point("ABC", date(2024, 1, 2), 1.0))

        store.remove_tracked_symbol("ABC")

        assert store.is_tracked("ABC") is False
        assert store.get_latest_price_date("ABC") is None


class TestPortfolio:
    """Portfolio holdings"""

    def test_update_overwrites_shares(self, store):
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="ABC", shares=10))
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="ABC", shares=25.5))

        assert store.get_portfolio("u1") == [PortfolioEntry(user_id="u1", symbol="ABC", shares=25.5)]

    def test_portfolio_is_per_user_and_sorted(self, store):
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="XYZ", shares=1))
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="ABC", shares=2))
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u2", symbol="DEF", shares=3))

        assert [e.symbol for e in store.get_portfolio("u1")] == ["ABC", "XYZ"]
        assert [e.symbol for e in store.get_portfolio("u2")] == ["DEF"]

    def test_get_entry(self, store):
        assert store.get_portfolio_entry("u1", "ABC") is None
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="ABC", shares=2))
        assert store.get_portfolio_entry("u1", "ABC").shares == 2

    def test_remove_reports_whether_found(self, store):
        store.upsert_portfolio_entry(PortfolioEntry(user_id="u1", symbol="ABC", shares=2))
        assert store.remove_portfolio_entry("u1", "ABC") is True
        assert store.remove_portfolio_entry("u1", "ABC") is False


class TestWatchlist:
    """Watchlist alerts"""

    def test_new_entry_is_pending(self, store):
        store.upsert_watchlist_entry(WatchlistEntry(user_id="u1", symbol="ABC", price_target=100))

        pending = store.get_pending_watchlist()
        assert len(pending) == 1
        assert pending[0].direction == Direction.ABOVE
        assert pending[0].triggered is False

    def test_triggered_entries_are_not_pending(self, store):
        store.upsert_watchlist_entry(WatchlistEntry(user_id="u1", symbol="ABC", price_target=100))
        store.upsert_watchlist_entry(WatchlistEntry(user_id="u2", symbol="ABC", price_target=90))

        store.mark_watchlist_triggered("u1", "ABC")

        assert [e.user_id for e in store.get_pending_watchlist()] == ["u2"]
        assert store.get_user_watchlist("u1")[0].triggered is True

    def test_update_keeps_triggered_flag(self, store):
        store.upsert_watchlist_entry(WatchlistEntry(user_id="u1", symbol="ABC", price_target=100))
        store.mark_watchlist_triggered("u1", "ABC")

        store.upsert_watchlist_entry(WatchlistEntry(
            user_id="u1", symbol="ABC", price_target=80, direction=Direction.BELOW
        ))

        entry = store.get_user_watchlist("u1")[0]
        assert entry.price_target == 80
        assert entry.direction == Direction.BELOW
        assert entry.triggered is True

    def test_remove(self, store):
        store.upsert_watchlist_entry(WatchlistEntry(user_id="u1", symbol="ABC", price_target=100))
        assert store.remove_watchlist_entry("u1", "ABC") is True
        assert store.remove_watchlist_entry("u1", "ABC") is False
        assert store.get_user_watchlist("u1") == []


class TestInMemoryStore:
    """In-memory database keeps its data across transactions"""

    def test_memory_url(self):
        memory_store = PriceStore("sqlite://")
        memory_store.init_db()

        memory_store.add_tracked_symbol("ABC")
        assert memory_store.get_tracked_symbols() == ["ABC"]
        memory_store.close()
