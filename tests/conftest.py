import sys
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cores.data_client import PriceData, Quote
from tracking.models import PricePoint
from tracking.store import PriceStore


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def store(tmp_path):
    """Price store on a temporary SQLite file"""
    price_store = PriceStore(f"sqlite:///{tmp_path / 'stockbot.db'}")
    price_store.init_db()
    yield price_store
    price_store.close()


@pytest.fixture
def sample_history():
    """Three trading days of daily bars"""
    return {
        "2024-01-02": PriceData(open=100.0, high=102.0, low=99.0, close=101.0, volume=1000),
        "2024-01-03": PriceData(open=101.0, high=103.0, low=100.0, close=102.5, volume=1200),
        "2024-01-04": PriceData(open=102.5, high=104.0, low=101.5, close=103.0, volume=900),
    }


@pytest.fixture
def sample_quote():
    return Quote(
        symbol="ABC",
        price=101.0,
        percent_change=1.5,
        currency="USD",
        exchange="NMS",
        long_name="ABC Corp",
    )


@pytest.fixture
def mock_client(sample_history, sample_quote):
    """Market data client that never touches the network"""
    client = MagicMock()
    client.get_quote.return_value = sample_quote
    client.get_history.return_value = sample_history
    client.get_lookback_history.return_value = sample_history
    return client


def make_point(symbol: str, day: date, close: float) -> PricePoint:
    return PricePoint(symbol=symbol, date=day, open=close, high=close, low=close, close=close, volume=100)
