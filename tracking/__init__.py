"""
Tracking Package

Price store, tracked-symbol onboarding and the background jobs
(daily refresh and watchlist alerts).
"""

from tracking.database import Direction
from tracking.models import PricePoint, PortfolioEntry, WatchlistEntry, points_from_history
from tracking.store import PriceStore
from tracking.onboarding import SymbolTracker
from tracking.pacing import FixedDelayPacer, TokenBucketPacer, build_pacer
from tracking.refresh import DailyRefresher
from tracking.alerts import AlertEvaluator
from tracking.telegram import AlertNotifier

__all__ = [
    # Models
    "Direction",
    "PricePoint",
    "PortfolioEntry",
    "WatchlistEntry",
    "points_from_history",
    # Store
    "PriceStore",
    # Jobs
    "SymbolTracker",
    "TokenBucketPacer",
    "FixedDelayPacer",
    "build_pacer",
    "DailyRefresher",
    "AlertEvaluator",
    "AlertNotifier",
]
