"""
Shared FastAPI dependencies.

Routes receive the database adapter and analytics tracker through
`Depends`, so tests can swap them with `app.dependency_overrides`.
"""

import logging
from functools import lru_cache

from adapters.db import DatabaseAdapter
from core.analytics import AnalyticsTracker

logger = logging.getLogger(__name__)


@lru_cache()
def _shared_db() -> DatabaseAdapter:
    return DatabaseAdapter()


def get_db() -> DatabaseAdapter:
    return _shared_db()


def get_tracker() -> AnalyticsTracker:
    return AnalyticsTracker(sink=get_db().insert_event)


def reset_deps():
    """Drop cached adapters (for testing)."""
    _shared_db.cache_clear()
