"""
Usage analytics.

Only surgeons and trainees are tracked. Events go to per-event tables;
a failing write is logged and counted, never raised to the caller.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import AbstractSet, Any, Callable, Dict, Iterable, Mapping, Optional

from core.metrics import record_analytics_event
from core.profiles import profile_field
from core.visibility import include_in_analytics

logger = logging.getLogger(__name__)

# ============================================================================
# Event Names
# ============================================================================

EVENT_RESOURCE_VIEW = "resource_view"
EVENT_FAVORITE_ADD = "favorite_add"
EVENT_FAVORITE_REMOVE = "favorite_remove"
EVENT_UPCOMING_CASE_ADD = "upcoming_case_add"
EVENT_UPCOMING_CASE_REMOVE = "upcoming_case_remove"
EVENT_UPCOMING_CASE_REORDER = "upcoming_case_reorder"
EVENT_RATING_SUBMIT = "rating_submit"
EVENT_CATEGORY_SELECT = "category_select"
EVENT_RESOURCE_SUGGEST = "resource_suggest"
EVENT_SEARCH_QUERY = "search_query"
EVENT_SPONSORED_ENGAGEMENT = "sponsored_engagement"

# Event -> destination table
EVENT_TABLES: Dict[str, str] = {
    EVENT_RESOURCE_VIEW: "resource_views",
    EVENT_FAVORITE_ADD: "favorite_events",
    EVENT_FAVORITE_REMOVE: "favorite_events",
    EVENT_UPCOMING_CASE_ADD: "upcoming_case_events",
    EVENT_UPCOMING_CASE_REMOVE: "upcoming_case_events",
    EVENT_UPCOMING_CASE_REORDER: "upcoming_case_events",
    EVENT_RATING_SUBMIT: "rating_events",
    EVENT_CATEGORY_SELECT: "category_selections",
    EVENT_RESOURCE_SUGGEST: "resource_suggestion_events",
    EVENT_SEARCH_QUERY: "search_queries",
    EVENT_SPONSORED_ENGAGEMENT: "sponsored_engagement",
}

ALL_EVENTS = frozenset(EVENT_TABLES)

# Shared-table events record which variant happened
_EVENT_TYPE_FIELD = {
    EVENT_FAVORITE_ADD: "added",
    EVENT_FAVORITE_REMOVE: "removed",
    EVENT_UPCOMING_CASE_ADD: "added",
    EVENT_UPCOMING_CASE_REMOVE: "removed",
    EVENT_UPCOMING_CASE_REORDER: "reordered",
}

Sink = Callable[[str, Dict[str, Any]], None]


def _analytics_flag_enabled() -> bool:
    from config import get_setting
    from feature_flags import get_feature_flag

    if not get_setting("ANALYTICS_ENABLED"):
        return False
    return get_feature_flag("analytics.enabled")


class AnalyticsTracker:
    """
    Gatekeeper in front of the analytics tables.

    Args:
        sink: Callable(table, row), usually DatabaseAdapter.insert_event
        enabled: Callable returning whether analytics is switched on
    """

    def __init__(self, sink: Sink, enabled: Optional[Callable[[], bool]] = None):
        self.sink = sink
        self.enabled = enabled or _analytics_flag_enabled

    def track(self, user: Any, event: str, payload: Optional[Mapping[str, Any]] = None) -> bool:
        """
        Record an event for a user.

        Returns:
            True if the event was written
        """
        table = EVENT_TABLES.get(event)
        if table is None:
            logger.warning(f"Unknown analytics event: {event}")
            return False

        if not include_in_analytics(user):
            return False

        try:
            if not self.enabled():
                return False
        except Exception as e:
            logger.warning(f"Analytics flag lookup failed, skipping {event}: {e}")
            return False

        row: Dict[str, Any] = {
            "user_id": profile_field(user, "id"),
            "created_at": datetime.now(timezone.utc).isoformat(),
            **(payload or {}),
        }
        if event in _EVENT_TYPE_FIELD:
            row.setdefault("event_type", _EVENT_TYPE_FIELD[event])

        try:
            self.sink(table, row)
        except Exception as e:
            logger.warning(f"Analytics write for {event} failed: {e}")
            record_analytics_event(event, delivered=False)
            return False

        record_analytics_event(event, delivered=True)
        return True


# ============================================================================
# Dashboard Summaries
# ============================================================================

def window_start(days: int, now: Optional[datetime] = None) -> str:
    """ISO timestamp `days` before now, the lower bound of a dashboard window."""
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days)).isoformat()


def summarize_views(
    view_rows: Iterable[Mapping[str, Any]],
    resource_ids: Optional[AbstractSet[str]] = None,
    top_n: int = 10,
) -> Dict[str, Any]:
    """
    Aggregate `resource_views` rows for the analytics dashboard.

    Args:
        view_rows: Rows with `resource_id` and `user_id`
        resource_ids: Only count views of these resources; None counts all
        top_n: How many of the most viewed resources to return

    Examples:
        >>> rows = [{"resource_id": "r1", "user_id": "u1"}, {"resource_id": "r1", "user_id": "u2"},
        ...         {"resource_id": "r2", "user_id": "u1"}]
        >>> summarize_views(rows, {"r1"})
        {'total_views': 2, 'unique_users': 2, 'top_resources': [{'resource_id': 'r1', 'views': 2}]}
    """
    views: Counter = Counter()
    users = set()
    for row in view_rows:
        resource_id = row.get("resource_id")
        if not resource_id or (resource_ids is not None and resource_id not in resource_ids):
            continue
        views[resource_id] += 1
        if row.get("user_id"):
            users.add(row["user_id"])

    return {
        "total_views": sum(views.values()),
        "unique_users": len(users),
        "top_resources": [
            {"resource_id": resource_id, "views": count}
            for resource_id, count in views.most_common(top_n)
        ],
    }
