"""Resource view analytics for the admin dashboard."""

import logging
from typing import Optional, Set

from fastapi import APIRouter, Depends, Query, Request

from adapters.db import DatabaseAdapter
from api.admin.common import curation_scope
from api.deps import get_db
from api.guards import require
from core.analytics import summarize_views, window_start
from core.rbac import CAP_VIEW_ANALYTICS
from core.visibility import ScopeResult
from router.catalog import category_ids_in

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/analytics", tags=["admin", "analytics"])


def _resource_ids_in(db: DatabaseAdapter, subspecialty_ids) -> Set[str]:
    category_ids = []
    for subspecialty_id in subspecialty_ids:
        scope = ScopeResult(load_all=False, effective_subspecialty_id=subspecialty_id)
        category_ids.extend(category_ids_in(db.get_categories(scope)))
    return {row["id"] for row in db.get_resources(category_ids) if row.get("id")}


@router.get("/views")
@require(CAP_VIEW_ANALYTICS)
def resource_views(
    request: Request,
    days: int = Query(30, ge=1, le=365),
    top: int = Query(10, ge=1, le=100),
    db: DatabaseAdapter = Depends(get_db),
):
    """
    View totals and most viewed resources over the last `days` days.

    Super admins see the whole catalog; other admins only count views of
    resources in the subspecialties they curate.
    """
    allowed = curation_scope(request, db)
    resource_ids: Optional[Set[str]] = None if allowed is None else _resource_ids_in(db, allowed)

    since = window_start(days)
    summary = summarize_views(db.list_resource_views(since), resource_ids, top_n=top)
    logger.debug(f"Analytics since {since}: {summary['total_views']} views")
    return {"since": since, "days": days, **summary}
