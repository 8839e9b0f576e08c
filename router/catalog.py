# router/catalog.py — scoped categories and resources

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from adapters.db import DatabaseAdapter
from api.deps import get_db, get_tracker
from api.guards import require
from api.middleware.roles import get_current_user
from config import fail_open
from core.analytics import EVENT_CATEGORY_SELECT, AnalyticsTracker
from core.metrics import time_operation
from core.rbac import CAP_BROWSE_CATALOG, get_role_capabilities
from core.validators import validate_category_id
from core.visibility import (
    ScopeResult,
    build_active_company_index,
    can_contact_rep,
    can_interact,
    is_admin,
    resolve_scope,
)
from feature_flags import get_feature_flag

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["catalog"])


def scope_for(request: Request, db: DatabaseAdapter, browsing_subspecialty_id: Optional[str] = None) -> ScopeResult:
    """Resolve the caller's catalog scope."""
    ctx = get_current_user(request)
    with time_operation("visibility.resolve_scope"):
        return resolve_scope(
            ctx.profile,
            db,
            browsing_subspecialty_id=browsing_subspecialty_id,
            fail_open=fail_open(),
        )


def category_ids_in(categories: List[Dict[str, Any]], category_id: Optional[str] = None) -> List[str]:
    """Ids of the given categories and their subcategories, or of one category subtree."""
    ids: List[str] = []
    for category in categories:
        subtree = [category.get("id")] + [sub.get("id") for sub in category.get("subcategories") or []]
        if category_id is None:
            ids.extend(subtree)
        elif category_id == category.get("id"):
            return [i for i in subtree if i]
        elif category_id in subtree:
            return [category_id]
    return [i for i in ids if i]


def category_subspecialties(categories: List[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """Map category ids, subcategories included, to the subspecialty they belong to."""
    mapping: Dict[str, Optional[str]] = {}
    for category in categories:
        parent_subspecialty = category.get("subspecialty_id")
        mapping[category.get("id")] = parent_subspecialty
        for sub in category.get("subcategories") or []:
            mapping[sub.get("id")] = sub.get("subspecialty_id") or parent_subspecialty
    return mapping


@router.get("/scope")
@require(CAP_BROWSE_CATALOG)
def get_scope(
    request: Request,
    browsing_subspecialty_id: Optional[str] = Query(None, max_length=100),
    db: DatabaseAdapter = Depends(get_db),
):
    """Effective scope plus what the caller may do within it."""
    ctx = get_current_user(request)
    scope = scope_for(request, db, browsing_subspecialty_id)

    return {
        **scope.to_dict(),
        "can_interact": can_interact(ctx.profile),
        "is_admin": is_admin(ctx.profile),
        "capabilities": sorted(get_role_capabilities(ctx.profile.role.value)),
        "role": ctx.profile.role.value,
        "user_type": ctx.profile.user_type.value if ctx.profile.user_type else None,
    }


@router.get("/categories")
@require(CAP_BROWSE_CATALOG)
def get_categories(
    request: Request,
    browsing_subspecialty_id: Optional[str] = Query(None, max_length=100),
    db: DatabaseAdapter = Depends(get_db),
):
    """Categories in scope, top-level with nested subcategories."""
    scope = scope_for(request, db, browsing_subspecialty_id)
    categories = db.get_categories(scope)
    return {"scope": scope.to_dict(), "categories": categories}


@router.get("/resources")
@require(CAP_BROWSE_CATALOG)
def get_resources(
    request: Request,
    category_id: Optional[str] = Query(None),
    browsing_subspecialty_id: Optional[str] = Query(None, max_length=100),
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """
    Resources in scope, each flagged with whether Contact Rep applies.

    Contact Rep is judged against the companies of the subspecialty
    each resource's category belongs to.

    A category id outside the caller's scope is rejected with 400.
    """
    ctx = get_current_user(request)
    scope = scope_for(request, db, browsing_subspecialty_id)
    categories = db.get_categories(scope)

    check = validate_category_id(category_id, categories)
    if not check.valid or (category_id is not None and not categories):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_category", "message": check.error or "Category not found in allowed list."},
        )

    if category_id is None and scope.load_all:
        resources = db.get_resources()
    else:
        resources = db.get_resources(category_ids_in(categories, category_id))

    if get_feature_flag("contact_rep.enabled"):
        active = build_active_company_index(db.get_active_companies(scope.effective_subspecialty_id))
    else:
        active = {}
    subspecialty_of = category_subspecialties(categories)

    if category_id is not None:
        tracker.track(ctx.profile, EVENT_CATEGORY_SELECT, {"category_id": category_id})

    return {
        "scope": scope.to_dict(),
        "resources": [
            {
                **resource,
                "can_contact_rep": can_contact_rep(
                    resource, active.get(subspecialty_of.get(resource.get("category_id")), frozenset())
                ),
            }
            for resource in resources
        ],
    }
