"""
Review queue: user-suggested resources and resource reports.

Suggestions are filtered by the suggesting user's subspecialty, reports by
the reported resource's category; both against the admin's curation scope.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from adapters.db import DatabaseAdapter
from api.admin.common import audit, category_subspecialty, curation_scope, ensure_in_scope, not_found, utc_now
from api.deps import get_db
from api.guards import require
from api.middleware.roles import get_current_user
from core.audit import (
    ACTION_REPORT_DISMISSED,
    ACTION_REPORT_REVIEWED,
    ACTION_SUGGESTION_APPROVED,
    ACTION_SUGGESTION_REJECTED,
)
from core.rbac import CAP_REVIEW_SUGGESTIONS
from core.validators import sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin", "review"])

SUGGESTION_STATUSES = ("pending", "approved", "rejected")

# Suggestion columns copied onto the resource an approval creates
_RESOURCE_FIELDS = (
    "title",
    "url",
    "description",
    "resource_type",
    "image_url",
    "keywords",
    "category_id",
    "duration_seconds",
    "implant_info_url",
)


class ReviewNote(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


def _load_pending(db: DatabaseAdapter, suggestion_id: str) -> dict:
    suggestion = db.get_suggestion(suggestion_id)
    if not suggestion:
        not_found("Suggestion")
    if suggestion.get("status") != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "already_reviewed", "status": suggestion.get("status")},
        )
    return suggestion


def _reviewed(request: Request, status_value: str, note: Optional[str]) -> dict:
    updates = {
        "status": status_value,
        "reviewed_by": get_current_user(request).user_id,
        "reviewed_at": utc_now(),
    }
    if note:
        updates["review_note"] = sanitize_input(note, max_length=1000)
    return updates


# ============================================================================
# Suggestions
# ============================================================================

@router.get("/suggestions")
@require(CAP_REVIEW_SUGGESTIONS)
def list_suggestions(
    request: Request,
    status_filter: str = Query("pending", alias="status"),
    db: DatabaseAdapter = Depends(get_db),
):
    if status_filter not in SUGGESTION_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_status", "allowed": list(SUGGESTION_STATUSES)},
        )
    suggestions = db.list_suggestions(status_filter, curation_scope(request, db))
    return {"suggestions": suggestions, "count": len(suggestions)}


@router.post("/suggestions/{suggestion_id}/approve")
@require(CAP_REVIEW_SUGGESTIONS)
def approve_suggestion(request: Request, suggestion_id: str, db: DatabaseAdapter = Depends(get_db)):
    """
    Publish a pending suggestion as a resource.

    The suggestion's category decides the scope check, so an admin cannot
    approve into a subspecialty outside their own. Approving twice is a 409.
    """
    suggestion = _load_pending(db, suggestion_id)
    if not suggestion.get("category_id"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_category", "message": "Suggestion has no category"},
        )
    ensure_in_scope(
        curation_scope(request, db),
        category_subspecialty(db, suggestion.get("category_id")),
        CAP_REVIEW_SUGGESTIONS,
    )

    ctx = get_current_user(request)
    row = {field: suggestion.get(field) for field in _RESOURCE_FIELDS if suggestion.get(field) is not None}
    resource = db.create_resource({**row, "curated_by": ctx.user_id})
    db.update_suggestion(suggestion_id, _reviewed(request, "approved", None))

    resource_id = resource.get("id") if resource else None
    audit(request, db, ACTION_SUGGESTION_APPROVED, "suggestion", suggestion_id, resource_id=resource_id)
    logger.info(f"Suggestion {suggestion_id} approved by {ctx.user_id} as resource {resource_id}")
    return {"approved": True, "resource": resource}


@router.post("/suggestions/{suggestion_id}/reject")
@require(CAP_REVIEW_SUGGESTIONS)
def reject_suggestion(
    request: Request,
    suggestion_id: str,
    body: Optional[ReviewNote] = None,
    db: DatabaseAdapter = Depends(get_db),
):
    suggestion = _load_pending(db, suggestion_id)
    ensure_in_scope(
        curation_scope(request, db),
        suggestion.get("user_subspecialty_id"),
        CAP_REVIEW_SUGGESTIONS,
    )

    note = body.note if body else None
    db.update_suggestion(suggestion_id, _reviewed(request, "rejected", note))
    audit(request, db, ACTION_SUGGESTION_REJECTED, "suggestion", suggestion_id, note=note)
    return {"rejected": True, "suggestion_id": suggestion_id}


# ============================================================================
# Reports
# ============================================================================

@router.get("/reports")
@require(CAP_REVIEW_SUGGESTIONS)
def list_reports(request: Request, db: DatabaseAdapter = Depends(get_db)):
    reports = db.list_reports(curation_scope(request, db))
    return {"reports": reports, "count": len(reports)}


def _resolve_report(request: Request, db: DatabaseAdapter, report_id: str, status_value: str, action: str):
    report = db.get_report(report_id)
    if not report:
        not_found("Report")

    resource = db.get_resource(report["resource_id"]) if report.get("resource_id") else None
    subspecialty_id = (
        category_subspecialty(db, resource.get("category_id"), strict=False)
        if resource
        else report.get("resource_subspecialty_id")
    )
    ensure_in_scope(curation_scope(request, db), subspecialty_id, CAP_REVIEW_SUGGESTIONS)

    db.update_report(report_id, _reviewed(request, status_value, None))
    audit(request, db, action, "report", report_id, resource_id=report.get("resource_id"))
    return {"report_id": report_id, "status": status_value}


@router.post("/reports/{report_id}/dismiss")
@require(CAP_REVIEW_SUGGESTIONS)
def dismiss_report(request: Request, report_id: str, db: DatabaseAdapter = Depends(get_db)):
    return _resolve_report(request, db, report_id, "dismissed", ACTION_REPORT_DISMISSED)


@router.post("/reports/{report_id}/review")
@require(CAP_REVIEW_SUGGESTIONS)
def mark_report_reviewed(request: Request, report_id: str, db: DatabaseAdapter = Depends(get_db)):
    """Mark a report handled, e.g. after the resource was fixed."""
    return _resolve_report(request, db, report_id, "reviewed", ACTION_REPORT_REVIEWED)
