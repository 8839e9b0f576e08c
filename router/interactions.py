# router/interactions.py — favorites, notes, upcoming cases, ratings

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator, model_validator

from adapters.db import DatabaseAdapter
from api.deps import get_db, get_tracker
from api.guards import require_interaction
from api.middleware.roles import get_current_user
from core.analytics import (
    EVENT_FAVORITE_ADD,
    EVENT_FAVORITE_REMOVE,
    EVENT_RATING_SUBMIT,
    EVENT_UPCOMING_CASE_ADD,
    EVENT_UPCOMING_CASE_REMOVE,
    EVENT_UPCOMING_CASE_REORDER,
    AnalyticsTracker,
)
from core.reorder import POSITIONS, drop_index, reorder_with_display_order
from core.validators import NOTE_MAX_LENGTH, sanitize_input, validate_note, validate_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["interactions"])


def _resource_id(value: str) -> str:
    result = validate_uuid(value)
    if not value or not result.valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_resource_id", "message": result.error or "resource_id is required"},
        )
    return value


class ResourceRef(BaseModel):
    resource_id: str

    @field_validator("resource_id")
    @classmethod
    def validate_resource_id(cls, v):
        result = validate_uuid(v)
        if not v or not result.valid:
            raise ValueError(result.error or "resource_id is required")
        return v


class NoteRequest(BaseModel):
    note_text: str

    @field_validator("note_text")
    @classmethod
    def validate_note_text(cls, v):
        result = validate_note(v)
        if not result.valid:
            raise ValueError(result.error)
        return v


class ReorderRequest(BaseModel):
    """
    Move one upcoming case.

    Either give the final `destination_index`, or the hovered row
    (`target_index`) and whether the drop lands `above` or `below` it.
    """
    source_index: int = Field(..., ge=0)
    destination_index: Optional[int] = Field(None, ge=0)
    target_index: Optional[int] = Field(None, ge=0)
    position: Optional[str] = None

    @field_validator("position")
    @classmethod
    def validate_position(cls, v):
        if v is not None and v not in POSITIONS:
            raise ValueError(f"position must be one of {', '.join(POSITIONS)}")
        return v

    @model_validator(mode="after")
    def check_target(self):
        if self.destination_index is None and (self.target_index is None or self.position is None):
            raise ValueError("destination_index or target_index with position is required")
        return self


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)


# ============================================================================
# Favorites
# ============================================================================

@router.get("/favorites")
@require_interaction
def list_favorites(request: Request, db: DatabaseAdapter = Depends(get_db)):
    ctx = get_current_user(request)
    return {"resource_ids": db.list_favorites(ctx.user_id)}


@router.post("/favorites", status_code=status.HTTP_201_CREATED)
@require_interaction
def add_favorite(
    request: Request,
    body: ResourceRef,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    ctx = get_current_user(request)
    db.add_favorite(ctx.user_id, body.resource_id)
    tracker.track(ctx.profile, EVENT_FAVORITE_ADD, {"resource_id": body.resource_id})
    return {"resource_id": body.resource_id, "favorited": True}


@router.delete("/favorites/{resource_id}")
@require_interaction
def remove_favorite(
    request: Request,
    resource_id: str,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    ctx = get_current_user(request)
    resource_id = _resource_id(resource_id)
    db.remove_favorite(ctx.user_id, resource_id)
    tracker.track(ctx.profile, EVENT_FAVORITE_REMOVE, {"resource_id": resource_id})
    return {"resource_id": resource_id, "favorited": False}


# ============================================================================
# Notes
# ============================================================================

@router.put("/notes/{resource_id}")
@require_interaction
def save_note(request: Request, resource_id: str, body: NoteRequest, db: DatabaseAdapter = Depends(get_db)):
    """Create or replace the caller's note on a resource. Markup is stripped."""
    ctx = get_current_user(request)
    resource_id = _resource_id(resource_id)
    note_text = sanitize_input(body.note_text, max_length=NOTE_MAX_LENGTH)
    if not note_text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_note", "message": "Note is empty after sanitizing"},
        )

    saved = db.upsert_note(ctx.user_id, resource_id, note_text)
    return saved or {"resource_id": resource_id, "note_text": note_text}


@router.delete("/notes/{resource_id}")
@require_interaction
def delete_note(request: Request, resource_id: str, db: DatabaseAdapter = Depends(get_db)):
    ctx = get_current_user(request)
    resource_id = _resource_id(resource_id)
    db.delete_note(ctx.user_id, resource_id)
    return {"resource_id": resource_id, "deleted": True}


# ============================================================================
# Upcoming cases
# ============================================================================

@router.get("/upcoming-cases")
@require_interaction
def list_upcoming_cases(request: Request, db: DatabaseAdapter = Depends(get_db)):
    ctx = get_current_user(request)
    return {"upcoming_cases": db.list_upcoming_cases(ctx.user_id)}


@router.post("/upcoming-cases", status_code=status.HTTP_201_CREATED)
@require_interaction
def add_upcoming_case(
    request: Request,
    body: ResourceRef,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Append a resource to the end of the list; already listed is a no-op."""
    ctx = get_current_user(request)
    cases = db.list_upcoming_cases(ctx.user_id)

    if any(row.get("resource_id") == body.resource_id for row in cases):
        return {"upcoming_cases": cases, "added": False}

    db.add_upcoming_case(ctx.user_id, body.resource_id, len(cases))
    tracker.track(ctx.profile, EVENT_UPCOMING_CASE_ADD, {"resource_id": body.resource_id})

    cases = cases + [{"resource_id": body.resource_id, "display_order": len(cases)}]
    return {"upcoming_cases": cases, "added": True}


@router.delete("/upcoming-cases/{resource_id}")
@require_interaction
def remove_upcoming_case(
    request: Request,
    resource_id: str,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Remove a resource and close the gap in display_order."""
    ctx = get_current_user(request)
    resource_id = _resource_id(resource_id)

    db.remove_upcoming_case(ctx.user_id, resource_id)
    remaining = sorted(
        (row for row in db.list_upcoming_cases(ctx.user_id) if row.get("resource_id") != resource_id),
        key=lambda row: row.get("display_order") or 0,
    )
    renumbered = [{**row, "display_order": index} for index, row in enumerate(remaining)]
    db.save_upcoming_case_order(ctx.user_id, renumbered)

    tracker.track(ctx.profile, EVENT_UPCOMING_CASE_REMOVE, {"resource_id": resource_id})
    return {"upcoming_cases": renumbered}


@router.post("/upcoming-cases/reorder")
@require_interaction
def reorder_upcoming_cases(
    request: Request,
    body: ReorderRequest,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """Move one upcoming case and persist the renumbered list."""
    ctx = get_current_user(request)
    cases = db.list_upcoming_cases(ctx.user_id)

    try:
        if body.destination_index is not None:
            destination = body.destination_index
        else:
            destination = drop_index(body.source_index, body.target_index, body.position)
            if destination is None:
                return {"upcoming_cases": cases, "moved": False}

        reordered = reorder_with_display_order(cases, body.source_index, destination)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_reorder", "message": str(e)},
        )

    db.save_upcoming_case_order(ctx.user_id, reordered)
    tracker.track(
        ctx.profile,
        EVENT_UPCOMING_CASE_REORDER,
        {"resource_id": reordered[destination].get("resource_id")},
    )
    return {"upcoming_cases": reordered, "moved": True}


# ============================================================================
# Ratings
# ============================================================================

@router.put("/ratings/{resource_id}")
@require_interaction
def rate_resource(
    request: Request,
    resource_id: str,
    body: RatingRequest,
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    ctx = get_current_user(request)
    resource_id = _resource_id(resource_id)
    db.upsert_rating(ctx.user_id, resource_id, body.rating)
    tracker.track(ctx.profile, EVENT_RATING_SUBMIT, {"resource_id": resource_id, "rating": body.rating})
    return {"resource_id": resource_id, "rating": body.rating}
