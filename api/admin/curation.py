"""
Catalog curation endpoints: resources and categories.

Every write is limited to the subspecialties the admin curates (see
core.rbac.scope.admin_scope) and lands in the admin audit trail.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from adapters.db import DatabaseAdapter
from api.admin.common import audit, category_subspecialty, check_uuid, curation_scope, ensure_in_scope, not_found
from api.deps import get_db
from api.guards import require
from api.middleware.roles import get_current_user
from core.audit import (
    ACTION_CATEGORY_CREATED,
    ACTION_CATEGORY_DELETED,
    ACTION_CATEGORY_EDITED,
    ACTION_CATEGORY_REORDERED,
    ACTION_RESOURCE_CREATED,
    ACTION_RESOURCE_DELETED,
    ACTION_RESOURCE_EDITED,
)
from core.rbac import CAP_MANAGE_CATEGORIES, CAP_MANAGE_RESOURCES
from core.reorder import POSITIONS, drop_index, reorder_with_display_order
from core.validators import sanitize_input, validate_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin", "catalog"])

RESOURCE_TYPES = ("video", "article", "document", "image", "guide", "podcast")


# ============================================================================
# Request Models
# ============================================================================

class ResourceFields(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    url: Optional[str] = None
    description: Optional[str] = Field(None, max_length=5000)
    resource_type: Optional[str] = None
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    keywords: Optional[str] = Field(None, max_length=500)
    company_name: Optional[str] = Field(None, max_length=200)
    product_name: Optional[str] = Field(None, max_length=200)
    is_featured: Optional[bool] = None

    @field_validator("url", "image_url")
    @classmethod
    def validate_urls(cls, v):
        if v is None:
            return v
        result = validate_url(v)
        if not result.valid:
            raise ValueError(result.error)
        return v.strip()

    @field_validator("resource_type")
    @classmethod
    def validate_resource_type(cls, v):
        if v is None:
            return v
        normalized = v.strip().lower()
        if normalized not in RESOURCE_TYPES:
            raise ValueError(f"resource_type must be one of: {', '.join(RESOURCE_TYPES)}")
        return normalized

    @field_validator("category_id")
    @classmethod
    def validate_category_id(cls, v):
        return check_uuid(v)

    def row(self) -> dict:
        """Fields that were sent, with free text sanitized."""
        data = self.model_dump(exclude_unset=True)
        for key in ("title", "description", "keywords", "company_name", "product_name"):
            if data.get(key) is not None:
                data[key] = sanitize_input(data[key], max_length=5000) or None
        return data


class ResourceCreate(ResourceFields):
    title: str = Field(..., min_length=1, max_length=300)
    url: str
    resource_type: str
    category_id: str


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    subspecialty_id: str
    parent_category_id: Optional[str] = None

    @field_validator("subspecialty_id", "parent_category_id")
    @classmethod
    def validate_ids(cls, v):
        return check_uuid(v)


class CategoryUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class CategoryReorderRequest(BaseModel):
    subspecialty_id: str
    parent_category_id: Optional[str] = None
    source_index: int = Field(..., ge=0)
    target_index: int = Field(..., ge=0)
    position: str = "above"

    @field_validator("position")
    @classmethod
    def validate_position(cls, v):
        if v not in POSITIONS:
            raise ValueError(f"position must be one of {POSITIONS}")
        return v


# ============================================================================
# Resources
# ============================================================================

def _load_resource(db: DatabaseAdapter, resource_id: str) -> dict:
    resource = db.get_resource(resource_id)
    if not resource:
        not_found("Resource")
    return resource


@router.post("/resources", status_code=status.HTTP_201_CREATED)
@require(CAP_MANAGE_RESOURCES)
def create_resource(request: Request, body: ResourceCreate, db: DatabaseAdapter = Depends(get_db)):
    """
    Add a resource to a category the admin curates.

    **Required Capability**: MANAGE_RESOURCES
    """
    ctx = get_current_user(request)
    ensure_in_scope(curation_scope(request, db), category_subspecialty(db, body.category_id), CAP_MANAGE_RESOURCES)

    resource = db.create_resource({**body.row(), "curated_by": ctx.user_id})
    resource_id = resource.get("id") if resource else None

    audit(request, db, ACTION_RESOURCE_CREATED, "resource", resource_id, title=body.title)
    logger.info(f"Resource {resource_id} created by {ctx.user_id}")
    return {"created": True, "resource": resource}


@router.patch("/resources/{resource_id}")
@require(CAP_MANAGE_RESOURCES)
def update_resource(request: Request, resource_id: str, body: ResourceFields, db: DatabaseAdapter = Depends(get_db)):
    """
    Edit a resource.

    Both the resource's current category and, when it moves, the new
    category must be inside the admin's scope.
    """
    resource = _load_resource(db, resource_id)
    allowed = curation_scope(request, db)
    ensure_in_scope(allowed, category_subspecialty(db, resource.get("category_id"), strict=False), CAP_MANAGE_RESOURCES)

    updates = body.row()
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "empty_update", "message": "No fields to update"},
        )
    if "category_id" in updates:
        if updates["category_id"] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "invalid_category", "message": "category_id cannot be cleared"},
            )
        ensure_in_scope(allowed, category_subspecialty(db, updates["category_id"]), CAP_MANAGE_RESOURCES)

    updated = db.update_resource(resource_id, updates)
    audit(request, db, ACTION_RESOURCE_EDITED, "resource", resource_id, fields=sorted(updates))
    return {"updated": True, "resource": updated}


@router.delete("/resources/{resource_id}")
@require(CAP_MANAGE_RESOURCES)
def delete_resource(request: Request, resource_id: str, db: DatabaseAdapter = Depends(get_db)):
    resource = _load_resource(db, resource_id)
    ensure_in_scope(
        curation_scope(request, db),
        category_subspecialty(db, resource.get("category_id"), strict=False),
        CAP_MANAGE_RESOURCES,
    )

    db.delete_resource(resource_id)
    audit(request, db, ACTION_RESOURCE_DELETED, "resource", resource_id, title=resource.get("title"))
    logger.info(f"Resource {resource_id} deleted by {get_current_user(request).user_id}")
    return {"deleted": True, "resource_id": resource_id}


# ============================================================================
# Categories
# ============================================================================

def _load_category(db: DatabaseAdapter, category_id: str) -> dict:
    category = db.get_category(category_id)
    if not category:
        not_found("Category")
    return category


@router.post("/categories", status_code=status.HTTP_201_CREATED)
@require(CAP_MANAGE_CATEGORIES)
def create_category(request: Request, body: CategoryCreate, db: DatabaseAdapter = Depends(get_db)):
    """
    Create a category, or a subcategory under a parent of the same
    subspecialty. New categories go to the end of their siblings.
    """
    ensure_in_scope(curation_scope(request, db), body.subspecialty_id, CAP_MANAGE_CATEGORIES)

    if body.parent_category_id:
        parent = _load_category(db, body.parent_category_id)
        if parent.get("subspecialty_id") != body.subspecialty_id or parent.get("parent_category_id"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error": "invalid_parent",
                    "message": "Parent must be a top-level category of the same subspecialty",
                },
            )

    siblings = db.list_sibling_categories(body.subspecialty_id, body.parent_category_id)
    category = db.create_category({
        "name": sanitize_input(body.name, max_length=200),
        "subspecialty_id": body.subspecialty_id,
        "parent_category_id": body.parent_category_id,
        "order": len(siblings),
    })
    category_id = category.get("id") if category else None

    audit(request, db, ACTION_CATEGORY_CREATED, "category", category_id, name=body.name)
    return {"created": True, "category": category}


@router.patch("/categories/{category_id}")
@require(CAP_MANAGE_CATEGORIES)
def rename_category(request: Request, category_id: str, body: CategoryUpdate, db: DatabaseAdapter = Depends(get_db)):
    category = _load_category(db, category_id)
    ensure_in_scope(curation_scope(request, db), category.get("subspecialty_id"), CAP_MANAGE_CATEGORIES)

    updated = db.update_category(category_id, {"name": sanitize_input(body.name, max_length=200)})
    audit(request, db, ACTION_CATEGORY_EDITED, "category", category_id, previous_name=category.get("name"))
    return {"updated": True, "category": updated}


@router.delete("/categories/{category_id}")
@require(CAP_MANAGE_CATEGORIES)
def delete_category(request: Request, category_id: str, db: DatabaseAdapter = Depends(get_db)):
    category = _load_category(db, category_id)
    ensure_in_scope(curation_scope(request, db), category.get("subspecialty_id"), CAP_MANAGE_CATEGORIES)

    db.delete_category(category_id)
    audit(request, db, ACTION_CATEGORY_DELETED, "category", category_id, name=category.get("name"))
    return {"deleted": True, "category_id": category_id}


@router.post("/categories/reorder")
@require(CAP_MANAGE_CATEGORIES)
def reorder_categories(request: Request, body: CategoryReorderRequest, db: DatabaseAdapter = Depends(get_db)):
    """
    Move a category among its siblings by a drag-and-drop drop.

    Indices refer to the siblings in their current order; a drop that
    leaves the order unchanged writes nothing.
    """
    ensure_in_scope(curation_scope(request, db), body.subspecialty_id, CAP_MANAGE_CATEGORIES)

    siblings = db.list_sibling_categories(body.subspecialty_id, body.parent_category_id)
    if body.source_index >= len(siblings) or body.target_index >= len(siblings):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_reorder", "message": "Index out of range"},
        )

    destination = drop_index(body.source_index, body.target_index, body.position)
    if destination is None:
        return {"categories": siblings, "moved": False}

    reordered = reorder_with_display_order(siblings, body.source_index, destination, field="order")
    db.save_category_order(reordered)

    moved_id = reordered[destination].get("id")
    audit(request, db, ACTION_CATEGORY_REORDERED, "category", moved_id, to_index=destination)
    return {"categories": reordered, "moved": True}
