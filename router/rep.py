# router/rep.py — "Contact Rep" inquiries

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from adapters.db import DatabaseAdapter
from api.deps import get_db, get_tracker
from api.middleware.roles import RequestContext, require_authenticated
from core.analytics import EVENT_SPONSORED_ENGAGEMENT, AnalyticsTracker
from core.validators import sanitize_input, validate_email, validate_uuid
from core.visibility import build_active_company_set, can_contact_rep, normalize_company_name
from feature_flags import get_feature_flag

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rep", tags=["rep"])


class RepInquiryRequest(BaseModel):
    resource_id: str
    user_name: str = Field(..., min_length=1, max_length=200)
    user_email: str
    user_country: Optional[str] = Field(None, max_length=100)
    user_city: Optional[str] = Field(None, max_length=100)
    user_state: Optional[str] = Field(None, max_length=100)
    user_phone: Optional[str] = Field(None, max_length=50)
    message: Optional[str] = Field(None, max_length=2000)

    @field_validator("resource_id")
    @classmethod
    def validate_resource_id(cls, v):
        result = validate_uuid(v)
        if not v or not result.valid:
            raise ValueError(result.error or "resource_id is required")
        return v

    @field_validator("user_email")
    @classmethod
    def validate_user_email(cls, v):
        result = validate_email(v)
        if not result.valid:
            raise ValueError(result.error)
        return v.strip()


def _conflict(message: str):
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": "contact_rep_unavailable", "message": message},
    )


@router.post("/inquiries", status_code=status.HTTP_201_CREATED)
def create_inquiry(
    request: Request,
    body: RepInquiryRequest,
    ctx: RequestContext = Depends(require_authenticated),
    db: DatabaseAdapter = Depends(get_db),
    tracker: AnalyticsTracker = Depends(get_tracker),
):
    """
    Send a product inquiry to the company behind a resource.

    Only allowed when the resource names a company and product and that
    company has a contact in the subspecialty of the resource's category.
    """
    resource = db.get_resource(body.resource_id)
    if not resource:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": "Resource not found"},
        )

    if not get_feature_flag("contact_rep.enabled"):
        _conflict("Contact Rep is disabled")

    category = db.get_category(resource["category_id"]) if resource.get("category_id") else None
    subspecialty_id = category.get("subspecialty_id") if category else None
    if not subspecialty_id:
        _conflict("No representative is available for this resource")

    companies = [
        row for row in db.get_active_companies(subspecialty_id)
        if row.get("subspecialty_id") == subspecialty_id
    ]
    if not can_contact_rep(resource, build_active_company_set(companies)):
        _conflict("No representative is available for this resource")

    company_name = normalize_company_name(resource.get("company_name"))
    company = next(
        (
            row for row in companies
            if company_name in build_active_company_set([row])
        ),
        None,
    )

    inquiry = db.create_rep_inquiry({
        "user_id": ctx.user_id,
        "resource_id": body.resource_id,
        "subspecialty_company_id": company.get("id") if company else None,
        "product_name": resource.get("product_name"),
        "user_name": sanitize_input(body.user_name, max_length=200),
        "user_email": body.user_email,
        "user_country": sanitize_input(body.user_country, max_length=100) or None,
        "user_city": sanitize_input(body.user_city, max_length=100) or None,
        "user_state": sanitize_input(body.user_state, max_length=100) or None,
        "user_phone": sanitize_input(body.user_phone, max_length=50) or None,
        "message": sanitize_input(body.message, max_length=2000) or None,
    })

    tracker.track(ctx.profile, EVENT_SPONSORED_ENGAGEMENT, {
        "resource_id": body.resource_id,
        "company_name": resource.get("company_name"),
        "engagement_type": "contact_rep",
    })
    logger.info(f"Rep inquiry created for resource {body.resource_id} by user {ctx.user_id}")

    return {"created": True, "inquiry": inquiry}
