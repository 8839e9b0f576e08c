"""
Company directory per subspecialty, their rep contacts, and the
Contact Rep inquiries users have sent them.

A company listed here is what makes "Contact Rep" show up on resources
of that subspecialty (see core.visibility.companies).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from adapters.db import DatabaseAdapter
from api.admin.common import audit, check_uuid, curation_scope, ensure_in_scope, not_found
from api.deps import get_db
from api.guards import require
from core.audit import ACTION_COMPANY_CREATED, ACTION_COMPANY_DELETED, ACTION_CONTACT_ADDED, ACTION_CONTACT_REMOVED
from core.rbac import CAP_MANAGE_COMPANIES, CAP_VIEW_INQUIRIES
from core.validators import sanitize_input, validate_email
from core.visibility import normalize_company_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin", "companies"])

CONTACTS_KEY = "subspecialty_company_contacts"


class CompanyCreate(BaseModel):
    subspecialty_id: str
    company_name: str = Field(..., min_length=1, max_length=200)

    @field_validator("subspecialty_id")
    @classmethod
    def validate_subspecialty_id(cls, v):
        return check_uuid(v)

    @field_validator("company_name")
    @classmethod
    def validate_company_name(cls, v):
        if not normalize_company_name(v):
            raise ValueError("company_name cannot be blank")
        return sanitize_input(v, max_length=200)


class ContactCreate(BaseModel):
    email: str
    name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def validate_contact_email(cls, v):
        result = validate_email(v.strip() if isinstance(v, str) else v)
        if not result.valid:
            raise ValueError(result.error)
        return v.strip().lower()


def _summary(row: dict) -> dict:
    contacts = row.get(CONTACTS_KEY) or []
    return {
        "id": row.get("id"),
        "subspecialty_id": row.get("subspecialty_id"),
        "company_name": row.get("company_name"),
        "created_at": row.get("created_at"),
        "contacts": contacts,
        "contact_count": len(contacts),
        "is_active": bool(normalize_company_name(row.get("company_name"))),
    }


def _load_company(request: Request, db: DatabaseAdapter, company_id: str) -> dict:
    company = db.get_company(company_id)
    if not company:
        not_found("Company")
    ensure_in_scope(curation_scope(request, db), company.get("subspecialty_id"), CAP_MANAGE_COMPANIES)
    return company


# ============================================================================
# Companies
# ============================================================================

@router.get("/companies")
@require(CAP_MANAGE_COMPANIES)
def list_companies(request: Request, db: DatabaseAdapter = Depends(get_db)):
    companies = [_summary(row) for row in db.list_companies(curation_scope(request, db))]
    return {"companies": companies, "count": len(companies)}


@router.post("/companies", status_code=status.HTTP_201_CREATED)
@require(CAP_MANAGE_COMPANIES)
def create_company(request: Request, body: CompanyCreate, db: DatabaseAdapter = Depends(get_db)):
    """
    Register a company for a subspecialty.

    Names are compared the way Contact Rep compares them (trimmed,
    case-insensitive), so "Arthrex" and " arthrex " are the same company.
    """
    ensure_in_scope(curation_scope(request, db), body.subspecialty_id, CAP_MANAGE_COMPANIES)

    normalized = normalize_company_name(body.company_name)
    existing = db.list_companies([body.subspecialty_id])
    if any(normalize_company_name(row.get("company_name")) == normalized for row in existing):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "duplicate_company", "company_name": body.company_name},
        )

    company = db.create_company(body.subspecialty_id, body.company_name)
    company_id = company.get("id") if company else None
    audit(
        request, db, ACTION_COMPANY_CREATED, "company", company_id,
        company_name=body.company_name, subspecialty_id=body.subspecialty_id,
    )
    return {"created": True, "company": company}


@router.delete("/companies/{company_id}")
@require(CAP_MANAGE_COMPANIES)
def delete_company(request: Request, company_id: str, db: DatabaseAdapter = Depends(get_db)):
    company = _load_company(request, db, company_id)
    db.delete_company(company_id)
    audit(request, db, ACTION_COMPANY_DELETED, "company", company_id, company_name=company.get("company_name"))
    logger.info(f"Company {company_id} ({company.get('company_name')}) deleted")
    return {"deleted": True, "company_id": company_id}


# ============================================================================
# Contacts
# ============================================================================

@router.post("/companies/{company_id}/contacts", status_code=status.HTTP_201_CREATED)
@require(CAP_MANAGE_COMPANIES)
def add_contact(request: Request, company_id: str, body: ContactCreate, db: DatabaseAdapter = Depends(get_db)):
    _load_company(request, db, company_id)
    contact = db.add_company_contact({
        "subspecialty_company_id": company_id,
        "email": body.email,
        "name": sanitize_input(body.name, max_length=200) or None,
        "phone": sanitize_input(body.phone, max_length=50) or None,
    })
    audit(request, db, ACTION_CONTACT_ADDED, "company", company_id, email=body.email)
    return {"created": True, "contact": contact}


@router.delete("/companies/{company_id}/contacts/{contact_id}")
@require(CAP_MANAGE_COMPANIES)
def remove_contact(request: Request, company_id: str, contact_id: str, db: DatabaseAdapter = Depends(get_db)):
    _load_company(request, db, company_id)
    db.delete_company_contact(company_id, contact_id)
    audit(request, db, ACTION_CONTACT_REMOVED, "company", company_id, contact_id=contact_id)
    return {"deleted": True, "contact_id": contact_id}


# ============================================================================
# Inquiries
# ============================================================================

@router.get("/inquiries")
@require(CAP_VIEW_INQUIRIES)
def list_inquiries(request: Request, db: DatabaseAdapter = Depends(get_db)):
    """Contact Rep inquiries sent to companies in the admin's scope, newest first."""
    allowed = curation_scope(request, db)
    if allowed is None:
        inquiries = db.list_rep_inquiries()
    else:
        company_ids = [row.get("id") for row in db.list_companies(allowed) if row.get("id")]
        inquiries = db.list_rep_inquiries(company_ids)
    return {"inquiries": inquiries, "count": len(inquiries)}
