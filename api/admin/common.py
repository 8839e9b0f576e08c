"""
Shared helpers for the admin endpoints.

Curation scope checks, audit metadata and the error shapes the admin
routers raise.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, status

from adapters.db import DatabaseAdapter
from api.middleware.roles import get_current_user
from core.audit import log_admin_action
from core.rbac import admin_scope
from core.validators import validate_uuid

logger = logging.getLogger(__name__)


def forbid(capability: str, message: str):
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"error": "forbidden", "capability": capability, "message": message},
    )


def not_found(what: str):
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": f"{what} not found"},
    )


def check_uuid(v: Optional[str]) -> Optional[str]:
    """Pydantic validator body for optional UUID fields."""
    result = validate_uuid(v)
    if not result.valid:
        raise ValueError(result.error)
    return v or None


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Curation Scope
# ============================================================================

def curation_scope(request: Request, db: DatabaseAdapter) -> Optional[List[str]]:
    """Subspecialty ids the caller curates; None for no restriction."""
    return admin_scope(get_current_user(request).profile, db.subspecialty_ids_for)


def ensure_in_scope(allowed: Optional[List[str]], subspecialty_id: Optional[str], capability: str):
    """403 unless subspecialty_id is inside the caller's curation scope."""
    if allowed is None:
        return
    if not subspecialty_id or subspecialty_id not in allowed:
        logger.warning(f"Curation outside scope: subspecialty={subspecialty_id} allowed={allowed}")
        forbid(capability, "Outside your curation scope")


def category_subspecialty(db: DatabaseAdapter, category_id: Optional[str], strict: bool = True) -> Optional[str]:
    """Subspecialty a category belongs to. An unknown category is a 400 when strict, else None."""
    if not category_id:
        return None
    category = db.get_category(category_id)
    if not category:
        if not strict:
            return None
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_category", "message": "Category not found"},
        )
    return category.get("subspecialty_id")


# ============================================================================
# Audit
# ============================================================================

def audit_metadata(request: Request, **extra: Any) -> Dict[str, Any]:
    ctx = get_current_user(request)
    return {
        "admin_role": ctx.profile.role.value,
        "request_ip": request.client.host if request.client else None,
        **extra,
    }


def audit(
    request: Request,
    db: DatabaseAdapter,
    action_type: str,
    target_type: str,
    target_id: Optional[str],
    **extra: Any,
) -> bool:
    return log_admin_action(
        db,
        get_current_user(request).user_id,
        action_type,
        target_type=target_type,
        target_id=target_id,
        metadata=audit_metadata(request, **extra),
    )
