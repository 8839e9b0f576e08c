"""
Role management API endpoints.

Admin-only endpoints for granting and revoking admin tiers, protected by
the MANAGE_ROLES capability and scoped by can_assign_role.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from adapters.db import DatabaseAdapter
from api.admin.common import audit_metadata, check_uuid, forbid
from api.deps import get_db
from api.guards import require
from api.middleware.roles import get_current_user
from core.audit import ACTION_ROLE_ASSIGNED, ACTION_ROLE_REVOKED, log_admin_action
from core.profiles import Role, UserProfile
from core.rbac import ASSIGNABLE_ROLES, CAP_MANAGE_ROLES, can_assign_role, list_all_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/roles", tags=["admin", "roles"])

_ASSIGNABLE = sorted(role.value for role in ASSIGNABLE_ROLES)


# ============================================================================
# Request/Response Models
# ============================================================================

class RoleAssignmentRequest(BaseModel):
    """Request to make a user an admin."""
    user_id: str = Field(..., description="User UUID to assign role to")
    role: str = Field(..., description="Admin role to assign")
    specialty_id: Optional[str] = Field(None, description="Specialty the admin curates")
    subspecialty_id: Optional[str] = Field(None, description="Subspecialty the admin curates")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "123e4567-e89b-12d3-a456-426614174000",
            "role": "subspecialty_admin",
            "specialty_id": "9b2f3c1e-0d7a-4f55-8a3e-2c4b6d8e0f12",
            "subspecialty_id": "4c5d6e7f-8a9b-4c0d-9e1f-2a3b4c5d6e7f",
        }
    })

    @field_validator("role")
    @classmethod
    def validate_role_key(cls, v):
        normalized = v.strip().lower()
        if normalized not in _ASSIGNABLE:
            raise ValueError(f"Invalid role: {v}. Must be one of: {', '.join(_ASSIGNABLE)}")
        return normalized

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        if not v:
            raise ValueError("user_id is required")
        return check_uuid(v)

    @field_validator("specialty_id", "subspecialty_id")
    @classmethod
    def validate_optional_ids(cls, v):
        return check_uuid(v)


class RoleAssignmentResponse(BaseModel):
    user_id: str
    role: str
    assigned: bool
    message: str


class RoleRevocationRequest(BaseModel):
    """Request to return an admin to the `user` role."""
    user_id: str = Field(..., description="User UUID to revoke role from")

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        if not v:
            raise ValueError("user_id is required")
        return check_uuid(v)


class RoleRevocationResponse(BaseModel):
    user_id: str
    previous_role: str
    revoked: bool
    message: str


class UserRoleResponse(BaseModel):
    user_id: str
    role: str
    specialty_id: Optional[str] = None
    subspecialty_id: Optional[str] = None


# ============================================================================
# Helpers
# ============================================================================

def _load_target(db: DatabaseAdapter, user_id: str) -> UserProfile:
    row = db.get_profile(user_id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": "User not found"},
        )
    return UserProfile.from_row(row)


def _forbid(message: str):
    forbid(CAP_MANAGE_ROLES, message)


# ============================================================================
# Endpoints
# ============================================================================

@router.get("")
@require(CAP_MANAGE_ROLES)
async def list_roles(request: Request):
    """Roles with their capabilities and descriptions."""
    return {"roles": list_all_roles()}


@router.post("/assign", response_model=RoleAssignmentResponse)
@require(CAP_MANAGE_ROLES)
def assign_role(request: Request, assignment: RoleAssignmentRequest, db: DatabaseAdapter = Depends(get_db)):
    """
    Assign an admin role to a user.

    **Required Capability**: MANAGE_ROLES

    Super admins may assign any admin role. Specialty admins may only
    appoint subspecialty admins inside their own specialty, never move a
    user across specialties, and never touch an admin they could not
    have appointed. Nobody changes their own role. Assigning the role a
    user already has is a no-op.
    """
    ctx = get_current_user(request)
    if assignment.user_id == ctx.user_id:
        _forbid("You may not change your own role")

    target = _load_target(db, assignment.user_id)

    # Only super admins may move a user into another specialty
    if ctx.profile.role == Role.SUPER_ADMIN:
        target_specialty = assignment.specialty_id or target.specialty_id
    elif assignment.specialty_id and assignment.specialty_id != target.specialty_id:
        logger.warning(
            f"Role assignment denied: actor={ctx.user_id} tried to move {assignment.user_id} "
            f"into specialty {assignment.specialty_id}"
        )
        _forbid("You may not change a user's specialty")
    else:
        target_specialty = target.specialty_id

    if target.role != Role.USER and not can_assign_role(ctx.profile, target.role, target.specialty_id):
        logger.warning(
            f"Role assignment denied: actor={ctx.user_id} target_role={target.role.value}"
        )
        _forbid(f"You may not change the role of a '{target.role.value}'")

    if not can_assign_role(ctx.profile, assignment.role, target_specialty):
        logger.warning(
            f"Role assignment denied: actor={ctx.user_id} role={assignment.role} "
            f"specialty={target_specialty}"
        )
        _forbid(f"You may not assign '{assignment.role}' here")

    target_subspecialty = assignment.subspecialty_id or target.subspecialty_id
    if assignment.subspecialty_id and target_specialty:
        if assignment.subspecialty_id not in db.subspecialty_ids_for(target_specialty):
            logger.warning(
                f"Role assignment denied: subspecialty {assignment.subspecialty_id} "
                f"is not in specialty {target_specialty}"
            )
            _forbid("Subspecialty does not belong to the target specialty")

    if (
        target.role.value == assignment.role
        and target_specialty == target.specialty_id
        and target_subspecialty == target.subspecialty_id
    ):
        return RoleAssignmentResponse(
            user_id=assignment.user_id,
            role=assignment.role,
            assigned=False,
            message=f"User already has role '{assignment.role}'",
        )

    db.update_profile_role(
        assignment.user_id,
        assignment.role,
        specialty_id=assignment.specialty_id,
        subspecialty_id=assignment.subspecialty_id,
    )

    log_admin_action(
        db,
        ctx.user_id,
        ACTION_ROLE_ASSIGNED,
        target_type="profile",
        target_id=assignment.user_id,
        metadata=audit_metadata(request, previous_role=target.role.value, new_role=assignment.role),
    )
    logger.info(f"Assigned role {assignment.role} to user {assignment.user_id} by {ctx.user_id}")

    return RoleAssignmentResponse(
        user_id=assignment.user_id,
        role=assignment.role,
        assigned=True,
        message=f"Role '{assignment.role}' assigned",
    )


@router.post("/revoke", response_model=RoleRevocationResponse)
@require(CAP_MANAGE_ROLES)
def revoke_role(request: Request, revocation: RoleRevocationRequest, db: DatabaseAdapter = Depends(get_db)):
    """
    Return an admin to the `user` role.

    **Required Capability**: MANAGE_ROLES

    The actor must be allowed to assign the role being removed. Revoking
    from a plain user is a no-op.
    """
    ctx = get_current_user(request)
    target = _load_target(db, revocation.user_id)

    if target.role == Role.USER:
        return RoleRevocationResponse(
            user_id=revocation.user_id,
            previous_role=target.role.value,
            revoked=False,
            message="User has no admin role",
        )

    if revocation.user_id == ctx.user_id:
        _forbid("You may not revoke your own role")

    if not can_assign_role(ctx.profile, target.role, target.specialty_id):
        logger.warning(f"Role revocation denied: actor={ctx.user_id} target_role={target.role.value}")
        _forbid(f"You may not revoke '{target.role.value}'")

    db.update_profile_role(revocation.user_id, Role.USER.value)

    log_admin_action(
        db,
        ctx.user_id,
        ACTION_ROLE_REVOKED,
        target_type="profile",
        target_id=revocation.user_id,
        metadata=audit_metadata(request, previous_role=target.role.value),
    )
    logger.info(f"Revoked role {target.role.value} from user {revocation.user_id} by {ctx.user_id}")

    return RoleRevocationResponse(
        user_id=revocation.user_id,
        previous_role=target.role.value,
        revoked=True,
        message=f"Role '{target.role.value}' revoked",
    )


@router.get("/{user_id}", response_model=UserRoleResponse)
@require(CAP_MANAGE_ROLES)
def get_user_role(request: Request, user_id: str, db: DatabaseAdapter = Depends(get_db)):
    """Current admin tier of a user."""
    target = _load_target(db, user_id)
    return UserRoleResponse(
        user_id=user_id,
        role=target.role.value,
        specialty_id=target.specialty_id,
        subspecialty_id=target.subspecialty_id,
    )
