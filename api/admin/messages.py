"""
Direct messages between admins.

Who may write to whom follows core.rbac.scope.can_message; reading is
limited to conversations the caller is part of.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from adapters.db import DatabaseAdapter
from api.admin.common import check_uuid, not_found
from api.deps import get_db
from api.middleware.roles import RequestContext, require_authenticated
from core.profiles import UserProfile
from core.rbac import can_message
from core.validators import sanitize_input, validate_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/messages", tags=["admin", "messages"])


class MessageCreate(BaseModel):
    recipient_id: str
    body: str = Field(..., min_length=1, max_length=5000)

    @field_validator("recipient_id")
    @classmethod
    def validate_recipient_id(cls, v):
        if not v:
            raise ValueError("recipient_id is required")
        return check_uuid(v)


@router.post("", status_code=status.HTTP_201_CREATED)
def send_message(
    body: MessageCreate,
    ctx: RequestContext = Depends(require_authenticated),
    db: DatabaseAdapter = Depends(get_db),
):
    row = db.get_profile(body.recipient_id)
    if not row:
        not_found("Recipient")
    recipient = UserProfile.from_row(row)

    if not can_message(ctx.profile, recipient):
        logger.warning(f"Message blocked: {ctx.user_id} ({ctx.profile.role.value}) -> {recipient.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": "You cannot message this user"},
        )

    text = sanitize_input(body.body, max_length=5000)
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "empty_message", "message": "Message body is empty"},
        )

    message = db.insert_admin_message({
        "sender_id": ctx.user_id,
        "recipient_id": recipient.id,
        "body": text,
    })
    return {"sent": True, "message": message}


@router.get("/{other_id}")
def get_conversation(
    other_id: str,
    ctx: RequestContext = Depends(require_authenticated),
    db: DatabaseAdapter = Depends(get_db),
):
    """Both directions of the caller's conversation with other_id, oldest first."""
    if not validate_uuid(other_id).valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_id", "message": "other_id must be a UUID"},
        )
    messages = db.list_admin_messages(ctx.user_id, other_id)
    return {"messages": messages, "count": len(messages)}
