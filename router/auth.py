# router/auth.py — auth attempt limits for sign-up, login and password reset

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from api.middleware.limits import get_client_identifier
from api.middleware.roles import RequestContext, require_authenticated
from core.limits import format_time_until_reset, get_limiter
from core.validators import validate_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class AttemptRequest(BaseModel):
    email: Optional[str] = None


def _action(action: str) -> str:
    action = action.upper()
    if action not in get_limiter().configs:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "unknown_action", "message": f"Unknown action: {action}"},
        )
    return action


def _identifier(request: Request, body: Optional[AttemptRequest]) -> str:
    email = body.email if body else None
    if email:
        result = validate_email(email)
        if not result.valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "invalid_email", "message": result.error},
            )
    return get_client_identifier(request, email)


@router.post("/attempts/{action}")
def record_attempt(
    request: Request,
    action: str,
    body: Optional[AttemptRequest] = None,
    mode: str = Query("enforce", pattern="^(enforce|check)$"),
):
    """
    Count an auth attempt, or only check how many remain (mode=check).

    Raises RateLimitExceeded (429) once the window is used up.
    """
    action = _action(action)
    identifier = _identifier(request, body)
    limiter = get_limiter()

    if mode == "check":
        result = limiter.check(action, identifier)
    else:
        result = limiter.enforce(action, identifier)

    retry_after = result.retry_after(limiter.clock())
    return {
        "action": action,
        "allowed": result.allowed,
        "remaining_attempts": result.remaining_attempts,
        "reset_in": format_time_until_reset(retry_after) if not result.allowed else None,
    }


@router.delete("/attempts/{action}")
def clear_attempts(request: Request, action: str, ctx: RequestContext = Depends(require_authenticated)):
    """
    Forget attempts after a successful sign-in.

    Only the signed-in caller's own email is cleared; a session without
    an email has nothing to clear.
    """
    action = _action(action)
    if not ctx.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_email", "message": "Session has no email"},
        )
    get_limiter().clear(action, get_client_identifier(request, ctx.email))
    logger.info(f"Cleared {action} attempts for user {ctx.user_id}")
    return {"action": action, "cleared": True}
