"""
FastAPI middleware for role resolution and request context population.

Verifies the Supabase JWT, loads the caller's profile, and attaches the
result to the request state for use in route handlers and guards.
"""

import logging
from typing import Callable, List, Optional

from fastapi import HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.profiles import UserProfile
from core.rbac.resolve import ResolvedUser, get_resolver

logger = logging.getLogger(__name__)


# ============================================================================
# Request State Extensions
# ============================================================================

class RequestContext:
    """
    Request context for user identity, profile and roles.

    Attached to request.state by the RoleResolutionMiddleware.
    """

    def __init__(self, user: ResolvedUser):
        self.user_id: Optional[str] = user.user_id
        self.email: Optional[str] = user.email
        self.profile: UserProfile = user.profile
        self.roles: List[str] = user.roles
        self.auth_method: str = user.auth_method
        self.is_authenticated: bool = user.is_authenticated
        self.metadata: dict = user.metadata

    def __repr__(self) -> str:
        return (
            f"RequestContext(user_id={self.user_id}, "
            f"roles={self.roles}, auth_method={self.auth_method})"
        )


def anonymous_context(error: Optional[str] = None) -> RequestContext:
    return RequestContext(ResolvedUser(
        user_id=None,
        email=None,
        profile=UserProfile.anonymous(),
        auth_method='anonymous',
        metadata={'error': error} if error else {},
    ))


# ============================================================================
# Middleware
# ============================================================================

class RoleResolutionMiddleware(BaseHTTPMiddleware):
    """
    Middleware to resolve user identity and profile from the Authorization
    header. Missing or invalid tokens resolve to an anonymous `user`.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        try:
            authorization = request.headers.get("Authorization")
            # Profile loading hits the database; keep it off the event loop
            user = await run_in_threadpool(get_resolver().resolve_from_request, authorization_header=authorization)
            request.state.ctx = RequestContext(user)

            logger.debug(
                f"Resolved user for {request.method} {request.url.path}: "
                f"user_id={user.user_id}, roles={user.roles}, method={user.auth_method}"
            )

        except Exception as e:
            logger.error(f"Error resolving user roles: {e}", exc_info=True)
            request.state.ctx = anonymous_context(str(e))

        # Exceptions from handlers propagate
        return await call_next(request)


# ============================================================================
# Helper Functions
# ============================================================================

def get_current_user(request: Request) -> RequestContext:
    """
    Get current user context from request.

    Raises:
        AttributeError: If middleware has not been applied
    """
    if not hasattr(request.state, "ctx"):
        raise AttributeError(
            "Request state does not have 'ctx' attribute. "
            "Ensure RoleResolutionMiddleware is configured."
        )

    return request.state.ctx


def require_authenticated(request: Request) -> RequestContext:
    """
    FastAPI dependency requiring an authenticated caller.

    Raises:
        HTTPException: 401 for anonymous callers
    """
    ctx = get_current_user(request)

    if not ctx.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Authentication required"},
        )

    return ctx


def get_user_id(request: Request) -> Optional[str]:
    return get_current_user(request).user_id


def get_user_roles(request: Request) -> List[str]:
    return get_current_user(request).roles
