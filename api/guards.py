"""
API endpoint guards for capability-based authorization.

Provides decorators to protect FastAPI routes based on RBAC capabilities
and on the caller's user type. Decorated endpoints must take a
`request: Request` parameter.
"""

import inspect
import logging
from functools import wraps
from typing import Any, Callable, Optional, Sequence

from fastapi import HTTPException, Request, status

from api.middleware.roles import RequestContext, get_current_user
from core.metrics import VisibilityMetrics, audit_rbac_denial, record_rbac_check
from core.rbac import has_capability
from core.visibility import can_interact

logger = logging.getLogger(__name__)


# ============================================================================
# Guard Decorators
# ============================================================================

def require(capability: str) -> Callable:
    """
    Decorator to require a specific capability for a FastAPI route.

    Args:
        capability: Capability constant (e.g., CAP_MANAGE_RESOURCES)

    Raises:
        HTTPException: 403 if user lacks required capability

    Examples:
        >>> @router.get("/debug/metrics")
        >>> @require(CAP_VIEW_DEBUG)
        >>> def debug_metrics(request: Request):
        >>>     return get_all_metrics()
    """
    def check(ctx: RequestContext, request: Request):
        allowed = any(has_capability(role, capability) for role in ctx.roles)
        route = str(request.url.path)

        record_rbac_check(allowed=allowed, capability=capability, roles=ctx.roles, route=route)

        if not allowed:
            audit_rbac_denial(
                capability=capability,
                user_id=ctx.user_id,
                roles=ctx.roles,
                route=route,
                method=request.method,
                metadata={"is_authenticated": ctx.is_authenticated},
            )
            _deny(ctx, f"Capability '{capability}' required", capability=capability)

        logger.debug(f"Access granted: user_id={ctx.user_id}, roles={ctx.roles}, capability={capability}")

    return _guard(check, f"require({capability})")


def require_any(*capabilities: str) -> Callable:
    """
    Decorator to require ANY of the specified capabilities.

    Raises:
        HTTPException: 403 if user lacks all required capabilities
    """
    def check(ctx: RequestContext, request: Request):
        allowed = any(
            has_capability(role, cap)
            for role in ctx.roles
            for cap in capabilities
        )
        if not allowed:
            _deny(ctx, f"One of {capabilities} capabilities required", capabilities=capabilities)

    return _guard(check, f"require_any{capabilities}")


def require_all(*capabilities: str) -> Callable:
    """
    Decorator to require ALL of the specified capabilities.

    Raises:
        HTTPException: 403 naming the first missing capability
    """
    def check(ctx: RequestContext, request: Request):
        for cap in capabilities:
            if not any(has_capability(role, cap) for role in ctx.roles):
                _deny(
                    ctx,
                    f"All of {capabilities} capabilities required",
                    capabilities=capabilities,
                    missing=cap,
                )

    return _guard(check, f"require_all{capabilities}")


def require_interaction(func: Callable) -> Callable:
    """
    Decorator allowing only users whose user type may interact
    (favorites, notes, upcoming cases, ratings).

    Raises:
        HTTPException: 403 for anonymous users and non-interactive user types
    """
    def check(ctx: RequestContext, request: Request):
        if not ctx.is_authenticated or not can_interact(ctx.profile):
            user_type = ctx.profile.user_type.value if ctx.profile.user_type else None
            VisibilityMetrics.record_interaction_denied(user_type)
            _deny(ctx, "Your account type cannot use this feature", reason="interaction_not_allowed")

    return _guard(check, "require_interaction")(func)


# ============================================================================
# Helper Functions
# ============================================================================

def _deny(
    ctx: RequestContext,
    message: str,
    capability: Optional[str] = None,
    capabilities: Sequence[str] = (),
    missing: Optional[str] = None,
    reason: Optional[str] = None,
):
    logger.warning(f"Access denied: user_id={ctx.user_id}, roles={ctx.roles}, {message}")

    detail: dict = {"error": "forbidden", "message": message}
    if capability:
        detail["capability"] = capability
    if capabilities:
        detail["capabilities"] = list(capabilities)
    if missing:
        detail["missing"] = missing
    if reason:
        detail["reason"] = reason

    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _guard(check: Callable[[RequestContext, Request], None], name: str) -> Callable:
    """Wrap an endpoint so check(ctx, request) runs before it."""
    def decorator(func: Callable) -> Callable:
        def run_check(args: tuple, kwargs: dict):
            request = _extract_request_from_args(args, kwargs)
            if request is None:
                logger.error(f"@{name} decorator requires Request parameter")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Internal server error: Request not found"
                )

            try:
                ctx = get_current_user(request)
            except AttributeError:
                logger.error("Request context not available. Is RoleResolutionMiddleware configured?")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Internal server error: User context not available"
                )

            check(ctx, request)

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                run_check(args, kwargs)
                return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            run_check(args, kwargs)
            return func(*args, **kwargs)
        return sync_wrapper

    return decorator


def _extract_request_from_args(args: tuple, kwargs: dict) -> Optional[Request]:
    """Find the Request among endpoint arguments."""
    if 'request' in kwargs:
        return kwargs['request']

    for arg in args:
        if isinstance(arg, Request):
            return arg

    return None
