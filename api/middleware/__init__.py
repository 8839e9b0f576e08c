"""API middleware modules."""

from .roles import (
    RoleResolutionMiddleware,
    RequestContext,
    anonymous_context,
    get_current_user,
    require_authenticated,
    get_user_id,
    get_user_roles,
)

from .limits import (
    get_client_identifier,
    create_rate_limit_response,
    rate_limit_exception_handler,
)

__all__ = [
    "RoleResolutionMiddleware",
    "RequestContext",
    "anonymous_context",
    "get_current_user",
    "require_authenticated",
    "get_user_id",
    "get_user_roles",
    "get_client_identifier",
    "create_rate_limit_response",
    "rate_limit_exception_handler",
]
