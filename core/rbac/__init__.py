"""
Role-Based Access Control (RBAC) module.

Provides admin role definitions, capability constants, scoping rules for
admin tiers, and role resolution from Supabase JWTs.
"""

from .roles import (
    ROLE_USER,
    ROLE_ADMIN,
    ROLE_SUBSPECIALTY_ADMIN,
    ROLE_SPECIALTY_ADMIN,
    ROLE_SUPER_ADMIN,
    ALL_ROLES,
    ROLE_CAPABILITIES,
    ROLE_RANK,
    list_all_roles,
)

from .capabilities import (
    # Capability constants
    CAP_BROWSE_CATALOG,
    CAP_MANAGE_RESOURCES,
    CAP_MANAGE_CATEGORIES,
    CAP_REVIEW_SUGGESTIONS,
    CAP_VIEW_ANALYTICS,
    CAP_MANAGE_COMPANIES,
    CAP_VIEW_INQUIRIES,
    CAP_MANAGE_ROLES,
    CAP_VIEW_DEBUG,
    ALL_CAPABILITIES,
    # Functions
    has_capability,
    get_role_capabilities,
    validate_role,
    has_any_capability,
    has_all_capabilities,
    get_missing_capabilities,
)

from .scope import (
    ASSIGNABLE_ROLES,
    admin_scope,
    can_assign_role,
    can_message,
)

from .resolve import (
    ResolvedUser,
    RoleResolver,
    configure_resolver,
    get_resolver,
    reset_resolver,
)

__all__ = [
    # Roles
    "ROLE_USER",
    "ROLE_ADMIN",
    "ROLE_SUBSPECIALTY_ADMIN",
    "ROLE_SPECIALTY_ADMIN",
    "ROLE_SUPER_ADMIN",
    "ALL_ROLES",
    "ROLE_CAPABILITIES",
    "ROLE_RANK",
    "list_all_roles",
    # Capabilities
    "CAP_BROWSE_CATALOG",
    "CAP_MANAGE_RESOURCES",
    "CAP_MANAGE_CATEGORIES",
    "CAP_REVIEW_SUGGESTIONS",
    "CAP_VIEW_ANALYTICS",
    "CAP_MANAGE_COMPANIES",
    "CAP_VIEW_INQUIRIES",
    "CAP_MANAGE_ROLES",
    "CAP_VIEW_DEBUG",
    "ALL_CAPABILITIES",
    # Capability Functions
    "has_capability",
    "get_role_capabilities",
    "validate_role",
    "has_any_capability",
    "has_all_capabilities",
    "get_missing_capabilities",
    # Admin scope
    "ASSIGNABLE_ROLES",
    "admin_scope",
    "can_assign_role",
    "can_message",
    # Resolver
    "ResolvedUser",
    "RoleResolver",
    "configure_resolver",
    "get_resolver",
    "reset_resolver",
]
