"""
Visibility rules.

Scope resolution (which subspecialty a user's catalog is filtered by),
capability flags (interaction, admin), and Contact Rep gating.
"""

from .reference import (
    ReferenceLookup,
    InMemoryReferenceData,
)

from .scope import (
    ScopeResult,
    LOAD_ALL,
    GENERALIST,
    PODIATRY,
    FOOT_AND_ANKLE,
    ORTHOPEDIC_SPECIALTY_NAMES,
    resolve_scope,
)

from .interaction import (
    INTERACTIVE_USER_TYPES,
    ADMIN_ROLES,
    can_interact,
    is_admin,
    include_in_analytics,
)

from .companies import (
    build_active_company_set,
    build_active_company_index,
    is_company_active,
    can_contact_rep,
    normalize_company_name,
)

__all__ = [
    # Reference data
    "ReferenceLookup",
    "InMemoryReferenceData",
    # Scope
    "ScopeResult",
    "LOAD_ALL",
    "GENERALIST",
    "PODIATRY",
    "FOOT_AND_ANKLE",
    "ORTHOPEDIC_SPECIALTY_NAMES",
    "resolve_scope",
    # Flags
    "INTERACTIVE_USER_TYPES",
    "ADMIN_ROLES",
    "can_interact",
    "is_admin",
    "include_in_analytics",
    # Companies
    "build_active_company_set",
    "build_active_company_index",
    "is_company_active",
    "can_contact_rep",
    "normalize_company_name",
]
