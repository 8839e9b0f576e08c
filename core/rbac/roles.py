"""
Role definitions and role-to-capability mappings.

Roles are the administrative tiers stored in `profiles.role`. They are a
separate axis from user type, which gates interactive features.
"""

from typing import Any, Dict, Set

from core.profiles import Role
from .capabilities import (
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
)


# ============================================================================
# Role Constants
# ============================================================================

ROLE_USER = Role.USER.value
"""Regular end user, browse only."""

ROLE_ADMIN = Role.ADMIN.value
"""Legacy admin role, treated as a subspecialty admin."""

ROLE_SUBSPECIALTY_ADMIN = Role.SUBSPECIALTY_ADMIN.value
"""Curates the catalog of one subspecialty."""

ROLE_SPECIALTY_ADMIN = Role.SPECIALTY_ADMIN.value
"""Curates every subspecialty of one specialty and appoints subspecialty admins."""

ROLE_SUPER_ADMIN = Role.SUPER_ADMIN.value
"""Unrestricted."""

ALL_ROLES = frozenset(role.value for role in Role)

# Ordered lowest to highest
ROLE_RANK: Dict[str, int] = {
    ROLE_USER: 0,
    ROLE_ADMIN: 1,
    ROLE_SUBSPECIALTY_ADMIN: 1,
    ROLE_SPECIALTY_ADMIN: 2,
    ROLE_SUPER_ADMIN: 3,
}


# ============================================================================
# Role-to-Capability Mapping
# ============================================================================

_CURATOR_CAPABILITIES = {
    CAP_BROWSE_CATALOG,
    CAP_MANAGE_RESOURCES,
    CAP_MANAGE_CATEGORIES,
    CAP_REVIEW_SUGGESTIONS,
    CAP_VIEW_ANALYTICS,
    CAP_MANAGE_COMPANIES,
    CAP_VIEW_INQUIRIES,
}

ROLE_CAPABILITIES: Dict[str, Set[str]] = {
    ROLE_USER: {
        CAP_BROWSE_CATALOG,
    },

    # Same capabilities, scope differs (see core.rbac.scope)
    ROLE_ADMIN: set(_CURATOR_CAPABILITIES),
    ROLE_SUBSPECIALTY_ADMIN: set(_CURATOR_CAPABILITIES),

    ROLE_SPECIALTY_ADMIN: _CURATOR_CAPABILITIES | {
        CAP_MANAGE_ROLES,
    },

    ROLE_SUPER_ADMIN: set(ALL_CAPABILITIES),
}


# ============================================================================
# Role Metadata
# ============================================================================

ROLE_DESCRIPTIONS: Dict[str, str] = {
    ROLE_USER: "End user with catalog browse access",
    ROLE_ADMIN: "Legacy admin, curates one subspecialty",
    ROLE_SUBSPECIALTY_ADMIN: "Curates resources and categories of one subspecialty",
    ROLE_SPECIALTY_ADMIN: "Curates all subspecialties of a specialty and appoints subspecialty admins",
    ROLE_SUPER_ADMIN: "Full access, including debug and all role assignments",
}


def get_role_description(role: str) -> str:
    """Human-readable description of a role, or empty string if unknown."""
    return ROLE_DESCRIPTIONS.get(role.lower(), "")


def list_all_roles() -> Dict[str, Dict[str, Any]]:
    """
    List all roles with their capabilities and descriptions.

    Returns:
        Dictionary mapping role names to their metadata
    """
    return {
        role: {
            "description": ROLE_DESCRIPTIONS.get(role, ""),
            "capabilities": sorted(ROLE_CAPABILITIES.get(role, set())),
            "rank": ROLE_RANK[role],
        }
        for role in ALL_ROLES
    }
