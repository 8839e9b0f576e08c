"""
Capability constants and authorization functions.

Defines catalog-management capabilities and provides functions to check
if a role has a specific capability.
"""

from typing import Set, List
import logging

logger = logging.getLogger(__name__)

# ============================================================================
# Capability Constants
# ============================================================================

CAP_BROWSE_CATALOG = "BROWSE_CATALOG"
"""Browse categories and resources within the user's scope."""

CAP_MANAGE_RESOURCES = "MANAGE_RESOURCES"
"""Add, edit, and delete resources."""

CAP_MANAGE_CATEGORIES = "MANAGE_CATEGORIES"
"""Create, rename, delete, and reorder categories."""

CAP_REVIEW_SUGGESTIONS = "REVIEW_SUGGESTIONS"
"""Approve or reject user-suggested resources and handle reports."""

CAP_VIEW_ANALYTICS = "VIEW_ANALYTICS"
"""View the analytics dashboard for the admin's scope."""

CAP_MANAGE_COMPANIES = "MANAGE_COMPANIES"
"""Manage subspecialty companies and their rep contacts."""

CAP_VIEW_INQUIRIES = "VIEW_INQUIRIES"
"""View rep and sponsorship inquiries."""

CAP_MANAGE_ROLES = "MANAGE_ROLES"
"""Assign and revoke admin roles."""

CAP_VIEW_DEBUG = "VIEW_DEBUG"
"""Access debug endpoints and metrics."""

# Complete set of all capabilities
ALL_CAPABILITIES = frozenset({
    CAP_BROWSE_CATALOG,
    CAP_MANAGE_RESOURCES,
    CAP_MANAGE_CATEGORIES,
    CAP_REVIEW_SUGGESTIONS,
    CAP_VIEW_ANALYTICS,
    CAP_MANAGE_COMPANIES,
    CAP_VIEW_INQUIRIES,
    CAP_MANAGE_ROLES,
    CAP_VIEW_DEBUG,
})


# ============================================================================
# Authorization Functions
# ============================================================================

def has_capability(role: str, capability: str) -> bool:
    """
    Check if a role has a specific capability.

    Args:
        role: Role name (e.g., "user", "subspecialty_admin", "super_admin")
        capability: Capability constant (e.g., CAP_MANAGE_RESOURCES)

    Returns:
        True if the role has the capability, False otherwise

    Examples:
        >>> has_capability("user", CAP_BROWSE_CATALOG)
        True
        >>> has_capability("user", CAP_MANAGE_RESOURCES)
        False
        >>> has_capability("subspecialty_admin", CAP_MANAGE_CATEGORIES)
        True
        >>> has_capability("super_admin", CAP_VIEW_DEBUG)
        True
    """
    # Import here to avoid circular dependency
    from .roles import ROLE_CAPABILITIES

    if not role or not isinstance(role, str):
        logger.warning("has_capability called with empty role")
        return False

    if capability not in ALL_CAPABILITIES:
        logger.warning(f"Unknown capability: {capability}")
        return False

    normalized_role = role.strip().lower()

    if normalized_role not in ROLE_CAPABILITIES:
        logger.warning(f"Unknown role: {role}")
        return False

    return capability in ROLE_CAPABILITIES[normalized_role]


def get_role_capabilities(role: str) -> Set[str]:
    """
    Get all capabilities for a role.

    Examples:
        >>> sorted(get_role_capabilities("user"))
        ['BROWSE_CATALOG']
        >>> get_role_capabilities("unknown")
        set()
    """
    from .roles import ROLE_CAPABILITIES

    if not role or not isinstance(role, str):
        return set()

    return set(ROLE_CAPABILITIES.get(role.strip().lower(), set()))


def validate_role(role: str) -> bool:
    """
    Check if a role is valid.

    Examples:
        >>> validate_role("specialty_admin")
        True
        >>> validate_role("owner")
        False
        >>> validate_role("")
        False
    """
    from .roles import ALL_ROLES

    if not role or not isinstance(role, str):
        return False

    return role.strip().lower() in ALL_ROLES


def has_any_capability(role: str, capabilities: List[str]) -> bool:
    """True if the role has at least one of the capabilities."""
    return any(has_capability(role, cap) for cap in capabilities)


def has_all_capabilities(role: str, capabilities: List[str]) -> bool:
    """True if the role has every one of the capabilities."""
    return all(has_capability(role, cap) for cap in capabilities)


def get_missing_capabilities(role: str, required_capabilities: List[str]) -> Set[str]:
    """
    Get capabilities that a role is missing from a required set.

    Examples:
        >>> sorted(get_missing_capabilities("subspecialty_admin", [CAP_MANAGE_RESOURCES, CAP_MANAGE_ROLES]))
        ['MANAGE_ROLES']
    """
    return {cap for cap in required_capabilities if not has_capability(role, cap)}
