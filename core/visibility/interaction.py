"""
Capability flags derived from a user profile.

Role and user type are independent axes:
- user type gates interactive features (favorite, note, upcoming case, rating)
- role gates catalog management (admin tiers)
"""

from typing import Any, FrozenSet

from core.profiles import Role, UserType, profile_field

# Allow-list, not a deny-list: anything unexpected is refused
INTERACTIVE_USER_TYPES: FrozenSet[str] = frozenset({
    UserType.SURGEON.value,
    UserType.ATTENDING.value,
    UserType.TRAINEE.value,
    UserType.RESIDENT.value,
    UserType.FELLOW.value,
    UserType.INDUSTRY.value,
    UserType.STUDENT.value,
    UserType.OTHER.value,
})

ADMIN_ROLES: FrozenSet[str] = frozenset({
    Role.SUPER_ADMIN.value,
    Role.SPECIALTY_ADMIN.value,
    Role.SUBSPECIALTY_ADMIN.value,
    Role.ADMIN.value,
})

# Only these cohorts are tracked, the rest are excluded from analytics
ANALYTICS_USER_TYPES: FrozenSet[str] = frozenset({
    UserType.SURGEON.value,
    UserType.TRAINEE.value,
})


def _normalized(user: Any, field: str) -> str:
    value = profile_field(user, field)
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def can_interact(user: Any) -> bool:
    """
    Check if a user may favorite, annotate, rate, or add upcoming cases.

    Args:
        user: UserProfile, profile mapping, or None

    Returns:
        True iff the normalized user type is allow-listed

    Examples:
        >>> can_interact({"userType": "Surgeon "})
        True
        >>> can_interact({"userType": 42})
        False
        >>> can_interact({})
        False
    """
    return _normalized(user, "user_type") in INTERACTIVE_USER_TYPES


def is_admin(user: Any) -> bool:
    """
    Check if a user holds any administrative role.

    Examples:
        >>> is_admin({"role": "subspecialty_admin"})
        True
        >>> is_admin({"role": " Super_Admin"})
        True
        >>> is_admin({"role": "user"})
        False
        >>> is_admin(None)
        False
    """
    return _normalized(user, "role") in ADMIN_ROLES


def include_in_analytics(user: Any) -> bool:
    """Only surgeons and trainees are included in analytics."""
    return _normalized(user, "user_type") in ANALYTICS_USER_TYPES
