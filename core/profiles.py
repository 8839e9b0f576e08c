"""
User profile types.

Closed enums for role and user type, and the UserProfile record built from
Supabase `profiles` rows. Loosely typed values are normalized here, once,
so the rest of the code never re-validates raw strings.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Enums
# ============================================================================

class Role(str, Enum):
    """Administrative tier. Controls catalog-management capability."""
    USER = "user"
    ADMIN = "admin"
    SUBSPECIALTY_ADMIN = "subspecialty_admin"
    SPECIALTY_ADMIN = "specialty_admin"
    SUPER_ADMIN = "super_admin"


class UserType(str, Enum):
    """End-user category chosen at onboarding. Controls interactive features."""
    SURGEON = "surgeon"
    ATTENDING = "attending"
    TRAINEE = "trainee"
    RESIDENT = "resident"
    FELLOW = "fellow"
    INDUSTRY = "industry"
    STUDENT = "student"
    OTHER = "other"


def _normalize(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized or None


def parse_role(value: Any) -> Role:
    """
    Parse a raw role value.

    Unknown or non-string values collapse to Role.USER.

    Examples:
        >>> parse_role("Super_Admin")
        <Role.SUPER_ADMIN: 'super_admin'>
        >>> parse_role(7)
        <Role.USER: 'user'>
    """
    normalized = _normalize(value)
    if normalized is None:
        return Role.USER
    try:
        return Role(normalized)
    except ValueError:
        logger.debug(f"Unknown role {normalized!r}, defaulting to 'user'")
        return Role.USER


def parse_user_type(value: Any) -> Optional[UserType]:
    """
    Parse a raw user type value.

    Returns None for anything outside the UserType enum.

    Examples:
        >>> parse_user_type(" Surgeon ")
        <UserType.SURGEON: 'surgeon'>
        >>> parse_user_type("admin") is None
        True
    """
    normalized = _normalize(value)
    if normalized is None:
        return None
    try:
        return UserType(normalized)
    except ValueError:
        logger.debug(f"Unknown user type {normalized!r}")
        return None


def clean_id(value: Any) -> Optional[str]:
    """Return value if it is a non-empty string id, else None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# ============================================================================
# Profile
# ============================================================================

@dataclass(frozen=True)
class UserProfile:
    """Normalized user profile."""
    id: Optional[str]
    email: Optional[str] = None
    role: Role = Role.USER
    user_type: Optional[UserType] = None
    specialty_id: Optional[str] = None
    subspecialty_id: Optional[str] = None
    onboarding_complete: bool = False
    terms_accepted_at: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.id is None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserProfile":
        """
        Build a profile from a Supabase `profiles` row.

        Args:
            row: Row dict with snake_case column names

        Returns:
            UserProfile with role/user type parsed into enums
        """
        return cls(
            id=clean_id(row.get("id")),
            email=row.get("email") if isinstance(row.get("email"), str) else None,
            role=parse_role(row.get("role")),
            user_type=parse_user_type(row.get("user_type")),
            specialty_id=clean_id(row.get("primary_specialty_id")),
            subspecialty_id=clean_id(row.get("primary_subspecialty_id")),
            onboarding_complete=bool(row.get("onboarding_complete")),
            terms_accepted_at=row.get("terms_accepted_at"),
        )

    @classmethod
    def anonymous(cls) -> "UserProfile":
        return cls(id=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "user_type": self.user_type.value if self.user_type else None,
            "specialty_id": self.specialty_id,
            "subspecialty_id": self.subspecialty_id,
            "onboarding_complete": self.onboarding_complete,
            "terms_accepted_at": self.terms_accepted_at,
        }


# camelCase keys are accepted so profile dicts coming straight from the
# web client can be evaluated without conversion.
_FIELD_ALIASES = {
    "role": ("role",),
    "user_type": ("user_type", "userType"),
    "specialty_id": ("specialty_id", "specialtyId", "primary_specialty_id"),
    "subspecialty_id": ("subspecialty_id", "subspecialtyId", "primary_subspecialty_id"),
}


def profile_field(user: Any, field: str) -> Any:
    """
    Read a raw field from a UserProfile, a mapping, or None.

    Enum values are returned as their string value.
    """
    if user is None:
        return None

    if isinstance(user, Mapping):
        for key in _FIELD_ALIASES.get(field, (field,)):
            if key in user:
                return user[key]
        return None

    value = getattr(user, field, None)
    if isinstance(value, Enum):
        return value.value
    return value
