"""
Admin scoping rules.

Which subspecialties an admin curates, which roles an admin may hand out,
and which admins can message each other.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional

from core.profiles import Role, clean_id, parse_role, profile_field

logger = logging.getLogger(__name__)

# Roles that can be granted through the role-management endpoints
ASSIGNABLE_ROLES = frozenset({
    Role.ADMIN,
    Role.SUBSPECIALTY_ADMIN,
    Role.SPECIALTY_ADMIN,
    Role.SUPER_ADMIN,
})

_SUBSPECIALTY_TIER = (Role.ADMIN, Role.SUBSPECIALTY_ADMIN)


def _role(user: Any) -> Role:
    return parse_role(profile_field(user, "role"))


# ============================================================================
# Curation Scope
# ============================================================================

def admin_scope(
    profile: Any,
    lookup_subspecialties: Callable[[str], Iterable[str]],
) -> Optional[List[str]]:
    """
    Subspecialty ids an admin may curate or see analytics for.

    Args:
        profile: UserProfile or profile mapping
        lookup_subspecialties: Returns the subspecialty ids of a specialty

    Returns:
        None for no filter (super admin), otherwise a list of subspecialty
        ids, possibly empty

    Examples:
        >>> admin_scope({"role": "super_admin"}, lambda s: []) is None
        True
        >>> admin_scope({"role": "subspecialty_admin", "subspecialty_id": "fa-123"}, lambda s: [])
        ['fa-123']
        >>> admin_scope({"role": "user", "subspecialty_id": "fa-123"}, lambda s: [])
        []
    """
    role = _role(profile)

    if role == Role.SUPER_ADMIN:
        return None

    if role == Role.SPECIALTY_ADMIN:
        specialty_id = clean_id(profile_field(profile, "specialty_id"))
        if specialty_id is None:
            logger.warning("specialty_admin without a specialty, empty scope")
            return []
        return list(lookup_subspecialties(specialty_id))

    if role in _SUBSPECIALTY_TIER:
        subspecialty_id = clean_id(profile_field(profile, "subspecialty_id"))
        return [subspecialty_id] if subspecialty_id else []

    return []


# ============================================================================
# Role Assignment
# ============================================================================

def can_assign_role(actor: Any, target_role: Any, target_specialty_id: Optional[str] = None) -> bool:
    """
    Check if an actor may grant or revoke target_role.

    Super admins assign any admin role. Specialty admins assign only
    subspecialty_admin, and only inside their own specialty.

    Examples:
        >>> can_assign_role({"role": "super_admin"}, "specialty_admin")
        True
        >>> can_assign_role({"role": "specialty_admin", "specialty_id": "ortho"}, "subspecialty_admin", "ortho")
        True
        >>> can_assign_role({"role": "specialty_admin", "specialty_id": "ortho"}, "subspecialty_admin", "neuro")
        False
    """
    if not isinstance(target_role, (str, Role)):
        return False
    try:
        role = Role(target_role.strip().lower() if isinstance(target_role, str) else target_role)
    except ValueError:
        return False

    if role not in ASSIGNABLE_ROLES:
        return False

    actor_role = _role(actor)

    if actor_role == Role.SUPER_ADMIN:
        return True

    if actor_role == Role.SPECIALTY_ADMIN:
        if role != Role.SUBSPECIALTY_ADMIN:
            return False
        actor_specialty = clean_id(profile_field(actor, "specialty_id"))
        return actor_specialty is not None and actor_specialty == clean_id(target_specialty_id)

    return False


# ============================================================================
# Admin Messaging
# ============================================================================

def can_message(sender: Any, recipient: Any) -> bool:
    """
    Check if one admin can open a conversation with another.

    - super_admin reaches every admin
    - specialty_admin reaches super admins and subspecialty admins of
      its specialty
    - subspecialty_admin reaches super admins and specialty/subspecialty
      admins of its specialty
    """
    sender_role = _role(sender)
    recipient_role = _role(recipient)

    if recipient_role == Role.USER or sender_role == Role.USER:
        return False

    sender_id = profile_field(sender, "id")
    if sender_id is not None and sender_id == profile_field(recipient, "id"):
        return False

    if sender_role == Role.SUPER_ADMIN:
        return True

    if recipient_role == Role.SUPER_ADMIN:
        return True

    sender_specialty = clean_id(profile_field(sender, "specialty_id"))
    same_specialty = (
        sender_specialty is not None
        and sender_specialty == clean_id(profile_field(recipient, "specialty_id"))
    )
    if not same_specialty:
        return False

    if sender_role == Role.SPECIALTY_ADMIN:
        return recipient_role in _SUBSPECIALTY_TIER

    # subspecialty tier
    return recipient_role in _SUBSPECIALTY_TIER or recipient_role == Role.SPECIALTY_ADMIN
