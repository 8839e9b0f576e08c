"""
Admin action audit trail.

Writes one row per admin action to `admin_actions`. Logging an action
must never break the action itself, so failures are logged and dropped.
"""

import logging
from typing import Any, Dict, Optional

from core.metrics import increment_counter

logger = logging.getLogger(__name__)

# Action types read back by the admin activity panel
ACTION_RESOURCE_CREATED = "resource_created"
ACTION_RESOURCE_EDITED = "resource_edited"
ACTION_RESOURCE_DELETED = "resource_deleted"
ACTION_SUGGESTION_APPROVED = "suggestion_approved"
ACTION_SUGGESTION_REJECTED = "suggestion_rejected"
ACTION_REPORT_DISMISSED = "report_dismissed"
ACTION_REPORT_REVIEWED = "report_reviewed"
ACTION_ROLE_ASSIGNED = "role_assigned"
ACTION_ROLE_REVOKED = "role_revoked"
ACTION_CATEGORY_CREATED = "category_created"
ACTION_CATEGORY_EDITED = "category_edited"
ACTION_CATEGORY_DELETED = "category_deleted"
ACTION_CATEGORY_REORDERED = "category_reordered"
ACTION_COMPANY_CREATED = "company_created"
ACTION_COMPANY_DELETED = "company_deleted"
ACTION_CONTACT_ADDED = "company_contact_added"
ACTION_CONTACT_REMOVED = "company_contact_removed"


def log_admin_action(
    db,
    admin_id: Optional[str],
    action_type: Optional[str],
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Record an admin action. Never raises.

    Args:
        db: Object with `insert_admin_action(row)` (DatabaseAdapter)
        admin_id: Acting admin's user id
        action_type: One of the ACTION_* constants
        target_type: Kind of object acted on ("resource", "profile", ...)
        target_id: Id of the object acted on
        metadata: Extra JSON-serializable context

    Returns:
        True if the row was written
    """
    if not admin_id or not action_type:
        return False

    row = {
        "admin_id": admin_id,
        "action_type": action_type,
        "target_type": target_type or None,
        "target_id": target_id or None,
        "metadata": metadata or {},
    }

    try:
        db.insert_admin_action(row)
    except Exception as e:
        logger.warning(f"Failed to log admin action {action_type}: {e}")
        increment_counter("audit.admin_actions.failed", labels={"action_type": action_type})
        return False

    increment_counter("audit.admin_actions", labels={"action_type": action_type})
    return True
