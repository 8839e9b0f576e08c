# feature_flags.py — feature flag management

import logging
from typing import Dict

from core.metrics import record_feature_flag_usage
from vendors.supabase_client import get_client

logger = logging.getLogger(__name__)

# Default feature flags, used when the table has no row or is unreachable
DEFAULT_FLAGS = {
    "analytics.enabled": True,
    "contact_rep.enabled": True,
}


def get_feature_flag(flag_name: str, default: bool = None) -> bool:
    """
    Get a feature flag value from the database.
    Falls back to default (or DEFAULT_FLAGS) if not found or if database is unavailable.
    """
    if default is None:
        default = DEFAULT_FLAGS.get(flag_name, False)

    value = default
    try:
        result = get_client().table("feature_flags").select("value").eq("key", flag_name).execute()
        if result.data:
            flag_data = result.data[0].get("value") or {}
            value = bool(flag_data.get("enabled", default))
    except Exception as e:
        logger.debug(f"Feature flag lookup for {flag_name} failed, using default: {e}")

    record_feature_flag_usage(flag_name, value)
    return value


def set_feature_flag(flag_name: str, enabled: bool) -> None:
    """
    Set a feature flag value in the database.
    """
    try:
        get_client().table("feature_flags").upsert({
            "key": flag_name,
            "value": {"enabled": enabled}
        }).execute()
    except Exception as e:
        raise RuntimeError(f"Failed to set feature flag {flag_name}: {e}")


def get_all_flags() -> Dict[str, bool]:
    """
    Get all feature flags with their current values.
    Returns a dict of flag_name -> enabled_status.
    """
    flags = {}

    try:
        result = get_client().table("feature_flags").select("key, value").execute()
        for row in result.data or []:
            key = row.get("key")
            value = row.get("value") or {}
            if key:
                flags[key] = bool(value.get("enabled", False))
    except Exception as e:
        logger.warning(f"Feature flag table unavailable, using defaults: {e}")

    for flag_name, default_value in DEFAULT_FLAGS.items():
        flags.setdefault(flag_name, default_value)

    return flags


def initialize_default_flags() -> None:
    """
    Initialize default flags in the database if they don't exist.
    """
    try:
        existing = get_all_flags_from_table()
        for flag_name, default_value in DEFAULT_FLAGS.items():
            if flag_name not in existing:
                set_feature_flag(flag_name, default_value)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize default flags: {e}")


def get_all_flags_from_table() -> Dict[str, bool]:
    result = get_client().table("feature_flags").select("key, value").execute()
    return {
        row["key"]: bool((row.get("value") or {}).get("enabled", False))
        for row in result.data or []
        if row.get("key")
    }
