# config.py — sane config with loud failures

import logging
import os
import time
from typing import Any, Dict, List

# Hard requirements. Fail fast if any are missing.
REQUIRED = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_JWT_SECRET",
]

# Optional knobs with defaults that won't sandbag you at runtime.
DEFAULTS = {
    # Visibility: what a failed reference lookup does to a user's scope.
    # open = show everything, closed = show nothing
    "VISIBILITY_FAIL_MODE": "open",

    "ANALYTICS_ENABLED": True,

    # Auth attempt limits (sign-up, login, password reset)
    "LIMITS_ENABLED": True,

    "LOG_LEVEL": "INFO",
    "CORS_ALLOW_ORIGINS": "*",  # comma-separated
    "ENVIRONMENT": "development",
}

VALID_FAIL_MODES = ["open", "closed"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
BOOLEAN_KEYS = {"ANALYTICS_ENABLED", "LIMITS_ENABLED"}

logger = logging.getLogger(__name__)


def _as_bool(val: Any) -> bool:
    return val.lower() in ('true', '1', 'yes', 'on') if isinstance(val, str) else bool(val)


def load_config(strict: bool = True) -> Dict[str, Any]:
    """
    Load env config, erroring clearly if anything critical is missing.
    Returns a dict of required + defaults (with types normalized).

    strict=False skips the required-variable check (missing values come
    back as None) but still validates the defaults.
    """
    missing = [k for k in REQUIRED if not os.getenv(k)]
    if missing and strict:
        missing_list = ', '.join(missing)
        raise RuntimeError(
            f"Missing required environment variables: {missing_list}. "
            f"Please check your .env file and ensure all required variables are set. "
            f"See env.sample for reference."
        )

    cfg: Dict[str, Any] = {k: os.getenv(k) for k in REQUIRED}

    if cfg.get("SUPABASE_URL") and not cfg["SUPABASE_URL"].startswith(("http://", "https://")):
        raise RuntimeError(f"SUPABASE_URL must start with http:// or https://, got: {cfg['SUPABASE_URL']}")

    for k, v in DEFAULTS.items():
        cfg[k] = _normalize(k, os.getenv(k, v))

    return cfg


def _normalize(k: str, val: Any) -> Any:
    if k in BOOLEAN_KEYS:
        return _as_bool(val)
    if k == "VISIBILITY_FAIL_MODE":
        val = str(val).strip().lower()
        if val not in VALID_FAIL_MODES:
            raise RuntimeError(f"VISIBILITY_FAIL_MODE must be one of {VALID_FAIL_MODES}, got: {val}")
    elif k == "LOG_LEVEL":
        val = str(val).strip().upper()
        if val not in VALID_LOG_LEVELS:
            raise RuntimeError(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}, got: {val}")
    elif k == "CORS_ALLOW_ORIGINS":
        val = [origin.strip() for origin in str(val).split(",") if origin.strip()]
    return val


def get_setting(k: str) -> Any:
    """
    Read one optional setting at call time.

    Unlike load_config this never raises: an invalid value is logged and
    the default is used instead.
    """
    try:
        return _normalize(k, os.getenv(k, DEFAULTS[k]))
    except RuntimeError as e:
        logger.error(f"Invalid setting, using default {DEFAULTS[k]!r}: {e}")
        return _normalize(k, DEFAULTS[k])


def current_config() -> Dict[str, Any]:
    """Required values (None when missing) plus every optional setting via get_setting."""
    cfg: Dict[str, Any] = {k: os.getenv(k) for k in REQUIRED}
    cfg.update({k: get_setting(k) for k in DEFAULTS})
    return cfg


def fail_open() -> bool:
    """True unless VISIBILITY_FAIL_MODE=closed."""
    return get_setting("VISIBILITY_FAIL_MODE") == "open"


def get_debug_config():
    """
    Get configuration for debug endpoint.
    Returns sanitized config (no secrets).
    """
    cfg = current_config()

    # Remove sensitive keys
    sanitized = {
        k: v for k, v in cfg.items()
        if not any(secret in k.upper() for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN"])
    }

    sanitized["_metadata"] = {
        "version": "1.0",
        "environment": cfg["ENVIRONMENT"],
        "missing_required": [k for k in REQUIRED if not cfg.get(k)],
        "loaded_at": time.time()
    }

    return sanitized


def validate_deploy_config(cfg: Dict[str, Any]) -> Dict[str, str]:
    """
    Flag settings that load fine but are risky for a deployment.

    Returns:
        Dict of key -> warning (empty if all fine)
    """
    errors = {}

    production = cfg.get("ENVIRONMENT") == "production"
    origins: List[str] = cfg.get("CORS_ALLOW_ORIGINS") or []

    if production and "*" in origins:
        errors["CORS_ALLOW_ORIGINS"] = "Wildcard origin should not be used in production"

    if production and cfg.get("LOG_LEVEL") == "DEBUG":
        errors["LOG_LEVEL"] = "DEBUG logging in production may expose user identifiers"

    if not cfg.get("LIMITS_ENABLED"):
        errors["LIMITS_ENABLED"] = "Auth attempt limits are disabled"

    return errors
