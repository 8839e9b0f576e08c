# vendors/supabase_client.py — shared Supabase service-role client

import logging
import os
from functools import lru_cache

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@lru_cache()
def get_client() -> Client:
    """
    Cached service-role client.

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing
    """
    url = os.getenv("SUPABASE_URL", "").strip()
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
    if not url or not key:
        raise RuntimeError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in environment.")

    logger.info("Creating Supabase service client")
    return create_client(url, key)


def reset_client():
    """Drop the cached client (for testing)."""
    get_client.cache_clear()
