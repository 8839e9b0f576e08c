"""API module."""

from .guards import require, require_any, require_all

__all__ = [
    "require",
    "require_any",
    "require_all",
]
