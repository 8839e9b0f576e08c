"""
Category/resource scope resolution.

Decides which subspecialty a user's catalog queries are filtered by:

- "Generalist" subspecialty: everything (load_all)
- a General Orthopedics subspecialty of an orthopedic specialty: every
  subspecialty of that specialty (load_specialty_id)
- "Podiatry" specialty with no subspecialty: Orthopaedic/Orthopedic Surgery
  -> Foot and Ankle, as if it were the user's own subspecialty
- nothing usable: everything (load_all)

Lookup misses and lookup errors widen the scope instead of raising.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from core.metrics import VisibilityMetrics
from core.profiles import clean_id, profile_field
from core.visibility.reference import ReferenceLookup

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Sentinel Names (compared case-insensitively)
# ============================================================================

GENERALIST = "generalist"
PODIATRY = "podiatry"
ORTHOPAEDIC_SURGERY = "orthopaedic surgery"
ORTHOPEDIC_SURGERY = "orthopedic surgery"
FOOT_AND_ANKLE = "foot and ankle"
GENERAL = "general"

# Substrings; either spelling marks an orthopedic name
ORTHOPEDIC_STEMS = ("orthopaedic", "orthopedic")

# Tried in order, first match wins
ORTHOPEDIC_SPECIALTY_NAMES = (ORTHOPAEDIC_SURGERY, ORTHOPEDIC_SURGERY)


# ============================================================================
# Result
# ============================================================================

@dataclass(frozen=True)
class ScopeResult:
    """
    Effective catalog scope for a user.

    At most one of load_all, effective_subspecialty_id and
    load_specialty_id is set; none set means an empty catalog.
    """
    load_all: bool
    effective_subspecialty_id: Optional[str] = None
    load_specialty_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "load_all": self.load_all,
            "effective_subspecialty_id": self.effective_subspecialty_id,
            "load_specialty_id": self.load_specialty_id,
        }


LOAD_ALL = ScopeResult(load_all=True, effective_subspecialty_id=None)
NOTHING = ScopeResult(load_all=False, effective_subspecialty_id=None)


class _LookupFailed(Exception):
    """Internal marker: a reference lookup raised."""


def _matches(name: Optional[str], sentinel: str) -> bool:
    return isinstance(name, str) and name.strip().casefold() == sentinel


def _is_orthopedic(name: Optional[str]) -> bool:
    folded = name.casefold() if isinstance(name, str) else ""
    return any(stem in folded for stem in ORTHOPEDIC_STEMS)


def _is_general_orthopedics(name: Optional[str]) -> bool:
    folded = name.casefold() if isinstance(name, str) else ""
    return GENERAL in folded and _is_orthopedic(folded)


def _call(fn: Callable[..., T], *args: Any) -> Optional[T]:
    try:
        return fn(*args)
    except Exception as e:
        logger.warning(f"Reference lookup {getattr(fn, '__name__', fn)} failed: {e}")
        raise _LookupFailed() from e


# ============================================================================
# Resolution
# ============================================================================

def resolve_scope(
    user: Any,
    lookup: ReferenceLookup,
    browsing_subspecialty_id: Optional[str] = None,
    fail_open: bool = True,
) -> ScopeResult:
    """
    Compute the effective subspecialty scope for a user.

    Args:
        user: UserProfile, profile mapping, or None
        lookup: Reference-data collaborator (already loaded, or queried synchronously)
        browsing_subspecialty_id: Subspecialty the user is currently browsing,
            overrides the profile subspecialty
        fail_open: Widen to load_all on lookup misses (default). When False,
            misses produce an empty scope instead.

    Returns:
        ScopeResult(load_all, effective_subspecialty_id, load_specialty_id)

    Examples:
        >>> from core.visibility.reference import InMemoryReferenceData
        >>> ref = InMemoryReferenceData(subspecialties=[{"id": "gen-1", "name": "Generalist"}])
        >>> resolve_scope({"subspecialtyId": "gen-1"}, ref)
        ScopeResult(load_all=True, effective_subspecialty_id=None, load_specialty_id=None)
        >>> resolve_scope({}, ref)
        ScopeResult(load_all=True, effective_subspecialty_id=None, load_specialty_id=None)
    """
    fallback = LOAD_ALL if fail_open else NOTHING

    subspecialty_id = clean_id(browsing_subspecialty_id) or clean_id(
        profile_field(user, "subspecialty_id")
    )
    specialty_id = clean_id(profile_field(user, "specialty_id"))

    try:
        if subspecialty_id:
            result = _resolve_subspecialty(subspecialty_id, lookup, fallback)
        elif specialty_id:
            result = _resolve_specialty(specialty_id, lookup, fallback)
        else:
            logger.debug("No specialty or subspecialty on profile, loading all")
            VisibilityMetrics.record_scope(load_all=True, reason="no_profile_scope")
            return LOAD_ALL
    except _LookupFailed:
        VisibilityMetrics.record_fail_open(reason="lookup_error", fail_open=fail_open)
        return fallback

    VisibilityMetrics.record_scope(load_all=result.load_all, reason="resolved")
    return result


def _resolve_subspecialty(
    subspecialty_id: str,
    lookup: ReferenceLookup,
    fallback: ScopeResult,
) -> ScopeResult:
    name = _call(lookup.get_subspecialty_name, subspecialty_id)

    if name is None:
        logger.warning(f"Subspecialty {subspecialty_id} not found in reference data")
        VisibilityMetrics.record_fail_open(reason="subspecialty_miss", fail_open=fallback.load_all)
        return fallback

    if _matches(name, GENERALIST):
        logger.debug(f"Subspecialty {subspecialty_id} is Generalist, loading all")
        return LOAD_ALL

    if _is_general_orthopedics(name):
        specialty_id = clean_id(_call(lookup.get_subspecialty_specialty_id, subspecialty_id))
        if specialty_id and _is_orthopedic(_call(lookup.get_specialty_name, specialty_id)):
            logger.debug(f"Subspecialty {subspecialty_id} is General Orthopedics, loading specialty {specialty_id}")
            return ScopeResult(load_all=False, load_specialty_id=specialty_id)

    return ScopeResult(load_all=False, effective_subspecialty_id=subspecialty_id)


def _resolve_specialty(
    specialty_id: str,
    lookup: ReferenceLookup,
    fallback: ScopeResult,
) -> ScopeResult:
    name = _call(lookup.get_specialty_name, specialty_id)

    if not _matches(name, PODIATRY):
        if name is None:
            logger.warning(f"Specialty {specialty_id} not found in reference data")
            VisibilityMetrics.record_fail_open(reason="specialty_miss", fail_open=fallback.load_all)
            return fallback
        # A specialty without a subspecialty sees the whole catalog
        return LOAD_ALL

    foot_and_ankle_id = podiatry_subspecialty_id(lookup)
    if foot_and_ankle_id is None:
        logger.warning("Podiatry mapping unresolved (no orthopedic Foot and Ankle subspecialty)")
        VisibilityMetrics.record_fail_open(reason="podiatry_unmapped", fail_open=fallback.load_all)
        return fallback

    return ScopeResult(load_all=False, effective_subspecialty_id=foot_and_ankle_id)


def podiatry_subspecialty_id(lookup: ReferenceLookup) -> Optional[str]:
    """
    Resolve the subspecialty podiatrists are mapped to.

    Raises _LookupFailed when the collaborator errors; returns None on a miss.
    """
    ortho_id = None
    for ortho_name in ORTHOPEDIC_SPECIALTY_NAMES:
        ortho_id = clean_id(_call(lookup.find_specialty_id, ortho_name))
        if ortho_id:
            break

    if not ortho_id:
        return None

    return clean_id(_call(lookup.find_subspecialty_id, ortho_id, FOOT_AND_ANKLE))
