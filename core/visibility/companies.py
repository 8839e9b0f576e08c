"""
"Contact Rep" gating.

A resource exposes Contact Rep only when it names both a company and a
product, and that company has at least one registered contact for the
subspecialty the resource belongs to.
"""

from typing import Any, AbstractSet, Dict, FrozenSet, Iterable, Mapping, Optional


def normalize_company_name(name: Any) -> Optional[str]:
    """Trim and case-fold a company name; None for blanks and non-strings."""
    if not isinstance(name, str):
        return None
    normalized = " ".join(name.split()).casefold()
    return normalized or None


def build_active_company_set(company_rows: Iterable[Mapping[str, Any]]) -> FrozenSet[str]:
    """
    Build the set of companies with at least one contact.

    Args:
        company_rows: `subspecialty_companies` rows, each carrying its
            `subspecialty_company_contacts` list (or a precomputed
            `contact_count`)

    Returns:
        Frozen set of normalized company names

    Examples:
        >>> rows = [
        ...     {"company_name": "Arthrex", "subspecialty_company_contacts": [{"id": "c1"}]},
        ...     {"company_name": "Stryker", "subspecialty_company_contacts": []},
        ... ]
        >>> sorted(build_active_company_set(rows))
        ['arthrex']
    """
    active = set()
    for row in company_rows:
        name = normalize_company_name(row.get("company_name"))
        if name is None:
            continue

        if "contact_count" in row:
            contact_count = row.get("contact_count") or 0
        else:
            contact_count = len(row.get("subspecialty_company_contacts") or [])

        if contact_count > 0:
            active.add(name)
    return frozenset(active)


def build_active_company_index(
    company_rows: Iterable[Mapping[str, Any]],
) -> Dict[Optional[str], FrozenSet[str]]:
    """
    Active company sets keyed by subspecialty id.

    A company is registered per subspecialty, so a contact in one
    subspecialty says nothing about another.

    Examples:
        >>> rows = [
        ...     {"company_name": "Arthrex", "subspecialty_id": "fa", "contact_count": 1},
        ...     {"company_name": "Arthrex", "subspecialty_id": "sports", "contact_count": 0},
        ... ]
        >>> index = build_active_company_index(rows)
        >>> sorted(index["fa"]), sorted(index["sports"])
        (['arthrex'], [])
    """
    grouped: Dict[Optional[str], list] = {}
    for row in company_rows:
        grouped.setdefault(row.get("subspecialty_id"), []).append(row)
    return {key: build_active_company_set(rows) for key, rows in grouped.items()}


def is_company_active(company_name: Any, active_company_set: AbstractSet[str]) -> bool:
    """
    Check if a company has a contact in the current scope.

    Examples:
        >>> is_company_active(" Arthrex", frozenset({"arthrex"}))
        True
        >>> is_company_active("arthrex", frozenset({"Arthrex "}))
        True
        >>> is_company_active(None, frozenset({"arthrex"}))
        False
    """
    name = normalize_company_name(company_name)
    if name is None:
        return False
    return any(normalize_company_name(active) == name for active in active_company_set)


def can_contact_rep(resource: Mapping[str, Any], active_company_set: AbstractSet[str]) -> bool:
    """Contact Rep needs company and product names plus an active company."""
    company_name = resource.get("company_name")
    product_name = resource.get("product_name")

    if normalize_company_name(company_name) is None:
        return False
    if not isinstance(product_name, str) or not product_name.strip():
        return False

    return is_company_active(company_name, active_company_set)
