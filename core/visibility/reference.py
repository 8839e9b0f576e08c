"""
Reference-data lookups used by the visibility resolver.

The resolver only needs names for specialty/subspecialty ids, the
specialty a subspecialty belongs to, and a case-insensitive, first-match
search by name. `InMemoryReferenceData`
holds a pre-resolved snapshot so callers can fetch everything up front and
evaluate visibility without in-flight queries.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol


class ReferenceLookup(Protocol):
    """Collaborator that resolves specialty/subspecialty reference rows."""

    def get_specialty_name(self, specialty_id: str) -> Optional[str]:
        ...

    def get_subspecialty_name(self, subspecialty_id: str) -> Optional[str]:
        ...

    def find_specialty_id(self, name: str) -> Optional[str]:
        ...

    def find_subspecialty_id(self, specialty_id: str, name: str) -> Optional[str]:
        ...

    def get_subspecialty_specialty_id(self, subspecialty_id: str) -> Optional[str]:
        ...


def _fold(name: Any) -> str:
    return name.strip().casefold() if isinstance(name, str) else ""


class InMemoryReferenceData:
    """
    ReferenceLookup over pre-fetched rows.

    Rows keep their input order, so "first match" means the first row with
    a matching name, the same as a `limit(1)` query over an ordered table.

    Args:
        specialties: Iterable of {"id", "name"} rows
        subspecialties: Iterable of {"id", "name", "specialty_id"} rows
    """

    def __init__(
        self,
        specialties: Iterable[Mapping[str, Any]] = (),
        subspecialties: Iterable[Mapping[str, Any]] = (),
    ):
        self._specialties: List[Dict[str, Any]] = [dict(row) for row in specialties]
        self._subspecialties: List[Dict[str, Any]] = [dict(row) for row in subspecialties]
        self._specialty_names = {row.get("id"): row.get("name") for row in self._specialties}
        self._subspecialty_names = {row.get("id"): row.get("name") for row in self._subspecialties}
        self._subspecialty_parents = {row.get("id"): row.get("specialty_id") for row in self._subspecialties}

    def get_specialty_name(self, specialty_id: str) -> Optional[str]:
        return self._specialty_names.get(specialty_id)

    def get_subspecialty_name(self, subspecialty_id: str) -> Optional[str]:
        return self._subspecialty_names.get(subspecialty_id)

    def get_subspecialty_specialty_id(self, subspecialty_id: str) -> Optional[str]:
        return self._subspecialty_parents.get(subspecialty_id)

    def find_specialty_id(self, name: str) -> Optional[str]:
        wanted = _fold(name)
        for row in self._specialties:
            if _fold(row.get("name")) == wanted:
                return row.get("id")
        return None

    def find_subspecialty_id(self, specialty_id: str, name: str) -> Optional[str]:
        wanted = _fold(name)
        for row in self._subspecialties:
            if row.get("specialty_id") == specialty_id and _fold(row.get("name")) == wanted:
                return row.get("id")
        return None

    def subspecialty_ids_for(self, specialty_id: str) -> List[str]:
        return [
            row["id"] for row in self._subspecialties
            if row.get("specialty_id") == specialty_id and row.get("id")
        ]
