# adapters/db.py — database operations for the technique catalog

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.visibility import ScopeResult
from vendors.supabase_client import get_client

logger = logging.getLogger(__name__)

# PostgREST / Postgres codes returned when row level security rejects a query
PERMISSION_ERROR_CODES = frozenset({"42501", "PGRST301"})


class DatabaseError(Exception):
    """A Supabase query failed."""

    def __init__(self, message: str, code: Optional[str] = None, operation: str = ""):
        self.message = message
        self.code = code
        self.operation = operation
        super().__init__(message)

    @property
    def is_permission_error(self) -> bool:
        return self.code in PERMISSION_ERROR_CODES


def nest_categories(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Group flat category rows into top-level categories with `subcategories`.

    Rows keep their incoming order; children whose parent is not in the
    result are promoted to the top level.
    """
    ids = {row.get("id") for row in rows}
    children: Dict[Any, List[Dict[str, Any]]] = {}
    for row in rows:
        parent_id = row.get("parent_category_id")
        if parent_id and parent_id in ids:
            children.setdefault(parent_id, []).append(dict(row))

    nested = []
    for row in rows:
        parent_id = row.get("parent_category_id")
        if parent_id and parent_id in ids:
            continue
        nested.append({**row, "subcategories": children.get(row.get("id"), [])})
    return nested


class DatabaseAdapter:
    """
    Database operations for the technique catalog.

    Also serves as the reference lookup for scope resolution.
    """

    def __init__(self, client=None):
        self.client = client if client is not None else get_client()

    def _execute(self, query, operation: str):
        try:
            return query.execute()
        except Exception as e:
            code = getattr(e, "code", None)
            logger.error(f"Database operation {operation} failed (code={code}): {e}")
            raise DatabaseError(str(e), code=str(code) if code is not None else None, operation=operation) from e

    def _rows(self, query, operation: str) -> List[Dict[str, Any]]:
        result = self._execute(query, operation)
        return list(result.data or [])

    def _first(self, query, operation: str) -> Optional[Dict[str, Any]]:
        rows = self._rows(query.limit(1), operation)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Reference data (specialties / subspecialties)
    # ------------------------------------------------------------------

    def get_specialty_name(self, specialty_id: str) -> Optional[str]:
        row = self._first(
            self.client.table("specialties").select("name").eq("id", specialty_id),
            "get_specialty_name",
        )
        return row.get("name") if row else None

    def get_subspecialty_name(self, subspecialty_id: str) -> Optional[str]:
        row = self._first(
            self.client.table("subspecialties").select("name").eq("id", subspecialty_id),
            "get_subspecialty_name",
        )
        return row.get("name") if row else None

    def find_specialty_id(self, name: str) -> Optional[str]:
        """Case-insensitive exact name match, first row wins."""
        row = self._first(
            self.client.table("specialties").select("id").ilike("name", name),
            "find_specialty_id",
        )
        return row.get("id") if row else None

    def find_subspecialty_id(self, specialty_id: str, name: str) -> Optional[str]:
        row = self._first(
            self.client.table("subspecialties").select("id")
            .eq("specialty_id", specialty_id)
            .ilike("name", name),
            "find_subspecialty_id",
        )
        return row.get("id") if row else None

    def list_subspecialties(self, specialty_id: str) -> List[Dict[str, Any]]:
        """Subspecialties of a specialty, ordered by name."""
        return self._rows(
            self.client.table("subspecialties").select("id, name, specialty_id")
            .eq("specialty_id", specialty_id)
            .order("name"),
            "list_subspecialties",
        )

    def subspecialty_ids_for(self, specialty_id: str) -> List[str]:
        return [row["id"] for row in self.list_subspecialties(specialty_id) if row.get("id")]

    def get_subspecialty_specialty_id(self, subspecialty_id: str) -> Optional[str]:
        row = self._first(
            self.client.table("subspecialties").select("specialty_id").eq("id", subspecialty_id),
            "get_subspecialty_specialty_id",
        )
        return row.get("specialty_id") if row else None

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("profiles").select("*").eq("id", user_id),
            "get_profile",
        )

    def update_profile_role(
        self,
        user_id: str,
        role: str,
        specialty_id: Optional[str] = None,
        subspecialty_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        updates: Dict[str, Any] = {"role": role}
        if specialty_id is not None:
            updates["primary_specialty_id"] = specialty_id
        if subspecialty_id is not None:
            updates["primary_subspecialty_id"] = subspecialty_id

        rows = self._rows(
            self.client.table("profiles").update(updates).eq("id", user_id),
            "update_profile_role",
        )
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_categories(self, scope: ScopeResult) -> List[Dict[str, Any]]:
        """
        Categories in scope, nested by parent.

        A scope that neither loads everything nor names a subspecialty or
        a specialty (fail-closed) yields no categories.
        """
        query = self.client.table("categories").select("*")
        if scope.load_all:
            pass
        elif scope.effective_subspecialty_id:
            query = query.eq("subspecialty_id", scope.effective_subspecialty_id)
        elif scope.load_specialty_id:
            subspecialty_ids = self.subspecialty_ids_for(scope.load_specialty_id)
            if not subspecialty_ids:
                return []
            query = query.in_("subspecialty_id", subspecialty_ids)
        else:
            return []

        rows = self._rows(query.order("order"), "get_categories")
        return nest_categories(rows)

    def get_resources(self, category_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Resources, featured first then newest. None means unfiltered."""
        query = self.client.table("resources").select("*")
        if category_ids is not None:
            if not category_ids:
                return []
            query = query.in_("category_id", list(category_ids))

        query = query.order("is_featured", desc=True).order("created_at", desc=True)
        return self._rows(query, "get_resources")

    def get_resource(self, resource_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("resources").select("*").eq("id", resource_id),
            "get_resource",
        )

    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("categories").select("*").eq("id", category_id),
            "get_category",
        )

    def get_active_companies(self, subspecialty_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Companies with their contacts, optionally for one subspecialty."""
        query = self.client.table("subspecialty_companies").select(
            "id, company_name, subspecialty_id, subspecialty_company_contacts(id)"
        )
        if subspecialty_id:
            query = query.eq("subspecialty_id", subspecialty_id)
        return self._rows(query, "get_active_companies")

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def list_favorites(self, user_id: str) -> List[str]:
        rows = self._rows(
            self.client.table("favorites").select("resource_id").eq("user_id", user_id),
            "list_favorites",
        )
        return [row["resource_id"] for row in rows]

    def add_favorite(self, user_id: str, resource_id: str):
        self._execute(
            self.client.table("favorites").upsert(
                {"user_id": user_id, "resource_id": resource_id},
                on_conflict="user_id,resource_id",
            ),
            "add_favorite",
        )

    def remove_favorite(self, user_id: str, resource_id: str):
        self._execute(
            self.client.table("favorites").delete().eq("user_id", user_id).eq("resource_id", resource_id),
            "remove_favorite",
        )

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_note(self, user_id: str, resource_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("notes").select("resource_id, note_text, created_at, updated_at")
            .eq("user_id", user_id)
            .eq("resource_id", resource_id),
            "get_note",
        )

    def upsert_note(self, user_id: str, resource_id: str, note_text: str) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("notes").upsert(
                {"user_id": user_id, "resource_id": resource_id, "note_text": note_text},
                on_conflict="user_id,resource_id",
            ),
            "upsert_note",
        )
        return rows[0] if rows else None

    def delete_note(self, user_id: str, resource_id: str):
        self._execute(
            self.client.table("notes").delete().eq("user_id", user_id).eq("resource_id", resource_id),
            "delete_note",
        )

    # ------------------------------------------------------------------
    # Upcoming cases
    # ------------------------------------------------------------------

    def list_upcoming_cases(self, user_id: str) -> List[Dict[str, Any]]:
        return self._rows(
            self.client.table("upcoming_cases").select("resource_id, display_order")
            .eq("user_id", user_id)
            .order("display_order"),
            "list_upcoming_cases",
        )

    def add_upcoming_case(self, user_id: str, resource_id: str, display_order: int):
        self._execute(
            self.client.table("upcoming_cases").upsert(
                {"user_id": user_id, "resource_id": resource_id, "display_order": display_order},
                on_conflict="user_id,resource_id",
            ),
            "add_upcoming_case",
        )

    def remove_upcoming_case(self, user_id: str, resource_id: str):
        self._execute(
            self.client.table("upcoming_cases").delete().eq("user_id", user_id).eq("resource_id", resource_id),
            "remove_upcoming_case",
        )

    def save_upcoming_case_order(self, user_id: str, rows: Sequence[Mapping[str, Any]]):
        if not rows:
            return
        payload = [
            {"user_id": user_id, "resource_id": row["resource_id"], "display_order": row["display_order"]}
            for row in rows
        ]
        self._execute(
            self.client.table("upcoming_cases").upsert(payload, on_conflict="user_id,resource_id"),
            "save_upcoming_case_order",
        )

    # ------------------------------------------------------------------
    # Ratings, inquiries, audit, events
    # ------------------------------------------------------------------

    def upsert_rating(self, user_id: str, resource_id: str, rating: int):
        self._execute(
            self.client.table("resource_ratings").upsert(
                {"user_id": user_id, "resource_id": resource_id, "rating": rating},
                on_conflict="user_id,resource_id",
            ),
            "upsert_rating",
        )

    def create_rep_inquiry(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(self.client.table("rep_inquiries").insert(dict(row)), "create_rep_inquiry")
        return rows[0] if rows else None

    def insert_admin_action(self, row: Mapping[str, Any]):
        self._execute(self.client.table("admin_actions").insert(dict(row)), "insert_admin_action")

    def insert_event(self, table: str, row: Mapping[str, Any]):
        self._execute(self.client.table(table).insert(dict(row)), "insert_event")

    # ------------------------------------------------------------------
    # Curation: resources and categories
    # ------------------------------------------------------------------

    def create_resource(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(self.client.table("resources").insert(dict(row)), "create_resource")
        return rows[0] if rows else None

    def update_resource(self, resource_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("resources").update(dict(updates)).eq("id", resource_id),
            "update_resource",
        )
        return rows[0] if rows else None

    def delete_resource(self, resource_id: str):
        self._execute(self.client.table("resources").delete().eq("id", resource_id), "delete_resource")

    def create_category(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(self.client.table("categories").insert(dict(row)), "create_category")
        return rows[0] if rows else None

    def update_category(self, category_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("categories").update(dict(updates)).eq("id", category_id),
            "update_category",
        )
        return rows[0] if rows else None

    def delete_category(self, category_id: str):
        self._execute(self.client.table("categories").delete().eq("id", category_id), "delete_category")

    def list_sibling_categories(
        self,
        subspecialty_id: str,
        parent_category_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Categories sharing a parent (top level when None), in display order."""
        query = self.client.table("categories").select("id, name, order, parent_category_id, subspecialty_id")
        query = query.eq("subspecialty_id", subspecialty_id)
        if parent_category_id:
            query = query.eq("parent_category_id", parent_category_id)
        else:
            query = query.is_("parent_category_id", "null")
        return self._rows(query.order("order"), "list_sibling_categories")

    def save_category_order(self, rows: Sequence[Mapping[str, Any]]):
        for row in rows:
            self._execute(
                self.client.table("categories").update({"order": row["order"]}).eq("id", row["id"]),
                "save_category_order",
            )

    # ------------------------------------------------------------------
    # Curation: suggestions and reports
    # ------------------------------------------------------------------

    def get_suggestion(self, suggestion_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("resource_suggestions").select("*").eq("id", suggestion_id),
            "get_suggestion",
        )

    def list_suggestions(
        self,
        status: str = "pending",
        subspecialty_ids: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Suggestions by status, newest first. None means every subspecialty."""
        query = self.client.table("resource_suggestions").select("*").eq("status", status)
        if subspecialty_ids is not None:
            if not subspecialty_ids:
                return []
            query = query.in_("user_subspecialty_id", list(subspecialty_ids))
        return self._rows(query.order("created_at", desc=True), "list_suggestions")

    def update_suggestion(self, suggestion_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("resource_suggestions").update(dict(updates)).eq("id", suggestion_id),
            "update_suggestion",
        )
        return rows[0] if rows else None

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("resource_reports").select("*").eq("id", report_id),
            "get_report",
        )

    def list_reports(self, subspecialty_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        query = self.client.table("resource_reports").select("*, resources(*)")
        if subspecialty_ids is not None:
            if not subspecialty_ids:
                return []
            query = query.in_("resource_subspecialty_id", list(subspecialty_ids))
        return self._rows(query.order("created_at", desc=True), "list_reports")

    def update_report(self, report_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("resource_reports").update(dict(updates)).eq("id", report_id),
            "update_report",
        )
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Curation: companies, contacts, inquiries
    # ------------------------------------------------------------------

    def list_companies(self, subspecialty_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        query = self.client.table("subspecialty_companies").select(
            "id, subspecialty_id, company_name, created_at, "
            "subspecialty_company_contacts(id, email, name, phone)"
        )
        if subspecialty_ids is not None:
            if not subspecialty_ids:
                return []
            query = query.in_("subspecialty_id", list(subspecialty_ids))
        return self._rows(query.order("company_name"), "list_companies")

    def get_company(self, company_id: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self.client.table("subspecialty_companies").select("*").eq("id", company_id),
            "get_company",
        )

    def create_company(self, subspecialty_id: str, company_name: str) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("subspecialty_companies").insert(
                {"subspecialty_id": subspecialty_id, "company_name": company_name}
            ),
            "create_company",
        )
        return rows[0] if rows else None

    def delete_company(self, company_id: str):
        self._execute(
            self.client.table("subspecialty_companies").delete().eq("id", company_id),
            "delete_company",
        )

    def add_company_contact(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(
            self.client.table("subspecialty_company_contacts").insert(dict(row)),
            "add_company_contact",
        )
        return rows[0] if rows else None

    def delete_company_contact(self, company_id: str, contact_id: str):
        self._execute(
            self.client.table("subspecialty_company_contacts").delete()
            .eq("id", contact_id)
            .eq("subspecialty_company_id", company_id),
            "delete_company_contact",
        )

    def list_rep_inquiries(self, company_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        query = self.client.table("rep_inquiries").select("*")
        if company_ids is not None:
            if not company_ids:
                return []
            query = query.in_("subspecialty_company_id", list(company_ids))
        return self._rows(query.order("created_at", desc=True), "list_rep_inquiries")

    # ------------------------------------------------------------------
    # Admin analytics and messaging
    # ------------------------------------------------------------------

    def list_resource_views(self, since: str) -> List[Dict[str, Any]]:
        return self._rows(
            self.client.table("resource_views").select("resource_id, user_id, created_at")
            .gte("created_at", since),
            "list_resource_views",
        )

    def insert_admin_message(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(self.client.table("admin_messages").insert(dict(row)), "insert_admin_message")
        return rows[0] if rows else None

    def list_admin_messages(self, user_id: str, other_id: str) -> List[Dict[str, Any]]:
        """Both directions of a conversation, oldest first."""
        conversation = (
            f"and(sender_id.eq.{user_id},recipient_id.eq.{other_id}),"
            f"and(sender_id.eq.{other_id},recipient_id.eq.{user_id})"
        )
        return self._rows(
            self.client.table("admin_messages").select("*").or_(conversation).order("created_at"),
            "list_admin_messages",
        )
