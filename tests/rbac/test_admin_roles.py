"""
Tests for role management admin endpoints.

Tests authorization, role assignment/revocation, idempotency, and audit
logging.
"""

import pytest

from core.audit import ACTION_ROLE_ASSIGNED, ACTION_ROLE_REVOKED
from tests.conftest import FOOT_ANKLE_ID, ORTHO_ID, SPORTS_ID, auth_header

SUPER = "aaaaaaaa-0000-4000-8000-000000000001"
SPECIALTY = "aaaaaaaa-0000-4000-8000-000000000002"
CURATOR = "aaaaaaaa-0000-4000-8000-000000000003"
TARGET = "bbbbbbbb-0000-4000-8000-000000000001"
OTHER_ADMIN = "bbbbbbbb-0000-4000-8000-000000000002"

ORTHO = ORTHO_ID
NEURO = "cccccccc-0000-4000-8000-000000000002"
FOOT_ANKLE = FOOT_ANKLE_ID
NEURO_SPINE = "dddddddd-0000-4000-8000-000000000001"
NEURO_USER = "bbbbbbbb-0000-4000-8000-000000000003"


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def seed_profiles(profiles):
    profiles.update({
        SUPER: {"id": SUPER, "role": "super_admin"},
        SPECIALTY: {"id": SPECIALTY, "role": "specialty_admin", "primary_specialty_id": ORTHO},
        CURATOR: {"id": CURATOR, "role": "subspecialty_admin", "primary_specialty_id": ORTHO},
        TARGET: {"id": TARGET, "role": "user", "user_type": "surgeon", "primary_specialty_id": ORTHO},
        OTHER_ADMIN: {"id": OTHER_ADMIN, "role": "subspecialty_admin", "primary_specialty_id": NEURO},
        NEURO_USER: {"id": NEURO_USER, "role": "user", "primary_specialty_id": NEURO},
    })


def assign(client, actor, **body):
    return client.post("/admin/roles/assign", json=body, headers=auth_header(actor))


def revoke(client, actor, user_id):
    return client.post("/admin/roles/revoke", json={"user_id": user_id}, headers=auth_header(actor))


def audited_actions(mock_db):
    return [c.args[0]["action_type"] for c in mock_db.insert_admin_action.call_args_list]


# ============================================================================
# Assignment
# ============================================================================

class TestAssignRole:

    def test_super_admin_assigns(self, client, mock_db):
        response = assign(client, SUPER, user_id=TARGET, role="specialty_admin", specialty_id=ORTHO)

        assert response.status_code == 200
        assert response.json()["assigned"] is True
        mock_db.update_profile_role.assert_called_once_with(
            TARGET, "specialty_admin", specialty_id=ORTHO, subspecialty_id=None
        )
        assert audited_actions(mock_db) == [ACTION_ROLE_ASSIGNED]

    def test_audit_row_content(self, client, mock_db):
        assign(client, SUPER, user_id=TARGET, role="admin")

        row = mock_db.insert_admin_action.call_args.args[0]
        assert row["admin_id"] == SUPER
        assert row["target_type"] == "profile"
        assert row["target_id"] == TARGET
        assert row["metadata"]["previous_role"] == "user"
        assert row["metadata"]["new_role"] == "admin"

    def test_specialty_admin_appoints_in_own_specialty(self, client, mock_db):
        response = assign(
            client, SPECIALTY, user_id=TARGET, role="subspecialty_admin", subspecialty_id=FOOT_ANKLE
        )
        assert response.status_code == 200
        assert response.json()["assigned"] is True

    def test_specialty_admin_outside_specialty(self, client, mock_db):
        response = assign(client, SPECIALTY, user_id=TARGET, role="subspecialty_admin", specialty_id=NEURO)

        assert response.status_code == 403
        mock_db.update_profile_role.assert_not_called()
        mock_db.insert_admin_action.assert_not_called()

    def test_specialty_admin_cannot_create_specialty_admins(self, client, mock_db):
        response = assign(client, SPECIALTY, user_id=TARGET, role="specialty_admin")
        assert response.status_code == 403

    @pytest.mark.parametrize("actor", [CURATOR, TARGET])
    def test_without_manage_roles(self, client, mock_db, actor):
        response = assign(client, actor, user_id=TARGET, role="admin")

        assert response.status_code == 403
        assert response.json()["detail"]["capability"] == "MANAGE_ROLES"

    def test_anonymous(self, client):
        response = client.post("/admin/roles/assign", json={"user_id": TARGET, "role": "admin"})
        assert response.status_code == 403

    def test_unknown_target(self, client, mock_db):
        response = assign(client, SUPER, user_id="eeeeeeee-0000-4000-8000-000000000000", role="admin")
        assert response.status_code == 404

    def test_idempotent(self, client, mock_db, profiles):
        profiles[TARGET] = {**profiles[TARGET], "role": "admin"}

        response = assign(client, SUPER, user_id=TARGET, role="admin")

        assert response.status_code == 200
        assert response.json()["assigned"] is False
        mock_db.update_profile_role.assert_not_called()
        mock_db.insert_admin_action.assert_not_called()

    @pytest.mark.parametrize("body", [
        {"user_id": TARGET, "role": "user"},
        {"user_id": TARGET, "role": "owner"},
        {"user_id": "not-a-uuid", "role": "admin"},
        {"user_id": TARGET, "role": "admin", "specialty_id": "ortho"},
        {"role": "admin"},
    ])
    def test_invalid_requests(self, client, body):
        response = client.post("/admin/roles/assign", json=body, headers=auth_header(SUPER))
        assert response.status_code == 422

    def test_role_is_normalized(self, client, mock_db):
        response = assign(client, SUPER, user_id=TARGET, role=" Super_Admin ")
        assert response.json()["role"] == "super_admin"

    def test_audit_failure_does_not_fail_assignment(self, client, mock_db):
        mock_db.insert_admin_action.side_effect = RuntimeError("insert failed")
        response = assign(client, SUPER, user_id=TARGET, role="admin")
        assert response.status_code == 200


class TestAssignmentBoundaries:
    """Who an admin may touch, and where they may place them."""

    @pytest.mark.parametrize("role", ["subspecialty_admin", "admin"])
    def test_specialty_admin_cannot_demote_super_admin(self, client, mock_db, profiles, role):
        profiles[SUPER] = {**profiles[SUPER], "primary_specialty_id": ORTHO}

        response = assign(client, SPECIALTY, user_id=SUPER, role=role, specialty_id=ORTHO)

        assert response.status_code == 403
        mock_db.update_profile_role.assert_not_called()
        mock_db.insert_admin_action.assert_not_called()

    def test_specialty_admin_cannot_demote_peer(self, client, mock_db, profiles):
        peer = "aaaaaaaa-0000-4000-8000-000000000009"
        profiles[peer] = {"id": peer, "role": "specialty_admin", "primary_specialty_id": ORTHO}

        response = assign(client, SPECIALTY, user_id=peer, role="subspecialty_admin", subspecialty_id=SPORTS_ID)

        assert response.status_code == 403
        mock_db.update_profile_role.assert_not_called()

    @pytest.mark.parametrize("actor,role", [(SUPER, "admin"), (SPECIALTY, "subspecialty_admin")])
    def test_cannot_change_own_role(self, client, mock_db, actor, role):
        response = assign(client, actor, user_id=actor, role=role)

        assert response.status_code == 403
        mock_db.update_profile_role.assert_not_called()

    def test_specialty_admin_cannot_pull_user_from_other_specialty(self, client, mock_db):
        response = assign(client, SPECIALTY, user_id=NEURO_USER, role="subspecialty_admin", specialty_id=ORTHO)

        assert response.status_code == 403
        mock_db.update_profile_role.assert_not_called()

    def test_specialty_admin_cannot_use_foreign_subspecialty(self, client, mock_db):
        response = assign(client, SPECIALTY, user_id=TARGET, role="subspecialty_admin", subspecialty_id=NEURO_SPINE)

        assert response.status_code == 403
        mock_db.subspecialty_ids_for.assert_called_with(ORTHO)
        mock_db.update_profile_role.assert_not_called()

    def test_super_admin_subspecialty_must_match_specialty(self, client, mock_db):
        response = assign(
            client, SUPER, user_id=TARGET, role="subspecialty_admin", specialty_id=NEURO, subspecialty_id=FOOT_ANKLE
        )
        assert response.status_code == 403

    def test_super_admin_moves_user_across_specialties(self, client, mock_db):
        response = assign(client, SUPER, user_id=NEURO_USER, role="specialty_admin", specialty_id=ORTHO)

        assert response.status_code == 200
        mock_db.update_profile_role.assert_called_once_with(
            NEURO_USER, "specialty_admin", specialty_id=ORTHO, subspecialty_id=None
        )


# ============================================================================
# Revocation
# ============================================================================

class TestRevokeRole:

    def test_super_admin_revokes(self, client, mock_db):
        response = revoke(client, SUPER, CURATOR)

        assert response.status_code == 200
        assert response.json() == {
            "user_id": CURATOR,
            "previous_role": "subspecialty_admin",
            "revoked": True,
            "message": "Role 'subspecialty_admin' revoked",
        }
        mock_db.update_profile_role.assert_called_once_with(CURATOR, "user")
        assert audited_actions(mock_db) == [ACTION_ROLE_REVOKED]

    def test_revoking_plain_user_is_noop(self, client, mock_db):
        response = revoke(client, SUPER, TARGET)

        assert response.json()["revoked"] is False
        mock_db.update_profile_role.assert_not_called()

    def test_cannot_revoke_self(self, client, mock_db):
        assert revoke(client, SUPER, SUPER).status_code == 403

    def test_specialty_admin_revokes_in_own_specialty(self, client, mock_db):
        assert revoke(client, SPECIALTY, CURATOR).status_code == 200

    def test_specialty_admin_outside_specialty(self, client, mock_db):
        assert revoke(client, SPECIALTY, OTHER_ADMIN).status_code == 403
        mock_db.update_profile_role.assert_not_called()


# ============================================================================
# Reads
# ============================================================================

class TestReads:

    def test_list_roles(self, client):
        response = client.get("/admin/roles", headers=auth_header(SPECIALTY))
        assert response.status_code == 200
        assert "super_admin" in response.json()["roles"]

    def test_get_user_role(self, client):
        response = client.get(f"/admin/roles/{SPECIALTY}", headers=auth_header(SUPER))
        assert response.json() == {
            "user_id": SPECIALTY,
            "role": "specialty_admin",
            "specialty_id": ORTHO,
            "subspecialty_id": None,
        }

    def test_database_permission_error(self, client, mock_db):
        from adapters.db import DatabaseError

        mock_db.update_profile_role.side_effect = DatabaseError("rls", code="42501", operation="update_profile_role")
        response = assign(client, SUPER, user_id=TARGET, role="admin")
        assert response.status_code == 403

    def test_database_error_is_sanitized(self, client, mock_db):
        from adapters.db import DatabaseError

        mock_db.update_profile_role.side_effect = DatabaseError("connection reset by peer", code="08006")
        response = assign(client, SUPER, user_id=TARGET, role="admin")

        assert response.status_code == 500
        assert "connection reset" not in response.text
