"""
Tests for admin scoping: curation scope, role assignment, messaging.
"""

import pytest

from core.profiles import Role, UserProfile
from core.rbac import admin_scope, can_assign_role, can_message

ORTHO = "ortho"
NEURO = "neuro"


def admin(role, user_id="a1", specialty_id=None, subspecialty_id=None):
    return UserProfile(id=user_id, role=Role(role), specialty_id=specialty_id, subspecialty_id=subspecialty_id)


def subspecialties_of(specialty_id):
    return {ORTHO: ["fa", "sports", "spine"], NEURO: ["peds"]}.get(specialty_id, [])


class TestAdminScope:

    def test_super_admin_unfiltered(self):
        assert admin_scope(admin("super_admin"), subspecialties_of) is None

    def test_specialty_admin_gets_all_subspecialties(self):
        assert admin_scope(admin("specialty_admin", specialty_id=ORTHO), subspecialties_of) == [
            "fa", "sports", "spine"
        ]

    def test_specialty_admin_without_specialty(self):
        assert admin_scope(admin("specialty_admin"), subspecialties_of) == []

    @pytest.mark.parametrize("role", ["subspecialty_admin", "admin"])
    def test_subspecialty_tier(self, role):
        assert admin_scope(admin(role, subspecialty_id="fa"), subspecialties_of) == ["fa"]
        assert admin_scope(admin(role), subspecialties_of) == []

    def test_regular_user_gets_nothing(self):
        assert admin_scope({"role": "user", "subspecialty_id": "fa"}, subspecialties_of) == []


class TestCanAssignRole:

    @pytest.mark.parametrize("role", ["admin", "subspecialty_admin", "specialty_admin", "super_admin"])
    def test_super_admin_assigns_any_admin_role(self, role):
        assert can_assign_role(admin("super_admin"), role)

    def test_nobody_assigns_user(self):
        assert not can_assign_role(admin("super_admin"), "user")

    def test_specialty_admin_inside_own_specialty(self):
        actor = admin("specialty_admin", specialty_id=ORTHO)
        assert can_assign_role(actor, "subspecialty_admin", ORTHO)
        assert can_assign_role(actor, Role.SUBSPECIALTY_ADMIN, ORTHO)

    @pytest.mark.parametrize("role,specialty", [
        ("subspecialty_admin", NEURO),
        ("subspecialty_admin", None),
        ("specialty_admin", ORTHO),
        ("super_admin", ORTHO),
        ("admin", ORTHO),
    ])
    def test_specialty_admin_limits(self, role, specialty):
        assert not can_assign_role(admin("specialty_admin", specialty_id=ORTHO), role, specialty)

    @pytest.mark.parametrize("role", ["subspecialty_admin", "admin", "user"])
    def test_lower_tiers_assign_nothing(self, role):
        assert not can_assign_role(admin(role, specialty_id=ORTHO), "subspecialty_admin", ORTHO)

    @pytest.mark.parametrize("target", ["owner", "", None, 3])
    def test_invalid_target_roles(self, target):
        assert not can_assign_role(admin("super_admin"), target)


class TestCanMessage:

    def test_super_admin_reaches_everyone(self):
        sender = admin("super_admin", user_id="s")
        assert can_message(sender, admin("subspecialty_admin", user_id="x", specialty_id=NEURO))
        assert can_message(sender, admin("specialty_admin", user_id="y", specialty_id=ORTHO))

    def test_anyone_reaches_super_admin(self):
        sender = admin("subspecialty_admin", user_id="x", specialty_id=NEURO)
        assert can_message(sender, admin("super_admin", user_id="s"))

    def test_specialty_admin_reaches_own_subspecialty_admins(self):
        sender = admin("specialty_admin", user_id="sp", specialty_id=ORTHO)
        assert can_message(sender, admin("subspecialty_admin", user_id="x", specialty_id=ORTHO))
        assert can_message(sender, admin("admin", user_id="y", specialty_id=ORTHO))
        assert not can_message(sender, admin("subspecialty_admin", user_id="z", specialty_id=NEURO))
        assert not can_message(sender, admin("specialty_admin", user_id="sp2", specialty_id=ORTHO))

    def test_subspecialty_admin_reaches_peers_and_specialty_admin(self):
        sender = admin("subspecialty_admin", user_id="x", specialty_id=ORTHO)
        assert can_message(sender, admin("subspecialty_admin", user_id="x2", specialty_id=ORTHO))
        assert can_message(sender, admin("specialty_admin", user_id="sp", specialty_id=ORTHO))
        assert not can_message(sender, admin("specialty_admin", user_id="sp", specialty_id=NEURO))

    def test_regular_users_never_message(self):
        user = UserProfile(id="u1")
        assert not can_message(user, admin("super_admin", user_id="s"))
        assert not can_message(admin("super_admin", user_id="s"), user)

    def test_not_yourself(self):
        me = admin("super_admin", user_id="s")
        assert not can_message(me, me)
