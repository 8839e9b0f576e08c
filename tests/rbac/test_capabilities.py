"""
Tests for RBAC roles and capabilities.
"""

import pytest

from core.rbac import (
    ALL_CAPABILITIES,
    ALL_ROLES,
    CAP_BROWSE_CATALOG,
    CAP_MANAGE_CATEGORIES,
    CAP_MANAGE_COMPANIES,
    CAP_MANAGE_RESOURCES,
    CAP_MANAGE_ROLES,
    CAP_REVIEW_SUGGESTIONS,
    CAP_VIEW_ANALYTICS,
    CAP_VIEW_DEBUG,
    CAP_VIEW_INQUIRIES,
    ROLE_ADMIN,
    ROLE_CAPABILITIES,
    ROLE_SPECIALTY_ADMIN,
    ROLE_SUBSPECIALTY_ADMIN,
    ROLE_SUPER_ADMIN,
    ROLE_USER,
    get_missing_capabilities,
    get_role_capabilities,
    has_all_capabilities,
    has_any_capability,
    has_capability,
    list_all_roles,
    validate_role,
)

CURATOR = {
    CAP_BROWSE_CATALOG,
    CAP_MANAGE_RESOURCES,
    CAP_MANAGE_CATEGORIES,
    CAP_REVIEW_SUGGESTIONS,
    CAP_VIEW_ANALYTICS,
    CAP_MANAGE_COMPANIES,
    CAP_VIEW_INQUIRIES,
}


class TestRoleCapabilityMatrix:
    """Every role maps to the expected capability set."""

    def test_every_role_is_mapped(self):
        assert set(ROLE_CAPABILITIES) == set(ALL_ROLES)

    def test_user_only_browses(self):
        assert get_role_capabilities(ROLE_USER) == {CAP_BROWSE_CATALOG}

    @pytest.mark.parametrize("role", [ROLE_ADMIN, ROLE_SUBSPECIALTY_ADMIN])
    def test_subspecialty_tier_curates(self, role):
        assert get_role_capabilities(role) == CURATOR

    def test_specialty_admin_also_manages_roles(self):
        assert get_role_capabilities(ROLE_SPECIALTY_ADMIN) == CURATOR | {CAP_MANAGE_ROLES}

    def test_super_admin_has_everything(self):
        assert get_role_capabilities(ROLE_SUPER_ADMIN) == set(ALL_CAPABILITIES)

    def test_only_super_admin_views_debug(self):
        holders = [role for role in ALL_ROLES if has_capability(role, CAP_VIEW_DEBUG)]
        assert holders == [ROLE_SUPER_ADMIN]

    def test_returned_sets_are_copies(self):
        caps = get_role_capabilities(ROLE_USER)
        caps.add(CAP_VIEW_DEBUG)
        assert not has_capability(ROLE_USER, CAP_VIEW_DEBUG)


class TestHasCapability:

    @pytest.mark.parametrize("role,capability,expected", [
        ("user", CAP_BROWSE_CATALOG, True),
        ("user", CAP_MANAGE_RESOURCES, False),
        ("subspecialty_admin", CAP_MANAGE_CATEGORIES, True),
        ("subspecialty_admin", CAP_MANAGE_ROLES, False),
        ("specialty_admin", CAP_MANAGE_ROLES, True),
        ("super_admin", CAP_VIEW_DEBUG, True),
        (" Super_Admin ", CAP_VIEW_DEBUG, True),
    ])
    def test_matrix(self, role, capability, expected):
        assert has_capability(role, capability) is expected

    @pytest.mark.parametrize("role", ["", None, 5, "owner"])
    def test_invalid_roles(self, role):
        assert has_capability(role, CAP_BROWSE_CATALOG) is False

    def test_unknown_capability(self):
        assert has_capability(ROLE_SUPER_ADMIN, "LAUNCH_ROCKETS") is False


class TestHelpers:

    def test_validate_role(self):
        assert validate_role("specialty_admin")
        assert validate_role("ADMIN")
        assert not validate_role("owner")
        assert not validate_role("")

    def test_any_and_all(self):
        assert has_any_capability(ROLE_USER, [CAP_MANAGE_ROLES, CAP_BROWSE_CATALOG])
        assert not has_all_capabilities(ROLE_USER, [CAP_MANAGE_ROLES, CAP_BROWSE_CATALOG])
        assert has_all_capabilities(ROLE_SPECIALTY_ADMIN, [CAP_MANAGE_ROLES, CAP_BROWSE_CATALOG])

    def test_missing(self):
        assert get_missing_capabilities(ROLE_SUBSPECIALTY_ADMIN, [CAP_MANAGE_RESOURCES, CAP_MANAGE_ROLES]) == {
            CAP_MANAGE_ROLES
        }

    def test_list_all_roles(self):
        roles = list_all_roles()
        assert set(roles) == set(ALL_ROLES)
        assert roles[ROLE_SUPER_ADMIN]["rank"] > roles[ROLE_SPECIALTY_ADMIN]["rank"] > roles[ROLE_USER]["rank"]
        assert roles[ROLE_USER]["capabilities"] == [CAP_BROWSE_CATALOG]
        assert all(meta["description"] for meta in roles.values())
