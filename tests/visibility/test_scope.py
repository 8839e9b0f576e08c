"""
Tests for catalog scope resolution.
"""

from unittest.mock import MagicMock

import pytest

from core.metrics import get_counter
from core.profiles import UserProfile
from core.visibility import LOAD_ALL, InMemoryReferenceData, ScopeResult, resolve_scope
from core.visibility.scope import NOTHING, podiatry_subspecialty_id
from tests.conftest import (
    FOOT_ANKLE_ID,
    GENERALIST_ID,
    ORTHO_ID,
    PLASTICS_ID,
    PODIATRY_ID,
    SPECIALTIES,
    SPORTS_ID,
    SUBSPECIALTIES,
)


class TestSubspecialtyScope:
    """A subspecialty on the profile (or being browsed) decides the scope."""

    def test_own_subspecialty(self, reference):
        result = resolve_scope({"subspecialtyId": FOOT_ANKLE_ID}, reference)
        assert result == ScopeResult(load_all=False, effective_subspecialty_id=FOOT_ANKLE_ID)

    def test_generalist_loads_all(self, reference):
        result = resolve_scope({"subspecialtyId": GENERALIST_ID}, reference)
        assert result == LOAD_ALL

    @pytest.mark.parametrize("name", ["Generalist", "generalist", "  GENERALIST "])
    def test_generalist_name_is_case_insensitive(self, name):
        ref = InMemoryReferenceData(subspecialties=[{"id": "gen-1", "name": name}])
        assert resolve_scope({"subspecialtyId": "gen-1"}, ref).load_all is True

    def test_browsing_overrides_profile(self, reference):
        profile = UserProfile(id="u1", subspecialty_id=FOOT_ANKLE_ID)
        result = resolve_scope(profile, reference, browsing_subspecialty_id=SPORTS_ID)
        assert result.effective_subspecialty_id == SPORTS_ID

    def test_blank_browsing_id_is_ignored(self, reference):
        profile = UserProfile(id="u1", subspecialty_id=FOOT_ANKLE_ID)
        result = resolve_scope(profile, reference, browsing_subspecialty_id="   ")
        assert result.effective_subspecialty_id == FOOT_ANKLE_ID

    def test_subspecialty_wins_over_specialty(self, reference):
        profile = UserProfile(id="u1", specialty_id=PODIATRY_ID, subspecialty_id=SPORTS_ID)
        assert resolve_scope(profile, reference).effective_subspecialty_id == SPORTS_ID

    def test_accepts_profile_rows(self, reference):
        row = {"id": "u1", "primary_subspecialty_id": SPORTS_ID}
        assert resolve_scope(row, reference).effective_subspecialty_id == SPORTS_ID


class TestGeneralOrthopedics:
    """A General Orthopedics subspecialty opens its whole orthopedic specialty."""

    GENERAL_ID = "77777777-7777-4777-8777-777777777777"

    def reference_with(self, subspecialty_name, specialty_id=ORTHO_ID):
        return InMemoryReferenceData(SPECIALTIES, SUBSPECIALTIES + [
            {"id": self.GENERAL_ID, "name": subspecialty_name, "specialty_id": specialty_id},
        ])

    @pytest.mark.parametrize("name", ["General Orthopedics", "General Orthopaedics", "general orthopaedic trauma"])
    def test_loads_specialty(self, name):
        result = resolve_scope({"subspecialtyId": self.GENERAL_ID}, self.reference_with(name))
        assert result == ScopeResult(load_all=False, load_specialty_id=ORTHO_ID)

    def test_browsing_general_orthopedics(self):
        profile = UserProfile(id="u1", subspecialty_id=FOOT_ANKLE_ID)
        ref = self.reference_with("General Orthopedics")
        result = resolve_scope(profile, ref, browsing_subspecialty_id=self.GENERAL_ID)
        assert result.load_specialty_id == ORTHO_ID

    def test_non_orthopedic_specialty_is_ordinary_subspecialty(self):
        ref = self.reference_with("General Orthopedics", specialty_id=PLASTICS_ID)
        result = resolve_scope({"subspecialtyId": self.GENERAL_ID}, ref)
        assert result == ScopeResult(load_all=False, effective_subspecialty_id=self.GENERAL_ID)

    def test_general_without_orthopedics_is_ordinary_subspecialty(self):
        result = resolve_scope({"subspecialtyId": self.GENERAL_ID}, self.reference_with("General Hand"))
        assert result.effective_subspecialty_id == self.GENERAL_ID
        assert result.load_specialty_id is None

    def test_generalist_still_loads_all(self, reference):
        assert resolve_scope({"subspecialtyId": GENERALIST_ID}, reference) == LOAD_ALL

    def test_parent_lookup_error(self):
        lookup = MagicMock()
        lookup.get_subspecialty_name.return_value = "General Orthopedics"
        lookup.get_subspecialty_specialty_id.side_effect = ConnectionError("db down")
        assert resolve_scope({"subspecialtyId": self.GENERAL_ID}, lookup, fail_open=False) == NOTHING


class TestSpecialtyScope:
    """Without a subspecialty, only Podiatry narrows the scope."""

    def test_podiatry_maps_to_foot_and_ankle(self, reference):
        result = resolve_scope({"specialtyId": PODIATRY_ID}, reference)
        assert result == ScopeResult(load_all=False, effective_subspecialty_id=FOOT_ANKLE_ID)

    def test_podiatry_with_us_spelling(self):
        ref = InMemoryReferenceData(
            specialties=[{"id": "pod", "name": "Podiatry"}, {"id": "ortho-us", "name": "Orthopedic Surgery"}],
            subspecialties=[{"id": "fa-123", "name": "Foot and Ankle", "specialty_id": "ortho-us"}],
        )
        assert resolve_scope({"specialtyId": "pod"}, ref).effective_subspecialty_id == "fa-123"

    def test_british_spelling_tried_first(self):
        ref = InMemoryReferenceData(
            specialties=[
                {"id": "pod", "name": "Podiatry"},
                {"id": "ortho-us", "name": "Orthopedic Surgery"},
                {"id": "ortho-uk", "name": "Orthopaedic Surgery"},
            ],
            subspecialties=[
                {"id": "fa-us", "name": "Foot and Ankle", "specialty_id": "ortho-us"},
                {"id": "fa-uk", "name": "Foot and Ankle", "specialty_id": "ortho-uk"},
            ],
        )
        assert resolve_scope({"specialtyId": "pod"}, ref).effective_subspecialty_id == "fa-uk"

    def test_other_specialty_loads_all(self, reference):
        assert resolve_scope({"specialtyId": PLASTICS_ID}, reference) == LOAD_ALL

    @pytest.mark.parametrize("user", [None, {}, UserProfile.anonymous(), {"specialtyId": "", "subspecialtyId": None}])
    def test_nothing_on_profile_loads_all(self, reference, user):
        assert resolve_scope(user, reference) == LOAD_ALL

    def test_idempotent(self, reference):
        user = {"specialtyId": PODIATRY_ID}
        assert resolve_scope(user, reference) == resolve_scope(user, reference)


class TestFailModes:
    """Lookup misses and lookup errors."""

    def test_unknown_subspecialty_fails_open(self, reference):
        assert resolve_scope({"subspecialtyId": "missing"}, reference) == LOAD_ALL
        assert get_counter("visibility.fail_open", {"reason": "subspecialty_miss"}) == 1

    def test_unknown_subspecialty_fails_closed(self, reference):
        assert resolve_scope({"subspecialtyId": "missing"}, reference, fail_open=False) == NOTHING
        assert get_counter("visibility.fail_closed", {"reason": "subspecialty_miss"}) == 1

    def test_unknown_specialty_fails_open(self, reference):
        assert resolve_scope({"specialtyId": "missing"}, reference) == LOAD_ALL

    def test_podiatry_without_orthopedics_fails_open(self):
        ref = InMemoryReferenceData(specialties=[{"id": "pod", "name": "Podiatry"}])
        assert resolve_scope({"specialtyId": "pod"}, ref) == LOAD_ALL
        assert get_counter("visibility.fail_open", {"reason": "podiatry_unmapped"}) == 1

    def test_podiatry_without_foot_and_ankle_fails_closed(self):
        ref = InMemoryReferenceData(specialties=SPECIALTIES, subspecialties=[
            row for row in SUBSPECIALTIES if row["id"] != FOOT_ANKLE_ID
        ])
        assert resolve_scope({"specialtyId": PODIATRY_ID}, ref, fail_open=False) == NOTHING

    @pytest.mark.parametrize("fail_open,expected", [(True, LOAD_ALL), (False, NOTHING)])
    def test_lookup_error(self, fail_open, expected):
        lookup = MagicMock()
        lookup.get_subspecialty_name.side_effect = ConnectionError("db down")

        result = resolve_scope({"subspecialtyId": SPORTS_ID}, lookup, fail_open=fail_open)

        assert result == expected
        name = "visibility.fail_open" if fail_open else "visibility.fail_closed"
        assert get_counter(name, {"reason": "lookup_error"}) == 1

    def test_lookup_error_during_podiatry_mapping(self):
        lookup = MagicMock()
        lookup.get_specialty_name.return_value = "Podiatry"
        lookup.find_specialty_id.side_effect = TimeoutError("slow")
        assert resolve_scope({"specialtyId": "pod"}, lookup) == LOAD_ALL


def test_podiatry_subspecialty_id(reference):
    assert podiatry_subspecialty_id(reference) == FOOT_ANKLE_ID


def test_scope_result_to_dict():
    assert ScopeResult(False, "fa-123").to_dict() == {
        "load_all": False,
        "effective_subspecialty_id": "fa-123",
        "load_specialty_id": None,
    }


def test_records_resolved_scope(reference):
    resolve_scope({"subspecialtyId": SPORTS_ID}, reference)
    assert get_counter("visibility.scope_resolved", {"load_all": "False", "reason": "resolved"}) == 1
