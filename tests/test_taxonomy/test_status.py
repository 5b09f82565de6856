"""Tests for recomator/taxonomy/status.py."""

from __future__ import annotations

import pytest

from recomator.errors import ContractViolationError, UnknownStatusError
from recomator.taxonomy.status import (
    APPLICABLE_STATUSES,
    TERMINAL_STATUSES,
    BackendStatus,
    RecommendationStatus,
    display_name,
    to_internal_status,
)


class TestTranslation:
    @pytest.mark.parametrize(
        "backend, label",
        [
            ("ACTIVE", "Applicable"),
            ("CLAIMED", "In progress"),
            ("SUCCEEDED", "Success"),
            ("FAILED", "Failed"),
            ("DISMISSED", "Dismissed"),
        ],
    )
    def test_display_mapping(self, backend, label):
        assert display_name(to_internal_status(backend)) == label

    @pytest.mark.parametrize("bad", ["IN PROGRESS", "NOT APPLIED", "active", "", "UNKNOWN"])
    def test_outside_mapping_is_hard_error(self, bad):
        with pytest.raises(UnknownStatusError) as exc_info:
            to_internal_status(bad)
        assert exc_info.value.status == bad

    def test_unknown_status_is_contract_violation(self):
        assert issubclass(UnknownStatusError, ContractViolationError)


class TestVocabularies:
    def test_backend_vocabulary(self):
        assert {s.value for s in BackendStatus} == {
            "ACTIVE", "CLAIMED", "IN PROGRESS", "SUCCEEDED", "FAILED", "NOT APPLIED",
        }

    def test_every_status_has_display_name(self):
        for status in RecommendationStatus:
            assert display_name(status)

    def test_terminal_and_applicable(self):
        assert RecommendationStatus.FAILED in TERMINAL_STATUSES
        assert RecommendationStatus.FAILED in APPLICABLE_STATUSES
        assert RecommendationStatus.CLAIMED not in TERMINAL_STATUSES
        assert RecommendationStatus.SUCCEEDED not in APPLICABLE_STATUSES

    def test_str_enum_compares_to_wire_string(self):
        assert BackendStatus.IN_PROGRESS == "IN PROGRESS"
