"""Tests for recomator/models/training.py and recomator/models/session.py."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from recomator.models.session import FetchSession
from recomator.models.training import APPLIED, SEEN, TrainingData


class TestTrainingData:
    def test_empty(self):
        data = TrainingData()
        assert data.total_applied() == 0
        assert data.applied_with_project("anything") == 0
        assert data.applied_with_type("anything") == 0

    def test_lookups_do_not_create_counters(self):
        data = TrainingData()
        data.applied_with_project("p")
        data.applied_with_type("t")
        assert data.project_counters == {}
        assert data.type_counters == {}

    def test_counter_created_on_first_use(self):
        data = TrainingData()
        counter = data.project_counter("p")
        counter[SEEN] += 1
        counter[APPLIED] += 1
        assert data.project_counters == {"p": [1, 1]}
        assert data.project_counter("p") is counter

    def test_total_applied_sums_projects(self):
        data = TrainingData(
            project_counters={"a": [3, 10], "b": [2, 4]},
            type_counters={"T": [99, 100]},
        )
        assert data.total_applied() == 5

    def test_json_uses_camel_case_keys(self):
        data = TrainingData(project_counters={"a": [1, 2]}, type_counters={"T": [1, 2]})
        assert json.loads(data.to_json()) == {
            "projectCounters": {"a": [1, 2]},
            "typeCounters": {"T": [1, 2]},
        }

    def test_from_json(self):
        blob = '{"projectCounters": {"a": [30, 100]}, "typeCounters": {"STOP_VM": [15, 95]}}'
        data = TrainingData.from_json(blob)
        assert data.applied_with_project("a") == 30
        assert data.type_counters["STOP_VM"] == [15, 95]

    @pytest.mark.parametrize(
        "blob",
        [
            "not json",
            '{"projectCounters": {"a": [1]}}',
            '{"projectCounters": {"a": [1, 2, 3]}}',
            '{"typeCounters": {"T": [-1, 2]}}',
        ],
    )
    def test_malformed_blobs_rejected(self, blob):
        with pytest.raises(ValidationError):
            TrainingData.from_json(blob)


class TestFetchSession:
    def test_idle_by_default(self):
        session = FetchSession()
        assert not session.active
        assert not session.failed

    def test_begin_resets_previous_failure(self):
        session = FetchSession()
        session.fail(500, "boom")
        session.begin()
        assert session.active
        assert session.progress == 0
        assert session.error_code is None
        assert session.error_message is None

    def test_fail_ends_session(self):
        session = FetchSession()
        session.begin()
        session.fail(404, "progress check failed: Not Found")
        assert not session.active
        assert session.failed
        assert session.error_message == "progress check failed: Not Found"

    def test_progress_bounds(self):
        session = FetchSession()
        with pytest.raises(ValidationError):
            session.progress = 101
        with pytest.raises(ValidationError):
            session.progress = -1
