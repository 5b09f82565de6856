"""
Tests for recomator/engine/fetcher.py.

What we test
------------
- Progress percentage arithmetic.
- Happy path: project selection posted, request id polled, records
  ingested, ranked and counted as seen.
- Reported failures (non-201 on submit, non-200 on poll, a poll body that
  is not a JSON object) end the session with a message instead of raising.
- The one-fetch-at-a-time guard.
- Contract violations in the batch propagate and leave the store empty.
"""

from __future__ import annotations

import json

import httpx
import pytest

from recomator.engine.fetcher import FetchOrchestrator, batch_progress
from recomator.errors import DuplicateRecommendationError
from recomator.models.training import TrainingData
from tests.conftest import FakeBackend, make_record, raw_recommendation


@pytest.fixture
def fetcher(fetch, store, ranker, sleeper) -> FetchOrchestrator:
    return FetchOrchestrator(
        fetch,
        store,
        ranker,
        selected_projects=lambda: ["proj-a", "proj-b"],
        poll_interval_s=0.1,
        sleep=sleeper,
    )


def _done(*raws) -> httpx.Response:
    return httpx.Response(200, json={"recommendations": list(raws)})


class TestBatchProgress:
    @pytest.mark.parametrize(
        "processed, total, expected",
        [(0, 4, 0), (1, 4, 25), (1, 3, 33), (2, 3, 66), (4, 4, 100), (5, 4, 100), (3, 0, 0)],
    )
    def test_percent(self, processed, total, expected):
        assert batch_progress(processed, total) == expected


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_submit_poll_ingest(self, fetcher, backend: FakeBackend, store, sleeper):
        seen_progress: list[int | None] = []

        def _progress_reply(processed: int):
            def reply(request: httpx.Request) -> httpx.Response:
                seen_progress.append(fetcher.session.progress)
                return httpx.Response(
                    200, json={"batchesProcessed": processed, "numberOfBatches": 4}
                )
            return reply

        backend.queue("POST", "/recommendations", httpx.Response(201, text="req-42"))
        backend.queue(
            "GET", "/recommendations",
            _progress_reply(1),
            _progress_reply(3),
            _done(raw_recommendation(name="r1"), raw_recommendation(name="r2")),
        )

        await fetcher.fetch_recommendations()

        submit = backend.calls_to("POST", "/recommendations")[0]
        assert json.loads(submit.content) == {"projects": ["proj-a", "proj-b"]}
        polls = backend.calls_to("GET", "/recommendations")
        assert len(polls) == 3
        assert all(p.url.params["request_id"] == "req-42" for p in polls)

        assert seen_progress == [0, 25]
        assert sleeper.delays == [0.1, 0.1]
        assert [r.name for r in store] == ["r1", "r2"]
        assert fetcher.session.request_id == "req-42"
        assert not fetcher.session.active
        assert not fetcher.session.failed

    @pytest.mark.asyncio
    async def test_ingested_records_counted_and_ranked(self, fetcher, backend, store, ranker):
        ranker.data = TrainingData(
            project_counters={"proj-b": [5, 5]},
            type_counters={"STOP_VM": [5, 5]},
        )
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue(
            "GET", "/recommendations",
            _done(
                raw_recommendation(name="far", project="proj-a", type_name="OTHER"),
                raw_recommendation(name="near", project="proj-b", type_name="STOP_VM"),
            ),
        )

        await fetcher.fetch_recommendations()

        assert [r.name for r in store] == ["near", "far"]
        assert ranker.data.project_counters["proj-a"] == [0, 1]
        assert ranker.data.project_counters["proj-b"] == [5, 6]
        assert ranker.data.type_counters["OTHER"] == [0, 1]

    @pytest.mark.asyncio
    async def test_null_batch_is_empty(self, fetcher, backend, store):
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue("GET", "/recommendations", httpx.Response(200, json={"recommendations": None}))
        await fetcher.fetch_recommendations()
        assert len(store) == 0
        assert not fetcher.session.failed

    @pytest.mark.asyncio
    async def test_store_replaced(self, fetcher, backend, store):
        store.add(make_record("stale"))
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue("GET", "/recommendations", _done(raw_recommendation(name="fresh")))
        await fetcher.fetch_recommendations()
        assert [r.name for r in store] == ["fresh"]


class TestReportedFailures:
    @pytest.mark.asyncio
    async def test_submit_rejected(self, fetcher, backend, store):
        backend.queue("POST", "/recommendations", httpx.Response(500))
        await fetcher.fetch_recommendations()
        assert fetcher.session.error_code == 500
        assert fetcher.session.error_message == "selecting projects failed: Internal Server Error"
        assert not fetcher.session.active
        assert backend.calls_to("GET", "/recommendations") == []
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_created_required(self, fetcher, backend):
        backend.queue("POST", "/recommendations", httpx.Response(200, text="id"))
        await fetcher.fetch_recommendations()
        assert fetcher.session.error_code == 200

    @pytest.mark.asyncio
    async def test_poll_rejected(self, fetcher, backend, store):
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue("GET", "/recommendations", httpx.Response(404))
        await fetcher.fetch_recommendations()
        assert fetcher.session.error_code == 404
        assert fetcher.session.error_message == "progress check failed: Not Found"
        assert not fetcher.session.active
        assert len(store) == 0

    @pytest.mark.parametrize(
        "reply",
        [httpx.Response(200, text="<html>busy</html>"), httpx.Response(200, json=["r1"])],
        ids=["html", "json-list"],
    )
    @pytest.mark.asyncio
    async def test_poll_body_not_an_object(self, fetcher, backend, store, reply):
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue("GET", "/recommendations", reply)
        await fetcher.fetch_recommendations()
        assert fetcher.session.error_code == 200
        assert fetcher.session.error_message == "progress check failed: malformed response body"
        assert not fetcher.session.active
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_poll_progress_not_numeric(self, fetcher, backend):
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue(
            "GET", "/recommendations",
            httpx.Response(200, json={"batchesProcessed": "many", "numberOfBatches": 4}),
        )
        await fetcher.fetch_recommendations()
        assert fetcher.session.error_message == "progress check failed: malformed progress"
        assert not fetcher.session.active

    @pytest.mark.asyncio
    async def test_next_fetch_clears_error(self, fetcher, backend):
        backend.queue("POST", "/recommendations", httpx.Response(500), httpx.Response(201, text="id"))
        backend.queue("GET", "/recommendations", _done())
        await fetcher.fetch_recommendations()
        assert fetcher.session.failed
        await fetcher.fetch_recommendations()
        assert not fetcher.session.failed


class TestGuard:
    @pytest.mark.asyncio
    async def test_active_session_is_noop(self, fetcher, backend, store):
        store.add(make_record("kept"))
        fetcher.session.progress = 50
        await fetcher.fetch_recommendations()
        assert backend.requests == []
        assert [r.name for r in store] == ["kept"]
        assert fetcher.session.progress == 50


class TestContractViolations:
    @pytest.mark.asyncio
    async def test_duplicate_names_in_batch(self, fetcher, backend, store):
        backend.queue("POST", "/recommendations", httpx.Response(201, text="id"))
        backend.queue(
            "GET", "/recommendations",
            _done(raw_recommendation(name="dup"), raw_recommendation(name="dup")),
        )
        with pytest.raises(DuplicateRecommendationError):
            await fetcher.fetch_recommendations()
        assert len(store) == 0
        assert not fetcher.session.active
