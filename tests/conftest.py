"""
Shared pytest fixtures for the Recomator client test suite.

Provides:
  - ``raw_recommendation()``: factory for a fresh wire-format recommendation.
  - ``FakeBackend``: an ``httpx.MockTransport`` handler that serves queued
    responses per (method, path) and records every request.
  - ``SleepRecorder``: drop-in ``sleep`` that records delays without waiting.
  - Fixtures wiring these into ``ResilientFetch`` and the engine parts.
"""

from __future__ import annotations

import copy
from collections import defaultdict, deque
from typing import Any, AsyncGenerator, Callable, Union

import httpx
import pytest
import pytest_asyncio

from recomator.client.resilient_fetch import AuthState, ResilientFetch
from recomator.engine.ranker import SimilarityRanker
from recomator.engine.store import RecommendationStore
from recomator.models.recommendation import RecommendationRecord
from recomator.storage.local_state import LocalStateStore

BASE_URL = "http://backend.test/api"

_SAMPLE_RAW: dict[str, Any] = {
    "content": {
        "operationGroups": [
            {
                "operations": [
                    {
                        "action": "test",
                        "path": "/machineType",
                        "resource": (
                            "//compute.googleapis.com/projects/rightsizer-test"
                            "/zones/us-east1-b/instances/alicja-test"
                        ),
                        "resourceType": "compute.googleapis.com/Instance",
                        "valueMatcher": {
                            "matchesPattern": ".*zones/us-east1-b/machineTypes/n1-standard-4"
                        },
                    },
                    {
                        "action": "replace",
                        "path": "/machineType",
                        "resource": (
                            "//compute.googleapis.com/projects/rightsizer-test"
                            "/zones/us-east1-b/instances/alicja-test"
                        ),
                        "resourceType": "compute.googleapis.com/Instance",
                        "value": "zones/us-east1-b/machineTypes/custom-2-5120",
                    },
                ]
            }
        ]
    },
    "description": "Save cost by changing machine type from n1-standard-4 to custom-2-5120.",
    "etag": '"da62b100443c341b"',
    "lastRefreshTime": "2020-07-13T06:41:17Z",
    "name": (
        "projects/323016592286/locations/us-east1-b/recommenders/"
        "google.compute.instance.MachineTypeRecommender/recommendations/"
        "6dfd692f-14b7-499a-be95-a09fe0893911"
    ),
    "primaryImpact": {
        "category": "COST",
        "costProjection": {
            "cost": {"currencyCode": "USD", "nanos": -268972762, "units": "-73"},
            "duration": "2592000s",
        },
    },
    "recommenderSubtype": "CHANGE_MACHINE_TYPE",
    "stateInfo": {"state": "ACTIVE"},
}


def raw_recommendation(
    name: str | None = None,
    project: str = "rightsizer-test",
    type_name: str = "CHANGE_MACHINE_TYPE",
    state: str = "ACTIVE",
) -> dict[str, Any]:
    """Fresh deep copy of the sample wire recommendation with overrides."""
    raw = copy.deepcopy(_SAMPLE_RAW)
    if name is not None:
        raw["name"] = name
    for op in raw["content"]["operationGroups"][0]["operations"]:
        op["resource"] = (
            f"//compute.googleapis.com/projects/{project}"
            "/zones/us-east1-b/instances/alicja-test"
        )
    raw["recommenderSubtype"] = type_name
    raw["stateInfo"]["state"] = state
    return raw


def make_record(
    name: str,
    project: str = "rightsizer-test",
    type_name: str = "CHANGE_MACHINE_TYPE",
    state: str = "ACTIVE",
) -> RecommendationRecord:
    return RecommendationRecord.from_raw(
        raw_recommendation(name=name, project=project, type_name=type_name, state=state)
    )


# ── Fake backend ──────────────────────────────────────────────────────────────

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Serves queued replies per ``(METHOD, path)``; records all requests.

    The last reply queued for a route is repeated once the queue drains.
    An ``Exception`` reply is raised instead of answering (transport failure).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], deque[Reply]] = defaultdict(deque)
        self.requests: list[httpx.Request] = []

    def queue(self, method: str, path: str, *replies: Reply) -> None:
        self.routes[(method.upper(), "/api" + path)].extend(replies)

    def calls_to(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == "/api" + path
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(404, text="no route")
        reply = replies.popleft() if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # Fresh copy: a Response object is bound to the request it answers.
            return httpx.Response(
                reply.status_code, headers=reply.headers, content=reply.content
            )
        return reply(request)


class SleepRecorder:
    """Async ``sleep`` replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def http_client(backend: FakeBackend) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as client:
        yield client


@pytest.fixture
def auth() -> AuthState:
    return AuthState(token="test-token")


@pytest.fixture
def fetch(http_client: httpx.AsyncClient, auth: AuthState, sleeper: SleepRecorder) -> ResilientFetch:
    return ResilientFetch(
        client=http_client,
        base_url=BASE_URL,
        auth=auth,
        default_max_retries=3,
        base_delay_s=2.0,
        sleep=sleeper,
    )


@pytest.fixture
def state(tmp_path) -> LocalStateStore:
    return LocalStateStore(tmp_path / "state")


@pytest.fixture
def store() -> RecommendationStore:
    return RecommendationStore()


@pytest.fixture
def ranker(state: LocalStateStore) -> SimilarityRanker:
    return SimilarityRanker(state)
