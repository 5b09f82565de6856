"""
Recommendation fetch: submit a project selection, long-poll until the
backend has finished gathering, ingest, rank.

Protocol::

    POST /recommendations  {"projects": [...]}       → 201, body = request id
    GET  /recommendations?request_id=<id>            → 200 {"batchesProcessed": n, "numberOfBatches": m}
                                                     → 200 {"recommendations": [...]}   (done)

Failures are *reported* on the ``FetchSession`` (see ``engine.polling``),
never raised to the caller.  Only caller-contract violations (duplicate
names, unparseable records) and the ``ResilientFetch`` signals propagate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from recomator.client.resilient_fetch import ResilientFetch
from recomator.engine.polling import LongPollJob, batch_progress
from recomator.engine.ranker import SimilarityRanker
from recomator.engine.store import RecommendationStore
from recomator.models.recommendation import RecommendationRecord
from recomator.models.session import FetchSession

logger = logging.getLogger(__name__)

__all__ = ["FetchOrchestrator", "batch_progress"]


class FetchOrchestrator(LongPollJob):
    """Runs at most one recommendations fetch at a time.

    Args:
        fetch: Authenticated HTTP caller.
        store: Store to repopulate.
        ranker: Ranker to update and sort with.
        selected_projects: Zero-arg callable returning the current selection.
        session: Session state shared with the UI.
        poll_interval_s: Delay between progress polls.
        max_retries: Transport retries per request.
        sleep: Awaitable sleep, replaceable in tests.
    """

    path = "/recommendations"
    done_key = "recommendations"

    def __init__(
        self,
        fetch: ResilientFetch,
        store: RecommendationStore,
        ranker: SimilarityRanker,
        selected_projects: Callable[[], Sequence[str]],
        session: Optional[FetchSession] = None,
        poll_interval_s: float = 0.1,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(
            fetch,
            selected_projects,
            session=session,
            poll_interval_s=poll_interval_s,
            max_retries=max_retries,
            sleep=sleep,
        )
        self.store = store
        self.ranker = ranker

    async def fetch_recommendations(self) -> None:
        """Replace the store's contents with a freshly fetched, ranked batch.

        No-op if a fetch is already in progress.
        """
        await self.run()

    def _reset(self) -> None:
        self.store.reset()

    def _ingest(self, payload: dict[str, Any]) -> None:
        raw_recommendations = payload.get(self.done_key) or []
        records = [RecommendationRecord.from_raw(raw) for raw in raw_recommendations]
        self.store.extend(records)
        self.ranker.add_recommendations(self.store)
        self.ranker.sort(self.store)
        self.session.progress = 100

        logger.info("Fetched %d recommendation(s).", len(self.store))
