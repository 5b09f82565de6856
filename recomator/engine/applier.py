"""
Apply a user selection of recommendations.

Two-phase update per record:
  1. Optimistic: status → CLAIMED before the request leaves.
  2. Reconcile:  2xx → ``needs_watcher = True`` (the central watcher learns
     the outcome later); anything else → FAILED with an HTTP error header.

Records are applied one at a time in the caller's order, each request
resolving before the next starts, to keep backend load predictable.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Sequence

from recomator.client.resilient_fetch import ResilientFetch
from recomator.engine.ranker import SimilarityRanker
from recomator.engine.store import RecommendationStore
from recomator.errors import DuplicateNamesError
from recomator.models.recommendation import RecommendationRecord
from recomator.taxonomy.status import RecommendationStatus

logger = logging.getLogger(__name__)


class ApplyOrchestrator:
    """Validates, records and sends apply requests.

    Args:
        fetch: Authenticated HTTP caller.
        store: Store the names are resolved against.
        ranker: Training model updated for every applied record.
        max_retries: Transport retries per apply request.
    """

    def __init__(
        self,
        fetch: ResilientFetch,
        store: RecommendationStore,
        ranker: SimilarityRanker,
        max_retries: Optional[int] = None,
    ) -> None:
        self.fetch = fetch
        self.store = store
        self.ranker = ranker
        self.max_retries = max_retries

    def resolve(self, names: Sequence[str]) -> list[RecommendationRecord]:
        """Map names to records, enforcing the batch preconditions.

        Raises:
            DuplicateNamesError: If a name appears more than once.
            UnknownRecommendationError: If a name is not in the store.
        """
        duplicates = [name for name, count in Counter(names).items() if count > 1]
        if duplicates:
            raise DuplicateNamesError(duplicates)
        return [self.store.require(name) for name in names]

    async def apply_given_recommendations(self, names: Sequence[str]) -> None:
        """Apply every named recommendation, sequentially and in order.

        All preconditions are checked before any request is sent.  Training
        counters are updated and persisted up front, before the outcomes are
        known.
        """
        records = self.resolve(names)

        for record in records:
            self.ranker.apply_added_recommendation(record)
        self.ranker.save()

        logger.info("Applying %d recommendation(s).", len(records))
        for record in records:
            await self.apply_single_recommendation(record)

    async def apply_single_recommendation(self, record: RecommendationRecord) -> None:
        """Claim ``record`` locally and send its apply request."""
        record.status = RecommendationStatus.CLAIMED
        record.clear_error()

        response = await self.fetch.call(
            "POST",
            "/recommendations/apply",
            params={"name": record.name},
            max_retries=self.max_retries,
        )

        if response.is_success:
            record.needs_watcher = True
            logger.info(
                "Apply accepted (HTTP %d).", response.status_code,
                extra={"rec_name": record.name},
            )
            return

        record.needs_watcher = False
        record.status = RecommendationStatus.FAILED
        record.set_error(
            f"HTTP ERROR({response.status_code})",
            f"Couldn't reach the Recomator API:\n{response.reason_phrase}",
        )
        logger.warning(
            "Apply rejected (HTTP %d).", response.status_code,
            extra={"rec_name": record.name},
        )
