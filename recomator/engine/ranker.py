"""
Similarity ranking: order recommendations by how closely they resemble the
ones the operator applied before.

Scoring
-------
The distance between two recommendations is the number of features that
differ (project, type).  Averaged over every applied recommendation this
reduces to::

    similarity(r) = (1 - applied_with_same_project / total_applied)
                  + (1 - applied_with_same_type    / total_applied)

``total_applied`` is the sum of the per-project applied counters.  Lower is
closer to history and sorts first.  With no history (``total_applied == 0``)
each feature contributes a full 1, so every record scores 2.

Usage flow
----------
1. ``SimilarityRanker.load()`` once at startup (corrupt/missing → empty model).
2. ``add_recommendation(rec)`` for every ingested record (seen counters).
3. ``sort(store)`` after ingestion.
4. ``apply_added_recommendation(rec)`` for every applied record, then
   ``save()`` once per apply batch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import ValidationError

from recomator.models.recommendation import RecommendationRecord
from recomator.models.training import APPLIED, SEEN, TrainingData

if TYPE_CHECKING:
    from recomator.engine.store import RecommendationStore
    from recomator.storage.local_state import LocalStateStore

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "training_data"


def _feature_penalty(applied_same: int, total_applied: int) -> float:
    if total_applied == 0:
        return 1.0
    return 1.0 - applied_same / total_applied


def similarity(
    record: RecommendationRecord,
    data: TrainingData,
    total_applied: Optional[int] = None,
) -> float:
    """Average feature distance of ``record`` to all applied recommendations.

    Args:
        record: Recommendation to score.
        data: Current training counters (not modified).
        total_applied: Precomputed ``data.total_applied()``; computed if omitted.

    Returns:
        Score in ``[0, 2]``; lower means more similar.
    """
    if total_applied is None:
        total_applied = data.total_applied()
    return (
        _feature_penalty(data.applied_with_project(record.project), total_applied)
        + _feature_penalty(data.applied_with_type(record.type), total_applied)
    )


def similarity_sort(records: list[RecommendationRecord], data: TrainingData) -> None:
    """Sort ``records`` in place by ascending similarity score.

    ``list.sort`` is stable, so equal scores keep their relative order.
    """
    total_applied = data.total_applied()
    scores = {id(r): similarity(r, data, total_applied) for r in records}
    records.sort(key=lambda r: scores[id(r)])


class SimilarityRanker:
    """Owns the training counters and their persistence.

    Args:
        state: Durable storage; ``None`` keeps the model in memory only.
        storage_key: Key the JSON blob is stored under.
    """

    def __init__(
        self,
        state: Optional["LocalStateStore"] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self.state = state
        self.storage_key = storage_key
        self.data = TrainingData()

    def load(self) -> TrainingData:
        """Replace the in-memory model with the persisted one.

        A missing, unreadable or malformed blob yields an empty model.
        """
        self.data = TrainingData()
        if self.state is None:
            return self.data
        try:
            blob = self.state.get_item(self.storage_key)
            if blob is not None:
                self.data = TrainingData.from_json(blob)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(
                "Training data under '%s' unreadable, starting empty: %s",
                self.storage_key, exc,
            )
            self.data = TrainingData()
        logger.debug(
            "Training data loaded: %d projects, %d types, %d applied",
            len(self.data.project_counters),
            len(self.data.type_counters),
            self.data.total_applied(),
        )
        return self.data

    def save(self) -> None:
        if self.state is None:
            return
        self.state.set_item(self.storage_key, self.data.to_json())

    def add_recommendation(self, record: RecommendationRecord) -> None:
        """Count ``record`` as seen."""
        self.data.project_counter(record.project)[SEEN] += 1
        self.data.type_counter(record.type)[SEEN] += 1

    def add_recommendations(self, records: Iterable[RecommendationRecord]) -> None:
        for record in records:
            self.add_recommendation(record)

    def apply_added_recommendation(self, record: RecommendationRecord) -> None:
        """Count ``record`` as applied.

        A record that fails and is re-applied is counted again; failures are
        rare enough for this to wash out in aggregate.
        """
        self.data.project_counter(record.project)[APPLIED] += 1
        self.data.type_counter(record.type)[APPLIED] += 1

    def score(self, record: RecommendationRecord) -> float:
        return similarity(record, self.data)

    def sort(self, store: "RecommendationStore") -> None:
        """Reorder ``store`` so the most history-like recommendations come first."""
        total_applied = self.data.total_applied()
        scores = {r.name: similarity(r, self.data, total_applied) for r in store}
        store.sort(key=lambda r: scores[r.name])
