"""
The authoritative in-memory collection of recommendations.

An insertion-ordered list plus a name → record index over the *same*
objects, so a mutation made through the index is visible through the list.
Invariant: list and index always hold the same set of names.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, Optional

from recomator.errors import DuplicateRecommendationError, UnknownRecommendationError
from recomator.models.recommendation import RecommendationRecord


class RecommendationStore:
    """Ordered, name-indexed recommendations for one fetch cycle."""

    def __init__(self) -> None:
        self._records: list[RecommendationRecord] = []
        self._by_name: dict[str, RecommendationRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RecommendationRecord]:
        return iter(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def records(self) -> list[RecommendationRecord]:
        """The live sequence (read-only by convention; use ``snapshot`` to iterate
        across suspension points)."""
        return self._records

    def add(self, record: RecommendationRecord) -> None:
        """Insert one record.

        Raises:
            DuplicateRecommendationError: If the name is already present;
                the store is left unchanged.
        """
        if record.name in self._by_name:
            raise DuplicateRecommendationError(record.name)
        self._records.append(record)
        self._by_name[record.name] = record

    def extend(self, records: Iterable[RecommendationRecord]) -> None:
        """Insert a batch atomically: either every record goes in or none does.

        Raises:
            DuplicateRecommendationError: On a name already stored or repeated
                within the batch.
        """
        batch = list(records)
        seen: set[str] = set()
        for record in batch:
            if record.name in self._by_name or record.name in seen:
                raise DuplicateRecommendationError(record.name)
            seen.add(record.name)
        for record in batch:
            self.add(record)

    def get(self, name: str) -> Optional[RecommendationRecord]:
        return self._by_name.get(name)

    def require(self, name: str) -> RecommendationRecord:
        """Return the record for ``name``.

        Raises:
            UnknownRecommendationError: If no such record exists.
        """
        record = self._by_name.get(name)
        if record is None:
            raise UnknownRecommendationError(name)
        return record

    def snapshot(self) -> list[RecommendationRecord]:
        """Shallow copy of the current sequence (same record objects)."""
        return list(self._records)

    def reset(self) -> None:
        self._records.clear()
        self._by_name.clear()

    def sort(self, key: Callable[[RecommendationRecord], float]) -> None:
        """Stable in-place reorder; the index is unaffected."""
        self._records.sort(key=key)

    # ── Filter choices ────────────────────────────────────────────────────────
    # Sorted so the choices don't jump around as the visible set changes.

    def all_projects(self) -> list[str]:
        return sorted({r.project for r in self._records})

    def all_types(self) -> list[str]:
        return sorted({r.type for r in self._records})

    def all_statuses(self) -> list[str]:
        return sorted({r.display_status for r in self._records})
