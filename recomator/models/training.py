"""
Training data for similarity ranking.

Two counter maps, ``project → [applied, seen]`` and ``type → [applied, seen]``.
Serialized with camelCase keys so the stored blob reads::

    {"projectCounters": {"proj-a": [30, 100]}, "typeCounters": {"STOP_VM": [15, 95]}}

Single writer, single reader per session: a reload simply replaces the
in-memory model.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

# [applied, seen]
RatioCounter = Annotated[list[Annotated[int, Field(ge=0)]], Field(min_length=2, max_length=2)]

APPLIED = 0
SEEN = 1


class TrainingData(BaseModel):
    """Per-project and per-type applied/seen counters."""

    model_config = ConfigDict(populate_by_name=True)

    project_counters: dict[str, RatioCounter] = Field(
        default_factory=dict, alias="projectCounters"
    )
    type_counters: dict[str, RatioCounter] = Field(
        default_factory=dict, alias="typeCounters"
    )

    def project_counter(self, project: str) -> list[int]:
        """Counter for ``project``, created as ``[0, 0]`` on first use."""
        return self.project_counters.setdefault(project, [0, 0])

    def type_counter(self, type_name: str) -> list[int]:
        return self.type_counters.setdefault(type_name, [0, 0])

    def applied_with_project(self, project: str) -> int:
        """Applied count for ``project`` without creating a counter."""
        return self.project_counters.get(project, [0, 0])[APPLIED]

    def applied_with_type(self, type_name: str) -> int:
        return self.type_counters.get(type_name, [0, 0])[APPLIED]

    def total_applied(self) -> int:
        """Number of recommendations ever applied (sum over projects)."""
        return sum(counter[APPLIED] for counter in self.project_counters.values())

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, blob: str) -> "TrainingData":
        return cls.model_validate_json(blob)
