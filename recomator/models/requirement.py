"""
Project requirements: the permissions and APIs a project must have before
its recommendations can be listed and applied.

Wire format (``GET /requirements?request_id=`` once finished)::

    {"projectsRequirements": [
        {"project": "proj-a",
         "requirements": [
            {"name": "serviceusage.services.get", "satisfied": true, "errorMessage": ""},
            {"name": "Compute Engine API", "satisfied": false,
             "errorMessage": "API is disabled"}]}]}
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

_WIRE = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

UNKNOWN_REQUIREMENT = "Unknown requirement"


class Requirement(BaseModel):
    model_config = _WIRE

    name: str
    satisfied: bool
    error_message: str = Field("", alias="errorMessage")


class ProjectRequirement(BaseModel):
    """Requirement check results for one project."""

    model_config = _WIRE

    project: str
    requirements: list[Requirement] = Field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return all(r.satisfied for r in self.requirements)

    def unsatisfied(self) -> list[Requirement]:
        return [r for r in self.requirements if not r.satisfied]

    def error_message(self, requirement_name: str) -> str:
        """Error message of the named requirement, or ``"Unknown requirement"``."""
        for requirement in self.requirements:
            if requirement.name == requirement_name:
                return requirement.error_message
        return UNKNOWN_REQUIREMENT
