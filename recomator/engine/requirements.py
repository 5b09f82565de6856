"""
Requirements check: ask the backend whether each selected project grants the
permissions and has the APIs the recommender needs.

Protocol (same submit/poll shape as the recommendations fetch)::

    POST /requirements  {"projects": [...]}        → 201, body = request id
    GET  /requirements?request_id=<id>             → 200 progress | {"projectsRequirements": [...]}

Reported failures end up on ``session`` exactly as for the fetch.  A project
listed twice in the answer is a contract violation; nothing is stored then.
"""

from __future__ import annotations

import logging
from typing import Any

from recomator.engine.polling import LongPollJob
from recomator.errors import DuplicateProjectError
from recomator.models.requirement import ProjectRequirement

logger = logging.getLogger(__name__)


class RequirementsChecker(LongPollJob):
    """Runs at most one requirements check at a time.

    Constructor arguments are those of ``LongPollJob``.
    """

    path = "/requirements"
    done_key = "projectsRequirements"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.projects: list[ProjectRequirement] = []

    async def check_requirements(self) -> list[ProjectRequirement]:
        """Replace ``projects`` with a fresh check; no-op while one is running.

        Raises:
            DuplicateProjectError: If the backend reports a project twice.
            pydantic.ValidationError: If an entry is malformed.
        """
        await self.run()
        return self.projects

    @property
    def all_satisfied(self) -> bool:
        return all(p.satisfied for p in self.projects)

    def _reset(self) -> None:
        self.projects = []

    def _ingest(self, payload: dict[str, Any]) -> None:
        entries = [
            ProjectRequirement.model_validate(raw)
            for raw in payload.get(self.done_key) or []
        ]
        seen: set[str] = set()
        for entry in entries:
            if entry.project in seen:
                raise DuplicateProjectError(entry.project)
            seen.add(entry.project)
        self.projects = entries
        self.session.progress = 100

        missing = sum(1 for p in entries if not p.satisfied)
        logger.info(
            "Checked requirements for %d project(s); %d missing something.",
            len(entries), missing,
        )
