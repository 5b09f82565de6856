"""
Project list and the operator's persisted project selection.

``POST /projects`` → 200 ``{"projects": ["name", ...]}``.  The selection is
stored as a JSON list under the ``project_list`` key and restored at startup.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Iterable, Optional

from recomator.client.resilient_fetch import ResilientFetch
from recomator.engine.polling import json_object
from recomator.errors import DuplicateProjectError

if TYPE_CHECKING:
    from recomator.storage.local_state import LocalStateStore

logger = logging.getLogger(__name__)

HTTP_OK = 200
DEFAULT_STORAGE_KEY = "project_list"


class ProjectsService:
    """Fetches the projects visible to the signed-in user and tracks the selection."""

    def __init__(
        self,
        fetch: ResilientFetch,
        state: Optional["LocalStateStore"] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_retries: Optional[int] = 3,
    ) -> None:
        self.fetch = fetch
        self.state = state
        self.storage_key = storage_key
        self.max_retries = max_retries
        self.projects: list[str] = []
        self.selected: list[str] = []
        self.loading = False
        self.loaded = False
        self.error_code: Optional[int] = None

    async def fetch_projects(self) -> list[str]:
        """Replace ``projects`` with the backend's list.

        A call while one is in flight returns the current (partial) list
        without sending a request.  A non-200 or unreadable answer is recorded in
        ``error_code`` and leaves the list empty.

        Raises:
            DuplicateProjectError: If the backend repeats a project name.
        """
        if self.loading:
            return self.projects
        self.projects = []
        self.loaded = False
        self.error_code = None
        self.loading = True
        try:
            response = await self.fetch.call(
                "POST", "/projects", max_retries=self.max_retries
            )
            if response.status_code != HTTP_OK:
                self.error_code = response.status_code
                logger.error(
                    "Listing projects failed: HTTP %d %s",
                    response.status_code, response.reason_phrase,
                )
                return self.projects

            body = json_object(response)
            names = (body.get("projects") or []) if body is not None else None
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                self.error_code = response.status_code
                logger.error("Listing projects failed: malformed response body.")
                return self.projects

            if len(set(names)) != len(names):
                first_dup = next(n for n in names if names.count(n) > 1)
                raise DuplicateProjectError(first_dup)
            self.projects = list(names)
            self.loaded = True
            logger.info("Loaded %d project(s).", len(self.projects))
            return self.projects
        finally:
            self.loading = False

    def select(self, projects: Iterable[str]) -> None:
        self.selected = list(projects)

    def save_selected_projects(self) -> None:
        if self.state is None:
            return
        self.state.set_item(self.storage_key, json.dumps(self.selected))

    def load_selected_projects(self) -> list[str]:
        """Restore the last saved selection; unreadable data yields ``[]``."""
        self.selected = []
        if self.state is None:
            return self.selected
        try:
            blob = self.state.get_item(self.storage_key)
            if blob is not None:
                loaded = json.loads(blob)
                if isinstance(loaded, list) and all(isinstance(p, str) for p in loaded):
                    self.selected = loaded
                else:
                    logger.warning("Ignoring malformed project selection: %r", loaded)
        except (OSError, ValueError) as exc:
            logger.warning("Project selection unreadable, starting empty: %s", exc)
        return self.selected
