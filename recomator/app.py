"""
Application context: one explicitly constructed owner for every engine part.

``RecomatorApp`` wires a single ``httpx.AsyncClient``, the shared
``AuthState``, the store, the fetch sessions, the ranker, the three
orchestrators and the requirements checker together, and restores persisted
state (bearer token, training data, project selection) at construction.

Top-level error handling lives in ``run_guarded()``: it is the only place
that catches ``SignInRequired``, exhausted transport retries and
caller-contract violations, turning them into a ``GuardedOutcome`` the
outer surface (CLI) renders.  Per-recommendation failures never reach it;
they are recorded on the records themselves.

Usage::

    async with RecomatorApp(load_config()) as app:
        outcome = await app.run_guarded(app.fetcher.fetch_recommendations())
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Optional

import httpx

from recomator.client.auth import exchange_auth_code
from recomator.client.resilient_fetch import AuthState, ResilientFetch
from recomator.config import AppConfig
from recomator.engine.applier import ApplyOrchestrator
from recomator.engine.fetcher import FetchOrchestrator
from recomator.engine.projects import ProjectsService
from recomator.engine.ranker import SimilarityRanker
from recomator.engine.requirements import RequirementsChecker
from recomator.engine.store import RecommendationStore
from recomator.engine.watcher import CentralStatusWatcher
from recomator.errors import (
    ContractViolationError,
    SignInRequired,
    TransportRetriesExhaustedError,
)
from recomator.models.session import FetchSession
from recomator.storage.local_state import LocalStateStore

logger = logging.getLogger(__name__)


@dataclass
class GuardedOutcome:
    """Result of a top-level engine call.

    Attributes:
        value: Return value of the coroutine when it completed.
        sign_in_required: The backend rejected our token.
        fatal_header: Set when a full-screen error must be shown.
        fatal_body: Details for the full-screen error.
    """

    value: Any = None
    sign_in_required: bool = False
    fatal_header: Optional[str] = None
    fatal_body: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.sign_in_required and self.fatal_header is None


class RecomatorApp:
    """Owns and wires all engine components for one process.

    Args:
        config: Application configuration.
        client: HTTP client to use; one is created (and closed on exit) if omitted.
        state: Durable storage; defaults to ``config.storage.state_dir``.
        sleep: Awaitable sleep shared by backoff, polling and watching.
    """

    def __init__(
        self,
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None,
        state: Optional[LocalStateStore] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=config.backend.request_timeout_s
        )
        self.state = state or LocalStateStore(config.storage.state_dir)
        self.notices: list[tuple[str, dict[str, str], bool]] = []

        self.auth = AuthState(token=self._load_token())
        self.fetch = ResilientFetch(
            client=self.client,
            base_url=config.backend.base_url,
            auth=self.auth,
            default_max_retries=config.retry.default_max_retries,
            base_delay_s=config.retry.base_delay_s,
            on_sign_in_required=self._on_sign_in_required,
            show_error=self._show_error,
            sleep=sleep,
        )

        self.store = RecommendationStore()
        self.session = FetchSession()
        self.ranker = SimilarityRanker(self.state, config.storage.training_data_key)
        self.ranker.load()

        self.projects = ProjectsService(
            self.fetch,
            self.state,
            config.storage.project_list_key,
            max_retries=config.retry.projects_max_retries,
        )
        self.projects.load_selected_projects()

        self.fetcher = FetchOrchestrator(
            self.fetch,
            self.store,
            self.ranker,
            selected_projects=lambda: self.projects.selected,
            session=self.session,
            poll_interval_s=config.polling.fetch_poll_interval_s,
            max_retries=config.retry.fetch_max_retries,
            sleep=sleep,
        )
        self.requirements_session = FetchSession()
        self.requirements = RequirementsChecker(
            self.fetch,
            selected_projects=lambda: self.projects.selected,
            session=self.requirements_session,
            poll_interval_s=config.polling.fetch_poll_interval_s,
            max_retries=config.retry.requirements_max_retries,
            sleep=sleep,
        )
        self.applier = ApplyOrchestrator(
            self.fetch,
            self.store,
            self.ranker,
            max_retries=config.retry.apply_max_retries,
        )
        self.watcher = CentralStatusWatcher(
            self.fetch,
            self.store,
            interval_s=config.polling.watcher_interval_s,
            max_retries=config.retry.status_max_retries,
            sleep=sleep,
        )

    async def __aenter__(self) -> "RecomatorApp":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # ── Hooks ─────────────────────────────────────────────────────────────────

    def _load_token(self) -> Optional[str]:
        """Stored bearer token; an unreadable one counts as signed out."""
        try:
            return self.state.get_item(self.config.storage.auth_token_key)
        except (OSError, ValueError) as exc:
            logger.warning("Stored token unreadable, signed out: %s", exc)
            return None

    def _show_error(self, header: str, body: dict[str, str], critical: bool) -> None:
        self.notices.append((header, body, critical))
        if critical:
            logger.error("%s | %s", header, body)
        else:
            logger.warning("%s | %s", header, body)

    def _on_sign_in_required(self) -> None:
        self.state.remove_item(self.config.storage.auth_token_key)

    # ── Operations ────────────────────────────────────────────────────────────

    async def sign_in(self, code: str) -> None:
        """Exchange an OAuth code for a token and persist it.

        Raises:
            AuthCodeExchangeError: If the backend refuses the code.
        """
        token = await exchange_auth_code(self.client, self.config.backend.base_url, code)
        self.auth.token = token
        self.state.set_item(self.config.storage.auth_token_key, token)

    def select_projects(self, projects: list[str]) -> None:
        self.projects.select(projects)
        self.projects.save_selected_projects()

    async def run_guarded(self, coro: Coroutine[Any, Any, Any]) -> GuardedOutcome:
        """Await ``coro``, converting application-stopping conditions to an outcome."""
        try:
            return GuardedOutcome(value=await coro)
        except SignInRequired as exc:
            logger.warning("Sign-in required (HTTP %d).", exc.status_code)
            return GuardedOutcome(sign_in_required=True)
        except TransportRetriesExhaustedError as exc:
            return GuardedOutcome(
                fatal_header="Connection failed",
                fatal_body={"url": exc.url, "attempts": str(exc.attempts),
                            "error": str(exc.last_error)},
            )
        except ContractViolationError as exc:
            logger.error("Contract violation: %s", exc)
            return GuardedOutcome(
                fatal_header="Internal error",
                fatal_body={"error": str(exc), "type": exc.__class__.__name__},
            )
