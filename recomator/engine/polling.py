"""
Submit-then-poll jobs against the Recomator API.

Both the recommendations fetch and the requirements check follow the same
protocol::

    POST <path>  {"projects": [...]}         → 201, body = request id
    GET  <path>?request_id=<id>              → 200 {"batchesProcessed": n, "numberOfBatches": m}
                                             → 200 {<done_key>: ...}   (done)

``LongPollJob`` runs that protocol once per call, guarded by its
``FetchSession``.  Subclasses name the endpoint and the key that marks a
finished answer, and implement ``_reset()`` and ``_ingest()``.

Failures are *reported* on the session (error code + message, progress back
to ``None``): a non-201 submit, a non-200 poll, or a poll body that is not a
JSON object.  Only caller-contract violations raised while ingesting and the
``ResilientFetch`` signals propagate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from recomator.client.resilient_fetch import ResilientFetch
from recomator.models.session import FetchSession

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201


def batch_progress(batches_processed: int, number_of_batches: int) -> int:
    """Whole-percent progress, clamped to ``[0, 100]``.

    A backend reporting zero batches is treated as not yet started.
    """
    if number_of_batches <= 0:
        return 0
    percent = (100 * batches_processed) // number_of_batches
    return max(0, min(100, percent))


class LongPollJob:
    """Base for one-at-a-time submit/poll jobs.

    Args:
        fetch: Authenticated HTTP caller.
        selected_projects: Zero-arg callable returning the current selection.
        session: Session state shared with the UI.
        poll_interval_s: Delay between progress polls.
        max_retries: Transport retries per request.
        sleep: Awaitable sleep, replaceable in tests.
    """

    path: str = ""
    done_key: str = ""

    def __init__(
        self,
        fetch: ResilientFetch,
        selected_projects: Callable[[], Sequence[str]],
        session: Optional[FetchSession] = None,
        poll_interval_s: float = 0.1,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.fetch = fetch
        self.selected_projects = selected_projects
        self.session = session if session is not None else FetchSession()
        self.poll_interval_s = poll_interval_s
        self.max_retries = max_retries
        self._sleep = sleep

    async def run(self) -> None:
        """Run the job once; no-op if one is already in progress."""
        if self.session.active:
            logger.debug("%s already in progress; ignoring request.", self.path)
            return
        self._reset()
        self.session.begin()

        try:
            payload = await self._submit_and_poll()
            if payload is not None:
                self._ingest(payload)
        finally:
            # Covers SignInRequired / exhausted retries: never leave the guard stuck.
            self.session.end()

    def _reset(self) -> None:
        raise NotImplementedError

    def _ingest(self, payload: dict[str, Any]) -> None:
        raise NotImplementedError

    async def _submit_and_poll(self) -> Optional[dict[str, Any]]:
        projects = list(self.selected_projects())
        logger.info("POST %s for %d project(s).", self.path, len(projects))

        response = await self.fetch.call(
            "POST",
            self.path,
            json={"projects": projects},
            max_retries=self.max_retries,
        )
        if response.status_code != HTTP_CREATED:
            self._report(response.status_code, f"selecting projects failed: {response.reason_phrase}")
            return None

        self.session.request_id = response.text
        logger.debug("Request id assigned: %s", self.session.request_id)

        while True:
            response = await self.fetch.call(
                "GET",
                self.path,
                params={"request_id": self.session.request_id},
                max_retries=self.max_retries,
            )
            if response.status_code != HTTP_OK:
                self._report(response.status_code, f"progress check failed: {response.reason_phrase}")
                return None

            payload = json_object(response)
            if payload is None:
                self._report(response.status_code, "progress check failed: malformed response body")
                return None
            if self.done_key in payload:
                return payload

            try:
                self.session.progress = batch_progress(
                    int(payload.get("batchesProcessed", 0)),
                    int(payload.get("numberOfBatches", 0)),
                )
            except (TypeError, ValueError):
                self._report(response.status_code, "progress check failed: malformed progress")
                return None
            logger.debug("%s progress: %d%%", self.path, self.session.progress)
            await self._sleep(self.poll_interval_s)

    def _report(self, code: int, message: str) -> None:
        logger.error("HTTP %d: %s", code, message)
        self.session.fail(code, message)


def json_object(response: httpx.Response) -> Optional[dict[str, Any]]:
    """Decode ``response`` as a JSON object; ``None`` for anything else."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None
