"""
Central status watcher: the single background loop that reconciles claimed
recommendations with the backend.

Every cycle snapshots the store (so records added or cleared mid-scan do not
disturb the loop and none is checked twice), then checks each snapshot
record with ``needs_watcher`` set, one request at a time, and stores the
returned "keep watching?" flag back on the record.

``checkStatus`` outcomes
------------------------
============================  ===========  ===============
Backend answer                Local status Keep watching?
============================  ===========  ===============
200 CLAIMED / IN PROGRESS     CLAIMED      yes
200 SUCCEEDED                 SUCCEEDED    no
200 ACTIVE / NOT APPLIED      FAILED       no
200 FAILED                    FAILED       no
200 anything else             FAILED       no
non-200                       FAILED       yes (cause may be transient)
200, body not a JSON object   FAILED       yes (cause may be transient)
============================  ===========  ===============

Non-200 and unreadable answers keep the record in the watch set with no
extra backoff; it is re-checked every cycle until the backend answers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from recomator.client.resilient_fetch import ResilientFetch
from recomator.engine.polling import json_object
from recomator.engine.store import RecommendationStore
from recomator.errors import WatcherAlreadyRunningError
from recomator.models.recommendation import RecommendationRecord
from recomator.taxonomy.status import BackendStatus, RecommendationStatus

logger = logging.getLogger(__name__)

HTTP_OK = 200


class CentralStatusWatcher:
    """At most one per application; ``start()`` twice is a programming error.

    Args:
        fetch: Authenticated HTTP caller.
        store: Store to scan.
        interval_s: Delay between cycles.
        max_retries: Transport retries per status request.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        fetch: ResilientFetch,
        store: RecommendationStore,
        interval_s: float = 10.0,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.fetch = fetch
        self.store = store
        self.interval_s = interval_s
        self.max_retries = max_retries
        self._sleep = sleep
        self._running = False
        self.cycles_completed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, cycles: Optional[int] = None) -> None:
        """Run the watch loop.

        Runs forever when ``cycles`` is ``None``.  The running flag is never
        cleared: one watcher per application lifetime.

        Raises:
            WatcherAlreadyRunningError: If a watcher was already started.
                Raised before this call's first suspension point.
        """
        if self._running:
            raise WatcherAlreadyRunningError()
        self._running = True
        logger.info("Central status watcher started (interval %.1fs).", self.interval_s)

        while cycles is None or self.cycles_completed < cycles:
            await self.check_status_once_for_all()
            self.cycles_completed += 1
            if cycles is not None and self.cycles_completed >= cycles:
                break
            await self._sleep(self.interval_s)

    async def check_status_once_for_all(self) -> int:
        """One scan over a snapshot of the store.

        Returns:
            Number of records checked.
        """
        checked = 0
        for record in self.store.snapshot():
            if not record.needs_watcher:
                continue
            record.needs_watcher = await self.check_status_once(record)
            checked += 1
        if checked:
            logger.debug("Watcher cycle checked %d recommendation(s).", checked)
        return checked

    async def check_status_once(self, record: RecommendationRecord) -> bool:
        """Query the backend for ``record`` and update its state.

        Assumes the recommendation has already been applied, by us or by
        someone else.

        Returns:
            Whether the record should keep being watched.
        """
        response = await self.fetch.call(
            "GET",
            "/recommendations/checkStatus",
            params={"name": record.name},
            max_retries=self.max_retries,
        )

        if response.status_code != HTTP_OK:
            record.status = RecommendationStatus.FAILED
            record.set_error(
                f"Status query failed (HTTP:{response.status_code})",
                "Failed to reach the Recomator API, recommendation status is "
                "unknown. We will try again in a moment.",
            )
            logger.warning(
                "Status query failed (HTTP %d); will retry next cycle.",
                response.status_code,
                extra={"rec_name": record.name},
            )
            return True

        body = json_object(response)
        if body is None:
            record.status = RecommendationStatus.FAILED
            record.set_error(
                "Status query failed (unreadable response)",
                "The Recomator API answered with something other than a status. "
                "We will try again in a moment.",
            )
            logger.warning(
                "Status reply is not a JSON object; will retry next cycle.",
                extra={"rec_name": record.name},
            )
            return True

        status = body.get("status")
        logger.debug("Backend status %s", status, extra={"rec_name": record.name})

        if status in (BackendStatus.CLAIMED, BackendStatus.IN_PROGRESS):
            record.status = RecommendationStatus.CLAIMED
            return True

        if status == BackendStatus.SUCCEEDED:
            record.status = RecommendationStatus.SUCCEEDED
            record.clear_error()
            logger.info("Applied successfully.", extra={"rec_name": record.name})
            return False

        record.status = RecommendationStatus.FAILED
        if status in (BackendStatus.ACTIVE, BackendStatus.NOT_APPLIED):
            record.set_error(
                "Server hasn't acknowledged the request",
                "The recommendation is still active, so the Recomator API has not "
                "received the request to apply this recommendation. You can try "
                "applying it again.",
            )
        elif status == BackendStatus.FAILED:
            record.set_error(
                "Applying recommendation failed server-side. "
                "You can try applying it again.",
                str(body.get("errorMessage") or ""),
            )
        else:
            record.set_error(
                f"Bad status({status})",
                "Recomator API status not recognized.",
            )
        logger.warning("Apply ended as %s.", status, extra={"rec_name": record.name})
        return False
