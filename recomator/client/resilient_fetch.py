"""
Authenticated HTTP calls with transport-failure retry.

Every backend request in the engine goes through ``ResilientFetch.call()``:

  - ``Authorization: Bearer <token>`` is injected from the shared ``AuthState``
    (omitted while signed out).
  - A transport failure (``httpx.TransportError``: DNS, refused or reset
    connection, timeouts) is retried up to ``max_retries`` more times with
    exponential backoff (``base_delay_s``, doubled each attempt).  Each
    retry surfaces a non-critical warning; exhaustion surfaces a critical
    error and raises ``TransportRetriesExhaustedError``.
  - HTTP 401/403 is never retried: the sign-in hook runs and
    ``SignInRequired`` is raised, so no further code in the calling chain
    executes.  Callers must treat every call as potentially non-returning.
  - Any other response, 2xx or not, is returned as-is; each call site
    decides what its status codes mean.

There is no per-call client timeout beyond the httpx transport timeout;
the retry policy is the only bound on a logical operation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from recomator.errors import SignInRequired, TransportRetriesExhaustedError

logger = logging.getLogger(__name__)

AUTH_REJECTED_CODES = frozenset({401, 403})

# show_error(header, body, critical)
ErrorHook = Callable[[str, dict[str, str], bool], None]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class AuthState:
    """Shared bearer-token holder; one instance per application."""

    token: Optional[str] = None

    @property
    def signed_in(self) -> bool:
        return self.token is not None


def _log_error(header: str, body: dict[str, str], critical: bool) -> None:
    if critical:
        logger.error("%s | %s", header, body)
    else:
        logger.warning("%s | %s", header, body)


def _noop_sign_in() -> None:
    pass


class ResilientFetch:
    """Bearer-token injection, retry with backoff, sign-in redirect.

    Args:
        client: Shared ``httpx.AsyncClient``.
        base_url: Backend root, e.g. ``"http://localhost:8000/api"``.
        auth: Shared ``AuthState``.
        default_max_retries: Retries used when a call site passes none.
        base_delay_s: First backoff delay; doubles on each retry.
        on_sign_in_required: Redirect hook run before ``SignInRequired`` is raised.
        show_error: User notification hook ``(header, body, critical)``.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        auth: AuthState,
        default_max_retries: int = 3,
        base_delay_s: float = 2.0,
        on_sign_in_required: Callable[[], None] = _noop_sign_in,
        show_error: ErrorHook = _log_error,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.default_max_retries = default_max_retries
        self.base_delay_s = base_delay_s
        self.on_sign_in_required = on_sign_in_required
        self.show_error = show_error
        self._sleep = sleep

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based): 2s, 4s, 8s, ..."""
        return self.base_delay_s * (2 ** attempt)

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        max_retries: Optional[int] = None,
    ) -> httpx.Response:
        """Send one logical request.

        Returns:
            The backend response for any status other than 401/403.

        Raises:
            SignInRequired: On HTTP 401 or 403.
            TransportRetriesExhaustedError: When every attempt failed at the
                transport level.
        """
        retries = self.default_max_retries if max_retries is None else max_retries
        url = self.url_for(path)

        attempt = 0
        while True:
            request_headers = dict(headers or {})
            if self.auth.token is not None:
                request_headers["Authorization"] = f"Bearer {self.auth.token}"
            try:
                response = await self.client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    content=content,
                    headers=request_headers,
                )
            except httpx.TransportError as exc:
                if attempt >= retries:
                    self.show_error(
                        "Connection failed",
                        {
                            "url": url,
                            "attempts": str(attempt + 1),
                            "error": str(exc) or exc.__class__.__name__,
                        },
                        True,
                    )
                    raise TransportRetriesExhaustedError(url, attempt + 1, exc) from exc

                delay = self.backoff_delay(attempt)
                self.show_error(
                    "Connection problem, retrying",
                    {
                        "url": url,
                        "retry_in_s": f"{delay:g}",
                        "error": str(exc) or exc.__class__.__name__,
                    },
                    False,
                )
                await self._sleep(delay)
                attempt += 1
                continue

            if response.status_code in AUTH_REJECTED_CODES:
                logger.warning(
                    "HTTP %d from %s %s; redirecting to sign-in.",
                    response.status_code, method, url,
                )
                self.auth.token = None
                self.on_sign_in_required()
                raise SignInRequired(response.status_code)

            return response
