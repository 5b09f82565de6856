"""
OAuth code → bearer token exchange.

The sign-in entry point hands us a one-time ``code``; the backend trades it
for the token that ``ResilientFetch`` injects into every later request::

    GET /auth?code=<code>   → 200 {"token": "..."}

Any other status aborts the sign-in.  This call is not authenticated and
is not retried: the code is single-use.
"""

from __future__ import annotations

import logging

import httpx

from recomator.errors import AuthCodeExchangeError

logger = logging.getLogger(__name__)


async def exchange_auth_code(
    client: httpx.AsyncClient,
    base_url: str,
    code: str,
) -> str:
    """Exchange an OAuth ``code`` for a bearer token.

    Raises:
        AuthCodeExchangeError: On any non-200 response or a body without ``token``.
    """
    response = await client.get(f"{base_url.rstrip('/')}/auth", params={"code": code})
    if response.status_code != 200:
        raise AuthCodeExchangeError(response.status_code, response.reason_phrase)

    token = response.json().get("token")
    if not isinstance(token, str) or not token:
        raise AuthCodeExchangeError(response.status_code, "response has no token")

    logger.info("Signed in (token of %d chars).", len(token))
    return token
