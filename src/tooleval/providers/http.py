"""Shared HTTP plumbing for providers: JSON POST with retry and backoff."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from tooleval.providers import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
BASE_BACKOFF = 0.5
DEFAULT_HTTP_TIMEOUT = 60.0


class _Retryable(Exception):
    pass


async def post_json(
    url: str,
    headers: Dict[str, str],
    body: Dict[str, Any],
    *,
    vendor: str,
    client: Optional[httpx.AsyncClient] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_backoff: float = BASE_BACKOFF,
    error_message: Callable[[httpx.Response], str] = lambda r: r.text,
) -> Dict[str, Any]:
    """POST ``body`` to ``url`` and return the decoded JSON response.

    Transport errors, HTTP 429 and 5xx responses are retried up to
    ``max_retries`` times with exponential backoff. Any other non-200 status
    fails immediately.

    Raises:
        ProviderError: On a non-retryable failure or once retries run out.
    """
    last_exc: Optional[Exception] = None
    for attempt in range(max_retries + 1):
        if attempt > 0:
            delay = base_backoff * (2 ** (attempt - 1))
            logger.warning(
                "%s request failed (%s); retry %d/%d in %.1fs",
                vendor, last_exc, attempt, max_retries, delay,
            )
            await asyncio.sleep(delay)
        try:
            return await _post_once(url, headers, body, client, error_message)
        except _Retryable as exc:
            last_exc = exc

    raise ProviderError(
        f"{vendor} API request failed after {max_retries + 1} attempts: {last_exc}"
    )


async def _post_once(
    url: str,
    headers: Dict[str, str],
    body: Dict[str, Any],
    client: Optional[httpx.AsyncClient],
    error_message: Callable[[httpx.Response], str],
) -> Dict[str, Any]:
    try:
        if client is not None:
            resp = await client.post(url, headers=headers, json=body)
        else:
            async with httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT) as own_client:
                resp = await own_client.post(url, headers=headers, json=body)
    except httpx.TransportError as exc:
        raise _Retryable(f"sending HTTP request: {exc}") from exc

    if resp.status_code == 429 or resp.status_code >= 500:
        raise _Retryable(f"HTTP {resp.status_code}: {error_message(resp)}")
    if resp.status_code != 200:
        raise ProviderError(f"HTTP {resp.status_code}: {error_message(resp)}")

    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(f"decoding response: {exc}") from exc


def api_error_message(resp: httpx.Response) -> str:
    """Pull ``error.message`` out of a vendor error body, else the raw text."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return resp.text
