"""
Probes — ready-made probe factories for :class:`BackoffPoller`.

``status_probe`` polls the job status endpoint
(``GET /api/video/status/{jobId}``), which answers with a JSON body such as::

    {"jobId": "...", "status": "processing", "progress": 50}
    {"jobId": "...", "status": "completed", "videoUrl": "...", "progress": 100}
    {"jobId": "...", "status": "failed", "errorMessage": "..."}
"""
import asyncio
import logging
from typing import Any, Iterable, Optional

import aiohttp

from ..exceptions import SessionExpiredError, TransportError
from .cancellation import CancellationToken
from .poller import Probe, PollResult

logger = logging.getLogger("storyboard.polling")

TERMINAL_STATUSES = frozenset({"completed", "failed"})


def status_probe(
    http: aiohttp.ClientSession,
    url: str,
    *,
    terminal_statuses: Iterable[str] = TERMINAL_STATUSES,
    request_timeout: Optional[float] = 30.0,
) -> Probe:
    """Build a probe that GETs ``url`` and inspects its ``status`` field.

    Args:
        http: Open client session; the caller owns its lifecycle.
        url: Status endpoint for one job.
        terminal_statuses: Values of ``status`` that end polling.
        request_timeout: Total timeout for one request, in seconds.

    Returns:
        Probe returning ``PollResult.done(body)`` once the job reached a
        terminal status and ``PollResult.pending()`` otherwise.

    Raises (from the probe):
        SessionExpiredError: HTTP 401, the server dropped the API key session.
        TransportError: Other HTTP errors, connection failures, timeouts and
            non-JSON bodies.
    """
    terminal = frozenset(terminal_statuses)
    timeout = aiohttp.ClientTimeout(total=request_timeout)

    async def probe(token: CancellationToken) -> PollResult:
        token.raise_if_cancelled()
        body = await _fetch_status(http, url, timeout)
        token.raise_if_cancelled()
        status = body.get("status")
        if status in terminal:
            logger.debug("Job reached status %s: %s", status, url)
            return PollResult.done(body)
        return PollResult.pending()

    return probe


async def _fetch_status(
    http: aiohttp.ClientSession,
    url: str,
    timeout: aiohttp.ClientTimeout,
) -> dict[str, Any]:
    try:
        async with http.get(url, timeout=timeout) as response:
            if response.status == 401:
                raise SessionExpiredError(
                    "Session expired. Please re-enter your API key.",
                    status=401,
                )
            if response.status >= 400:
                detail = await _error_detail(response)
                raise TransportError(
                    f"Status request failed with HTTP {response.status}: {detail}",
                    status=response.status,
                )
            try:
                body = await response.json()
            except (aiohttp.ContentTypeError, ValueError) as err:
                raise TransportError(
                    "Status endpoint returned a non-JSON body",
                    status=response.status,
                ) from err
    except asyncio.TimeoutError as err:
        raise TransportError(f"Status request timed out: {url}") from err
    except aiohttp.ClientError as err:
        raise TransportError(f"Status request failed: {err}") from err
    if not isinstance(body, dict):
        raise TransportError("Status endpoint returned an unexpected payload")
    return body


async def _error_detail(response: aiohttp.ClientResponse) -> str:
    try:
        data = await response.json()
    except (aiohttp.ContentTypeError, ValueError):
        return response.reason or ""
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.reason or ""
