"""Per-call timeout and bounded retry for cluster and embedding calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from elasticsearch import ApiError, ConnectionTimeout
from elasticsearch import ConnectionError as TransportConnectionError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import ClusterUnavailableError, RequestTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """True for failures that may succeed when the same call is repeated."""
    if isinstance(
        exc, (RequestTimeoutError, TransportConnectionError, ConnectionTimeout)
    ):
        return True
    if isinstance(exc, ApiError):
        return exc.status_code in TRANSIENT_STATUS_CODES
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return False


async def _with_timeout(
    operation: str, func: Callable[[], Awaitable[T]], timeout: float
) -> T:
    try:
        return await asyncio.wait_for(func(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise RequestTimeoutError(operation, timeout) from e


async def call_with_retry(
    operation: str,
    func: Callable[[], Awaitable[T]],
    *,
    idempotent: bool = True,
    settings: Settings | None = None,
) -> T:
    """Run ``func`` under the request timeout, retrying transient failures.

    Only idempotent calls are retried. Once the budget is spent a transient
    transport failure surfaces as ``ClusterUnavailableError``; timeouts stay
    ``RequestTimeoutError``; everything else propagates unchanged.
    """
    cfg = settings or default_settings
    attempts = cfg.retry_attempts if idempotent else 1

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(
            multiplier=cfg.retry_backoff,
            min=cfg.retry_backoff,
            max=cfg.retry_backoff_max,
        ),
        retry=retry_if_exception(is_transient),
        reraise=True,
        before_sleep=lambda rs: logger.warning(
            "Retrying %s (attempt %d): %s",
            operation,
            rs.attempt_number,
            rs.outcome.exception(),
        ),
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await _with_timeout(operation, func, cfg.request_timeout)
    except RequestTimeoutError:
        logger.error("%s timed out after %d attempt(s)", operation, attempts)
        raise
    except Exception as e:
        if is_transient(e):
            logger.error("%s failed after %d attempt(s): %s", operation, attempts, e)
            raise ClusterUnavailableError(operation, e) from e
        raise
