"""Bounded attempt-level retry.

Each attempt is a complete, independent search with its own browser session
and its own CAPTCHA.  This wrapper re-runs failed attempts with exponential
backoff; the orchestrator itself never retries.

Usage::

    orchestrator = SearchOrchestrator(settings)
    result = run_with_retries(orchestrator.run, request, max_attempts=3)
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from regsearch.exceptions import (
    AttemptTimeout,
    BrowserFault,
    CaptchaSolveFailure,
    ElementNotFound,
    NavigationTimeout,
    ResultAmbiguous,
)
from regsearch.models.search import SearchRequest, SearchResult, SearchStatus

logger = logging.getLogger(__name__)

# Failures a fresh session and a fresh CAPTCHA can plausibly fix.  Missing
# page markers, rejected searches and launch failures are not among them.
_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    NavigationTimeout,
    ElementNotFound,
    CaptchaSolveFailure,
    ResultAmbiguous,
    AttemptTimeout,
    BrowserFault,
)


def is_retryable(exc: Exception) -> bool:
    """Return True if *exc* is worth another attempt."""
    return isinstance(exc, _RETRYABLE_EXCEPTIONS)


def run_with_retries(
    run_once: Callable[[SearchRequest], SearchResult],
    request: SearchRequest,
    *,
    max_attempts: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 30.0,
    retry_rejected: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> SearchResult:
    """Call *run_once* until it succeeds or *max_attempts* are used.

    Args:
        run_once: Executes one full attempt (e.g. ``SearchOrchestrator.run``).
        request: The search to perform.
        max_attempts: Total attempts, including the first.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Cap on the backoff delay.
        retry_rejected: Also retry ``REJECTED`` results, which usually mean
            the CAPTCHA answer was misread.
        sleep: Sleep function, injectable for tests.

    Returns:
        The first acceptable ``SearchResult`` (or the last ``REJECTED`` one).

    Raises:
        RegSearchError: The last failure, or the first non-retryable one.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            result = run_once(request)
        except Exception as exc:
            if attempt >= attempts or not is_retryable(exc):
                raise
            delay = _backoff(attempt, base_delay, max_delay)
            logger.warning(
                "Search attempt failed (attempt %d/%d): %s, retrying in %.1fs",
                attempt,
                attempts,
                type(exc).__name__,
                delay,
            )
            sleep(delay)
            continue

        if result.status == SearchStatus.REJECTED and retry_rejected and attempt < attempts:
            delay = _backoff(attempt, base_delay, max_delay)
            logger.warning(
                "Search rejected (attempt %d/%d): %s, retrying in %.1fs",
                attempt,
                attempts,
                result.error_text,
                delay,
            )
            sleep(delay)
            continue
        return result

    # Unreachable: the loop either returns or raises on the last attempt
    raise RuntimeError("retry loop exited without a result")


def _backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2 ** (attempt - 1)), max_delay)
