"""Loading the search page.

``resilient_goto`` retries a ``page.goto`` that timed out under a strict
readiness condition with progressively looser ones (``networkidle`` is
rarely reached on pages with analytics beacons).  Hard network failures are
not retried and surface as ``NavigationError`` with a short reason.

``load_search_page`` layers the captured-response fallback on top: the
interceptor keeps the target's first response body, so a navigation that
fails after that response arrived still yields usable HTML.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from playwright.sync_api import Error as PlaywrightError, Page, Response, TimeoutError as PlaywrightTimeout

from regsearch.exceptions import NavigationError, NavigationTimeout

if TYPE_CHECKING:
    from regsearch.browser.session import BrowserSession
    from regsearch.search.timing import AttemptDeadline

logger = logging.getLogger(__name__)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

# Strictest first; a timeout moves one step down
_READINESS_LADDER: tuple[WaitUntil, ...] = ("networkidle", "load", "domcontentloaded")

# Chromium net error code -> reason reported on NavigationError
_FATAL_NET_ERRORS: dict[str, str] = {
    "ERR_NAME_NOT_RESOLVED": "name not resolved",
    "ERR_CONNECTION_REFUSED": "connection refused",
    "ERR_CONNECTION_RESET": "connection reset",
    "ERR_CONNECTION_CLOSED": "connection closed",
    "ERR_ADDRESS_UNREACHABLE": "address unreachable",
    "ERR_INTERNET_DISCONNECTED": "internet disconnected",
    "ERR_SSL_PROTOCOL_ERROR": "ssl protocol error",
    "ERR_CERT_AUTHORITY_INVALID": "certificate authority invalid",
    "ERR_CERT_COMMON_NAME_INVALID": "certificate name mismatch",
    "ERR_ABORTED": "aborted",
}


def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "domcontentloaded",
    deadline: AttemptDeadline | None = None,
) -> Response | None:
    """Go to *url*, loosening the readiness condition after each timeout.

    Args:
        page: Playwright page.
        url: Page to open.
        timeout_ms: Budget for each individual ``goto``.
        wait_until: First readiness condition to try.
        deadline: Attempt budget; each ``goto`` is clipped to what remains.

    Returns:
        The main-frame ``Response``, or ``None`` for responseless pages.

    Raises:
        NavigationError: The browser reported a network failure.
        NavigationTimeout: Even the loosest condition timed out.
        AttemptTimeout: The attempt budget ran out between conditions.
    """
    last_timeout: PlaywrightTimeout | None = None
    for condition in readiness_ladder(wait_until):
        step_ms = deadline.clip(timeout_ms) if deadline is not None else timeout_ms
        logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, condition, step_ms)
        try:
            return page.goto(url, wait_until=condition, timeout=step_ms)
        except PlaywrightTimeout as exc:
            logger.warning("Loading %s timed out waiting for %s", url, condition)
            last_timeout = exc
        except PlaywrightError as exc:
            raise NavigationError(url, _failure_reason(str(exc))) from exc

    if deadline is not None:
        deadline.check()
    raise NavigationTimeout(url, timeout_ms) from last_timeout


def readiness_ladder(start: WaitUntil) -> list[WaitUntil]:
    """Conditions to try in order, beginning with *start*."""
    if start in _READINESS_LADDER:
        return list(_READINESS_LADDER[_READINESS_LADDER.index(start) :])
    return [start, *_READINESS_LADDER]


def _failure_reason(message: str) -> str:
    for code, reason in _FATAL_NET_ERRORS.items():
        if code in message:
            return reason
    first_line = message.strip().splitlines()[0] if message.strip() else ""
    return first_line or "unknown error"


def load_search_page(
    session: BrowserSession,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "domcontentloaded",
    deadline: AttemptDeadline | None = None,
) -> str:
    """Open *url* in the session's page and return its HTML.

    The captured initial response is preferred over ``page.content()``,
    since page scripts may have rewritten the DOM by the time it is read.

    Raises:
        NavigationError: Navigation failed and no response was captured.
        AttemptTimeout: The attempt budget ran out while loading.
    """
    capture = session.interceptor.capture
    try:
        resilient_goto(session.page, url, timeout_ms=timeout_ms, wait_until=wait_until, deadline=deadline)
    except NavigationError as exc:
        if not capture.captured:
            raise
        logger.warning("Navigation failed (%s); continuing with the captured response", exc.reason)
    return capture.value if capture.captured else session.page.content()
