"""Request classification and out-of-band response capture.

Every outgoing request is classified by URL into one of three mutually
exclusive actions:

- the exact target page gets a genuine-browser navigation header set,
- URLs containing a blocked path substring are aborted (the site's
  ``/home`` sub-resource otherwise redirects away from the search page),
- everything else continues unmodified.

The first response for the target URL is kept verbatim in a write-once
``ResponseCapture`` slot.  Later script execution mutates the rendered DOM,
so the raw body is a fallback content source independent of ``page.content()``.

Usage::

    rules = InterceptionRules(target_url=url, blocked_paths=("/home",))
    interceptor = RequestInterceptor(rules)
    interceptor.attach(page)
    ...
    html = interceptor.capture.value
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from playwright.sync_api import Error as PlaywrightError

if TYPE_CHECKING:
    from playwright.sync_api import Page, Request, Response, Route

logger = logging.getLogger(__name__)

# Headers a real Chrome sends on a top-level document navigation.  Keys are
# lower-case to merge cleanly over Playwright's lower-cased request headers.
BROWSER_NAVIGATION_HEADERS: dict[str, str] = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.9",
    "cache-control": "no-cache",
    "connection": "keep-alive",
    "pragma": "no-cache",
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "upgrade-insecure-requests": "1",
}


class RequestAction(str, Enum):
    """What to do with an intercepted request."""

    AUGMENT_HEADERS = "augment_headers"
    ABORT = "abort"
    CONTINUE = "continue"


@dataclass(frozen=True)
class InterceptionRules:
    """URL matchers for request classification."""

    target_url: str
    blocked_paths: tuple[str, ...] = field(default_factory=tuple)


def classify_request(url: str, rules: InterceptionRules) -> RequestAction:
    """Classify *url* against *rules*.

    The exact target match wins over a blocked-path match.
    """
    if url == rules.target_url:
        return RequestAction.AUGMENT_HEADERS
    if any(path and path in url for path in rules.blocked_paths):
        return RequestAction.ABORT
    return RequestAction.CONTINUE


def augment_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return *headers* with the browser navigation set merged over them."""
    merged = {k.lower(): v for k, v in headers.items()}
    merged.update(BROWSER_NAVIGATION_HEADERS)
    return merged


class ResponseCapture:
    """Write-once slot for the first body received from the target URL."""

    def __init__(self, target_url: str) -> None:
        self.target_url = target_url
        self._value: str | None = None

    @property
    def captured(self) -> bool:
        return self._value is not None

    @property
    def value(self) -> str | None:
        return self._value

    def offer(self, url: str, body: str) -> bool:
        """Store *body* if *url* is the target and nothing was stored yet."""
        if url != self.target_url or self._value is not None:
            return False
        self._value = body
        logger.debug("Captured initial response for %s (%d chars)", url, len(body))
        return True


class RequestInterceptor:
    """Apply ``classify_request`` through Playwright's routing dispatch.

    Args:
        rules: URL matchers.
    """

    def __init__(self, rules: InterceptionRules) -> None:
        self.rules = rules
        self.capture = ResponseCapture(rules.target_url)
        self.aborted: list[str] = []

    def attach(self, page: Page) -> None:
        """Route every request on *page* through the classifier."""
        page.route("**/*", self._on_route)
        page.on("response", self._on_response)

    def _on_route(self, route: Route, request: Request) -> None:
        action = classify_request(request.url, self.rules)
        if action == RequestAction.AUGMENT_HEADERS:
            route.continue_(headers=augment_headers(request.headers))
        elif action == RequestAction.ABORT:
            logger.debug("Aborting blocked request: %s", request.url)
            self.aborted.append(request.url)
            route.abort()
        else:
            route.continue_()

    def _on_response(self, response: Response) -> None:
        if self.capture.captured or response.url != self.rules.target_url:
            return
        try:
            self.capture.offer(response.url, response.text())
        except PlaywrightError as e:
            logger.warning("Error capturing response body for %s: %s", response.url, e)
