"""Browser session lifecycle: one Playwright driver, one Chromium, one page.

A ``BrowserSession`` moves ``launched → active → closed``.  ``close()``
releases every underlying resource exactly once; later calls are no-ops so
an orchestrator cleanup path can never double-free the browser process.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import TYPE_CHECKING

from playwright.sync_api import Error as PlaywrightError

from regsearch.browser.interception import InterceptionRules, RequestInterceptor
from regsearch.browser.quiescence import QuiescenceTracker
from regsearch.browser.stealth import apply_stealth_scripts, build_browser_profile
from regsearch.exceptions import LaunchFailure

if TYPE_CHECKING:
    from playwright.sync_api import Browser, BrowserContext, Page, Playwright

    from regsearch.models.search import SearchConfig
    from regsearch.settings.config import Settings

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LAUNCHED = "launched"
    ACTIVE = "active"
    CLOSED = "closed"


class BrowserSession:
    """Exclusive handle on a running browser and its single page."""

    def __init__(
        self,
        *,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        interceptor: RequestInterceptor,
        quiescence: QuiescenceTracker,
        user_agent: str = "",
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page
        self.interceptor = interceptor
        self.quiescence = quiescence
        self.user_agent = user_agent
        self.state = SessionState.LAUNCHED

    @classmethod
    def start(cls, config: SearchConfig, settings: Settings) -> BrowserSession:
        """Launch Chromium with stealth overrides and interception installed.

        Raises:
            LaunchFailure: If any launch step fails.  Resources started
                before the failure are released first.
        """
        from playwright.sync_api import sync_playwright

        profile = build_browser_profile(
            headless=config.headless,
            sandbox=settings.browser.sandbox,
            user_agent_pool=config.user_agent_pool,
            proxy=settings.browser.proxy,
        )
        started: list[Callable[[], None]] = []
        try:
            pw = sync_playwright().start()
            started.append(pw.stop)
            browser = pw.chromium.launch(**profile.launch_args)
            started.append(browser.close)
            context = browser.new_context(**profile.context_args)
            started.append(context.close)
            page = context.new_page()

            apply_stealth_scripts(page)
            interceptor = RequestInterceptor(
                InterceptionRules(
                    target_url=settings.target.url,
                    blocked_paths=tuple(settings.target.blocked_paths),
                )
            )
            interceptor.attach(page)
            quiescence = QuiescenceTracker()
            quiescence.attach(page)
        except PlaywrightError as exc:
            _release(reversed(started))
            raise LaunchFailure(f"Browser launch failed: {exc}") from exc

        logger.info("Browser launched (headless=%s, ua=%s)", config.headless, profile.user_agent)
        return cls(
            playwright=pw,
            browser=browser,
            context=context,
            page=page,
            interceptor=interceptor,
            quiescence=quiescence,
            user_agent=profile.user_agent,
        )

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def activate(self) -> None:
        """Mark the session as in use by an attempt."""
        if self.closed:
            raise RuntimeError("Cannot activate a closed browser session")
        self.state = SessionState.ACTIVE

    def close(self) -> None:
        """Release the page, context, browser, and driver (once)."""
        if self.closed:
            logger.debug("Browser session already closed")
            return
        self.state = SessionState.CLOSED
        _release([self._context.close, self._browser.close, self._playwright.stop])
        logger.info("Browser session closed")


def _release(closers: Iterable[Callable[[], None]]) -> None:
    """Call each closer in order, logging failures so the rest still run."""
    for closer in closers:
        try:
            closer()
        except Exception as e:
            logger.warning("Failed to release browser resource: %s", e)
