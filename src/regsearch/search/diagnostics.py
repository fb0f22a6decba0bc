"""Failure diagnostics and the single session cleanup path.

``guarded_session`` is the only place a search attempt releases its browser.
Whatever state the attempt was in, and whether it ended in success, a typed
failure or an unexpected fault, the session is closed exactly once and
failures leave with a screenshot and the page URL attached.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.sync_api import Error as PlaywrightError

from regsearch.exceptions import BrowserFault, CaptchaSolveFailure, RegSearchError
from regsearch.models.search import Diagnostics

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from regsearch.browser.session import BrowserSession

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class DiagnosticsRecorder:
    """Capture a full-page screenshot and URL when an attempt fails.

    Args:
        output_dir: Where screenshots are written; ``None`` keeps them in memory.
        enabled: When ``False`` only the URL is recorded.
    """

    def __init__(self, output_dir: Path | None = None, *, enabled: bool = True) -> None:
        self.output_dir = output_dir
        self.enabled = enabled

    def capture(self, page: Page, label: str, state: str = "") -> Diagnostics:
        """Record what the page looks like right now.  Never raises."""
        diagnostics = Diagnostics(state=state)
        try:
            diagnostics.url = page.url
        except Exception as e:
            logger.warning("Failed to read page URL for diagnostics: %s", e)

        if not self.enabled:
            return diagnostics

        try:
            if self.output_dir:
                self.output_dir.mkdir(parents=True, exist_ok=True)
                stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
                path = self.output_dir / f"{_slug(label)}_{stamp}.png"
                page.screenshot(path=str(path), full_page=True)
                diagnostics.screenshot_path = str(path)
                logger.info("Failure screenshot saved: %s", path)
            else:
                diagnostics.screenshot_png = page.screenshot(full_page=True)
        except Exception as e:
            logger.warning("Failed to capture failure screenshot: %s", e)
        return diagnostics


@contextmanager
def guarded_session(
    session: BrowserSession,
    recorder: DiagnosticsRecorder,
    state_fn: Callable[[], str] = lambda: "",
) -> Iterator[BrowserSession]:
    """Own *session* for the duration of the block, then release it.

    ``RegSearchError`` instances get ``Diagnostics`` attached and propagate
    unchanged.  A raw Playwright error is re-raised as ``BrowserFault``
    carrying the same diagnostics; anything else propagates as is.
    """
    session.activate()
    try:
        yield session
    except Exception as exc:
        state = state_fn()
        logger.error("Search attempt failed in state %s: %s", state or "?", exc)
        diagnostics = recorder.capture(session.page, type(exc).__name__, state)
        if isinstance(exc, CaptchaSolveFailure):
            diagnostics.raw_text = exc.raw_text
        if isinstance(exc, RegSearchError):
            exc.attach(diagnostics)
        elif isinstance(exc, PlaywrightError):
            first_line = str(exc).strip().split("\n", 1)[0] or type(exc).__name__
            raise BrowserFault(f"Browser error: {first_line}", diagnostics=diagnostics) from exc
        raise
    finally:
        session.close()


def _slug(label: str) -> str:
    return _SLUG_RE.sub("_", label.lower()).strip("_") or "failure"
