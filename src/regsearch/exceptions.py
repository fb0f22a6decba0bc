"""Registry search exception hierarchy.

Every fatal condition in a search attempt surfaces as a ``RegSearchError``
subclass.  Diagnostics (URL, screenshot, raw OCR text) are attached by the
session guard before the error leaves the attempt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from regsearch.models.search import Diagnostics


class RegSearchError(Exception):
    """Base exception for all registry-search errors.

    Attributes:
        diagnostics: Context captured when the attempt failed, if any.
    """

    def __init__(self, message: str = "", *, diagnostics: Diagnostics | None = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics

    def attach(self, diagnostics: Diagnostics) -> None:
        """Attach diagnostics unless some were already recorded."""
        if self.diagnostics is None:
            self.diagnostics = diagnostics


class LaunchFailure(RegSearchError):
    """Raised when the browser session could not be started."""


class NavigationError(RegSearchError):
    """Raised when navigation fails with a non-retryable network error."""

    def __init__(self, url: str, reason: str, **kwargs) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}", **kwargs)


class NavigationTimeout(NavigationError):
    """Raised when every wait strategy timed out while loading a page."""

    def __init__(self, url: str, timeout_ms: int, **kwargs) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(url, f"timed out after {timeout_ms}ms", **kwargs)


class PageIntegrityError(RegSearchError):
    """Raised when required DOM markers are missing or the page refuses input.

    Attributes:
        missing: Names of the markers that were not found.
    """

    def __init__(self, message: str, missing: list[str] | None = None, **kwargs) -> None:
        self.missing = list(missing or [])
        super().__init__(message, **kwargs)


class ElementNotFound(RegSearchError):
    """Raised when a required interactive element never appeared."""

    def __init__(self, selector: str, timeout_ms: int, **kwargs) -> None:
        self.selector = selector
        self.timeout_ms = timeout_ms
        super().__init__(f"Element {selector!r} not visible within {timeout_ms}ms", **kwargs)


class SearchRejected(RegSearchError):
    """Raised when the site rejected the search before showing a CAPTCHA."""

    def __init__(self, error_text: str, **kwargs) -> None:
        self.error_text = error_text
        super().__init__(f"Search rejected before CAPTCHA: {error_text}", **kwargs)


class CaptchaSolveFailure(RegSearchError):
    """Raised when OCR output cannot be parsed into exactly two integers.

    Attributes:
        raw_text: The text returned by the OCR engine, unmodified.
    """

    def __init__(self, raw_text: str, reason: str, **kwargs) -> None:
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(f"Cannot solve CAPTCHA {raw_text!r}: {reason}", **kwargs)


class ResultAmbiguous(RegSearchError):
    """Raised when neither a results table nor an inline error appeared."""


class AttemptTimeout(RegSearchError):
    """Raised when the overall attempt budget is exhausted."""

    def __init__(self, budget_s: float, **kwargs) -> None:
        self.budget_s = budget_s
        super().__init__(f"Search attempt exceeded its {budget_s:.1f}s budget", **kwargs)


class InvalidTransition(RegSearchError):
    """Raised when the search state machine is driven out of order."""


class BrowserFault(RegSearchError):
    """Raised when the browser driver failed outside any expected wait.

    Covers closed targets, detached elements and crashed pages.  The
    driver's own error is chained as ``__cause__``.
    """
