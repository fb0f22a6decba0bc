"""Search attempt orchestrator.

Drives one search through the state machine in ``regsearch.models.states``::

    INIT → PAGE_LOADED → TERM_ENTERED → SUBMITTED → CAPTCHA_PENDING
         → CAPTCHA_SOLVED → CAPTCHA_SUBMITTED → RESULT_READY | RESULT_ERROR

Any fatal condition moves the attempt to ``FAILED`` and raises a typed
``RegSearchError``.  The browser session is owned by the orchestrator for the
whole attempt and released by ``guarded_session`` on every exit path.
Retrying a failed attempt is the caller's decision (see ``search.retry``).
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from regsearch.browser.navigation import load_search_page
from regsearch.browser.session import BrowserSession
from regsearch.captcha.acquisition import capture_challenge
from regsearch.captcha.solver import CaptchaSolver, TesseractOcrEngine
from regsearch.exceptions import (
    BrowserFault,
    ElementNotFound,
    InvalidTransition,
    PageIntegrityError,
    ResultAmbiguous,
    SearchRejected,
)
from regsearch.models.search import CaptchaChallenge, SearchConfig, SearchRequest, SearchResult, SearchStatus
from regsearch.models.states import TERMINAL_STATES, SearchState, is_allowed
from regsearch.search.diagnostics import DiagnosticsRecorder, guarded_session
from regsearch.search.extractor import extract_results
from regsearch.search.retry import run_with_retries
from regsearch.search.timing import AttemptDeadline

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from regsearch.settings.config import Settings

    SessionFactory = Callable[[SearchConfig, Settings], BrowserSession]

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


def build_solver(settings: Settings) -> CaptchaSolver:
    """Create the Tesseract-backed solver described by *settings*."""
    captcha = settings.captcha
    diag = settings.diagnostics
    debug_dir = Path(diag.output_dir) / "captcha" if diag.save_captcha_images and diag.output_dir else None
    return CaptchaSolver(
        TesseractOcrEngine(captcha.tesseract_cmd, captcha.page_segmentation_mode, captcha.ocr_timeout_s),
        threshold=captcha.threshold,
        whitelist=captcha.whitelist,
        debug_dir=debug_dir,
    )


def build_recorder(settings: Settings) -> DiagnosticsRecorder:
    diag = settings.diagnostics
    return DiagnosticsRecorder(
        Path(diag.output_dir) if diag.output_dir else None,
        enabled=diag.enabled and diag.screenshot_on_failure,
    )


class SearchOrchestrator:
    """Run search attempts one at a time, each in its own browser session.

    Args:
        settings: Resolved settings; defaults to ``get_settings()``.
        solver: CAPTCHA solver; defaults to the Tesseract pipeline.
        session_factory: Callable creating a ``BrowserSession``.
        recorder: Failure diagnostics recorder.
        clock: Monotonic clock for the attempt deadline.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        solver: CaptchaSolver | None = None,
        session_factory: SessionFactory | None = None,
        recorder: DiagnosticsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if settings is None:
            from regsearch.settings import get_settings

            settings = get_settings()
        self.settings = settings
        self._solver = solver or build_solver(settings)
        self._session_factory = session_factory or BrowserSession.start
        self._recorder = recorder or build_recorder(settings)
        self._clock = clock

        self.state = SearchState.INIT
        self.history: list[SearchState] = []
        self.challenges_created = 0
        self._challenge: CaptchaChallenge | None = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, request: SearchRequest) -> SearchResult:
        """Execute one complete search attempt for *request*.

        Returns:
            A ``SearchResult`` with status ``RESULTS`` (possibly zero records)
            or ``REJECTED`` (the site's inline error text).

        Raises:
            RegSearchError: Any fatal condition, with diagnostics attached.
        """
        self._reset()
        deadline = AttemptDeadline(self.settings.search.attempt_timeout_s, self._clock)
        logger.info("Search attempt started for %r", request.term)

        try:
            session = self._session_factory(request.config, self.settings)
            with guarded_session(session, self._recorder, lambda: self.state.value):
                return self._drive(session, request, deadline)
        except Exception:
            if self.state not in TERMINAL_STATES:
                self._advance(SearchState.FAILED)
            raise
        finally:
            self._challenge = None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.state = SearchState.INIT
        self.history = [SearchState.INIT]
        self.challenges_created = 0
        self._challenge = None

    def _advance(self, new_state: SearchState) -> None:
        if not is_allowed(self.state, new_state):
            raise InvalidTransition(f"Illegal transition {self.state.value} → {new_state.value}")
        logger.info("State: %s → %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def _drive(self, session: BrowserSession, request: SearchRequest, deadline: AttemptDeadline) -> SearchResult:
        page = session.page
        browser_cfg = self.settings.browser

        html = load_search_page(
            session,
            self.settings.target.url,
            timeout_ms=browser_cfg.timeout_ms,
            wait_until=browser_cfg.wait_until,
            deadline=deadline,
        )
        self._verify_markers(html)
        self._advance(SearchState.PAGE_LOADED)

        deadline.check()
        self._enter_term(page, request.term, deadline)
        self._advance(SearchState.TERM_ENTERED)

        deadline.check()
        self._trigger_search(session, deadline)
        self._advance(SearchState.SUBMITTED)

        deadline.check()
        self._await_captcha_modal(page, deadline)
        self._advance(SearchState.CAPTCHA_PENDING)

        challenge = self._solve_challenge(page, deadline)
        self._advance(SearchState.CAPTCHA_SOLVED)

        deadline.check()
        self._submit_answer(page, challenge.answer, deadline)
        self._challenge = None
        self._advance(SearchState.CAPTCHA_SUBMITTED)

        deadline.check()
        return self._collect_outcome(session, request, deadline)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _verify_markers(self, html: str) -> None:
        markers = self.settings.target.required_markers
        missing = [name for name, marker in markers.items() if marker not in html]
        logger.debug("Page verification: %d chars, missing=%s", len(html), missing)
        if missing:
            raise PageIntegrityError(f"Search page is missing required elements: {', '.join(missing)}", missing)

    def _enter_term(self, page: Page, term: str, deadline: AttemptDeadline) -> None:
        selector = self.settings.target.search_input
        timeout = deadline.clip(self.settings.search.element_timeout_ms)
        field = page.locator(selector).first
        try:
            field.fill(term, timeout=timeout)
            entered = field.input_value(timeout=timeout)
        except PlaywrightTimeout as exc:
            raise ElementNotFound(selector, timeout) from exc
        except PlaywrightError as exc:
            raise BrowserFault(f"Entering the search term failed: {_first_line(exc)}") from exc
        if entered != term:
            raise PageIntegrityError(f"Search input holds {entered!r} after entering {term!r}", ["search_input"])

    def _trigger_search(self, session: BrowserSession, deadline: AttemptDeadline) -> None:
        page = session.page
        search_cfg = self.settings.search
        selector = self.settings.target.search_button
        timeout = deadline.clip(search_cfg.element_timeout_ms)

        url_before = page.url
        try:
            page.locator(selector).first.click(timeout=timeout)
        except PlaywrightTimeout as exc:
            raise ElementNotFound(selector, timeout) from exc
        except PlaywrightError as exc:
            raise BrowserFault(f"Clicking the search button failed: {_first_line(exc)}") from exc

        # The modal normally opens in place, so a missing navigation is expected
        try:
            page.wait_for_url(
                lambda url: url != url_before,
                wait_until="domcontentloaded",
                timeout=deadline.clip(search_cfg.navigation_race_ms),
            )
            logger.debug("Search trigger navigated to %s", page.url)
        except PlaywrightTimeout:
            logger.debug("No navigation after search trigger")

        session.quiescence.wait_for_quiescence(
            page,
            idle_ms=search_cfg.quiescence_idle_ms,
            timeout_ms=deadline.clip(search_cfg.quiescence_timeout_ms),
        )

    def _await_captcha_modal(self, page: Page, deadline: AttemptDeadline) -> None:
        selector = self.settings.target.captcha_modal
        timeout = deadline.clip(self.settings.captcha.wait_timeout_ms)
        try:
            page.wait_for_selector(selector, state="visible", timeout=timeout)
        except PlaywrightTimeout as exc:
            error_text = self._inline_error(page, deadline)
            if error_text is not None:
                raise SearchRejected(error_text) from exc
            raise ElementNotFound(selector, timeout) from exc
        except PlaywrightError as exc:
            raise BrowserFault(f"Waiting for the CAPTCHA modal failed: {_first_line(exc)}") from exc

    def _solve_challenge(self, page: Page, deadline: AttemptDeadline) -> CaptchaChallenge:
        if self._challenge is not None:
            raise InvalidTransition("A CAPTCHA challenge is already live for this submission")
        self._challenge = capture_challenge(
            page,
            self.settings.target.captcha_image,
            timeout_ms=deadline.clip(self.settings.captcha.wait_timeout_ms),
        )
        self.challenges_created += 1
        return self._solver.solve(self._challenge)

    def _submit_answer(self, page: Page, answer: str, deadline: AttemptDeadline) -> None:
        selector = self.settings.target.captcha_input
        timeout = deadline.clip(self.settings.search.element_timeout_ms)
        field = page.locator(selector).first
        try:
            field.fill("", timeout=timeout)
            # Per-character pacing; the form rejects pasted answers
            field.press_sequentially(answer, delay=self.settings.captcha.type_delay_ms, timeout=timeout)
            field.press("Enter", timeout=timeout)
        except PlaywrightTimeout as exc:
            raise ElementNotFound(selector, timeout) from exc
        except PlaywrightError as exc:
            raise BrowserFault(f"Typing the CAPTCHA answer failed: {_first_line(exc)}") from exc
        page.wait_for_timeout(deadline.clip(self.settings.search.settle_ms))

    def _collect_outcome(
        self, session: BrowserSession, request: SearchRequest, deadline: AttemptDeadline
    ) -> SearchResult:
        page = session.page
        target = self.settings.target
        timeout = deadline.clip(self.settings.search.result_timeout_ms)
        try:
            page.wait_for_selector(f"{target.results_table}, {target.inline_error}", state="visible", timeout=timeout)
            results_visible = page.locator(target.results_table).first.is_visible()
        except PlaywrightTimeout as exc:
            raise ResultAmbiguous(f"Neither results nor an error appeared within {timeout}ms") from exc
        except PlaywrightError as exc:
            raise BrowserFault(f"Reading the search outcome failed: {_first_line(exc)}") from exc

        result = SearchResult(term=request.term, user_agent=session.user_agent)
        if results_visible:
            result.records = extract_results(page, target.results_table)
            self._advance(SearchState.RESULT_READY)
        else:
            error_text = self._inline_error(page, deadline)
            if error_text is None:
                raise ResultAmbiguous("Result marker appeared but neither results nor error is visible")
            result.status = SearchStatus.REJECTED
            result.error_text = error_text
            logger.warning("Search rejected after CAPTCHA: %s", error_text)
            self._advance(SearchState.RESULT_ERROR)

        result.final_url = page.url
        result.states = list(self.history)
        return result

    def _inline_error(self, page: Page, deadline: AttemptDeadline) -> str | None:
        """Return the visible inline error text, or ``None`` if none is shown."""
        locator = page.locator(self.settings.target.inline_error).first
        try:
            if not locator.is_visible():
                return None
            text = locator.inner_text(timeout=deadline.clip(self.settings.search.element_timeout_ms))
        except PlaywrightTimeout:
            logger.debug("Inline error vanished before it could be read")
            return None
        except PlaywrightError as exc:
            raise BrowserFault(f"Reading the inline error failed: {_first_line(exc)}") from exc
        return _WS_RE.sub(" ", text).strip()


def _first_line(exc: Exception) -> str:
    """Playwright messages carry a call log after the first line."""
    message = str(exc).strip()
    return message.splitlines()[0] if message else type(exc).__name__


def run_search(
    term: str,
    config: SearchConfig | None = None,
    settings: Settings | None = None,
    *,
    max_attempts: int | None = None,
) -> SearchResult:
    """Search the registry for *term*.

    Args:
        term: Free-form search text.
        config: Browser configuration; defaults come from *settings*.
        settings: Resolved settings; defaults to ``get_settings()``.
        max_attempts: Attempts before giving up; defaults to
            ``settings.search.max_attempts``.

    Raises:
        RegSearchError: When the final attempt fails.
    """
    if settings is None:
        from regsearch.settings import get_settings

        settings = get_settings()
    request = SearchRequest(term=term, config=config or SearchConfig.from_settings(settings))
    orchestrator = SearchOrchestrator(settings)
    search_cfg = settings.search
    return run_with_retries(
        orchestrator.run,
        request,
        max_attempts=max_attempts or search_cfg.max_attempts,
        base_delay=search_cfg.retry_base_delay_s,
        max_delay=search_cfg.retry_max_delay_s,
    )
