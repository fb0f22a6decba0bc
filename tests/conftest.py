"""regsearch test configuration: shared fixtures and browser doubles.

The fakes below stand in for the Playwright ``Page``/``Locator`` surface the
orchestrator touches, so the state machine can be exercised without a
browser or a Tesseract binary.
"""

from __future__ import annotations

import io
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from PIL import Image, ImageDraw
from playwright.sync_api import TimeoutError as PlaywrightTimeout

TARGET_URL = "https://registry.example/search/company-llp-name-search.html"
SEARCH_PAGE_HTML = """
<html><body>
  <input id="masterdata-search-box" type="text">
  <button id="searchicon">Search</button>
  <div id="captchaModal" class="modal"><canvas id="captchaCanvas"></canvas>
    <input id="customCaptchaInput"></div>
  <div id="results"></div>
  <div id="errorMessage"></div>
</body></html>
"""


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from regsearch.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path: Path):
    """Settings pointed at a fake target with diagnostics under *tmp_path*."""
    from regsearch.settings.config import Settings

    s = Settings()
    s.target.url = TARGET_URL
    s.diagnostics.output_dir = str(tmp_path / "diagnostics")
    s.search.quiescence_idle_ms = 0
    s.captcha.type_delay_ms = 100
    return s


# ---------------------------------------------------------------------------
# Browser doubles
# ---------------------------------------------------------------------------


def _parts(selector: str) -> list[str]:
    return [p.strip() for p in selector.split(",") if p.strip()]


class FakeLocator:
    """Subset of ``playwright.sync_api.Locator`` backed by a ``FakePage``."""

    def __init__(self, page: "FakePage", selector: str) -> None:
        self._page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def _require(self, timeout: int | None) -> None:
        if any(p in self._page.missing for p in _parts(self.selector)):
            raise PlaywrightTimeout(f"Timeout {timeout}ms waiting for {self.selector}")

    def fill(self, value: str, timeout: int | None = None) -> None:
        self._require(timeout)
        self._page.actions.append(("fill", self.selector, value))
        self._page.values[self.selector] = "" if self.selector in self._page.suppressed else value

    def input_value(self, timeout: int | None = None) -> str:
        return self._page.values.get(self.selector, "")

    def click(self, timeout: int | None = None) -> None:
        self._require(timeout)
        self._page.actions.append(("click", self.selector))
        self._page.fire(self._page.on_click, self.selector)

    def press_sequentially(self, text: str, delay: float = 0, timeout: int | None = None) -> None:
        self._require(timeout)
        self._page.actions.append(("type", self.selector, text, delay))
        self._page.values[self.selector] = self._page.values.get(self.selector, "") + text

    def press(self, key: str, timeout: int | None = None) -> None:
        self._require(timeout)
        self._page.actions.append(("press", self.selector, key))
        if key == "Enter":
            self._page.fire(self._page.on_enter, self.selector)

    def is_visible(self) -> bool:
        return self._page.is_visible(self.selector)

    def inner_text(self, timeout: int | None = None) -> str:
        return self._page.texts.get(self.selector, "")

    def bounding_box(self) -> dict[str, float] | None:
        for part in _parts(self.selector):
            if part in self._page.boxes:
                return self._page.boxes[part]
        return None


class FakePage:
    """Scriptable stand-in for ``playwright.sync_api.Page``."""

    def __init__(self, *, url: str = TARGET_URL, html: str = SEARCH_PAGE_HTML) -> None:
        self.url = "about:blank"
        self.target_url = url
        self.html = html
        self.visible: set[str] = set()
        self.missing: set[str] = set()
        self.suppressed: set[str] = set()
        self.values: dict[str, str] = {}
        self.texts: dict[str, str] = {}
        self.boxes: dict[str, dict[str, float]] = {}
        self.on_click: dict[str, Callable[[], None]] = {}
        self.on_enter: dict[str, Callable[[], None]] = {}
        self.table: dict[str, Any] = {"headers": [], "rows": []}
        self.captcha_png: bytes = b""
        self.goto_error: Exception | None = None
        self.actions: list[tuple] = []
        self.screenshots: list[dict[str, Any]] = []

    def fire(self, handlers: dict[str, Callable[[], None]], selector: str) -> None:
        handler = handlers.get(selector)
        if handler:
            handler()

    # -- Page API ------------------------------------------------------

    def goto(self, url: str, wait_until: str = "load", timeout: int = 0):
        self.actions.append(("goto", url, wait_until))
        if self.goto_error:
            raise self.goto_error
        self.url = url
        return object()

    def content(self) -> str:
        return self.html

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def is_visible(self, selector: str) -> bool:
        return any(p in self.visible for p in _parts(selector))

    def wait_for_selector(self, selector: str, state: str = "visible", timeout: int = 0) -> None:
        self.actions.append(("wait", selector, timeout))
        if not self.is_visible(selector):
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def wait_for_url(self, url, wait_until: str = "load", timeout: int = 0) -> None:
        raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for navigation")

    def wait_for_timeout(self, timeout: float) -> None:
        pass

    def screenshot(self, path: str | None = None, full_page: bool = False, clip: dict | None = None) -> bytes:
        self.screenshots.append({"path": path, "full_page": full_page, "clip": clip})
        data = self.captcha_png if clip else b"\x89PNG-full-page"
        if path:
            Path(path).write_bytes(data)
        return data

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.actions.append(("evaluate", arg))
        return self.table


class FakeSession:
    """Stand-in for ``BrowserSession`` that counts releases."""

    def __init__(self, page: FakePage, *, target_url: str = TARGET_URL, captured: str | None = None) -> None:
        from regsearch.browser.interception import InterceptionRules, RequestInterceptor
        from regsearch.browser.quiescence import QuiescenceTracker

        self.page = page
        self.interceptor = RequestInterceptor(InterceptionRules(target_url=target_url))
        if captured is not None:
            self.interceptor.capture.offer(target_url, captured)
        self.quiescence = QuiescenceTracker()
        self.user_agent = "Mozilla/5.0 (Test) Chrome/120.0.0.0"
        self.activations = 0
        self.close_calls = 0

    def activate(self) -> None:
        self.activations += 1

    def close(self) -> None:
        self.close_calls += 1


class FakeOcrEngine:
    """``OcrEngine`` that returns canned text and remembers its inputs."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: list[tuple[Image.Image, str, bool]] = []

    def recognize(self, image: Image.Image, whitelist: str, single_line: bool) -> str:
        self.calls.append((image, whitelist, single_line))
        return self.text


# ---------------------------------------------------------------------------
# Fixture helpers
# ---------------------------------------------------------------------------


def render_challenge(text: str = "12 + 7", size: tuple[int, int] = (140, 44)) -> Image.Image:
    """Draw *text* in dark ink over a light gradient, like the site's canvas."""
    image = Image.new("RGBA", size, (255, 255, 255, 255))
    draw = ImageDraw.Draw(image)
    for x in range(size[0]):
        shade = 170 + (x * 60) // size[0]
        draw.line([(x, 0), (x, size[1])], fill=(shade, shade, 200, 255))
    draw.text((12, 14), text, fill=(30, 30, 40, 255))
    return image


def png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def build_search_page(settings, *, captcha_text: str = "12 + 7", rows: list[list[str]] | None = None) -> FakePage:
    """A page that behaves like the live site on the happy path."""
    target = settings.target
    page = FakePage(url=target.url)
    page.captcha_png = png_bytes(render_challenge(captcha_text))
    page.table = {
        "headers": ["CIN/FCRN/LLPIN/FLLPIN", "Company/LLP Name"],
        "rows": rows
        if rows is not None
        else [
            ["U72900KA2021PTC150000", "COMMENDA INDIA PRIVATE LIMITED"],
            ["AAX-1234", "  COMMENDA   LLP "],
        ],
    }

    canvas = _parts(target.captcha_image)[0]

    def open_modal() -> None:
        page.visible.update({target.captcha_modal, canvas})
        page.boxes[canvas] = {"x": 410.0, "y": 220.0, "width": 140.0, "height": 44.0}

    def show_results() -> None:
        page.visible.add(target.results_table)

    page.on_click[target.search_button] = open_modal
    page.on_enter[target.captcha_input] = show_results
    return page


@pytest.fixture()
def fakes() -> SimpleNamespace:
    """The browser/OCR doubles and image helpers, for tests that build variants."""
    return SimpleNamespace(
        FakePage=FakePage,
        FakeSession=FakeSession,
        FakeOcrEngine=FakeOcrEngine,
        build_search_page=build_search_page,
        render_challenge=render_challenge,
        png_bytes=png_bytes,
        target_url=TARGET_URL,
    )


@pytest.fixture()
def search_page(settings) -> FakePage:
    return build_search_page(settings)


@pytest.fixture()
def fake_session(search_page) -> FakeSession:
    return FakeSession(search_page)


@pytest.fixture()
def make_orchestrator(settings, fake_session):
    """Factory for a ``SearchOrchestrator`` wired to the fakes."""
    from regsearch.captcha.solver import CaptchaSolver
    from regsearch.search.orchestrator import SearchOrchestrator

    def _make(ocr_text: str = "12+7", session: FakeSession | None = None):
        engine = FakeOcrEngine(ocr_text)
        chosen = session or fake_session
        orchestrator = SearchOrchestrator(
            settings,
            solver=CaptchaSolver(engine, threshold=settings.captcha.threshold),
            session_factory=lambda config, _settings: chosen,
        )
        return orchestrator, engine

    return _make


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that exercise a full search attempt")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
