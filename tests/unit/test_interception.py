"""Unit tests for regsearch.browser.interception: classifier and capture slot."""

from __future__ import annotations

from unittest.mock import MagicMock

from playwright.sync_api import Error as PlaywrightError

from regsearch.browser.interception import (
    BROWSER_NAVIGATION_HEADERS,
    InterceptionRules,
    RequestAction,
    RequestInterceptor,
    ResponseCapture,
    augment_headers,
    classify_request,
)

TARGET = "https://registry.example/search.html"
RULES = InterceptionRules(target_url=TARGET, blocked_paths=("/home",))


# ---------------------------------------------------------------------------
# classify_request
# ---------------------------------------------------------------------------


class TestClassifyRequest:
    def test_exact_target_gets_headers(self) -> None:
        assert classify_request(TARGET, RULES) == RequestAction.AUGMENT_HEADERS

    def test_target_with_query_is_not_exact(self) -> None:
        assert classify_request(TARGET + "?x=1", RULES) == RequestAction.CONTINUE

    def test_blocked_path_is_aborted(self) -> None:
        assert classify_request("https://registry.example/content/home.html", RULES) == RequestAction.ABORT

    def test_other_requests_continue(self) -> None:
        assert classify_request("https://cdn.example/app.js", RULES) == RequestAction.CONTINUE

    def test_exact_match_wins_over_blocked_substring(self) -> None:
        rules = InterceptionRules(target_url="https://registry.example/home/search", blocked_paths=("/home",))
        assert classify_request("https://registry.example/home/search", rules) == RequestAction.AUGMENT_HEADERS

    def test_empty_blocked_path_never_matches(self) -> None:
        rules = InterceptionRules(target_url=TARGET, blocked_paths=("",))
        assert classify_request("https://cdn.example/app.js", rules) == RequestAction.CONTINUE


class TestAugmentHeaders:
    def test_merges_browser_headers_over_request_headers(self) -> None:
        merged = augment_headers({"User-Agent": "UA", "Accept": "*/*"})
        assert merged["user-agent"] == "UA"
        assert merged["accept"] == BROWSER_NAVIGATION_HEADERS["accept"]
        assert merged["sec-fetch-mode"] == "navigate"
        assert merged["cache-control"] == "no-cache"

    def test_no_duplicate_case_variants(self) -> None:
        merged = augment_headers({"Accept-Language": "fr"})
        assert [k for k in merged if k.lower() == "accept-language"] == ["accept-language"]


# ---------------------------------------------------------------------------
# ResponseCapture
# ---------------------------------------------------------------------------


class TestResponseCapture:
    def test_first_target_response_is_kept(self) -> None:
        capture = ResponseCapture(TARGET)
        assert capture.offer(TARGET, "<html>first</html>") is True
        assert capture.value == "<html>first</html>"
        assert capture.captured is True

    def test_write_once(self) -> None:
        capture = ResponseCapture(TARGET)
        capture.offer(TARGET, "first")
        assert capture.offer(TARGET, "second") is False
        assert capture.value == "first"

    def test_ignores_other_urls(self) -> None:
        capture = ResponseCapture(TARGET)
        assert capture.offer("https://cdn.example/app.js", "js") is False
        assert capture.value is None
        assert capture.captured is False


# ---------------------------------------------------------------------------
# RequestInterceptor (Playwright dispatch)
# ---------------------------------------------------------------------------


def _request(url: str, headers: dict[str, str] | None = None) -> MagicMock:
    request = MagicMock()
    request.url = url
    request.headers = headers or {"user-agent": "UA"}
    return request


class TestRequestInterceptor:
    def test_attach_registers_route_and_response_handler(self) -> None:
        page = MagicMock()
        interceptor = RequestInterceptor(RULES)

        interceptor.attach(page)

        page.route.assert_called_once_with("**/*", interceptor._on_route)
        page.on.assert_called_once_with("response", interceptor._on_response)

    def test_target_continues_with_augmented_headers(self) -> None:
        route = MagicMock()
        RequestInterceptor(RULES)._on_route(route, _request(TARGET))

        headers = route.continue_.call_args.kwargs["headers"]
        assert headers["user-agent"] == "UA"
        assert headers["sec-fetch-dest"] == "document"
        route.abort.assert_not_called()

    def test_blocked_request_aborted_and_recorded(self) -> None:
        route = MagicMock()
        interceptor = RequestInterceptor(RULES)

        interceptor._on_route(route, _request("https://registry.example/home"))

        route.abort.assert_called_once_with()
        route.continue_.assert_not_called()
        assert interceptor.aborted == ["https://registry.example/home"]

    def test_other_request_continues_unmodified(self) -> None:
        route = MagicMock()
        RequestInterceptor(RULES)._on_route(route, _request("https://cdn.example/a.css"))
        route.continue_.assert_called_once_with()

    def test_response_body_captured_once(self) -> None:
        interceptor = RequestInterceptor(RULES)
        first, second = MagicMock(url=TARGET), MagicMock(url=TARGET)
        first.text.return_value = "initial"
        second.text.return_value = "later"

        interceptor._on_response(first)
        interceptor._on_response(second)

        assert interceptor.capture.value == "initial"
        second.text.assert_not_called()

    def test_body_read_error_leaves_slot_empty(self) -> None:
        interceptor = RequestInterceptor(RULES)
        response = MagicMock(url=TARGET)
        response.text.side_effect = PlaywrightError("Response body is unavailable for redirect responses")

        interceptor._on_response(response)

        assert interceptor.capture.captured is False
