"""Request and result models for a registry search.

Lightweight data classes capturing what was asked (``SearchRequest``), the
transient CAPTCHA state of one attempt (``CaptchaChallenge``), what came back
(``SearchResult``), and the context recorded when an attempt fails
(``Diagnostics``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from regsearch.models.states import SearchState

if TYPE_CHECKING:
    from PIL import Image

    from regsearch.settings.config import Settings

SearchRecord = dict[str, str]


@dataclass(frozen=True)
class SearchConfig:
    """Per-search browser configuration.

    Attributes:
        headless: Run Chromium without a visible window.
        user_agent_pool: Candidate user-agent strings; one is picked per session.
    """

    headless: bool = True
    user_agent_pool: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchConfig:
        """Build a config from the resolved settings."""
        return cls(
            headless=settings.browser.headless,
            user_agent_pool=frozenset(ua for ua in settings.browser.user_agents if ua.strip()),
        )


@dataclass(frozen=True)
class SearchRequest:
    """A free-form search term plus its browser configuration."""

    term: str
    config: SearchConfig = field(default_factory=SearchConfig)

    def __post_init__(self) -> None:
        if not self.term or not self.term.strip():
            raise ValueError("Search term must not be empty")


@dataclass
class CaptchaChallenge:
    """Transient state of one arithmetic CAPTCHA, from capture to answer."""

    raw_image: Image.Image | None = None
    binary_image: Image.Image | None = None
    recognized_text: str = ""
    operands: tuple[int, int] | None = None
    answer: str = ""

    @property
    def solved(self) -> bool:
        return self.operands is not None and bool(self.answer)


@dataclass
class Diagnostics:
    """Context captured when an attempt fails."""

    url: str = ""
    state: str = ""
    screenshot_path: str = ""
    screenshot_png: bytes | None = field(default=None, repr=False)
    raw_text: str = ""
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "state": self.state,
            "screenshot_path": self.screenshot_path,
            "screenshot_bytes": len(self.screenshot_png) if self.screenshot_png else 0,
            "raw_text": self.raw_text,
            "captured_at": self.captured_at.isoformat(),
        }


class SearchStatus(str, Enum):
    """Outcome of a completed search attempt."""

    RESULTS = "results"  # results table shown; zero records means zero matches
    REJECTED = "rejected"  # inline error shown after the CAPTCHA answer


@dataclass
class SearchResult:
    """Outcome of one search attempt that reached a definite answer."""

    term: str = ""
    status: SearchStatus = SearchStatus.RESULTS
    records: list[SearchRecord] = field(default_factory=list)
    error_text: str = ""
    final_url: str = ""
    user_agent: str = ""
    states: list[SearchState] = field(default_factory=list)
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not self.records

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict suitable for JSON output."""
        return {
            "term": self.term,
            "status": self.status.value,
            "records": [dict(r) for r in self.records],
            "error_text": self.error_text,
            "final_url": self.final_url,
            "user_agent": self.user_agent,
            "states": [s.value for s in self.states],
            "completed_at": self.completed_at.isoformat(),
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)
