"""Data models for registry search requests, results, and state."""

from regsearch.models.search import (
    CaptchaChallenge,
    Diagnostics,
    SearchConfig,
    SearchRecord,
    SearchRequest,
    SearchResult,
    SearchStatus,
)
from regsearch.models.states import SearchState

__all__ = [
    "CaptchaChallenge",
    "Diagnostics",
    "SearchConfig",
    "SearchRecord",
    "SearchRequest",
    "SearchResult",
    "SearchState",
    "SearchStatus",
]
