"""Search state machine definitions."""

from enum import Enum


class SearchState(str, Enum):
    """States of a single search attempt."""

    INIT = "INIT"
    PAGE_LOADED = "PAGE_LOADED"
    TERM_ENTERED = "TERM_ENTERED"
    SUBMITTED = "SUBMITTED"
    CAPTCHA_PENDING = "CAPTCHA_PENDING"
    CAPTCHA_SOLVED = "CAPTCHA_SOLVED"
    CAPTCHA_SUBMITTED = "CAPTCHA_SUBMITTED"
    RESULT_READY = "RESULT_READY"
    RESULT_ERROR = "RESULT_ERROR"
    FAILED = "FAILED"


# Outcomes; no transition leaves these
TERMINAL_STATES = {SearchState.RESULT_READY, SearchState.RESULT_ERROR, SearchState.FAILED}

# FAILED is reachable from every non-terminal state in addition to these
STATE_TRANSITIONS: dict[SearchState, list[SearchState]] = {
    SearchState.INIT: [SearchState.PAGE_LOADED],
    SearchState.PAGE_LOADED: [SearchState.TERM_ENTERED],
    SearchState.TERM_ENTERED: [SearchState.SUBMITTED],
    SearchState.SUBMITTED: [SearchState.CAPTCHA_PENDING],
    SearchState.CAPTCHA_PENDING: [SearchState.CAPTCHA_SOLVED],
    SearchState.CAPTCHA_SOLVED: [SearchState.CAPTCHA_SUBMITTED],
    SearchState.CAPTCHA_SUBMITTED: [SearchState.RESULT_READY, SearchState.RESULT_ERROR],
}


def is_allowed(current: SearchState, new: SearchState) -> bool:
    """Return True if *current* → *new* is a legal transition."""
    if current in TERMINAL_STATES:
        return False
    if new == SearchState.FAILED:
        return True
    return new in STATE_TRANSITIONS.get(current, [])
