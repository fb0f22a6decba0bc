"""Network quiescence tracking.

Request lifecycle events from Playwright are pushed onto a queue; a single
``QuiescenceTracker`` owned by the session drains it into an outstanding
request count.  Quiescence (zero outstanding requests for an idle window)
is a soft readiness hint only: ``wait_for_quiescence`` always has an
absolute timeout and reports the outcome instead of raising.
"""

from __future__ import annotations

import logging
import queue
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)

_POLL_MS = 100


class NetworkEvent(str, Enum):
    STARTED = "started"
    FINISHED = "finished"


class QuiescenceTracker:
    """Count outstanding requests from a queue of lifecycle events.

    Args:
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._events: queue.SimpleQueue[NetworkEvent] = queue.SimpleQueue()
        self._clock = clock
        self._outstanding = 0
        self._last_change = clock()

    def attach(self, page: Page) -> None:
        """Feed request lifecycle events from *page* into the queue."""
        page.on("request", lambda _request: self.push(NetworkEvent.STARTED))
        page.on("requestfinished", lambda _request: self.push(NetworkEvent.FINISHED))
        page.on("requestfailed", lambda _request: self.push(NetworkEvent.FINISHED))

    def push(self, event: NetworkEvent) -> None:
        self._events.put(event)

    @property
    def outstanding(self) -> int:
        self._drain()
        return self._outstanding

    def _drain(self) -> None:
        changed = False
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            if event == NetworkEvent.STARTED:
                self._outstanding += 1
            else:
                # Requests started before the tracker attached can finish after it
                self._outstanding = max(0, self._outstanding - 1)
            changed = True
        if changed:
            self._last_change = self._clock()

    def is_quiet(self, idle_ms: int) -> bool:
        """True if nothing is outstanding and nothing changed for *idle_ms*."""
        self._drain()
        return self._outstanding == 0 and (self._clock() - self._last_change) * 1000 >= idle_ms

    def wait_for_quiescence(self, page: Page, *, idle_ms: int = 500, timeout_ms: int = 5_000) -> bool:
        """Pump the page until quiet or *timeout_ms* elapses.

        Returns:
            ``True`` if the network went quiet, ``False`` on timeout.
        """
        deadline = self._clock() + timeout_ms / 1000
        while self._clock() < deadline:
            if self.is_quiet(idle_ms):
                return True
            # wait_for_timeout lets Playwright dispatch queued events
            page.wait_for_timeout(_POLL_MS)
        quiet = self.is_quiet(idle_ms)
        if not quiet:
            logger.debug("Network not quiet after %dms (%d outstanding)", timeout_ms, self._outstanding)
        return quiet
