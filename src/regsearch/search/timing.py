"""Overall attempt budget.

Every wait inside an attempt asks the deadline for its timeout, so no single
step can outlive the attempt as a whole.
"""

from __future__ import annotations

import time
from typing import Callable

from regsearch.exceptions import AttemptTimeout


class AttemptDeadline:
    """Absolute time budget for one search attempt.

    Args:
        budget_s: Total seconds the attempt may run.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, budget_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.budget_s = budget_s
        self._clock = clock
        self._expires_at = clock() + budget_s

    def remaining_ms(self) -> int:
        return max(0, int((self._expires_at - self._clock()) * 1000))

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self) -> None:
        """Raise ``AttemptTimeout`` once the budget is spent."""
        if self.expired:
            raise AttemptTimeout(self.budget_s)

    def clip(self, timeout_ms: int) -> int:
        """Return *timeout_ms* bounded by the remaining budget.

        Raises:
            AttemptTimeout: If nothing is left of the budget.
        """
        self.check()
        return max(1, min(timeout_ms, self.remaining_ms()))
