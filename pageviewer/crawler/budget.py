"""
Deadline budget shared by every wait stage of one fetch.

The budget only ever drains: each stage asks for ``ceiling(cap)`` right
before it starts waiting and is never offered more than what is left.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class DeadlineBudget:
    """
    Time remaining for one fetch.

    Attributes:
        total: Total budget in seconds.
        clock: Monotonic clock (injectable for tests).
        start: Start timestamp on ``clock``; defaults to now.
    """

    total: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    start: float | None = None
    _released: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError(f"budget must not be negative: {self.total}")
        if self.start is None:
            self.start = self.clock()

    def elapsed(self, now: float | None = None) -> float:
        """Seconds elapsed since the fetch started."""
        if now is None:
            now = self.clock()
        return now - self.start

    def remaining(self, now: float | None = None) -> float:
        """Seconds left; never negative.

        Raises:
            RuntimeError: If consulted after the page was released.
        """
        if self._released:
            raise RuntimeError("deadline budget consulted after page release")
        return max(0.0, self.total - self.elapsed(now))

    def ceiling(self, cap: float | None = None) -> float:
        """Bound for the next stage: ``min(remaining(), cap)``."""
        remaining = self.remaining()
        if cap is None:
            return remaining
        return min(remaining, cap)

    @property
    def exhausted(self) -> bool:
        """True once no time is left."""
        return self.remaining() <= 0

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Mark the budget dead; called when the page handle is released."""
        self._released = True
