"""Process-wide per-minute quota for paid directions calls."""
import time
from threading import Lock
from typing import Callable

DEFAULT_CALLS_PER_WINDOW = 30
DEFAULT_WINDOW_SECONDS = 60.0


class RequestBudget:
    """
    Fixed-window counter with a reset timestamp. One instance is shared by every
    planning request; all reads and writes happen under a lock.
    """

    def __init__(
        self,
        max_calls: int = DEFAULT_CALLS_PER_WINDOW,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._max_calls = max_calls
        self._window = window_seconds
        self._clock = clock
        self._lock = Lock()
        self._count = 0
        self._window_start = clock()
        self._rejected = 0

    def _roll(self, now: float) -> None:
        if now - self._window_start >= self._window:
            self._window_start = now
            self._count = 0

    def try_acquire(self) -> bool:
        """Reserve one call. Returns False once the current window's quota is spent."""
        with self._lock:
            self._roll(self._clock())
            if self._count >= self._max_calls:
                self._rejected += 1
                return False
            self._count += 1
            return True

    @property
    def remaining(self) -> int:
        with self._lock:
            self._roll(self._clock())
            return self._max_calls - self._count

    def snapshot(self) -> dict:
        with self._lock:
            now = self._clock()
            self._roll(now)
            return {
                "budget_limit_per_window": self._max_calls,
                "budget_window_seconds": self._window,
                "budget_remaining": self._max_calls - self._count,
                "budget_resets_in_seconds": round(max(0.0, self._window - (now - self._window_start)), 1),
                "budget_rejected_total": self._rejected,
            }
