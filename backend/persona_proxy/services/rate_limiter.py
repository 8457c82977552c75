"""In-memory fixed-window rate limiting.

Every attempt for a key increments the counter of the key's current window;
the attempt is admitted while the counter stays within ``limit``. Once
``window_seconds`` have elapsed since the window started, the next attempt
opens a fresh window at its own arrival time.

Fixed windows allow up to twice the nominal rate across a window boundary.
"""
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a rate limit is exceeded."""

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        self.message = message or "Too many requests. Please try again later."
        super().__init__(self.message)


class _Window:
    __slots__ = ("start", "count")

    def __init__(self, start: float):
        self.start = start
        self.count = 0


class FixedWindowRateLimiter:
    """Thread-safe fixed-window counter keyed by an arbitrary string."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        *,
        max_keys: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "rate_limit",
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self.name = name
        self._clock = clock
        self._windows: OrderedDict[str, _Window] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def retry_after(self) -> int:
        """Advisory Retry-After in seconds: always the full window length."""
        return int(self.window_seconds)

    def hit(self, key: str) -> bool:
        """Count an attempt for ``key`` and return whether it is admitted."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.start + self.window_seconds:
                window = _Window(now)
                self._windows[key] = window
            self._windows.move_to_end(key)
            window.count += 1
            admitted = window.count <= self.limit

            if self.max_keys is not None:
                while len(self._windows) > self.max_keys:
                    self._windows.popitem(last=False)

        return admitted

    def check(self, key: str) -> None:
        """Like :meth:`hit` but raises RateLimitExceeded when rejected."""
        if not self.hit(key):
            logger.warning(f"{self.name}: limit of {self.limit} per {self.window_seconds}s exceeded for {key!r}")
            raise RateLimitExceeded(retry_after=self.retry_after)

    def prune_expired(self, now: float | None = None) -> int:
        """Drop windows that have fully elapsed. Returns the count dropped."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [
                key for key, window in self._windows.items()
                if now > window.start + self.window_seconds
            ]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
