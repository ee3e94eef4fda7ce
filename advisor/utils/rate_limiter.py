"""Client-side throttling for public exchange REST calls.

Binance answers 429 (and 418 once an IP is banned) with a ``Retry-After``
header in seconds.  The limiter keeps a sliding window of recent calls and,
after such a response, holds every further call until the server's
deadline has passed.
"""

import time
from collections import deque
from typing import Optional

RATE_LIMIT_STATUSES = (418, 429)
_DEFAULT_BACKOFF_SECONDS = 60.0


class RateLimiter:
    """At most *calls_per_minute* calls per 60 s, plus server-imposed back-off."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = max(1, int(calls_per_minute))
        self._timestamps: deque[float] = deque()
        self._blocked_until = 0.0

    def wait(self) -> None:
        """Block until another request is allowed."""
        now = time.monotonic()
        if self._blocked_until > now:
            time.sleep(self._blocked_until - now)
            now = time.monotonic()

        while self._timestamps and now - self._timestamps[0] > 60:
            self._timestamps.popleft()
        if len(self._timestamps) >= self.calls_per_minute:
            sleep_time = 60 - (now - self._timestamps[0])
            if sleep_time > 0:
                time.sleep(sleep_time)
        self._timestamps.append(time.monotonic())

    def back_off(self, retry_after: Optional[str] = None) -> float:
        """Hold further calls for the server's ``Retry-After`` seconds.

        Returns the back-off applied; 60 s when the header is missing or
        unparsable.
        """
        try:
            seconds = max(0.0, float(retry_after))
        except (TypeError, ValueError):
            seconds = _DEFAULT_BACKOFF_SECONDS
        self._blocked_until = max(self._blocked_until, time.monotonic() + seconds)
        return seconds

    @property
    def blocked_for(self) -> float:
        """Seconds left on the current back-off, 0.0 when not blocked."""
        return max(0.0, self._blocked_until - time.monotonic())
