"""
Failed login tracking with temporary lockout.

Counters are keyed by (event_id, client identity, role) and live in memory
only. Expiry is evaluated lazily on every access instead of by timers.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from common.logging_config import get_logger
from partyupload import config
from partyupload.exceptions import RateLimitedError

logger = get_logger(__name__)

ThrottleKey = Tuple[str, str, str]


@dataclass
class AttemptEntry:
    """
    Failure bookkeeping for one throttle key.

    Attributes:
        count: Failed attempts inside the current window
        first_attempt_at: Monotonic time of the first failure in the window
        blocked_until: Monotonic time the lockout ends, 0 when not blocked
    """
    count: int
    first_attempt_at: float
    blocked_until: float = 0.0


class LoginThrottle:
    """
    Thread-safe failed-attempt counter with lockout.

    Once max_attempts failures accumulate inside window_seconds the key is
    blocked for block_seconds; check() then raises RateLimitedError without
    the caller comparing any secret.

    A max_attempts of zero or less disables throttling.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[float] = None,
        block_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts if max_attempts is not None else config.AUTH_RATE_LIMIT_MAX_ATTEMPTS
        self.window_seconds = window_seconds if window_seconds is not None else config.AUTH_RATE_LIMIT_WINDOW_SECONDS
        self.block_seconds = block_seconds if block_seconds is not None else config.AUTH_RATE_LIMIT_BLOCK_SECONDS
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: Dict[ThrottleKey, AttemptEntry] = {}

    def _current_entry(self, key: ThrottleKey, now: float) -> Optional[AttemptEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.blocked_until:
            if now < entry.blocked_until:
                return entry
            del self._entries[key]
            return None
        if now - entry.first_attempt_at >= self.window_seconds:
            del self._entries[key]
            return None
        return entry

    def check(self, key: ThrottleKey) -> None:
        """
        Refuse the attempt if the key is locked out.

        Raises:
            RateLimitedError: While the key is blocked
        """
        if self.max_attempts <= 0:
            return
        with self._lock:
            now = self._clock()
            entry = self._current_entry(key, now)
            if entry is not None and entry.blocked_until:
                retry_after = max(1, math.ceil(entry.blocked_until - now))
                raise RateLimitedError(retry_after_seconds=retry_after)

    def record_failure(self, key: ThrottleKey) -> int:
        """
        Count a failed verification.

        Returns:
            Failures recorded for the key in the current window
        """
        if self.max_attempts <= 0:
            return 0
        with self._lock:
            now = self._clock()
            entry = self._current_entry(key, now)
            if entry is None:
                entry = AttemptEntry(count=0, first_attempt_at=now)
                self._entries[key] = entry
            entry.count += 1
            if entry.count >= self.max_attempts and not entry.blocked_until:
                entry.blocked_until = now + self.block_seconds
                logger.warning(
                    f"Login lockout [event_id={key[0]}] [client={key[1]}] role={key[2]} "
                    f"failures={entry.count} block={self.block_seconds}s"
                )
            return entry.count

    def reset(self, key: ThrottleKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def failure_count(self, key: ThrottleKey) -> int:
        with self._lock:
            entry = self._current_entry(key, self._clock())
            return entry.count if entry is not None else 0

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
