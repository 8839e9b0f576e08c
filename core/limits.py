#!/usr/bin/env python3
"""
core/limits.py — Attempt limits for authentication actions.

Fixed-window counters per (action, identifier), where the identifier is
an email address or client IP. Exceeding a limit raises RateLimitExceeded,
which the API layer turns into a 429 with a Retry-After header.

Limits:
- SIGN_UP: 5 attempts per 15 minutes
- LOGIN: 10 attempts per 15 minutes
- PASSWORD_RESET: 3 attempts per hour
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptConfig:
    """Window configuration for one action."""
    max_attempts: int
    window_seconds: int


LIMIT_CONFIGS: Dict[str, AttemptConfig] = {
    "SIGN_UP": AttemptConfig(max_attempts=5, window_seconds=15 * 60),
    "LOGIN": AttemptConfig(max_attempts=10, window_seconds=15 * 60),
    "PASSWORD_RESET": AttemptConfig(max_attempts=3, window_seconds=60 * 60),
}


@dataclass(frozen=True)
class LimitStatus:
    """Result of a limit check. remaining_attempts is None for unlimited."""
    allowed: bool
    remaining_attempts: Optional[int]
    reset_at: Optional[float]

    def retry_after(self, now: float) -> int:
        if self.reset_at is None:
            return 0
        return max(0, math.ceil(self.reset_at - now))


@dataclass
class _Window:
    attempts: int
    first_attempt: float


class RateLimitExceeded(Exception):
    """Raised when an action has used up its attempts for the window."""

    def __init__(self, message: str, retry_after: int, action: str = ""):
        self.message = message
        self.retry_after = retry_after
        self.action = action
        super().__init__(message)


class AttemptLimiter:
    """
    Thread-safe fixed-window attempt counter.

    The clock is injectable so tests can move time forward.
    """

    def __init__(
        self,
        configs: Optional[Dict[str, AttemptConfig]] = None,
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
    ):
        self.configs = dict(configs or LIMIT_CONFIGS)
        self.clock = clock
        self.enabled = enabled
        self._lock = threading.RLock()
        self._windows: Dict[Tuple[str, str], _Window] = {}

    @staticmethod
    def _normalize(action: str, identifier: str) -> Tuple[str, str]:
        return action.upper(), (identifier or "").strip().lower()

    def _config(self, action: str) -> Optional[AttemptConfig]:
        config = self.configs.get(action)
        if config is None:
            logger.warning(f"Unknown rate limit action: {action}")
        return config

    def _live_window(self, key: Tuple[str, str], config: AttemptConfig, now: float) -> Optional[_Window]:
        window = self._windows.get(key)
        if window is not None and now - window.first_attempt > config.window_seconds:
            del self._windows[key]
            return None
        return window

    def check(self, action: str, identifier: str) -> LimitStatus:
        """
        Check whether another attempt is allowed.

        Unknown actions and a disabled limiter are always allowed.
        """
        action, identifier = self._normalize(action, identifier)
        config = self._config(action)
        if config is None or not self.enabled:
            return LimitStatus(allowed=True, remaining_attempts=None, reset_at=None)

        now = self.clock()
        with self._lock:
            window = self._live_window((action, identifier), config, now)

            if window is None:
                return LimitStatus(
                    allowed=True,
                    remaining_attempts=config.max_attempts,
                    reset_at=now + config.window_seconds,
                )

            reset_at = window.first_attempt + config.window_seconds
            if window.attempts >= config.max_attempts:
                return LimitStatus(allowed=False, remaining_attempts=0, reset_at=reset_at)

            return LimitStatus(
                allowed=True,
                remaining_attempts=config.max_attempts - window.attempts,
                reset_at=reset_at,
            )

    def record_attempt(self, action: str, identifier: str):
        """Count one attempt, opening a new window if the last one expired."""
        action, identifier = self._normalize(action, identifier)
        config = self._config(action)
        if config is None or not self.enabled:
            return

        now = self.clock()
        with self._lock:
            key = (action, identifier)
            window = self._live_window(key, config, now)
            if window is None:
                self._windows[key] = _Window(attempts=1, first_attempt=now)
            else:
                window.attempts += 1

    def enforce(self, action: str, identifier: str) -> LimitStatus:
        """
        Check then record an attempt.

        Raises:
            RateLimitExceeded: If no attempts remain in the window
        """
        with self._lock:
            status = self.check(action, identifier)
            if not status.allowed:
                retry_after = status.retry_after(self.clock())
                raise RateLimitExceeded(
                    f"Too many attempts. Please try again in {format_time_until_reset(retry_after)}.",
                    retry_after=retry_after,
                    action=action.upper(),
                )
            self.record_attempt(action, identifier)
            return self.check(action, identifier)

    def clear(self, action: str, identifier: str):
        """Forget attempts, e.g. after a successful login."""
        with self._lock:
            self._windows.pop(self._normalize(action, identifier), None)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            tracked: Dict[str, int] = {}
            for action, _ in self._windows:
                tracked[action] = tracked.get(action, 0) + 1
            return {
                "enabled": self.enabled,
                "tracked_identifiers": tracked,
                "config": {
                    action: {"max_attempts": c.max_attempts, "window_seconds": c.window_seconds}
                    for action, c in self.configs.items()
                },
            }

    def reset(self):
        """Reset all windows (for testing)."""
        with self._lock:
            self._windows.clear()


def format_time_until_reset(seconds: Optional[float]) -> str:
    """
    Human-readable wait time.

    Examples:
        >>> format_time_until_reset(0)
        'now'
        >>> format_time_until_reset(61)
        '2 minutes'
        >>> format_time_until_reset(3600)
        '1 hour'
        >>> format_time_until_reset(5400)
        '1 hour and 30 minutes'
    """
    if seconds is None:
        return ""
    if seconds <= 0:
        return "now"

    def plural(n: int, unit: str) -> str:
        return f"{n} {unit}{'' if n == 1 else 's'}"

    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return plural(minutes, "minute")

    hours, remaining_minutes = divmod(minutes, 60)
    if remaining_minutes == 0:
        return plural(hours, "hour")
    return f"{plural(hours, 'hour')} and {plural(remaining_minutes, 'minute')}"


# Global limiter instance (lazy initialization)
_global_limiter: Optional[AttemptLimiter] = None
_limiter_lock = threading.Lock()


def get_limiter(enabled: Optional[bool] = None) -> AttemptLimiter:
    """
    Get global attempt limiter instance.

    Args:
        enabled: Only used on first call; defaults to LIMITS_ENABLED
    """
    global _global_limiter

    if _global_limiter is None:
        with _limiter_lock:
            if _global_limiter is None:
                if enabled is None:
                    from config import get_setting
                    enabled = get_setting("LIMITS_ENABLED")
                _global_limiter = AttemptLimiter(enabled=enabled)

    return _global_limiter


def reset_limiter():
    """Reset global limiter instance (for testing)."""
    global _global_limiter

    with _limiter_lock:
        if _global_limiter is not None:
            _global_limiter.reset()
        _global_limiter = None


def create_429_response(error: RateLimitExceeded) -> Dict[str, Any]:
    """Standard 429 body."""
    return {
        "error": "too_many_requests",
        "message": error.message,
        "retry_after": error.retry_after,
        "status": 429,
    }
