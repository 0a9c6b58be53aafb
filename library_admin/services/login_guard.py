"""Throttling of repeated failed sign-in attempts.

A ``LoginGuard`` wraps a credential check. After ``max_failed_attempts``
consecutive failures it locks for ``lockout_duration``; while locked every
submission is refused without running the check. The lock is lifted by a
scheduled timer, or lazily by the next submission once the window has passed.

State lives only in memory, one guard per client session.
"""

import logging
import math
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, TypeVar

from ..core.config import get_settings
from ..core.exceptions import AccountLocked, IdentityError, LoginFailed
from ..models.base import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_LOGIN_ERROR = "Invalid email or password."
ATTEMPTS_HINT_THRESHOLD = 2


class GuardState(str, Enum):
    NORMAL = "normal"
    LOCKED = "locked"


class ThreadingScheduler:
    """Runs a callback once after a delay. The returned handle has ``cancel()``."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class LoginGuard:
    def __init__(
        self,
        max_failed_attempts: Optional[int] = None,
        lockout_duration: Optional[timedelta] = None,
        now: Callable[[], datetime] = utcnow,
        scheduler=None,
    ):
        self.max_failed_attempts = max_failed_attempts or settings.LOGIN_MAX_FAILED_ATTEMPTS
        self.lockout_duration = lockout_duration or timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
        self._now = now
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.RLock()
        self._timer = None

        self.failed_attempts = 0
        self.lockout_ends_at: Optional[datetime] = None
        self.last_activity = now()

    @property
    def is_locked(self) -> bool:
        return self.lockout_ends_at is not None and self._now() < self.lockout_ends_at

    @property
    def state(self) -> GuardState:
        return GuardState.LOCKED if self.is_locked else GuardState.NORMAL

    @property
    def is_idle(self) -> bool:
        return self.failed_attempts == 0 and self.lockout_ends_at is None

    @property
    def is_stale(self) -> bool:
        """True when unlocked and untouched for a full lockout window."""
        return not self.is_locked and self._now() - self.last_activity >= self.lockout_duration

    def remaining_lockout_minutes(self) -> int:
        if not self.is_locked:
            return 0
        seconds = (self.lockout_ends_at - self._now()).total_seconds()
        return max(math.ceil(seconds / 60), 1)

    def submit(self, authenticate: Callable[[], T]) -> T:
        """Run ``authenticate`` unless locked out.

        ``authenticate`` signals bad credentials by raising ``IdentityError``.
        Those are re-raised as ``LoginFailed`` with the generic message, or as
        ``AccountLocked`` when the failure reaches the threshold.
        """
        with self._lock:
            self.ensure_unlocked()
            self.last_activity = self._now()

            try:
                result = authenticate()
            except IdentityError as e:
                logger.debug("Sign-in rejected by identity provider: %s", e)
                self._record_failure()

            self.failed_attempts = 0
            return result

    def ensure_unlocked(self) -> None:
        """Raise ``AccountLocked`` while the lockout window is open."""
        with self._lock:
            if self.lockout_ends_at is not None and not self.is_locked:
                # Window elapsed before the timer fired
                self._reset()

            if self.is_locked:
                minutes = self.remaining_lockout_minutes()
                raise AccountLocked(
                    f"Too many failed attempts. Please try again in {_plural(minutes, 'minute')}.",
                    remaining_minutes=minutes,
                )

    def _record_failure(self):
        self.failed_attempts += 1

        if self.failed_attempts >= self.max_failed_attempts:
            self._start_lockout()
            minutes = self.remaining_lockout_minutes()
            logger.warning(
                "Sign-in locked for %s after %d failed attempts",
                _plural(minutes, "minute"), self.failed_attempts,
            )
            raise AccountLocked(
                f"Too many failed attempts. Please try again in {_plural(minutes, 'minute')}.",
                remaining_minutes=minutes,
            )

        message = GENERIC_LOGIN_ERROR
        attempts_remaining = self.max_failed_attempts - self.failed_attempts
        if attempts_remaining <= ATTEMPTS_HINT_THRESHOLD:
            message += f" {_plural(attempts_remaining, 'attempt')} remaining."
        raise LoginFailed(message)

    def _start_lockout(self):
        self._cancel_timer()
        self.lockout_ends_at = self._now() + self.lockout_duration
        self._timer = self._scheduler.schedule(
            self.lockout_duration.total_seconds(), self._on_lockout_elapsed
        )

    def _on_lockout_elapsed(self):
        with self._lock:
            self._timer = None
            self._reset()

    def _reset(self):
        self._cancel_timer()
        self.failed_attempts = 0
        self.lockout_ends_at = None

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self):
        """Cancel the pending unlock timer, if any."""
        with self._lock:
            self._cancel_timer()


class LoginGuardRegistry:
    """In-memory guards keyed by client session."""

    def __init__(self, factory: Callable[[], LoginGuard] = LoginGuard):
        self._factory = factory
        self._guards: Dict[str, LoginGuard] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> LoginGuard:
        with self._lock:
            guard = self._guards.get(key)
            if guard is None:
                self._prune()
                guard = self._guards[key] = self._factory()
            return guard

    def __len__(self) -> int:
        return len(self._guards)

    def _prune(self):
        for key in [k for k, g in self._guards.items() if g.is_idle or g.is_stale]:
            self._guards.pop(key).close()

    def close(self):
        with self._lock:
            for guard in self._guards.values():
                guard.close()
            self._guards.clear()


login_guards = LoginGuardRegistry()
