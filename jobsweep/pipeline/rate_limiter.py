"""Fixed-window rate limiter for AI-backed routes.

Counters are process-local and keyed by (identity, route key). Every attempt is
charged, including the ones reported as limited, so callers must check
``limited`` before doing the expensive work. Windows reset lazily on the first
access after ``reset_at``.

The key space grows with the number of distinct callers; every
``purge_every`` charged attempts ``purge_expired`` reclaims counters whose
window has passed.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime

from jobsweep.core.config import RateLimitConfig, RateLimitRule
from jobsweep.core.schemas import RateLimitDecision

logger = logging.getLogger(__name__)


class RateCounter:
    """Attempt count for one key within its current window."""

    __slots__ = ("count", "reset_at")

    def __init__(self, reset_at: float) -> None:
        self.count = 0
        self.reset_at = reset_at


class RateLimiter:
    """Charge-on-attempt fixed-window limiter.

    Usage::

        limiter = RateLimiter.from_config(settings.rate_limit)
        decision = limiter.check_and_consume(user_id, "company-research")
        if decision.limited:
            ...  # respond 429
    """

    def __init__(
        self,
        default: RateLimitRule | None = None,
        routes: dict[str, RateLimitRule] | None = None,
        clock: Callable[[], float] = time.time,
        purge_every: int = 1000,
    ) -> None:
        self._default = default or RateLimitRule()
        self._routes = dict(routes or {})
        self._clock = clock
        self._counters: dict[tuple[str, str], RateCounter] = {}
        self._lock = threading.Lock()
        self._purge_every = max(1, purge_every)
        self._since_purge = 0

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimiter":
        return cls(config.default, config.routes)

    def rule_for(self, route_key: str) -> RateLimitRule:
        return self._routes.get(route_key, self._default)

    def check_and_consume(self, identity: str | None, route_key: str) -> RateLimitDecision:
        """Charge one attempt to (identity, route_key) and report whether it is limited.

        A missing identity is always limited and is not counted.
        """
        rule = self.rule_for(route_key)
        now = self._clock()

        if not identity:
            logger.debug("Rejecting anonymous request for '%s'", route_key)
            return RateLimitDecision(
                limited=True,
                remaining=0,
                reset_at=datetime.fromtimestamp(now),
                limit=rule.max_requests,
            )

        key = (identity, route_key)
        with self._lock:
            counter = self._counters.get(key)
            if counter is None or now > counter.reset_at:
                counter = RateCounter(reset_at=now + rule.window_seconds)
                self._counters[key] = counter
            counter.count += 1
            count = counter.count
            reset_at = counter.reset_at
            self._since_purge += 1
            purge_due = self._since_purge >= self._purge_every
            if purge_due:
                self._since_purge = 0

        if purge_due:
            self.purge_expired()

        limited = count > rule.max_requests
        if limited:
            logger.info(
                "Rate limit hit for '%s' on '%s': %d/%d",
                identity, route_key, count, rule.max_requests,
            )
        return RateLimitDecision(
            limited=limited,
            remaining=max(0, rule.max_requests - count),
            reset_at=datetime.fromtimestamp(reset_at),
            limit=rule.max_requests,
        )

    def purge_expired(self) -> int:
        """Drop counters whose window has passed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, counter in self._counters.items() if now > counter.reset_at]
            for key in stale:
                del self._counters[key]
        if stale:
            logger.debug("Purged %d expired rate counters", len(stale))
        return len(stale)

    def reset(self) -> None:
        """Forget every counter."""
        with self._lock:
            self._counters.clear()

    def __len__(self) -> int:
        return len(self._counters)
