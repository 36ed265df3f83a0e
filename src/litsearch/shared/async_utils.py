"""
Async helpers for the search collaborators.

- RateLimiter: token bucket shared by all calls to one service
- CircuitBreaker: stops hammering a service that keeps failing
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ErrorContext, RateLimitError

logger = logging.getLogger(__name__)


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================


@dataclass
class RateLimiter:
    """
    Token bucket allowing ``rate`` calls per ``per`` seconds.

    NCBI E-utilities accept 3 requests/second without an API key and 10 with
    one; the Entrez searchers of one run share a limiter per key state.

    Example:
        limiter = RateLimiter(rate=3)
        async with limiter:
            handle = Entrez.esearch(db="pubmed", term="doid")
    """

    rate: float = 3.0
    per: float = 1.0
    acquired: int = field(init=False, default=0)
    waited: float = field(init=False, default=0.0)
    _tokens: float = field(init=False)
    _updated: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        self._tokens = self.rate
        self._updated = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self.rate, self._tokens + (now - self._updated) * self.rate / self.per)
        self._updated = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
            else:
                delay = (1 - self._tokens) * self.per / self.rate
                logger.debug(f"Rate limit: waiting {delay:.2f}s")
                await asyncio.sleep(delay)
                self.waited += delay
                self._refill()
                self._tokens = max(0.0, self._tokens - 1)
            self.acquired += 1

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None


_rate_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(api_name: str, rate: float = 3.0) -> RateLimiter:
    """Process-wide limiter for ``api_name``; ``rate`` applies on first use only."""
    limiter = _rate_limiters.get(api_name)
    if limiter is None:
        limiter = _rate_limiters[api_name] = RateLimiter(rate=rate)
    return limiter


# =============================================================================
# Circuit Breaker
# =============================================================================


class BreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Rejects calls to a service after ``failure_threshold`` failures in a row.

    After ``recovery_timeout`` seconds the breaker lets up to
    ``half_open_max_calls`` trial calls through; a successful one closes it.

    Example:
        breaker = CircuitBreaker(name="Europe PMC", failure_threshold=10)
        async with breaker:
            response = await client.get(url)
    """

    name: str = "service"
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _state: BreakerState = field(init=False, default=BreakerState.CLOSED)
    _failures: int = field(init=False, default=0)
    _opened_at: float | None = field(init=False, default=None)
    _trial_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def is_open(self) -> bool:
        """True while calls are rejected (open and not yet due for a trial)."""
        if self._state is not BreakerState.OPEN:
            return False
        return self._opened_at is None or time.monotonic() - self._opened_at <= self.recovery_timeout

    def _reject(self, message: str, retry_after: float) -> RateLimitError:
        return RateLimitError(
            f"{self.name}: {message}",
            retry_after=retry_after,
            context=ErrorContext(source=self.name, operation="circuit_breaker"),
        )

    def record_success(self) -> None:
        if self._state is BreakerState.HALF_OPEN:
            logger.info(f"{self.name}: circuit breaker closed (recovered)")
            self._state = BreakerState.CLOSED
            self._failures = 0
        else:
            self._failures = max(0, self._failures - 1)

    def record_failure(self) -> None:
        self._failures += 1
        if self._state is BreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
            if self._state is not BreakerState.OPEN:
                logger.warning(f"{self.name}: circuit breaker opened after {self._failures} failures")
            self._state = BreakerState.OPEN
            self._opened_at = time.monotonic()

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise self._reject("circuit breaker is open", self.recovery_timeout)
            if self._state is BreakerState.OPEN:
                self._state = BreakerState.HALF_OPEN
                self._trial_calls = 0
            if self._state is BreakerState.HALF_OPEN:
                if self._trial_calls >= self.half_open_max_calls:
                    raise self._reject("circuit breaker is half-open (max calls reached)", self.recovery_timeout / 2)
                self._trial_calls += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is None:
                self.record_success()
            else:
                self.record_failure()
