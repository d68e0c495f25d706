"""Client-side rate limiting that follows the server's quota headers.

``RateLimiter`` keeps a fixed-window token bucket per key (``"general"``,
``"amazon"``, ...). ``RateLimitingMiddleware`` uses it around every physical
send:

1. **acquire**: wait until the key's window has a token left
2. **dispatch**: call the wrapped transport
3. **reconcile**: read ``X-RateLimit-*`` style headers (see
   ``marketplace_http_core.headers``) and update the key's state

Throttling is advisory. A 429 still reaches the caller; the limiter only
makes it less likely. Reconciliation is best-effort: malformed headers are
logged and ignored.

Example:
    ```python
    limiter = RateLimiter(capacity=60, period=60.0)  # Discogs: 60/minute
    transport = RateLimitingMiddleware(limiter, key="discogs").wrap(httpx.AsyncHTTPTransport())
    ```
"""

import asyncio
import logging
import math
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace

import httpx

from marketplace_http_core.errors.exceptions import ConfigurationError
from marketplace_http_core.headers import (
    EPOCH_THRESHOLD,
    LIMIT_HEADERS,
    REMAINING_HEADERS,
    RESET_HEADERS,
    get_header,
    parse_number,
    parse_retry_after,
)
from marketplace_http_core.transport.base import Middleware, WrappingTransport

logger = logging.getLogger(__name__)

DEFAULT_KEY = "general"

# (capacity, period in seconds) per marketplace
MARKETPLACE_LIMITS: dict[str, tuple[int, float]] = {
    "amazon": (10, 1.0),
    "ebay": (5000, 86400.0),
    "discogs": (60, 60.0),
    "bandcamp": (30, 60.0),
}


@dataclass
class RateLimitState:
    """Quota state for one key.

    Attributes:
        capacity: Tokens available per window.
        remaining: Tokens left in the current window.
        reset_at: Clock time (``RateLimiter.clock``) when the window refills.
        period: Window length in seconds.
    """

    capacity: int
    remaining: int
    reset_at: float
    period: float


class RateLimiter:
    """Per-key token buckets shared by every call using the same limiter.

    Reads and writes of a key's state happen under that key's lock, so
    concurrent callers cannot both spend the last token.

    Args:
        capacity: Default tokens per window for keys without an override
        period: Default window length in seconds
        max_wait: Longest a single acquire waits before proceeding anyway
        clock: Monotonic time source
        sleep: Coroutine used to wait (default: asyncio.sleep)
    """

    def __init__(
        self,
        capacity: int = 60,
        period: float = 60.0,
        *,
        max_wait: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._validate(capacity, period)
        if max_wait < 0:
            raise ConfigurationError(f"max_wait must be non-negative, got {max_wait}")

        self.capacity = capacity
        self.period = period
        self.max_wait = max_wait
        self.clock = clock
        self._sleep = sleep or asyncio.sleep
        self._limits: dict[str, tuple[int, float]] = {}
        self._states: dict[str, RateLimitState] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @classmethod
    def for_marketplace(cls, marketplace: str, **kwargs) -> "RateLimiter":
        """Limiter whose ``marketplace`` key uses that marketplace's published quota."""
        try:
            capacity, period = MARKETPLACE_LIMITS[marketplace.lower()]
        except KeyError:
            known = ", ".join(sorted(MARKETPLACE_LIMITS))
            raise ConfigurationError(f"Unknown marketplace {marketplace!r} (known: {known})") from None
        limiter = cls(capacity=capacity, period=period, **kwargs)
        limiter.configure(marketplace.lower(), capacity=capacity, period=period)
        return limiter

    @staticmethod
    def _validate(capacity: int, period: float) -> None:
        if capacity < 1:
            raise ConfigurationError(f"capacity must be at least 1, got {capacity}")
        if period <= 0:
            raise ConfigurationError(f"period must be positive, got {period}")

    def configure(self, key: str, *, capacity: int | None = None, period: float | None = None) -> None:
        """Override capacity and/or window length for one key."""
        current_capacity, current_period = self._limits.get(key, (self.capacity, self.period))
        capacity = capacity if capacity is not None else current_capacity
        period = period if period is not None else current_period
        self._validate(capacity, period)
        self._limits[key] = (capacity, period)

        state = self._states.get(key)
        if state is not None:
            state.capacity = capacity
            state.period = period
            state.remaining = min(state.remaining, capacity)

    async def acquire(self, key: str = DEFAULT_KEY, tokens: int = 1) -> float:
        """Take ``tokens`` from ``key``'s window, waiting for a refill if needed.

        Waits at most ``max_wait`` seconds in total; past that the call
        proceeds without a token and a warning is logged.

        Returns:
            Seconds spent waiting
        """
        if tokens < 1:
            raise ValueError(f"tokens must be at least 1, got {tokens}")

        waited = 0.0
        while True:
            async with self._locks[key]:
                state = self._state(key)
                now = self.clock()
                self._refill(state, now)
                if state.remaining >= tokens:
                    state.remaining -= tokens
                    return waited
                wait = max(state.reset_at - now, 0.0)

            budget = self.max_wait - waited
            if budget <= 0:
                logger.warning(f"Rate limit for {key!r} still exhausted after {waited:.2f}s, proceeding")
                return waited

            wait = min(wait, budget)
            logger.debug(f"Rate limit for {key!r} reached, waiting {wait:.2f}s")
            await self._sleep(wait)
            waited += wait

    async def update_from_headers(self, key: str, headers: Mapping[str, str | Sequence[str]]) -> bool:
        """Reconcile ``key``'s state with quota headers from a response.

        Args:
            key: Rate limit key
            headers: Response headers

        Returns:
            True if any rate-limit header was applied

        Raises:
            ValueError: If a present header value is malformed (state is left untouched)
        """
        limit_value = get_header(headers, *LIMIT_HEADERS)
        remaining_value = get_header(headers, *REMAINING_HEADERS)
        reset_value = get_header(headers, *RESET_HEADERS)
        retry_after_value = get_header(headers, "retry-after")

        if limit_value is None and remaining_value is None and reset_value is None and retry_after_value is None:
            return False

        # Parse everything before touching state
        capacity = max(1, math.ceil(parse_number(limit_value))) if limit_value is not None else None
        remaining = int(parse_number(remaining_value)) if remaining_value is not None else None
        reset_delta = None
        if reset_value is not None:
            reset_delta = parse_number(reset_value)
            if reset_delta > EPOCH_THRESHOLD:
                reset_delta = max(reset_delta - time.time(), 0.0)
        retry_after = parse_retry_after(retry_after_value)

        async with self._locks[key]:
            state = self._state(key)
            now = self.clock()
            self._refill(state, now)

            if capacity is not None:
                state.capacity = capacity
            if remaining is not None:
                state.remaining = min(remaining, state.capacity)
            else:
                state.remaining = min(state.remaining, state.capacity)
            if reset_delta is not None:
                state.reset_at = now + reset_delta
            if retry_after is not None:
                state.remaining = 0
                state.reset_at = max(state.reset_at, now + retry_after)

            logger.debug(
                f"Rate limit for {key!r} updated from headers: "
                f"{state.remaining}/{state.capacity}, resets in {max(state.reset_at - now, 0.0):.2f}s"
            )
        return True

    def status(self, key: str = DEFAULT_KEY) -> RateLimitState:
        """Snapshot of ``key``'s current state."""
        state = self._state(key)
        self._refill(state, self.clock())
        return replace(state)

    def reset(self, key: str) -> None:
        self._states.pop(key, None)

    def reset_all(self) -> None:
        self._states.clear()

    def _state(self, key: str) -> RateLimitState:
        state = self._states.get(key)
        if state is None:
            capacity, period = self._limits.get(key, (self.capacity, self.period))
            state = RateLimitState(capacity=capacity, remaining=capacity, reset_at=self.clock() + period, period=period)
            self._states[key] = state
        return state

    @staticmethod
    def _refill(state: RateLimitState, now: float) -> None:
        if now >= state.reset_at:
            state.remaining = state.capacity
            state.reset_at = now + state.period


class RateLimitingTransport(WrappingTransport):
    """Transport decorator throttling each physical send through a RateLimiter."""

    def __init__(
        self,
        wrapped_transport: httpx.AsyncBaseTransport,
        rate_limiter: RateLimiter,
        key: str = DEFAULT_KEY,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(wrapped_transport)
        self.rate_limiter = rate_limiter
        self.key = key
        self._logger = logger or logging.getLogger(__name__)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await self.rate_limiter.acquire(self.key)

        response = await self._wrapped_transport.handle_async_request(request)

        try:
            await self.rate_limiter.update_from_headers(self.key, response.headers)
        except Exception as e:
            # Telemetry only; the response is still good
            self._logger.debug(f"Rate limit header update failed for {self.key!r}: {e}")

        return response


class RateLimitingMiddleware(Middleware):
    """Middleware unit adding ``RateLimitingTransport`` to a pipeline."""

    name = "rate_limiting"
    priority = 200

    def __init__(
        self,
        rate_limiter: RateLimiter,
        key: str = DEFAULT_KEY,
        *,
        logger: logging.Logger | None = None,
        name: str | None = None,
        priority: int | None = None,
    ) -> None:
        super().__init__(name=name, priority=priority)
        self.rate_limiter = rate_limiter
        self.key = key
        self._logger = logger

    def wrap(self, transport: httpx.AsyncBaseTransport) -> RateLimitingTransport:
        return RateLimitingTransport(transport, self.rate_limiter, self.key, logger=self._logger)
