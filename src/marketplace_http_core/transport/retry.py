"""Retry transport with exponential backoff for marketplace APIs.

A ``RetryPolicy`` decides how often and how long to wait; ``RetryMiddleware``
applies it around the rest of the pipeline. With its default priority (50)
the retry layer is outermost, so every attempt passes again through logging,
rate limiting and authentication.

## Presets

| Preset | Attempts | Initial delay | Max delay | Notes |
|--------|----------|---------------|-----------|-------|
| `RetryPolicy.default()` | 3 | 1s | 30s | all methods |
| `RetryPolicy.conservative()` | 2 | 2s | 60s | all methods |
| `RetryPolicy.aggressive()` | 5 | 0.5s | 10s | all methods |
| `RetryPolicy.idempotent_only()` | 3 | 1s | 30s | GET, HEAD, OPTIONS, TRACE on 502/503/504 |
| `RetryPolicy.for_marketplace("amazon")` | 5 | 1s | 60s | see `MARKETPLACE_POLICIES` |

## Backoff

After failed attempt ``n`` the wait is
``min(initial_delay * multiplier ** (n - 1), max_delay)``; with the defaults
that is 1s, 2s, 4s, ... A 429 carrying a valid ``Retry-After`` waits that long
instead (still capped at ``max_delay``).

## Example

```python
from marketplace_http_core.transport.retry import RetryMiddleware, RetryPolicy
import httpx

retry = RetryMiddleware(RetryPolicy(max_attempts=3, initial_delay=1, multiplier=2, max_delay=10))
transport = retry.wrap(httpx.AsyncHTTPTransport())

async with httpx.AsyncClient(transport=transport) as client:
    response = await client.get("https://api.example.com/orders")
```

When the attempt budget runs out on a retryable status or transient failure,
``RetryableError`` is raised with ``attempts`` set and the last response or
failure attached. A failure that is not retryable is re-raised as is on the
first attempt and wrapped the same way after a retry.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from marketplace_http_core.errors.exceptions import ConfigurationError, RetryableError
from marketplace_http_core.errors.handler import is_transient_failure
from marketplace_http_core.headers import get_header, parse_retry_after
from marketplace_http_core.transport.base import Middleware, WrappingTransport, operation_from_url, sanitize_url

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset([429, 500, 502, 503, 504])

# Truly idempotent HTTP methods (per RFC 7231)
IDEMPOTENT_METHODS: frozenset[str] = frozenset(["HEAD", "GET", "OPTIONS", "TRACE"])


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration shared by every call through a pipeline.

    Args:
        max_attempts: Physical sends allowed per logical call (>= 1)
        initial_delay: Wait after the first failed attempt, in seconds (>= 0)
        multiplier: Growth factor between consecutive waits (>= 1)
        max_delay: Upper bound for any single wait (>= initial_delay)
        retryable_status_codes: Status codes that trigger another attempt
        retry_on_exception: Predicate deciding whether a raised failure is transient
        retry_methods: HTTP methods eligible for retry (None means all)
        respect_retry_after: Use a 429's Retry-After header as the wait

    Raises:
        ConfigurationError: If any value is out of range
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retry_on_exception: Callable[[BaseException], bool] = is_transient_failure
    retry_methods: frozenset[str] | None = None
    respect_retry_after: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise ConfigurationError(f"initial_delay must be non-negative, got {self.initial_delay}")
        if self.multiplier < 1:
            raise ConfigurationError(f"multiplier must be at least 1, got {self.multiplier}")
        if self.max_delay < self.initial_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must not be lower than initial_delay ({self.initial_delay})"
            )

        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))
        if self.retry_methods is not None:
            object.__setattr__(self, "retry_methods", frozenset(m.upper() for m in self.retry_methods))

    def calculate_delay(self, attempt: int) -> float:
        """Backoff to wait after ``attempt`` (1-indexed) failed.

        Uses formula: min(initial_delay * multiplier ** (attempt - 1), max_delay)

        Args:
            attempt: The attempt number that just failed

        Returns:
            Delay in seconds (capped at max_delay)
        """
        delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    def should_retry_status(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes

    def should_retry_exception(self, exc: BaseException) -> bool:
        return self.retry_on_exception(exc)

    def allows_method(self, method: str) -> bool:
        return self.retry_methods is None or method.upper() in self.retry_methods

    @classmethod
    def default(cls) -> "RetryPolicy":
        return cls()

    @classmethod
    def conservative(cls) -> "RetryPolicy":
        return cls(max_attempts=2, initial_delay=2.0, max_delay=60.0)

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        return cls(max_attempts=5, initial_delay=0.5, max_delay=10.0)

    @classmethod
    def idempotent_only(cls) -> "RetryPolicy":
        """Safest policy: never repeats an operation that could create duplicates."""
        return cls(retryable_status_codes=frozenset([502, 503, 504]), retry_methods=IDEMPOTENT_METHODS)

    @classmethod
    def for_marketplace(cls, marketplace: str) -> "RetryPolicy":
        """Preset tuned to a marketplace's published rate limits."""
        try:
            settings = MARKETPLACE_POLICIES[marketplace.lower()]
        except KeyError:
            known = ", ".join(sorted(MARKETPLACE_POLICIES))
            raise ConfigurationError(f"Unknown marketplace {marketplace!r} (known: {known})") from None
        return cls(**settings)


MARKETPLACE_POLICIES: dict[str, dict] = {
    # SP-API quotas refill slowly per operation
    "amazon": {"max_attempts": 5, "initial_delay": 1.0, "multiplier": 2.0, "max_delay": 60.0},
    "ebay": {"max_attempts": 3, "initial_delay": 1.0, "multiplier": 2.0, "max_delay": 30.0},
    # 60 requests per minute
    "discogs": {"max_attempts": 3, "initial_delay": 2.0, "multiplier": 2.0, "max_delay": 60.0},
    "bandcamp": {"max_attempts": 2, "initial_delay": 2.0, "multiplier": 2.0, "max_delay": 30.0},
}


class RetryTransport(WrappingTransport):
    """Transport decorator running a bounded retry loop.

    Each logical call moves through Attempting, then either returns the
    response (success, or a status that is not retryable), waits and tries
    again, or gives up with ``RetryableError``. At most
    ``policy.max_attempts`` physical sends happen per call.

    Args:
        wrapped_transport: The underlying transport to wrap
        policy: Retry configuration
        logger: Logger for retry events (default: module logger)
        sleep: Coroutine used to wait between attempts (default: asyncio.sleep)
    """

    def __init__(
        self,
        wrapped_transport: httpx.AsyncBaseTransport,
        policy: RetryPolicy,
        *,
        logger: logging.Logger | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        super().__init__(wrapped_transport)
        self.policy = policy
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep or asyncio.sleep

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle request with retry logic for retryable statuses and transient failures.

        Args:
            request: The HTTP request to send

        Returns:
            HTTP response (after retries if needed)

        Raises:
            RetryableError: If the attempt budget is exhausted, or a failure
                that is not retryable follows one or more retries
        """
        policy = self.policy
        method_allowed = policy.allows_method(request.method)
        url = sanitize_url(request.url)
        attempt = 1

        while True:
            try:
                response = await self._wrapped_transport.handle_async_request(request)
            except Exception as e:
                retryable = method_allowed and policy.should_retry_exception(e)
                if not retryable and attempt == 1:
                    raise

                if not retryable or attempt >= policy.max_attempts:
                    self._logger.error(
                        f"Request {request.method} {url} failed after {attempt} attempts: {type(e).__name__}: {e}"
                    )
                    raise RetryableError(
                        f"Request {request.method} {url} failed after {attempt} attempts: {e}",
                        cause=e,
                        attempts=attempt,
                        max_attempts=policy.max_attempts,
                        operation=operation_from_url(request.url),
                    ) from e

                delay = policy.calculate_delay(attempt)
                self._logger.warning(
                    f"Request {request.method} {url} failed with {type(e).__name__}: {e}, "
                    f"retrying in {delay}s (attempt {attempt}/{policy.max_attempts})"
                )
                await self._sleep(delay)
                attempt += 1
                continue

            status_code = response.status_code
            if not (method_allowed and policy.should_retry_status(status_code)):
                # Success or non-retryable error
                if attempt > 1:
                    self._logger.info(
                        f"Request {request.method} {url} completed with {status_code} after {attempt} attempts"
                    )
                return response

            if attempt >= policy.max_attempts:
                # Keep the body readable for whoever inspects the error
                await response.aread()
                self._logger.error(
                    f"Request {request.method} {url} failed with {status_code} after {attempt} attempts"
                )
                raise RetryableError(
                    f"Request {request.method} {url} failed with HTTP {status_code} after {attempt} attempts",
                    status_code=status_code,
                    response=response,
                    attempts=attempt,
                    max_attempts=policy.max_attempts,
                    operation=operation_from_url(request.url),
                )

            delay = self._calculate_delay(response, attempt)
            self._logger.warning(
                f"Request {request.method} {url} failed with {status_code}, "
                f"retrying in {delay}s (attempt {attempt}/{policy.max_attempts})"
            )
            await response.aclose()
            await self._sleep(delay)
            attempt += 1

    def _calculate_delay(self, response: httpx.Response, attempt: int) -> float:
        """Pick the wait before the next attempt.

        Args:
            response: The retryable response just received
            attempt: The attempt number that produced it

        Returns:
            Delay in seconds
        """
        if self.policy.respect_retry_after and response.status_code == 429:
            retry_after = parse_retry_after(get_header(response.headers, "retry-after"))
            if retry_after is not None:
                return min(retry_after, self.policy.max_delay)
        return self.policy.calculate_delay(attempt)


class RetryMiddleware(Middleware):
    """Middleware unit adding ``RetryTransport`` to a pipeline.

    Example:
        ```python
        retry = RetryMiddleware(RetryPolicy.for_marketplace("ebay"))
        ```
    """

    name = "retry"
    priority = 50

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        logger: logging.Logger | None = None,
        sleep: Sleep | None = None,
        name: str | None = None,
        priority: int | None = None,
    ) -> None:
        super().__init__(name=name, priority=priority)
        self.policy = policy or RetryPolicy.default()
        self._logger = logger
        self._sleep = sleep

    def wrap(self, transport: httpx.AsyncBaseTransport) -> RetryTransport:
        return RetryTransport(transport, self.policy, logger=self._logger, sleep=self._sleep)
