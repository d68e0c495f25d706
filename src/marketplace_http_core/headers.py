"""Helpers for reading rate-limit telemetry out of response headers.

Marketplaces report quota state under different header names:

| Provider | Limit | Remaining |
|----------|-------|-----------|
| generic  | `X-RateLimit-Limit` | `X-RateLimit-Remaining` |
| Amazon   | `x-amzn-RateLimit-Limit` | `x-amzn-RateLimit-Remaining` |
| Discogs  | `X-Discogs-Ratelimit` | `X-Discogs-Ratelimit-Remaining` |
| eBay     | - | `X-EBAY-API-ANALYTICS-DAILY-REMAINING` |

All lookups are case-insensitive and accept either ``httpx.Headers`` or a
plain mapping. Multi-valued headers use their first value.
"""

import math
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

LIMIT_HEADERS: tuple[str, ...] = (
    "x-ratelimit-limit",
    "x-amzn-ratelimit-limit",
    "x-discogs-ratelimit",
)

REMAINING_HEADERS: tuple[str, ...] = (
    "x-ratelimit-remaining",
    "x-amzn-ratelimit-remaining",
    "x-discogs-ratelimit-remaining",
    "x-ebay-api-analytics-daily-remaining",
)

RESET_HEADERS: tuple[str, ...] = ("x-ratelimit-reset",)

# Reset values above this are epoch timestamps rather than delta seconds
EPOCH_THRESHOLD = 1_000_000_000


def get_header(headers: Mapping[str, str | Sequence[str]], *names: str) -> str | None:
    """Return the first present header among ``names`` (case-insensitive)."""
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        # httpx joins repeated headers with ", "
        return str(value).split(",")[0].strip()
    return None


def parse_number(value: str) -> float:
    """Parse a numeric header value, raising ValueError when malformed."""
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"Invalid numeric header value: {value!r}")
    return number


def parse_int_header(headers: Mapping[str, str | Sequence[str]], *names: str) -> int | None:
    """Parse an integer header leniently, returning None when missing or invalid."""
    value = get_header(headers, *names)
    if value is None:
        return None
    try:
        return int(parse_number(value))
    except (ValueError, OverflowError):
        return None


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a ``Retry-After`` value into seconds.

    Supports both formats:
    - Delay-seconds: "120"
    - HTTP-date: "Wed, 21 Oct 2015 07:28:00 GMT"

    Args:
        value: Raw header value.
        now: Reference time for HTTP-date values (default: current UTC time).

    Returns:
        Delay in seconds, or None if missing, negative, non-finite, in the past, or invalid.
    """
    if not value:
        return None

    try:
        delay = float(value)
    except ValueError:
        pass
    else:
        if delay < 0 or not math.isfinite(delay):
            return None
        return delay

    try:
        retry_date = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None

    if retry_date.tzinfo is None:
        retry_date = retry_date.replace(tzinfo=UTC)
    delay = (retry_date - (now or datetime.now(UTC))).total_seconds()

    # Clock skew or a date already passed
    if delay < 0:
        return None
    return delay
