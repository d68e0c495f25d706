"""Testing utilities for marketplace clients.

This module provides a scripted base transport and response factories so
pipelines can be exercised without a network.

Example:
    ```python
    from marketplace_http_core.testing import (
        RecordingTransport,
        json_response,
        server_error_response,
    )


    async def test_client_retries_503():
        transport = RecordingTransport([server_error_response(503), json_response({"ok": True})])
        client = MarketplaceClient(config, transport=transport)
        assert await client.get("/orders") == {"ok": True}
        assert transport.call_count == 2
    ```
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import httpx

ScriptedOutcome = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """Base transport replaying scripted outcomes and recording every request.

    Each physical send consumes the next outcome: a response is returned, an
    exception is raised, and a callable is called with the request.

    Args:
        outcomes: Scripted outcomes in send order
        default: Outcome used once the script runs out (default: raise AssertionError)
    """

    def __init__(self, outcomes: Iterable[ScriptedOutcome] = (), default: ScriptedOutcome | None = None) -> None:
        super().__init__(self._dispatch)
        self._outcomes = list(outcomes)
        self._default = default
        self.requests: list[httpx.Request] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self._outcomes:
            outcome = self._outcomes.pop(0)
        elif self._default is not None:
            outcome = self._default
        else:
            raise AssertionError(f"No scripted response left for {request.method} {request.url}")

        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome) and not isinstance(outcome, httpx.Response):
            return outcome(request)
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def json_response(data: Any = None, status_code: int = 200, headers: Mapping[str, str] | None = None) -> httpx.Response:
    """Create a JSON response (``{}`` when ``data`` is None)."""
    return httpx.Response(status_code, json=data if data is not None else {}, headers=headers)


def rate_limit_response(
    limit: int,
    remaining: int,
    reset: float | None = None,
    status_code: int = 200,
    data: Any = None,
) -> httpx.Response:
    """Create a response carrying ``X-RateLimit-*`` quota headers."""
    headers = {"X-RateLimit-Limit": str(limit), "X-RateLimit-Remaining": str(remaining)}
    if reset is not None:
        headers["X-RateLimit-Reset"] = f"{reset:g}"
    return json_response(data, status_code=status_code, headers=headers)


def rate_exceeded_response(retry_after: float | None = None, **headers: str) -> httpx.Response:
    """Create a 429 response, optionally with ``Retry-After``.

    Extra keyword arguments become headers (underscores turn into dashes).
    """
    response_headers = {name.replace("_", "-"): value for name, value in headers.items()}
    if retry_after is not None:
        response_headers["Retry-After"] = f"{retry_after:g}"
    return json_response({"error": "rate_limited"}, status_code=429, headers=response_headers)


def server_error_response(status_code: int = 500, message: str = "Internal Server Error") -> httpx.Response:
    return json_response({"error": message}, status_code=status_code)


__all__ = [
    "RecordingTransport",
    "json_response",
    "rate_exceeded_response",
    "rate_limit_response",
    "server_error_response",
]
