"""Request/response logging transport.

Every physical request gets a start line and a completion line sharing a
request id. URLs are sanitized (no credentials, only safe query keys), and
bodies are never logged, only their size.

| Event | Level |
|-------|-------|
| request started | INFO |
| response < 400 | INFO |
| response >= 400 | WARNING |
| transport failure | ERROR (then re-raised) |
"""

import logging
import time
import uuid

import httpx

from marketplace_http_core.headers import get_header
from marketplace_http_core.transport.base import Middleware, WrappingTransport, sanitize_url

RATE_LIMIT_LOG_HEADERS: tuple[str, ...] = ("x-ratelimit-remaining", "x-ratelimit-limit", "retry-after")


class LoggingTransport(WrappingTransport):
    """Transport decorator logging each request and its outcome."""

    def __init__(self, wrapped_transport: httpx.AsyncBaseTransport, *, logger: logging.Logger | None = None) -> None:
        super().__init__(wrapped_transport)
        self._logger = logger or logging.getLogger(__name__)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        request_id = f"req_{uuid.uuid4().hex[:16]}"
        url = sanitize_url(request.url)
        start = time.perf_counter()

        message = f"HTTP request started [{request_id}] {request.method} {url}"
        content_type = request.headers.get("content-type")
        if content_type:
            message += f" content_type={content_type}"
        body_size = request.headers.get("content-length")
        if body_size:
            message += f" body_size={body_size}"
        self._logger.info(message)

        try:
            response = await self._wrapped_transport.handle_async_request(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self._logger.error(
                f"HTTP request failed [{request_id}] {request.method} {url} "
                f"after {duration_ms:.2f}ms: {type(e).__name__}: {e}"
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        self._logger.log(level, self._describe_response(request_id, response, duration_ms))
        return response

    @staticmethod
    def _describe_response(request_id: str, response: httpx.Response, duration_ms: float) -> str:
        parts = [f"HTTP response received [{request_id}] status={response.status_code} duration_ms={duration_ms:.2f}"]

        content_length = response.headers.get("content-length")
        if content_length:
            parts.append(f"response_size={content_length}")

        for header in RATE_LIMIT_LOG_HEADERS:
            value = get_header(response.headers, header)
            if value is not None:
                parts.append(f"{header}={value}")

        return " ".join(parts)


class LoggingMiddleware(Middleware):
    """Middleware unit adding ``LoggingTransport`` to a pipeline."""

    name = "logging"
    priority = 100

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        name: str | None = None,
        priority: int | None = None,
    ) -> None:
        super().__init__(name=name, priority=priority)
        self._logger = logger

    def wrap(self, transport: httpx.AsyncBaseTransport) -> LoggingTransport:
        return LoggingTransport(transport, logger=self._logger)
