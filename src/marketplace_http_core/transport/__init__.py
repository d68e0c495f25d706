"""Transport layer components for composable HTTP middleware.

This module provides transport layers that can be composed into a single
pipeline around httpx's AsyncHTTPTransport, adding retry, client-side rate
limiting, request logging and authentication.

Modules:
    base: Middleware and wrapping transport base classes
    pipeline: Priority-ordered assembly of middleware units
    retry: Retry with exponential backoff
    rate_limit: Per-key token buckets reconciled from quota headers
    request_logging: Request/response logging with sanitized URLs
    auth: Per-attempt authentication headers
    factory: Factory function for creating a pipeline from a ClientConfig

Example:
    ```python
    from marketplace_http_core.config import ClientConfig
    from marketplace_http_core.transport import create_transport_stack

    transport = create_transport_stack(ClientConfig.for_ebay())
    transport.outbound_order  # ("retry", "logging", "rate_limiting")
    ```
"""

from marketplace_http_core.transport.auth import AuthMiddleware, AuthTransport
from marketplace_http_core.transport.base import (
    CallableMiddleware,
    DefaultOptionsTransport,
    Middleware,
    MiddlewareDescriptor,
    WrappingTransport,
    with_options,
)
from marketplace_http_core.transport.factory import build_middleware, create_transport_stack
from marketplace_http_core.transport.pipeline import Pipeline, assemble_pipeline, sort_middleware
from marketplace_http_core.transport.rate_limit import (
    RateLimiter,
    RateLimitingMiddleware,
    RateLimitingTransport,
    RateLimitState,
)
from marketplace_http_core.transport.request_logging import LoggingMiddleware, LoggingTransport
from marketplace_http_core.transport.retry import RetryMiddleware, RetryPolicy, RetryTransport

__all__ = [
    "AuthMiddleware",
    "AuthTransport",
    "CallableMiddleware",
    "DefaultOptionsTransport",
    "LoggingMiddleware",
    "LoggingTransport",
    "Middleware",
    "MiddlewareDescriptor",
    "Pipeline",
    "RateLimitState",
    "RateLimiter",
    "RateLimitingMiddleware",
    "RateLimitingTransport",
    "RetryMiddleware",
    "RetryPolicy",
    "RetryTransport",
    "WrappingTransport",
    "assemble_pipeline",
    "build_middleware",
    "create_transport_stack",
    "sort_middleware",
    "with_options",
]
