"""Build a transport pipeline from a ``ClientConfig``."""

import logging
from typing import TYPE_CHECKING

import httpx

from marketplace_http_core.errors.exceptions import ConfigurationError
from marketplace_http_core.transport.auth import AuthMiddleware
from marketplace_http_core.transport.base import Middleware
from marketplace_http_core.transport.pipeline import Pipeline, assemble_pipeline
from marketplace_http_core.transport.rate_limit import RateLimitingMiddleware
from marketplace_http_core.transport.request_logging import LoggingMiddleware
from marketplace_http_core.transport.retry import RetryMiddleware, RetryPolicy

if TYPE_CHECKING:
    from marketplace_http_core.config import ClientConfig

logger = logging.getLogger(__name__)

MIDDLEWARE_NAMES: tuple[str, ...] = ("logging", "rate_limiting", "retry", "authentication")


def build_middleware(config: "ClientConfig") -> list[Middleware]:
    """Instantiate the middleware named in ``config.middleware``.

    Args:
        config: Client configuration

    Returns:
        Middleware units in configuration order

    Raises:
        ConfigurationError: On an unknown name, or a unit missing its required parameter
    """
    units: list[Middleware] = []
    for name in dict.fromkeys(config.middleware):
        if name == "logging":
            units.append(LoggingMiddleware(config.logger))
        elif name == "rate_limiting":
            if config.rate_limiter is None:
                raise ConfigurationError("rate_limiting middleware requires a rate_limiter")
            units.append(RateLimitingMiddleware(config.rate_limiter, config.rate_limit_key, logger=config.logger))
        elif name == "retry":
            units.append(RetryMiddleware(config.retry_policy or RetryPolicy.default(), logger=config.logger))
        elif name == "authentication":
            if config.auth is None:
                raise ConfigurationError("authentication middleware requires an auth provider")
            units.append(AuthMiddleware(config.auth, logger=config.logger))
        else:
            raise ConfigurationError(
                f"Unknown middleware {name!r} (available: {', '.join(MIDDLEWARE_NAMES)})"
            )
    return units


def create_transport_stack(
    config: "ClientConfig",
    base_transport: httpx.AsyncBaseTransport | None = None,
) -> Pipeline:
    """Create the transport pipeline for a client.

    Args:
        config: Client configuration naming the middleware to run
        base_transport: Transport performing the network call
            (default: ``httpx.AsyncHTTPTransport()``)

    Returns:
        The assembled pipeline

    Raises:
        ConfigurationError: If the configured middleware cannot be built
    """
    units = build_middleware(config)
    if base_transport is None:
        base_transport = httpx.AsyncHTTPTransport()

    pipeline = assemble_pipeline(base_transport, units)
    logger.debug(f"Created transport stack for {config.base_url}: {pipeline!r}")
    return pipeline
