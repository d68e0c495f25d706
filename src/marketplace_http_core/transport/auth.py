"""Authentication transport layer.

Sits next to the base transport (priority 300) so that every physical
attempt, including retries, is signed afresh.
"""

import logging

import httpx

from marketplace_http_core.auth.providers import AuthProvider
from marketplace_http_core.errors.exceptions import ConfigurationError
from marketplace_http_core.transport.base import Middleware, WrappingTransport, replace_request, sanitize_url


class AuthTransport(WrappingTransport):
    """Transport decorator adding provider headers to a copy of each request."""

    def __init__(
        self,
        wrapped_transport: httpx.AsyncBaseTransport,
        provider: AuthProvider,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(wrapped_transport)
        self.provider = provider
        self._logger = logger or logging.getLogger(__name__)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        auth_headers = self.provider.auth_headers(request)

        headers = httpx.Headers(request.headers)
        headers.update(auth_headers)

        self._logger.debug(
            f"Adding {type(self.provider).__name__} authentication to {request.method} {sanitize_url(request.url)}"
        )
        return await self._wrapped_transport.handle_async_request(replace_request(request, headers=headers))


class AuthMiddleware(Middleware):
    """Middleware unit adding ``AuthTransport`` to a pipeline.

    Raises:
        ConfigurationError: If the provider is not usable (missing credentials)
    """

    name = "authentication"
    priority = 300

    def __init__(
        self,
        provider: AuthProvider,
        *,
        logger: logging.Logger | None = None,
        name: str | None = None,
        priority: int | None = None,
    ) -> None:
        super().__init__(name=name, priority=priority)
        if not provider.is_valid():
            raise ConfigurationError(f"Authentication provider {provider!r} is not properly configured")
        self.provider = provider
        self._logger = logger

    def wrap(self, transport: httpx.AsyncBaseTransport) -> AuthTransport:
        return AuthTransport(transport, self.provider, logger=self._logger)
