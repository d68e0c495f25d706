"""Marketplace client facade over an assembled transport pipeline."""

from collections.abc import Mapping
from typing import Any

import httpx

from marketplace_http_core.config import ClientConfig
from marketplace_http_core.errors.exceptions import RetryableError
from marketplace_http_core.errors.handler import classify_exception, decode_body, is_transient_failure, raise_for_status
from marketplace_http_core.transport.base import operation_from_url
from marketplace_http_core.transport.factory import create_transport_stack
from marketplace_http_core.transport.pipeline import Pipeline


class MarketplaceClient:
    """Async JSON client for one marketplace API.

    The pipeline is built once from ``config`` and shared by every call (and
    by clients derived through ``with_options``). Non-2xx responses are
    raised as ``HttpClientError`` subclasses; transient transport failures
    that reach the facade are raised as ``RetryableError``.

    Args:
        config: Client configuration
        transport: Base transport performing the network call
            (default: ``httpx.AsyncHTTPTransport()``)
        pipeline: Prebuilt pipeline to use instead of building one from
            ``config.middleware``

    Example:
        ```python
        async with MarketplaceClient(ClientConfig.for_discogs()) as client:
            release = await client.get("/releases/249504")
        ```
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        pipeline: Pipeline | None = None,
    ) -> None:
        self.config = config
        self.transport = pipeline if pipeline is not None else create_transport_stack(config, transport)
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=config.default_headers,
            timeout=config.timeout,
            max_redirects=config.max_redirects,
            follow_redirects=True,
            transport=self.transport,
        )

    async def __aenter__(self) -> "MarketplaceClient":
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._client.__aexit__(exc_type, exc_val, exc_tb)

    async def aclose(self) -> None:
        await self._client.aclose()

    def with_options(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> "MarketplaceClient":
        """Client sharing this pipeline with merged default headers and/or a new timeout.

        Closing either client closes the shared transports.
        """
        config = self.config.with_(
            default_headers=self.config.merged_headers(headers),
            timeout=timeout if timeout is not None else self.config.timeout,
        )
        return MarketplaceClient(config, pipeline=self.transport)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request through the pipeline and classify the response.

        Args:
            method: HTTP method
            url: URL relative to ``config.base_url`` (or absolute)
            **kwargs: Passed to ``httpx.AsyncClient.request``

        Returns:
            The successful response

        Raises:
            HttpClientError: Subclass matching the failure
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if not is_transient_failure(e):
                raise
            classification = classify_exception(e)
            raise RetryableError(classification.message, cause=e, operation=operation_from_url(url)) from e

        raise_for_status(response)
        return response

    async def get(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        response = await self.request("GET", url, params=params)
        return decode_body(response)

    async def post(self, url: str, json: Any = None) -> Any:
        response = await self.request("POST", url, json=json)
        return decode_body(response)

    async def put(self, url: str, json: Any = None) -> Any:
        response = await self.request("PUT", url, json=json)
        return decode_body(response)

    async def patch(self, url: str, json: Any = None) -> Any:
        response = await self.request("PATCH", url, json=json)
        return decode_body(response)

    async def delete(self, url: str) -> None:
        await self.request("DELETE", url)

    def __repr__(self) -> str:
        return f"MarketplaceClient(base_url={self.config.base_url!r}, pipeline={self.transport!r})"
