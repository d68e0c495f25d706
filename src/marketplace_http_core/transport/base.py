"""Base classes for composable transport middleware.

A transport is anything implementing ``httpx.AsyncBaseTransport``: it sends
one request and returns one response. A middleware unit is a named,
prioritized decorator that turns one transport into another with the same
contract:

```python
class HeaderStamp(Middleware):
    name = "stamp"
    priority = 150

    def wrap(self, transport):
        return StampTransport(transport)
```

Middleware never mutates the request it receives. When it needs different
headers or URL for an attempt it sends a rebuilt copy (see ``replace_request``).
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode

import httpx

from marketplace_http_core.errors.exceptions import ConfigurationError

# Query parameters that never carry credentials and are kept in log output
SAFE_QUERY_KEYS: frozenset[str] = frozenset(["limit", "offset", "page", "sort", "order", "filter", "version"])


@dataclass(frozen=True)
class MiddlewareDescriptor:
    """Identity of a middleware unit within one pipeline."""

    name: str
    priority: int


class Middleware(ABC):
    """A named, prioritized behavior that wraps a transport.

    Subclasses set ``name`` and ``priority`` as class attributes; both can be
    overridden per instance through the constructor.

    Priority decides nesting (see ``pipeline.assemble_pipeline``): the lowest
    number ends up outermost.
    """

    name: str = ""
    priority: int = 0

    def __init__(self, *, name: str | None = None, priority: int | None = None) -> None:
        if name is not None:
            self.name = name
        if priority is not None:
            self.priority = priority

    @property
    def descriptor(self) -> MiddlewareDescriptor:
        return MiddlewareDescriptor(name=self.name, priority=self.priority)

    @abstractmethod
    def wrap(self, transport: httpx.AsyncBaseTransport) -> httpx.AsyncBaseTransport:
        """Return a transport that adds this behavior around ``transport``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


class CallableMiddleware(Middleware):
    """Middleware built from a plain ``transport -> transport`` function."""

    def __init__(
        self,
        name: str,
        priority: int,
        wrapper: Callable[[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport],
    ) -> None:
        super().__init__(name=name, priority=priority)
        self._wrapper = wrapper

    def wrap(self, transport: httpx.AsyncBaseTransport) -> httpx.AsyncBaseTransport:
        return self._wrapper(transport)


class WrappingTransport(httpx.AsyncBaseTransport):
    """Transport decorator delegating lifecycle calls to the wrapped transport."""

    def __init__(self, wrapped_transport: httpx.AsyncBaseTransport) -> None:
        self._wrapped_transport = wrapped_transport

    @property
    def wrapped_transport(self) -> httpx.AsyncBaseTransport:
        return self._wrapped_transport

    async def __aenter__(self):
        """Enter async context, delegating to wrapped transport."""
        await self._wrapped_transport.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context, delegating to wrapped transport."""
        return await self._wrapped_transport.__aexit__(exc_type, exc_val, exc_tb)

    async def aclose(self) -> None:
        await self._wrapped_transport.aclose()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._wrapped_transport.handle_async_request(request)

    def with_options(self, **options: Any) -> "WrappingTransport":
        """Return an equivalent layer whose innermost transport applies ``options``.

        The copy shares this layer's configuration (policies, limiters,
        loggers); only the wrapped chain is replaced.
        """
        clone = copy.copy(self)
        clone._wrapped_transport = with_options(self._wrapped_transport, **options)
        return clone


class DefaultOptionsTransport(WrappingTransport):
    """Apply default headers, query params and timeout to every request.

    Headers and params set on the request itself win over the defaults; a
    configured ``timeout`` replaces the request's timeout.
    """

    def __init__(
        self,
        wrapped_transport: httpx.AsyncBaseTransport,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> None:
        super().__init__(wrapped_transport)
        self.headers = httpx.Headers(headers or {})
        self.params = httpx.QueryParams(params or {})
        self.timeout = timeout

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        headers = httpx.Headers(self.headers)
        headers.update(request.headers)

        url = request.url
        if self.params:
            url = url.copy_with(params=self.params.merge(url.params))

        extensions = None
        if self.timeout is not None:
            extensions = {"timeout": httpx.Timeout(self.timeout).as_dict()}

        prepared = replace_request(request, headers=headers, url=url, extensions=extensions)
        return await self._wrapped_transport.handle_async_request(prepared)

    def with_options(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> "DefaultOptionsTransport":
        merged_headers = httpx.Headers(self.headers)
        merged_headers.update(headers or {})
        return DefaultOptionsTransport(
            self._wrapped_transport,
            headers=merged_headers,
            params=self.params.merge(params or {}),
            timeout=timeout if timeout is not None else self.timeout,
        )


def with_options(transport: httpx.AsyncBaseTransport, **options: Any) -> httpx.AsyncBaseTransport:
    """Configuration override for any transport.

    Layers that know how to rebuild themselves do so; a plain transport gets a
    ``DefaultOptionsTransport`` around it.

    Args:
        transport: The transport to derive from
        **options: ``headers``, ``params`` and/or ``timeout``

    Returns:
        A transport with the same layering and merged default options
    """
    unknown = set(options) - {"headers", "params", "timeout"}
    if unknown:
        raise ConfigurationError(f"Unsupported transport options: {', '.join(sorted(unknown))}")

    if isinstance(transport, WrappingTransport):
        return transport.with_options(**options)
    return DefaultOptionsTransport(transport, **options)


def replace_request(
    request: httpx.Request,
    *,
    headers: httpx.Headers | Mapping[str, str] | None = None,
    url: httpx.URL | str | None = None,
    extensions: Mapping[str, Any] | None = None,
) -> httpx.Request:
    """Build a copy of ``request`` with some parts replaced.

    The body stream is shared, so replayable bodies can be sent again.
    """
    return httpx.Request(
        request.method,
        url if url is not None else request.url,
        headers=headers if headers is not None else request.headers,
        stream=request.stream,
        extensions={**request.extensions, **(extensions or {})},
    )


def sanitize_url(url: httpx.URL | str) -> str:
    """Remove credentials and sensitive query parameters from a URL for logging."""
    parsed = httpx.URL(str(url))

    sanitized = f"{parsed.scheme or 'https'}://{parsed.host or 'unknown'}"
    if parsed.port is not None:
        sanitized += f":{parsed.port}"
    sanitized += parsed.path

    query = parsed.query.decode("ascii", errors="replace")
    if query:
        safe_params = [(key, value) for key, value in parse_qsl(query) if key in SAFE_QUERY_KEYS]
        if safe_params:
            sanitized += "?" + urlencode(safe_params)

    return sanitized


def operation_from_url(url: httpx.URL | str) -> str:
    """Name an operation after the last segment of the URL path."""
    segments = [segment for segment in httpx.URL(str(url)).path.split("/") if segment]
    return segments[-1] if segments else "unknown"
