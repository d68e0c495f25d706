"""Assemble middleware units into a single composed transport.

## Ordering

Units are sorted by priority, **descending**, then each one wraps everything
built so far. The last unit wrapped ends up outermost, so:

- the **lowest** priority runs **first** on the way out and last on the way in
- the **highest** priority sits next to the base transport

| Middleware | Priority | Outbound position |
|------------|----------|-------------------|
| retry | 50 | 1st (outermost) |
| logging | 100 | 2nd |
| rate_limiting | 200 | 3rd |
| authentication | 300 | 4th (innermost) |

Read priorities ascending from the outside in. A retry layer with the lowest
priority therefore re-runs logging, throttling and signing on every physical
attempt: each retry takes a fresh rate-limit token and a fresh signature.

Units with equal priority keep their configuration order: the one listed
first is wrapped first and ends up closer to the base transport.

## Example

```python
from marketplace_http_core.transport import (
    LoggingMiddleware,
    RetryMiddleware,
    RetryPolicy,
    assemble_pipeline,
)

pipeline = assemble_pipeline(
    httpx.AsyncHTTPTransport(),
    [LoggingMiddleware(), RetryMiddleware(RetryPolicy.default())],
)
pipeline.outbound_order  # ("retry", "logging")
```
"""

import logging
from collections.abc import Iterable

import httpx

from marketplace_http_core.errors.exceptions import ConfigurationError
from marketplace_http_core.transport.base import Middleware, MiddlewareDescriptor, WrappingTransport

logger = logging.getLogger(__name__)


class Pipeline(WrappingTransport):
    """The composed transport produced by ``assemble_pipeline``.

    The set of middleware is fixed once assembled; there is no API to add or
    remove units from a pipeline in use.
    """

    def __init__(
        self,
        wrapped_transport: httpx.AsyncBaseTransport,
        base_transport: httpx.AsyncBaseTransport,
        descriptors: tuple[MiddlewareDescriptor, ...],
    ) -> None:
        super().__init__(wrapped_transport)
        self._base_transport = base_transport
        self._descriptors = descriptors

    @property
    def base_transport(self) -> httpx.AsyncBaseTransport:
        return self._base_transport

    @property
    def descriptors(self) -> tuple[MiddlewareDescriptor, ...]:
        """Descriptors from outermost to innermost."""
        return self._descriptors

    @property
    def outbound_order(self) -> tuple[str, ...]:
        """Middleware names in the order they see an outgoing request."""
        return tuple(descriptor.name for descriptor in self._descriptors)

    @property
    def inbound_order(self) -> tuple[str, ...]:
        """Middleware names in the order they see the response."""
        return tuple(reversed(self.outbound_order))

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self.outbound_order)

    def __repr__(self) -> str:
        return f"Pipeline({' -> '.join(self.outbound_order) or 'empty'})"


def sort_middleware(middlewares: Iterable[Middleware]) -> list[Middleware]:
    """Validate and sort units into wrapping order (priority descending, stable).

    Raises:
        ConfigurationError: If a unit has no name or two units share a name.
    """
    units = list(middlewares)
    seen: set[str] = set()
    for unit in units:
        if not unit.name:
            raise ConfigurationError(f"Middleware {unit!r} has no name")
        if unit.name in seen:
            raise ConfigurationError(f"Duplicate middleware name in pipeline: {unit.name!r}")
        seen.add(unit.name)

    # sorted() is stable: equal priorities keep configuration order
    return sorted(units, key=lambda unit: unit.priority, reverse=True)


def assemble_pipeline(base_transport: httpx.AsyncBaseTransport, middlewares: Iterable[Middleware]) -> Pipeline:
    """Nest middleware units around a base transport.

    Args:
        base_transport: The transport performing the actual network call
        middlewares: Units to apply, in configuration order

    Returns:
        A Pipeline whose outermost layer is the lowest-priority unit

    Raises:
        ConfigurationError: On unnamed or duplicate units
    """
    ordered = sort_middleware(middlewares)

    transport = base_transport
    for unit in ordered:
        transport = unit.wrap(transport)

    descriptors = tuple(unit.descriptor for unit in reversed(ordered))
    pipeline = Pipeline(transport, base_transport, descriptors)
    logger.debug(f"Assembled transport pipeline: {pipeline!r}")
    return pipeline
