"""Marketplace HTTP Core - Shared HTTP middleware for marketplace API clients.

This library provides the request pipeline used by Amazon, eBay, Discogs
and Bandcamp clients:
- Priority-ordered transport middleware (retry, rate limiting, logging, auth)
- Retry with exponential backoff and Retry-After support
- Client-side rate limiting reconciled from quota headers
- Response classification into a typed error taxonomy
- Multi-source credential resolution

Example:
    ```python
    from marketplace_http_core import ClientConfig, MarketplaceClient
    from marketplace_http_core.auth import OAuth1aAuth

    config = ClientConfig.for_discogs(auth=OAuth1aAuth.from_env("DISCOGS"))

    async with MarketplaceClient(config) as client:
        release = await client.get("/releases/249504")
    ```
"""

__version__ = "0.1.0"

from marketplace_http_core.client import MarketplaceClient  # noqa: E402
from marketplace_http_core.config import ClientConfig  # noqa: E402

__all__ = ["ClientConfig", "MarketplaceClient", "__version__"]
