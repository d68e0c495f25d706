"""Client configuration and marketplace presets.

A ``ClientConfig`` names the middleware a client runs (``"logging"``,
``"rate_limiting"``, ``"retry"``, ``"authentication"``) together with the
parameters those units need. ``create_transport_stack`` turns it into a
pipeline.

| Preset | Base URL | Timeout | Middleware |
|--------|----------|---------|------------|
| `for_amazon()` | sellingpartnerapi-na.amazon.com | 30s | logging, rate_limiting, retry (+ authentication) |
| `for_ebay()` | api.ebay.com | 25s | logging, rate_limiting, retry (+ authentication) |
| `for_discogs()` | api.discogs.com | 15s | logging, rate_limiting (+ authentication) |
| `for_bandcamp()` | bandcamp.com/api | 15s | logging, rate_limiting (+ authentication) |
| `for_development(url)` | - | 60s | logging |
| `for_production(url)` | - | 30s | logging, rate_limiting, retry |

``authentication`` is enabled by a preset only when an ``auth`` provider is
passed to it.

Example:
    ```python
    config = ClientConfig.for_discogs(auth=OAuth1aAuth.from_env("DISCOGS"))
    config = config.with_(timeout=20.0)
    ```
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from marketplace_http_core import __version__
from marketplace_http_core.auth.credentials import CredentialResolver
from marketplace_http_core.auth.providers import AuthProvider
from marketplace_http_core.errors.exceptions import ConfigurationError
from marketplace_http_core.transport.rate_limit import DEFAULT_KEY, RateLimiter
from marketplace_http_core.transport.retry import RetryPolicy

JSON_HEADERS: dict[str, str] = {"Accept": "application/json", "Content-Type": "application/json"}


@dataclass(frozen=True)
class ClientConfig:
    """Immutable description of a marketplace client.

    Attributes:
        base_url: Root URL every relative request is resolved against
        default_headers: Headers sent with every request
        middleware: Middleware names in configuration order (duplicates dropped)
        auth: Provider for the ``authentication`` middleware
        rate_limiter: Limiter for the ``rate_limiting`` middleware
        rate_limit_key: Key the ``rate_limiting`` middleware throttles under
        retry_policy: Policy for the ``retry`` middleware (default policy if None)
        logger: Logger handed to every middleware unit
        timeout: Request timeout in seconds
        max_redirects: Redirects followed before giving up

    Raises:
        ConfigurationError: If timeout or max_redirects is out of range
    """

    base_url: str
    default_headers: Mapping[str, str] = field(default_factory=dict)
    middleware: tuple[str, ...] = ()
    auth: AuthProvider | None = None
    rate_limiter: RateLimiter | None = None
    rate_limit_key: str = DEFAULT_KEY
    retry_policy: RetryPolicy | None = None
    logger: logging.Logger | None = None
    timeout: float = 30.0
    max_redirects: int = 3

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.max_redirects < 0:
            raise ConfigurationError(f"max_redirects must be non-negative, got {self.max_redirects}")

        # Enabling a middleware twice is the same as enabling it once
        object.__setattr__(self, "middleware", tuple(dict.fromkeys(self.middleware)))
        object.__setattr__(self, "default_headers", dict(self.default_headers))

    def with_(self, **changes: Any) -> "ClientConfig":
        """Copy of this config with ``changes`` applied."""
        return replace(self, **changes)

    def with_middleware(self, *names: str) -> "ClientConfig":
        """Copy of this config with ``names`` appended to the middleware list."""
        return replace(self, middleware=(*self.middleware, *names))

    def has_middleware(self, name: str) -> bool:
        return name in self.middleware

    def merged_headers(self, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        """Default headers overlaid with ``headers``."""
        merged = dict(self.default_headers)
        merged.update(headers or {})
        return merged

    @classmethod
    def from_env(
        cls,
        prefix: str,
        *,
        resolver: CredentialResolver | None = None,
        base_url: str | None = None,
        **overrides: Any,
    ) -> "ClientConfig":
        """Build a config from ``<PREFIX>_BASE_URL``, ``<PREFIX>_TIMEOUT`` and ``<PREFIX>_MAX_REDIRECTS``.

        Args:
            prefix: Environment variable prefix (e.g. ``"DISCOGS"``)
            resolver: Credential resolver to read values with
            base_url: Explicit base URL (wins over the environment)
            **overrides: Any other ClientConfig field

        Raises:
            CredentialNotFoundError: If no base URL can be resolved
            ConfigurationError: If timeout or max_redirects is not a number
        """
        resolver = resolver or CredentialResolver()
        prefix = prefix.upper()

        resolved_url = resolver.resolve(value=base_url, env_var_name=f"{prefix}_BASE_URL", required=True)
        timeout = resolver.resolve(env_var_name=f"{prefix}_TIMEOUT", default="30")
        max_redirects = resolver.resolve(env_var_name=f"{prefix}_MAX_REDIRECTS", default="3")

        try:
            settings: dict[str, Any] = {"timeout": float(timeout), "max_redirects": int(max_redirects)}
        except ValueError as e:
            raise ConfigurationError(f"Invalid {prefix} client setting: {e}") from e

        settings.update(overrides)
        return cls(base_url=resolved_url, **settings)

    @classmethod
    def for_amazon(
        cls, base_url: str = "https://sellingpartnerapi-na.amazon.com", **overrides: Any
    ) -> "ClientConfig":
        """Amazon Selling Partner API."""
        return cls._preset(
            "amazon",
            base_url,
            headers=JSON_HEADERS,
            user_agent="Amazon SP-API",
            timeout=30.0,
            middleware=("logging", "rate_limiting", "retry"),
            **overrides,
        )

    @classmethod
    def for_ebay(cls, base_url: str = "https://api.ebay.com", **overrides: Any) -> "ClientConfig":
        """eBay REST APIs."""
        return cls._preset(
            "ebay",
            base_url,
            headers=JSON_HEADERS,
            user_agent="eBay API",
            timeout=25.0,
            middleware=("logging", "rate_limiting", "retry"),
            **overrides,
        )

    @classmethod
    def for_discogs(cls, base_url: str = "https://api.discogs.com", **overrides: Any) -> "ClientConfig":
        """Discogs API v2 (60 requests per minute when authenticated)."""
        return cls._preset(
            "discogs",
            base_url,
            headers={"Accept": "application/vnd.discogs.v2.discogs+json", "Content-Type": "application/json"},
            user_agent="Discogs API",
            timeout=15.0,
            middleware=("logging", "rate_limiting"),
            **overrides,
        )

    @classmethod
    def for_bandcamp(cls, base_url: str = "https://bandcamp.com/api", **overrides: Any) -> "ClientConfig":
        return cls._preset(
            "bandcamp",
            base_url,
            headers=JSON_HEADERS,
            user_agent="Bandcamp API",
            timeout=15.0,
            middleware=("logging", "rate_limiting"),
            **overrides,
        )

    @classmethod
    def for_development(cls, base_url: str, **overrides: Any) -> "ClientConfig":
        """Generous timeouts and logging only."""
        settings: dict[str, Any] = {
            "default_headers": JSON_HEADERS,
            "middleware": ("logging",),
            "timeout": 60.0,
            "max_redirects": 10,
        }
        settings.update(overrides)
        return cls(base_url=base_url, **settings)

    @classmethod
    def for_production(cls, base_url: str, **overrides: Any) -> "ClientConfig":
        """Logging, a general-purpose rate limiter and the default retry policy."""
        settings: dict[str, Any] = {
            "default_headers": JSON_HEADERS,
            "middleware": ("logging", "rate_limiting", "retry"),
            "rate_limiter": RateLimiter(),
            "retry_policy": RetryPolicy.default(),
            "timeout": 30.0,
            "max_redirects": 3,
        }
        settings.update(overrides)
        return cls(base_url=base_url, **settings)

    @classmethod
    def _preset(
        cls,
        marketplace: str,
        base_url: str,
        *,
        headers: Mapping[str, str],
        user_agent: str,
        timeout: float,
        middleware: Iterable[str],
        **overrides: Any,
    ) -> "ClientConfig":
        middleware = tuple(middleware)
        if overrides.get("auth") is not None:
            middleware += ("authentication",)

        settings: dict[str, Any] = {
            "default_headers": {**headers, "User-Agent": f"marketplace-http-core/{__version__} ({user_agent})"},
            "middleware": middleware,
            "rate_limiter": RateLimiter.for_marketplace(marketplace),
            "rate_limit_key": marketplace,
            "retry_policy": RetryPolicy.for_marketplace(marketplace),
            "timeout": timeout,
        }
        settings.update(overrides)
        return cls(base_url=base_url, **settings)
