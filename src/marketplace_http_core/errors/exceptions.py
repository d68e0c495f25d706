"""Structured exceptions raised by marketplace HTTP clients."""

from collections.abc import Mapping
from typing import TYPE_CHECKING

from marketplace_http_core.errors.models import ErrorKind
from marketplace_http_core.headers import (
    LIMIT_HEADERS,
    REMAINING_HEADERS,
    get_header,
    parse_int_header,
    parse_retry_after,
)

if TYPE_CHECKING:
    import httpx


class ConfigurationError(ValueError):
    """Invalid client, policy or pipeline configuration.

    Raised at construction time (duplicate middleware names, missing
    middleware parameters, out-of-range policy values), never while a
    request is in flight.
    """

    pass


class CredentialNotFoundError(ConfigurationError):
    """A required marketplace credential could not be resolved from any source.

    Attributes:
        env_var_name: The environment variable that was checked (if any).
    """

    def __init__(self, message: str, env_var_name: str | None = None):
        super().__init__(message)
        self.env_var_name = env_var_name


class CredentialFileError(ConfigurationError):
    """A credential file is missing, unreadable or empty."""

    pass


class HttpClientError(Exception):
    """Base exception for failed marketplace calls.

    Attributes:
        kind: The ErrorKind this exception represents.
        status_code: HTTP status of the failing response, if any.
        response: The failing response, if any.
        cause: The underlying exception for transport failures.
        attempts: Number of physical sends made, when known.
        operation: Short name of the operation (last URL path segment).
    """

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: "httpx.Response | None" = None,
        cause: BaseException | None = None,
        attempts: int | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response
        self.cause = cause
        self.attempts = attempts
        self.operation = operation


class AuthenticationError(HttpClientError):
    """401 Unauthorized, or a failure to authenticate the request."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str = "Authentication failed", auth_type: str | None = None, **kwargs):
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)
        self.auth_type = auth_type

    @classmethod
    def token_expired(cls, operation: str | None = None) -> "AuthenticationError":
        return cls("Authentication token has expired", auth_type="token", operation=operation)

    @classmethod
    def invalid_credentials(cls, operation: str | None = None) -> "AuthenticationError":
        return cls("Invalid authentication credentials", auth_type="credentials", operation=operation)

    @classmethod
    def missing(cls, operation: str | None = None) -> "AuthenticationError":
        return cls("Authentication required but not provided", auth_type="missing", operation=operation)

    @classmethod
    def insufficient_permissions(cls, operation: str | None = None) -> "ForbiddenError":
        return ForbiddenError("Insufficient permissions for this operation", operation=operation)


class ForbiddenError(AuthenticationError):
    """403 Forbidden (authenticated, but not allowed)."""

    def __init__(self, message: str = "Insufficient permissions", **kwargs):
        kwargs.setdefault("status_code", 403)
        kwargs.setdefault("auth_type", "permissions")
        super().__init__(message, **kwargs)


class NotFoundError(HttpClientError):
    """404 Not Found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Resource not found", resource: str | None = None, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(message, **kwargs)
        self.resource = resource

    @classmethod
    def for_resource(cls, resource_type: str, resource_id: str) -> "NotFoundError":
        return cls(f"{resource_type} not found: {resource_id}", resource=resource_id)


class RateLimitError(HttpClientError):
    """429 Too Many Requests."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: float | None = None,
        limit: int | None = None,
        remaining: int | None = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.limit = limit
        self.remaining = remaining

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], **kwargs) -> "RateLimitError":
        """Build from response headers (``Retry-After``, ``X-RateLimit-*``).

        Unparseable header values are left as None.
        """
        retry_after = parse_retry_after(get_header(headers, "retry-after"))
        limit = parse_int_header(headers, *LIMIT_HEADERS)
        remaining = parse_int_header(headers, *REMAINING_HEADERS)

        message = "Rate limit exceeded"
        if retry_after is not None:
            message += f", retry after {retry_after:g}s"

        return cls(message, retry_after=retry_after, limit=limit, remaining=remaining, **kwargs)


class RetryableError(HttpClientError):
    """Transient failure: 5xx, transport failure, or an exhausted retry budget.

    When raised by the retry layer, ``attempts`` holds the number of physical
    sends made and ``__cause__`` (and ``cause``) the last transport failure,
    or ``response``/``status_code`` the last response.
    """

    kind = ErrorKind.RETRYABLE

    def __init__(self, message: str, max_attempts: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.max_attempts = max_attempts

    @classmethod
    def server_error(cls, status_code: int, **kwargs) -> "RetryableError":
        return cls(f"Server error: HTTP {status_code}", status_code=status_code, **kwargs)
