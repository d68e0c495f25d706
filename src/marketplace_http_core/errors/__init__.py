"""Error taxonomy and response classification for marketplace clients."""

from marketplace_http_core.errors.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CredentialFileError,
    CredentialNotFoundError,
    ForbiddenError,
    HttpClientError,
    NotFoundError,
    RateLimitError,
    RetryableError,
)
from marketplace_http_core.errors.handler import (
    classify_exception,
    classify_response,
    decode_body,
    error_for,
    is_transient_failure,
    raise_for_status,
)
from marketplace_http_core.errors.models import ErrorClassification, ErrorKind

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "CredentialFileError",
    "CredentialNotFoundError",
    "ErrorClassification",
    "ErrorKind",
    "ForbiddenError",
    "HttpClientError",
    "NotFoundError",
    "RateLimitError",
    "RetryableError",
    "classify_exception",
    "classify_response",
    "decode_body",
    "error_for",
    "is_transient_failure",
    "raise_for_status",
]
