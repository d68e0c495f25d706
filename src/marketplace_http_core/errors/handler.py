"""Response classification and error raising for marketplace HTTP calls.

The classifier is a pure mapping from a status code (or a transport failure)
to an ErrorKind plus kind-specific metadata:

| Status | ErrorKind | Metadata |
|--------|-----------|----------|
| 401 | AUTHENTICATION | `auth_type` from `WWW-Authenticate` |
| 403 | AUTHENTICATION | `auth_type="permissions"` |
| 404 | NOT_FOUND | `resource` (last URL path segment) |
| 429 | RATE_LIMITED | `retry_after`, `limit`, `remaining` |
| 5xx | RETRYABLE | status code |
| transport failure | RETRYABLE | `failure` description |
| other | GENERIC | status code, `body_excerpt` |

2xx responses are successes and classify to None.
"""

import json
from typing import Any

import httpx

from marketplace_http_core.errors.exceptions import (
    AuthenticationError,
    ForbiddenError,
    HttpClientError,
    NotFoundError,
    RateLimitError,
    RetryableError,
)
from marketplace_http_core.errors.models import ErrorClassification, ErrorKind
from marketplace_http_core.headers import (
    LIMIT_HEADERS,
    REMAINING_HEADERS,
    get_header,
    parse_int_header,
    parse_retry_after,
)

# Transport failures worth another attempt: connection setup, reads/writes,
# timeouts and a peer dropping the connection mid-response.
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)

BODY_EXCERPT_LENGTH = 200


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def is_transient_failure(exc: BaseException) -> bool:
    """Return True for transport failures that are safe to retry.

    Classification is by exception type, never by message text.
    """
    return isinstance(exc, TRANSIENT_EXCEPTIONS)


def classify_response(response: httpx.Response) -> ErrorClassification | None:
    """Classify a response by status code.

    Unmapped 4xx statuses and redirects httpx did not follow classify as
    ``ErrorKind.GENERIC``.

    Args:
        response: HTTP response object

    Returns:
        ErrorClassification for non-2xx responses, None for successes
    """
    status_code = response.status_code
    if is_success(status_code):
        return None

    excerpt = _body_excerpt(response)
    suffix = f": {excerpt}" if excerpt else ""

    if status_code == 401:
        auth_type = None
        challenge = response.headers.get("www-authenticate")
        if challenge:
            auth_type = challenge.split()[0].lower()
        return ErrorClassification(
            kind=ErrorKind.AUTHENTICATION,
            message=f"Authentication failed: HTTP 401{suffix}",
            status_code=status_code,
            metadata={"auth_type": auth_type},
        )

    if status_code == 403:
        return ErrorClassification(
            kind=ErrorKind.AUTHENTICATION,
            message=f"Insufficient permissions: HTTP 403{suffix}",
            status_code=status_code,
            metadata={"auth_type": "permissions"},
        )

    if status_code == 404:
        return ErrorClassification(
            kind=ErrorKind.NOT_FOUND,
            message=f"Resource not found: HTTP 404{suffix}",
            status_code=status_code,
            metadata={"resource": _resource_from(response)},
        )

    if status_code == 429:
        retry_after = parse_retry_after(get_header(response.headers, "retry-after"))
        message = "Rate limit exceeded: HTTP 429"
        if retry_after is not None:
            message += f", retry after {retry_after:g}s"
        return ErrorClassification(
            kind=ErrorKind.RATE_LIMITED,
            message=message,
            status_code=status_code,
            metadata={
                "retry_after": retry_after,
                "limit": parse_int_header(response.headers, *LIMIT_HEADERS),
                "remaining": parse_int_header(response.headers, *REMAINING_HEADERS),
            },
        )

    if 500 <= status_code < 600:
        return ErrorClassification(
            kind=ErrorKind.RETRYABLE,
            message=f"Server error: HTTP {status_code}{suffix}",
            status_code=status_code,
        )

    if 300 <= status_code < 400:
        # Redirects httpx did not follow (304, or max_redirects reached)
        return ErrorClassification(
            kind=ErrorKind.GENERIC,
            message=f"Unfollowed redirect: HTTP {status_code}",
            status_code=status_code,
            metadata={"location": response.headers.get("location"), "body_excerpt": excerpt},
        )

    return ErrorClassification(
        kind=ErrorKind.GENERIC,
        message=f"HTTP error {status_code}{suffix}",
        status_code=status_code,
        metadata={"body_excerpt": excerpt},
    )


def classify_exception(exc: BaseException) -> ErrorClassification:
    """Classify a failure raised while sending a request."""
    if isinstance(exc, HttpClientError):
        return ErrorClassification(kind=exc.kind, message=exc.message, status_code=exc.status_code)

    description = f"{type(exc).__name__}: {exc}"
    if is_transient_failure(exc):
        return ErrorClassification(
            kind=ErrorKind.RETRYABLE,
            message=f"Transport failure: {description}",
            metadata={"failure": description},
        )

    return ErrorClassification(
        kind=ErrorKind.GENERIC,
        message=f"Request failed: {description}",
        metadata={"failure": description},
    )


def error_for(classification: ErrorClassification, response: httpx.Response | None = None) -> HttpClientError:
    """Build the exception matching a classification."""
    kwargs: dict[str, Any] = {"status_code": classification.status_code, "response": response}
    metadata = classification.metadata

    if classification.kind is ErrorKind.AUTHENTICATION:
        if classification.status_code == 403:
            return ForbiddenError(classification.message, **kwargs)
        return AuthenticationError(classification.message, auth_type=metadata.get("auth_type"), **kwargs)

    if classification.kind is ErrorKind.NOT_FOUND:
        return NotFoundError(classification.message, resource=metadata.get("resource"), **kwargs)

    if classification.kind is ErrorKind.RATE_LIMITED:
        return RateLimitError(
            classification.message,
            retry_after=metadata.get("retry_after"),
            limit=metadata.get("limit"),
            remaining=metadata.get("remaining"),
            **kwargs,
        )

    if classification.kind is ErrorKind.RETRYABLE:
        return RetryableError(classification.message, **kwargs)

    return HttpClientError(classification.message, **kwargs)


def raise_for_status(response: httpx.Response) -> None:
    """Raise the typed exception for a non-2xx response.

    Args:
        response: HTTP response object

    Raises:
        HttpClientError subclass based on status code
    """
    classification = classify_response(response)
    if classification is None:
        return
    raise error_for(classification, response)


def decode_body(response: httpx.Response) -> Any:
    """Decode a successful response's JSON body.

    An empty body or a literal ``null`` decodes to an empty dict.
    """
    content = response.content.strip()
    if not content or content == b"null":
        return {}
    return json.loads(content)


def _body_excerpt(response: httpx.Response) -> str:
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return ""
    return text[:BODY_EXCERPT_LENGTH]


def _resource_from(response: httpx.Response) -> str | None:
    try:
        request = response.request
    except RuntimeError:
        # Response built without a request (tests, adapters)
        return None
    segments = [segment for segment in request.url.path.split("/") if segment]
    return segments[-1] if segments else None
