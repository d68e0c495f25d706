"""Tests for response classification and error raising."""

import httpx
import pytest
from httpx import Response

from marketplace_http_core.errors.exceptions import (
    AuthenticationError,
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
    is_transient_failure,
    raise_for_status,
)
from marketplace_http_core.errors.models import ErrorKind


def _response(status_code: int, url: str = "https://api.example.com/orders/42", **kwargs) -> Response:
    return Response(status_code, request=httpx.Request("GET", url), **kwargs)


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [200, 201, 204, 299])
def test_classify_success_returns_none(status_code):
    """2xx responses are successes."""
    assert classify_response(_response(status_code)) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status_code", "kind"),
    [
        (401, ErrorKind.AUTHENTICATION),
        (403, ErrorKind.AUTHENTICATION),
        (404, ErrorKind.NOT_FOUND),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.RETRYABLE),
        (502, ErrorKind.RETRYABLE),
        (503, ErrorKind.RETRYABLE),
        (599, ErrorKind.RETRYABLE),
        (400, ErrorKind.GENERIC),
        (409, ErrorKind.GENERIC),
        (422, ErrorKind.GENERIC),
        (302, ErrorKind.GENERIC),
    ],
)
def test_classify_status_table(status_code, kind):
    """Each status maps to exactly one error kind."""
    classification = classify_response(_response(status_code))

    assert classification.kind is kind
    assert classification.status_code == status_code
    assert classification.is_retryable is (kind is ErrorKind.RETRYABLE)


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [301, 302, 304])
def test_classify_unfollowed_redirect(status_code):
    """Redirects that reach the classifier are generic errors naming the redirect."""
    response = _response(status_code, headers={"Location": "https://api.example.com/orders/43"})

    classification = classify_response(response)

    assert classification.kind is ErrorKind.GENERIC
    assert classification.message == f"Unfollowed redirect: HTTP {status_code}"
    assert classification.metadata["location"] == "https://api.example.com/orders/43"


@pytest.mark.unit
def test_raise_for_status_unfollowed_redirect():
    with pytest.raises(HttpClientError, match="Unfollowed redirect: HTTP 304") as exc_info:
        raise_for_status(_response(304))

    assert exc_info.value.status_code == 304

@pytest.mark.unit
def test_classify_401_reads_auth_scheme():
    """The WWW-Authenticate scheme becomes auth_type."""
    response = _response(401, headers={"WWW-Authenticate": 'Bearer realm="api"'})

    classification = classify_response(response)

    assert classification.metadata["auth_type"] == "bearer"


@pytest.mark.unit
def test_classify_403_is_permissions_problem():
    classification = classify_response(_response(403))

    assert classification.metadata["auth_type"] == "permissions"


@pytest.mark.unit
def test_classify_404_names_resource():
    """The last URL path segment is reported as the missing resource."""
    classification = classify_response(_response(404, url="https://api.discogs.com/releases/249504"))

    assert classification.metadata["resource"] == "249504"


@pytest.mark.unit
def test_classify_404_without_request():
    """A response without a request still classifies, without a resource."""
    classification = classify_response(Response(404))

    assert classification.kind is ErrorKind.NOT_FOUND
    assert classification.metadata["resource"] is None


@pytest.mark.unit
def test_classify_429_carries_quota_metadata():
    response = _response(
        429,
        headers={"Retry-After": "30", "X-RateLimit-Limit": "60", "X-RateLimit-Remaining": "0"},
    )

    classification = classify_response(response)

    assert classification.metadata == {"retry_after": 30.0, "limit": 60, "remaining": 0}
    assert "30" in classification.message


@pytest.mark.unit
def test_classify_429_with_unparseable_headers():
    """Invalid quota headers are reported as None rather than failing."""
    response = _response(429, headers={"Retry-After": "soon", "X-RateLimit-Limit": "many"})

    classification = classify_response(response)

    assert classification.metadata["retry_after"] is None
    assert classification.metadata["limit"] is None


@pytest.mark.unit
def test_classify_generic_includes_body_excerpt():
    response = _response(400, text="x" * 500)

    classification = classify_response(response)

    assert classification.metadata["body_excerpt"] == "x" * 200


@pytest.mark.unit
@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.ConnectTimeout("slow"),
        httpx.ReadError("reset"),
        httpx.RemoteProtocolError("peer closed connection"),
    ],
)
def test_transport_failures_are_retryable(exc):
    """Transport failures are retryable regardless of their message text."""
    assert is_transient_failure(exc)
    classification = classify_exception(exc)

    assert classification.kind is ErrorKind.RETRYABLE
    assert classification.status_code is None
    assert type(exc).__name__ in classification.metadata["failure"]


@pytest.mark.unit
@pytest.mark.parametrize("exc", [ValueError("timeout"), RuntimeError("connection reset"), httpx.UnsupportedProtocol("x")])
def test_other_exceptions_are_not_retryable(exc):
    """Classification is by exception type, not by message text."""
    assert not is_transient_failure(exc)
    assert classify_exception(exc).kind is ErrorKind.GENERIC


@pytest.mark.unit
def test_classify_exception_keeps_client_error_kind():
    classification = classify_exception(NotFoundError("gone"))

    assert classification.kind is ErrorKind.NOT_FOUND
    assert classification.status_code == 404


@pytest.mark.unit
def test_raise_for_status_success_response():
    """Test raise_for_status doesn't raise for successful responses."""
    # Should not raise
    raise_for_status(_response(200))


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [
        (401, AuthenticationError),
        (403, ForbiddenError),
        (404, NotFoundError),
        (429, RateLimitError),
        (503, RetryableError),
        (400, HttpClientError),
    ],
)
def test_raise_for_status_raises_typed_error(status_code, error_type):
    response = _response(status_code, text="nope")

    with pytest.raises(error_type) as exc_info:
        raise_for_status(response)

    assert type(exc_info.value) is error_type
    assert exc_info.value.status_code == status_code
    assert exc_info.value.response is response
    assert str(status_code) in str(exc_info.value)


@pytest.mark.unit
def test_raise_for_status_429_sets_retry_after():
    response = _response(429, headers={"Retry-After": "12"})

    with pytest.raises(RateLimitError) as exc_info:
        raise_for_status(response)

    assert exc_info.value.retry_after == 12.0


@pytest.mark.unit
def test_raise_for_status_401_sets_auth_type():
    response = _response(401, headers={"WWW-Authenticate": "OAuth"})

    with pytest.raises(AuthenticationError) as exc_info:
        raise_for_status(response)

    assert exc_info.value.auth_type == "oauth"


@pytest.mark.unit
@pytest.mark.parametrize("content", [b"", b"null", b"  \n"])
def test_decode_body_empty_is_empty_dict(content):
    assert decode_body(Response(200, content=content)) == {}


@pytest.mark.unit
def test_decode_body_json():
    assert decode_body(Response(200, json={"id": 1, "items": [1, 2]})) == {"id": 1, "items": [1, 2]}
