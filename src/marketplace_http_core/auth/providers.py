"""Authentication providers producing per-request headers.

A provider is asked for headers on every physical attempt, so signatures,
nonces and timestamps are never reused across retries.

| Provider | Header |
|----------|--------|
| `TokenAuth.bearer(t)` | `Authorization: Bearer t` |
| `TokenAuth.basic("user:pass")` | `Authorization: Basic dXNlcjpwYXNz` |
| `TokenAuth.api_key(k)` | `Authorization: k` |
| `TokenAuth.token(t)` | `Authorization: Token t` |
| `TokenAuth.amazon_lwa(t)` | `x-amz-access-token: t` |
| `OAuth1aAuth(...)` | `Authorization: OAuth oauth_consumer_key="...", ...` (RFC 5849) |
"""

import base64
import hashlib
import hmac
import secrets
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from marketplace_http_core.auth.credentials import CredentialResolver, OAuth1aCredentials
from marketplace_http_core.errors.exceptions import ConfigurationError

TOKEN_SCHEMES: dict[str, str] = {
    "bearer": "Bearer {credentials}",
    "basic": "Basic {credentials}",
    "api_key": "{credentials}",
    "token": "Token {credentials}",
}


@runtime_checkable
class AuthProvider(Protocol):
    """Source of authentication headers for a request."""

    def is_valid(self) -> bool: ...

    def auth_headers(self, request: httpx.Request) -> dict[str, str]: ...


class TokenAuth:
    """Static credential sent in a single header."""

    def __init__(self, scheme: str, credentials: str, header_name: str = "Authorization"):
        if scheme not in TOKEN_SCHEMES:
            raise ConfigurationError(f"Unsupported auth type: {scheme}")
        if scheme == "basic":
            credentials = base64.b64encode(credentials.encode()).decode("ascii")
        self.scheme = scheme
        self.header_name = header_name
        self._value = TOKEN_SCHEMES[scheme].format(credentials=credentials)
        self._has_credentials = bool(credentials)

    @classmethod
    def bearer(cls, token: str) -> "TokenAuth":
        return cls("bearer", token)

    @classmethod
    def basic(cls, user_pass: str) -> "TokenAuth":
        return cls("basic", user_pass)

    @classmethod
    def api_key(cls, key: str, header_name: str = "Authorization") -> "TokenAuth":
        return cls("api_key", key, header_name=header_name)

    @classmethod
    def token(cls, token: str) -> "TokenAuth":
        return cls("token", token)

    @classmethod
    def amazon_lwa(cls, access_token: str) -> "TokenAuth":
        """Login-with-Amazon access token for SP-API."""
        return cls("api_key", access_token, header_name="x-amz-access-token")

    @classmethod
    def from_env(cls, prefix: str, scheme: str = "bearer", resolver: CredentialResolver | None = None) -> "TokenAuth":
        resolver = resolver or CredentialResolver()
        return cls(scheme, resolver.resolve_token(prefix, required=True))

    def is_valid(self) -> bool:
        return self._has_credentials

    def auth_headers(self, request: httpx.Request) -> dict[str, str]:
        return {self.header_name: self._value}

    def __repr__(self) -> str:
        return f"TokenAuth(scheme={self.scheme!r}, header_name={self.header_name!r})"


def _percent_encode(value: str) -> str:
    # RFC 3986 unreserved characters only
    return quote(value, safe="~")


class OAuth1aAuth:
    """OAuth 1.0a request signing (HMAC-SHA1 or PLAINTEXT).

    Args:
        credentials: Consumer key/secret and optional token pair
        signature_method: ``"HMAC-SHA1"`` or ``"PLAINTEXT"``
        realm: Optional realm included in the header
        clock: Epoch seconds source for ``oauth_timestamp``
        nonce_factory: Source of ``oauth_nonce`` values
    """

    SIGNATURE_METHODS = ("HMAC-SHA1", "PLAINTEXT")

    def __init__(
        self,
        credentials: OAuth1aCredentials,
        *,
        signature_method: str = "HMAC-SHA1",
        realm: str | None = None,
        clock: Callable[[], float] = time.time,
        nonce_factory: Callable[[], str] | None = None,
    ):
        if signature_method not in self.SIGNATURE_METHODS:
            raise ConfigurationError(f"Unsupported OAuth 1.0a signature method: {signature_method}")
        self.credentials = credentials
        self.signature_method = signature_method
        self.realm = realm
        self._clock = clock
        self._nonce_factory = nonce_factory or (lambda: secrets.token_hex(16))

    @classmethod
    def from_env(cls, prefix: str, resolver: CredentialResolver | None = None, **kwargs) -> "OAuth1aAuth":
        resolver = resolver or CredentialResolver()
        return cls(resolver.resolve_oauth1a(prefix), **kwargs)

    def is_valid(self) -> bool:
        return bool(self.credentials.consumer_key and self.credentials.consumer_secret)

    def auth_headers(self, request: httpx.Request) -> dict[str, str]:
        oauth_params = {
            "oauth_consumer_key": self.credentials.consumer_key,
            "oauth_nonce": self._nonce_factory(),
            "oauth_signature_method": self.signature_method,
            "oauth_timestamp": str(int(self._clock())),
            "oauth_version": "1.0",
        }
        if self.credentials.token:
            oauth_params["oauth_token"] = self.credentials.token

        oauth_params["oauth_signature"] = self.sign(request, oauth_params)

        fields = []
        if self.realm is not None:
            fields.append(f'realm="{_percent_encode(self.realm)}"')
        fields.extend(f'{_percent_encode(k)}="{_percent_encode(v)}"' for k, v in sorted(oauth_params.items()))
        return {"Authorization": "OAuth " + ", ".join(fields)}

    def sign(self, request: httpx.Request, oauth_params: dict[str, str]) -> str:
        """Compute ``oauth_signature`` for ``request``."""
        key = "&".join(
            [
                _percent_encode(self.credentials.consumer_secret),
                _percent_encode(self.credentials.token_secret or ""),
            ]
        )
        if self.signature_method == "PLAINTEXT":
            return key

        digest = hmac.new(key.encode(), self.signature_base_string(request, oauth_params).encode(), hashlib.sha1)
        return base64.b64encode(digest.digest()).decode("ascii")

    @staticmethod
    def signature_base_string(request: httpx.Request, oauth_params: dict[str, str]) -> str:
        """RFC 5849 section 3.4.1 base string: method, base URI and sorted parameters."""
        base_uri = str(request.url.copy_with(query=None, fragment=None))

        pairs = [(_percent_encode(k), _percent_encode(v)) for k, v in request.url.params.multi_items()]
        pairs.extend((_percent_encode(k), _percent_encode(v)) for k, v in oauth_params.items())
        normalized = "&".join(f"{k}={v}" for k, v in sorted(pairs))

        return "&".join(
            [
                request.method.upper(),
                _percent_encode(base_uri),
                _percent_encode(normalized),
            ]
        )

    def __repr__(self) -> str:
        return f"OAuth1aAuth(signature_method={self.signature_method!r})"
