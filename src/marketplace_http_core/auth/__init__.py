"""Authentication components for marketplace clients.

This module provides:
- Credential resolution (value → env → .env → default)
- Per-request header providers (bearer, basic, API key, Amazon LWA)
- OAuth 1.0a request signing (Discogs)

Example:
    ```python
    from marketplace_http_core.auth import OAuth1aAuth, TokenAuth

    amazon = TokenAuth.amazon_lwa("Atza|...")
    discogs = OAuth1aAuth.from_env("DISCOGS")
    ```
"""

from marketplace_http_core.auth.credentials import CredentialResolver, OAuth1aCredentials
from marketplace_http_core.auth.providers import AuthProvider, OAuth1aAuth, TokenAuth
from marketplace_http_core.errors.exceptions import CredentialFileError, CredentialNotFoundError

__all__ = [
    "AuthProvider",
    "CredentialFileError",
    "CredentialNotFoundError",
    "CredentialResolver",
    "OAuth1aAuth",
    "OAuth1aCredentials",
    "TokenAuth",
]
