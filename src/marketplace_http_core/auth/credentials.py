"""Marketplace credential resolution.

Credentials are looked up per marketplace under an environment prefix:

| Credential | Variable |
|------------|----------|
| Access token | `<PREFIX>_ACCESS_TOKEN` |
| OAuth 1.0a consumer key / secret | `<PREFIX>_CONSUMER_KEY`, `<PREFIX>_CONSUMER_SECRET` |
| OAuth 1.0a token / token secret | `<PREFIX>_TOKEN`, `<PREFIX>_TOKEN_SECRET` |

Resolution order (first match wins):
1. Explicitly provided value
2. Environment variable
3. .env file (python-dotenv, loaded into the environment once)
4. Default value

Example:
    ```python
    resolver = CredentialResolver()
    token = resolver.resolve_token("AMAZON", required=True)
    discogs = resolver.resolve_oauth1a("DISCOGS")
    ```

Credential values are never logged; only their source is.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from threading import Lock

from dotenv import load_dotenv

from marketplace_http_core.errors.exceptions import CredentialFileError, CredentialNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuth1aCredentials:
    """Consumer and (optional) access token pair for OAuth 1.0a signing."""

    consumer_key: str
    consumer_secret: str
    token: str | None = None
    token_secret: str | None = None

    def __repr__(self) -> str:
        return f"OAuth1aCredentials(consumer_key='***', token={'***' if self.token else None})"


class CredentialResolver:
    """Resolve marketplace credentials from arguments, environment and .env files.

    Args:
        dotenv_path: Path to a .env file. If None, python-dotenv searches
            parent directories.
        load_dotenv: Whether to load the .env file at all.
    """

    def __init__(self, dotenv_path: str | None = None, load_dotenv: bool = True):
        self._dotenv_loaded = False
        self._dotenv_lock = Lock()
        self._dotenv_path = dotenv_path

        if load_dotenv:
            self._ensure_dotenv_loaded()

    def _ensure_dotenv_loaded(self) -> None:
        """Load the .env file once (thread-safe)."""
        if self._dotenv_loaded:
            return

        with self._dotenv_lock:
            if self._dotenv_loaded:
                return
            # Existing environment variables take precedence over .env entries
            found = load_dotenv(dotenv_path=self._dotenv_path, override=False)
            self._dotenv_loaded = True
            logger.debug(f"Loaded .env file for credential resolution: {found}")

    def resolve(
        self,
        *,
        value: str | None = None,
        env_var_name: str | None = None,
        default: str | None = None,
        required: bool = False,
    ) -> str | None:
        """Resolve one setting or secret.

        Args:
            value: Explicit value (highest priority)
            env_var_name: Environment variable to check
            default: Fallback when nothing else is set
            required: Raise instead of returning None

        Returns:
            The resolved value, or None if not found and not required

        Raises:
            CredentialNotFoundError: If required and not found in any source
        """
        if value is not None:
            logger.debug("Resolved credential from explicit parameter")
            return value

        if env_var_name and os.environ.get(env_var_name):
            logger.debug(f"Resolved credential from environment variable '{env_var_name}'")
            return os.environ[env_var_name]

        if default is not None:
            logger.debug("Resolved credential from default value")
            return default

        if required:
            error_msg = "Required credential not found"
            if env_var_name:
                error_msg += f" (checked env var: {env_var_name})"
            raise CredentialNotFoundError(error_msg, env_var_name=env_var_name)

        return None

    def resolve_from_file(self, file_path: str | Path, *, required: bool = False) -> str | None:
        """Read a credential from a file (``~`` and ``$VAR`` are expanded).

        Raises:
            CredentialFileError: If required and the file is missing, unreadable or empty
        """
        path = Path(os.path.expanduser(os.path.expandvars(str(file_path))))

        try:
            content = path.read_text().strip()
        except OSError as e:
            if required:
                raise CredentialFileError(f"Cannot read credential file {path}: {e}") from e
            logger.warning(f"Cannot read credential file {path}: {e}")
            return None

        if not content:
            if required:
                raise CredentialFileError(f"Credential file is empty: {path}")
            return None

        logger.debug(f"Resolved credential from file: {path} (***)")
        return content

    def resolve_token(self, prefix: str, *, value: str | None = None, required: bool = False) -> str | None:
        """Resolve ``<PREFIX>_ACCESS_TOKEN``."""
        return self.resolve(value=value, env_var_name=f"{prefix.upper()}_ACCESS_TOKEN", required=required)

    def resolve_oauth1a(self, prefix: str) -> OAuth1aCredentials:
        """Resolve OAuth 1.0a credentials under ``prefix``.

        Consumer key and secret are required; the token pair is optional.

        Raises:
            CredentialNotFoundError: If the consumer key or secret is missing
        """
        prefix = prefix.upper()
        return OAuth1aCredentials(
            consumer_key=self.resolve(env_var_name=f"{prefix}_CONSUMER_KEY", required=True),
            consumer_secret=self.resolve(env_var_name=f"{prefix}_CONSUMER_SECRET", required=True),
            token=self.resolve(env_var_name=f"{prefix}_TOKEN"),
            token_secret=self.resolve(env_var_name=f"{prefix}_TOKEN_SECRET"),
        )
