"""Tests for multi-source credential resolution.

This module tests the CredentialResolver class which resolves marketplace
credentials from explicit values, the environment, .env files and defaults.
"""

import pytest

from marketplace_http_core.auth import CredentialResolver, OAuth1aCredentials
from marketplace_http_core.errors.exceptions import CredentialFileError, CredentialNotFoundError


class TestCredentialResolverInit:
    """Test CredentialResolver initialization."""

    def test_init_default(self):
        """Test default initialization."""
        resolver = CredentialResolver()
        assert resolver._dotenv_loaded  # Should load dotenv by default

    def test_init_skip_dotenv(self):
        """Test initialization with dotenv loading disabled."""
        resolver = CredentialResolver(load_dotenv=False)
        assert not resolver._dotenv_loaded

    def test_dotenv_loaded_only_once(self, tmp_path):
        """Test that .env file is loaded only once even with multiple calls."""
        dotenv_file = tmp_path / ".env"
        dotenv_file.write_text("TEST_VAR=test_value\n")

        resolver = CredentialResolver(dotenv_path=str(dotenv_file))

        resolver._ensure_dotenv_loaded()
        resolver._ensure_dotenv_loaded()

        assert resolver._dotenv_loaded is True


class TestCredentialResolverResolve:
    """Test basic credential resolution."""

    def test_resolve_from_explicit_value(self):
        """Test resolving from explicitly provided value (highest priority)."""
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(value="explicit-value-123") == "explicit-value-123"

    def test_resolve_from_environment_variable(self, monkeypatch):
        """Test resolving from environment variable."""
        monkeypatch.setenv("TEST_API_KEY", "env-value-456")
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_API_KEY") == "env-value-456"

    def test_resolve_from_dotenv_file(self, tmp_path):
        """Test resolving from .env file."""
        dotenv_file = tmp_path / ".env"
        dotenv_file.write_text("TEST_DOTENV_TOKEN=dotenv-value-789\n")

        resolver = CredentialResolver(dotenv_path=str(dotenv_file))

        assert resolver.resolve(env_var_name="TEST_DOTENV_TOKEN") == "dotenv-value-789"

    def test_environment_wins_over_dotenv(self, tmp_path, monkeypatch):
        dotenv_file = tmp_path / ".env"
        dotenv_file.write_text("TEST_SHARED=from-dotenv\n")
        monkeypatch.setenv("TEST_SHARED", "from-env")

        resolver = CredentialResolver(dotenv_path=str(dotenv_file))

        assert resolver.resolve(env_var_name="TEST_SHARED") == "from-env"

    def test_explicit_value_overrides_all(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY", "env-value")
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(value="explicit", env_var_name="TEST_KEY", default="default") == "explicit"

    def test_resolve_with_default_value(self):
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_MISSING", default="fallback") == "fallback"

    def test_resolve_returns_none_when_not_found(self):
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_MISSING") is None

    def test_resolve_raises_when_required_and_not_found(self):
        resolver = CredentialResolver(load_dotenv=False)

        with pytest.raises(CredentialNotFoundError) as exc_info:
            resolver.resolve(env_var_name="TEST_MISSING", required=True)

        assert exc_info.value.env_var_name == "TEST_MISSING"
        assert "TEST_MISSING" in str(exc_info.value)

    def test_empty_environment_variable_is_not_a_value(self, monkeypatch):
        monkeypatch.setenv("TEST_EMPTY", "")
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_EMPTY", default="fallback") == "fallback"


class TestCredentialResolverFromFile:
    """Test reading credentials from files."""

    def test_resolve_from_file(self, tmp_path):
        cred_file = tmp_path / "token.txt"
        cred_file.write_text("  file-secret-xyz\n")

        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_from_file(cred_file) == "file-secret-xyz"

    def test_resolve_from_file_with_env_var_expansion(self, tmp_path, monkeypatch):
        (tmp_path / "token.txt").write_text("expanded")
        monkeypatch.setenv("TEST_CRED_DIR", str(tmp_path))

        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_from_file("$TEST_CRED_DIR/token.txt") == "expanded"

    def test_resolve_from_file_with_tilde_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "token.txt").write_text("home-secret")

        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_from_file("~/token.txt") == "home-secret"

    def test_missing_file(self, tmp_path):
        resolver = CredentialResolver(load_dotenv=False)
        missing = tmp_path / "missing.txt"

        assert resolver.resolve_from_file(missing) is None
        with pytest.raises(CredentialFileError):
            resolver.resolve_from_file(missing, required=True)

    def test_directory_is_a_read_error(self, tmp_path):
        not_a_file = tmp_path / "dir_not_file"
        not_a_file.mkdir()

        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_from_file(not_a_file) is None
        with pytest.raises(CredentialFileError):
            resolver.resolve_from_file(not_a_file, required=True)

    def test_empty_file(self, tmp_path):
        empty = tmp_path / "empty.txt"
        empty.write_text("\n")

        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_from_file(empty) is None
        with pytest.raises(CredentialFileError, match="empty"):
            resolver.resolve_from_file(empty, required=True)

    def test_file_credentials_are_not_logged(self, tmp_path, caplog):
        import logging

        caplog.set_level(logging.DEBUG)
        cred_file = tmp_path / "secret.txt"
        cred_file.write_text("file-secret-xyz")

        CredentialResolver(load_dotenv=False).resolve_from_file(cred_file)

        assert "file-secret-xyz" not in caplog.text
        assert "***" in caplog.text


class TestMarketplaceCredentials:
    """Test prefix-based marketplace lookups."""

    def test_resolve_token(self, monkeypatch):
        monkeypatch.setenv("AMAZON_ACCESS_TOKEN", "Atza|abc")
        resolver = CredentialResolver(load_dotenv=False)

        assert resolver.resolve_token("amazon") == "Atza|abc"
        assert resolver.resolve_token("ebay") is None
        with pytest.raises(CredentialNotFoundError, match="EBAY_ACCESS_TOKEN"):
            resolver.resolve_token("ebay", required=True)

    def test_resolve_oauth1a(self, monkeypatch):
        monkeypatch.setenv("DISCOGS_CONSUMER_KEY", "ck")
        monkeypatch.setenv("DISCOGS_CONSUMER_SECRET", "cs")
        monkeypatch.setenv("DISCOGS_TOKEN", "t")
        resolver = CredentialResolver(load_dotenv=False)

        credentials = resolver.resolve_oauth1a("discogs")

        assert credentials == OAuth1aCredentials("ck", "cs", "t", None)

    def test_resolve_oauth1a_requires_consumer_pair(self, monkeypatch):
        monkeypatch.setenv("DISCOGS_CONSUMER_KEY", "ck")
        resolver = CredentialResolver(load_dotenv=False)

        with pytest.raises(CredentialNotFoundError) as exc_info:
            resolver.resolve_oauth1a("DISCOGS")

        assert exc_info.value.env_var_name == "DISCOGS_CONSUMER_SECRET"

    def test_oauth_credentials_repr_is_masked(self):
        credentials = OAuth1aCredentials("consumer-key", "consumer-secret", "token", "token-secret")

        text = repr(credentials)

        assert "consumer-key" not in text
        assert "consumer-secret" not in text
        assert "token-secret" not in text
