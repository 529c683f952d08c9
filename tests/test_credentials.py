"""
Unit tests for credential resolution (toolbridge/credentials.py).

These tests exercise resolve() directly, one failure mode per test:

1. API-key providers need exactly their key
2. OAuth providers need all four of client id/secret, access/refresh token
3. Blank values count as missing
4. Nothing is cached: a fixed environment applies on the next call
5. The redirect URI falls back to its default

Each test sets only the variables it needs; the autouse clean_environment
fixture guarantees everything else is absent.
"""

import pytest

from toolbridge.config import DEFAULT_REDIRECT_URI, ProviderCredentials
from toolbridge.credentials import (
    GOOGLE_TOKEN_URI,
    ApiKeyCredential,
    OAuthCredential,
    ProviderKind,
    credential_status,
    google_credentials,
    resolve,
)
from toolbridge.errors import ConfigurationError


class TestApiKeyProviders:
    """Tests for maps, finance and flights keys."""

    def test_maps_key_resolves(self, maps_key):
        credential = resolve(ProviderKind.MAPS)

        assert credential == ApiKeyCredential(kind=ProviderKind.MAPS, api_key=maps_key)

    def test_finance_and_flights_share_the_serpapi_key(self, serp_key):
        assert resolve(ProviderKind.FINANCE).api_key == serp_key
        assert resolve(ProviderKind.FLIGHTS).api_key == serp_key

    def test_missing_key_names_the_variable(self):
        with pytest.raises(ConfigurationError, match="GOOGLE_MAPS_API_KEY"):
            resolve(ProviderKind.MAPS)

    def test_blank_key_counts_as_missing(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "   ")

        with pytest.raises(ConfigurationError, match="SERP_API_KEY"):
            resolve(ProviderKind.FINANCE)

    def test_maps_key_does_not_satisfy_serpapi(self, maps_key):
        with pytest.raises(ConfigurationError):
            resolve(ProviderKind.FLIGHTS)


class TestOAuthProviders:
    """Tests for the Gmail/Calendar OAuth2 bundle."""

    def test_full_bundle_resolves(self, google_oauth):
        credential = resolve(ProviderKind.GMAIL)

        assert isinstance(credential, OAuthCredential)
        assert credential.kind is ProviderKind.GMAIL
        assert credential.client_id == google_oauth["GOOGLE_CLIENT_ID"]
        assert credential.refresh_token == google_oauth["GOOGLE_REFRESH_TOKEN"]

    def test_redirect_uri_defaults(self, google_oauth):
        assert resolve(ProviderKind.CALENDAR).redirect_uri == DEFAULT_REDIRECT_URI

    def test_redirect_uri_can_be_overridden(self, google_oauth, monkeypatch):
        monkeypatch.setenv("GOOGLE_REDIRECT_URI", "http://localhost:9999/callback")

        assert resolve(ProviderKind.CALENDAR).redirect_uri == "http://localhost:9999/callback"

    @pytest.mark.parametrize(
        "variable",
        ["GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_ACCESS_TOKEN", "GOOGLE_REFRESH_TOKEN"],
    )
    def test_any_missing_field_fails(self, google_oauth, monkeypatch, variable):
        monkeypatch.delenv(variable)

        with pytest.raises(ConfigurationError, match=variable):
            resolve(ProviderKind.GMAIL)

    def test_error_lists_every_missing_field(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-id")

        with pytest.raises(ConfigurationError) as exc_info:
            resolve(ProviderKind.CALENDAR)

        message = exc_info.value.message
        assert "GOOGLE_CLIENT_ID" not in message
        for variable in ("GOOGLE_CLIENT_SECRET", "GOOGLE_ACCESS_TOKEN", "GOOGLE_REFRESH_TOKEN"):
            assert variable in message

    def test_google_credentials_carry_the_bundle(self, google_oauth):
        credentials = google_credentials(resolve(ProviderKind.GMAIL))

        assert credentials.token == google_oauth["GOOGLE_ACCESS_TOKEN"]
        assert credentials.refresh_token == google_oauth["GOOGLE_REFRESH_TOKEN"]
        assert credentials.client_id == google_oauth["GOOGLE_CLIENT_ID"]
        assert credentials.token_uri == GOOGLE_TOKEN_URI


class TestResolutionIsNotCached:
    def test_fixed_environment_applies_on_next_call(self, monkeypatch):
        with pytest.raises(ConfigurationError):
            resolve(ProviderKind.MAPS)

        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "late-key")

        assert resolve(ProviderKind.MAPS).api_key == "late-key"

    def test_dotenv_file_is_read(self, tmp_path):
        (tmp_path / ".env").write_text("SERP_API_KEY=from-dotenv\n", encoding="utf-8")

        assert resolve(ProviderKind.FINANCE).api_key == "from-dotenv"

    def test_explicit_values_bypass_the_environment(self, maps_key):
        values = ProviderCredentials(google_maps_api_key=None, serp_api_key="explicit")

        assert resolve(ProviderKind.FINANCE, values).api_key == "explicit"


class TestCredentialStatus:
    def test_nothing_configured(self):
        status = credential_status()

        assert status == {
            "maps": False,
            "finance": False,
            "flights": False,
            "gmail": False,
            "calendar": False,
            "news": False,
        }

    def test_partial_configuration(self, serp_key, google_oauth, monkeypatch):
        monkeypatch.setenv("NEWS_API_KEY", "news")

        status = credential_status()

        assert status["maps"] is False
        assert status["finance"] is status["flights"] is True
        assert status["gmail"] is status["calendar"] is True
        assert status["news"] is True
