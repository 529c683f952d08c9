"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that reads from the
environment (and a local .env file). Two settings models live here:

- ServerSettings: how the MCP server itself runs (MCP_ prefix). Read once at
  import time and exported as the `settings` singleton.
- ProviderCredentials: the provider API keys and OAuth tokens (no prefix, the
  variable names match what the providers' own tooling writes). This model is
  NOT a singleton: toolbridge.credentials builds a fresh instance on every
  tool call so a corrected .env entry applies on the next invocation.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth2callback"


class ServerSettings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each field maps to an environment variable with the MCP_ prefix, e.g.
    `transport` reads from MCP_TRANSPORT.
    """

    # --- Server settings ---

    # "stdio" for desktop MCP clients, "streamable-http" for a network service.
    transport: str = "stdio"

    # Only used by the streamable-http transport.
    host: str = "127.0.0.1"
    port: int = 8080

    log_level: str = "info"

    # --- Provider defaults ---

    # IANA zone applied to calendar events that don't name one.
    default_timezone: str = "UTC"

    # How many calendars the startup catalog fetches for tool descriptions.
    calendar_catalog_size: int = 50

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class ProviderCredentials(BaseSettings):
    """
    Provider credentials as found in the environment.

    Every field is optional here; toolbridge.credentials decides which ones a
    given provider requires and fails with a ConfigurationError when absent.
    """

    # --- API key providers ---
    google_maps_api_key: str | None = None
    serp_api_key: str | None = None
    news_api_key: str | None = None

    # --- OAuth2 (Gmail + Calendar share one client and token pair) ---
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_access_token: str | None = None
    google_refresh_token: str | None = None
    google_redirect_uri: str = DEFAULT_REDIRECT_URI

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton instance: import this from other modules.
settings = ServerSettings()
