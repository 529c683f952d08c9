"""
Credential resolution for the provider pipelines.

Every tool call starts here, before any request is built:

- API-key providers (maps, finance, flights) need a single key.
- OAuth providers (gmail, calendar) need the full bundle: client id, client
  secret, access token and refresh token. The redirect URI has a default.

Resolution is a pure read of the process configuration and is repeated on
every call (nothing is cached), so fixing a missing variable in the
environment or .env takes effect on the next invocation without a restart.

If anything required is missing, resolve() raises ConfigurationError naming
every absent variable. It never returns a partial credential, which is what
guarantees that no network call happens with incomplete configuration.

Token refresh is not handled here: google_credentials() hands the stored
tokens to google-auth, whose Credentials object refreshes the access token
on its own when the Google client library sees it expire.
"""

import enum
from dataclasses import dataclass

from google.oauth2.credentials import Credentials

from toolbridge.config import DEFAULT_REDIRECT_URI, ProviderCredentials
from toolbridge.errors import ConfigurationError

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

OAUTH_SCOPES = (
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
)


class ProviderKind(str, enum.Enum):
    MAPS = "maps"
    FINANCE = "finance"
    FLIGHTS = "flights"
    GMAIL = "gmail"
    CALENDAR = "calendar"

    @property
    def uses_oauth(self) -> bool:
        return self in (ProviderKind.GMAIL, ProviderKind.CALENDAR)


# Environment variable holding the API key of each key-based provider.
# Finance and flights both go through SerpApi and share its key.
API_KEY_VARIABLES: dict[ProviderKind, str] = {
    ProviderKind.MAPS: "GOOGLE_MAPS_API_KEY",
    ProviderKind.FINANCE: "SERP_API_KEY",
    ProviderKind.FLIGHTS: "SERP_API_KEY",
}

OAUTH_VARIABLES = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_ACCESS_TOKEN",
    "GOOGLE_REFRESH_TOKEN",
)


@dataclass(frozen=True)
class ApiKeyCredential:
    kind: ProviderKind
    api_key: str


@dataclass(frozen=True)
class OAuthCredential:
    """
    The OAuth2 bundle shared by the Gmail and Calendar providers.

    Attributes:
        kind: Which provider the bundle was resolved for
        client_id / client_secret: The Google Cloud OAuth client
        access_token / refresh_token: Tokens obtained once through the
            interactive consent flow
        redirect_uri: Redirect URI registered for the OAuth client
    """

    kind: ProviderKind
    client_id: str
    client_secret: str
    access_token: str
    refresh_token: str
    redirect_uri: str


def _read(values: ProviderCredentials, variable: str) -> str | None:
    value = getattr(values, variable.lower())
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve(
    kind: ProviderKind, values: ProviderCredentials | None = None
) -> ApiKeyCredential | OAuthCredential:
    """
    Resolve the credential for one provider from process configuration.

    Args:
        kind: The provider the tool is about to call
        values: Pre-loaded configuration (tests); read fresh when omitted

    Returns:
        ApiKeyCredential or OAuthCredential, fully populated

    Raises:
        ConfigurationError: If any required variable is absent or blank
    """
    if values is None:
        values = ProviderCredentials()

    if not kind.uses_oauth:
        variable = API_KEY_VARIABLES[kind]
        api_key = _read(values, variable)
        if api_key is None:
            raise ConfigurationError(
                f"{variable} environment variable is required for {kind.value} tools"
            )
        return ApiKeyCredential(kind=kind, api_key=api_key)

    found = {variable: _read(values, variable) for variable in OAUTH_VARIABLES}
    missing = [variable for variable, value in found.items() if value is None]
    if missing:
        raise ConfigurationError(
            f"OAuth2 configuration incomplete for {kind.value} tools, missing: "
            f"{', '.join(missing)}. Complete the one-time OAuth consent flow and "
            "store the client and token values in the environment."
        )

    return OAuthCredential(
        kind=kind,
        client_id=found["GOOGLE_CLIENT_ID"],
        client_secret=found["GOOGLE_CLIENT_SECRET"],
        access_token=found["GOOGLE_ACCESS_TOKEN"],
        refresh_token=found["GOOGLE_REFRESH_TOKEN"],
        redirect_uri=values.google_redirect_uri or DEFAULT_REDIRECT_URI,
    )


def google_credentials(credential: OAuthCredential) -> Credentials:
    """Build the google-auth credentials object the Google API client expects."""
    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=credential.client_id,
        client_secret=credential.client_secret,
        scopes=list(OAUTH_SCOPES),
    )


def credential_status(values: ProviderCredentials | None = None) -> dict[str, bool]:
    """
    Report which providers could resolve a credential right now.

    The optional news-search key is reported as "news" even though no tool
    requires it.
    """
    if values is None:
        values = ProviderCredentials()

    status = {}
    for kind in ProviderKind:
        try:
            resolve(kind, values)
        except ConfigurationError:
            status[kind.value] = False
        else:
            status[kind.value] = True
    status["news"] = _read(values, "NEWS_API_KEY") is not None
    return status
