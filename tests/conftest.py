"""
Shared test fixtures for the toolbridge test suite.

Key fixtures:
- clean_environment (autouse): removes every provider variable from the
  environment and runs the test from an empty directory, so no real .env
  file or developer credential leaks into a test
- maps_key / serp_key / google_oauth: configure one provider's credential
- fake_http: replaces the HTTP layer used by the key-based providers and
  records every outbound request
- fake_google: replaces the Google API client builder with an in-memory
  service that records every executed request

Testing approach:
- Provider modules are tested through their real pipelines
  (credential -> build -> normalize -> project -> render) with recorded
  payloads, so the call-count assertions prove that a failed credential
  resolution never reaches the network.
- test_server.py drives the FastMCP ASGI app in memory over the
  streamable-http transport.
"""

import pytest

from toolbridge import http_client
from toolbridge.credentials import API_KEY_VARIABLES, OAUTH_VARIABLES
from toolbridge.providers import google_api

PROVIDER_VARIABLES = (
    *set(API_KEY_VARIABLES.values()),
    *OAUTH_VARIABLES,
    "NEWS_API_KEY",
    "GOOGLE_REDIRECT_URI",
)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for variable in PROVIDER_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def maps_key(monkeypatch):
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-maps-key")
    return "test-maps-key"


@pytest.fixture
def serp_key(monkeypatch):
    monkeypatch.setenv("SERP_API_KEY", "test-serp-key")
    return "test-serp-key"


@pytest.fixture
def google_oauth(monkeypatch):
    values = {
        "GOOGLE_CLIENT_ID": "client-id.apps.googleusercontent.com",
        "GOOGLE_CLIENT_SECRET": "client-secret",
        "GOOGLE_ACCESS_TOKEN": "ya29.access",
        "GOOGLE_REFRESH_TOKEN": "1//refresh",
    }
    for variable, value in values.items():
        monkeypatch.setenv(variable, value)
    return values


# ---------------------------------------------------------------------------
# HTTP providers (Google Maps, SerpApi)
# ---------------------------------------------------------------------------
class FakeHttp:
    """Stands in for http_client.get_json; returns `payload` or raises it."""

    def __init__(self):
        self.payload: dict | Exception = {}
        self.calls: list[tuple[str, dict, str]] = []

    async def get_json(self, url, params, *, provider, client=None):
        self.calls.append((url, dict(params), provider))
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


@pytest.fixture
def fake_http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(http_client, "get_json", fake.get_json)
    return fake


# ---------------------------------------------------------------------------
# Google API client (Gmail, Calendar)
# ---------------------------------------------------------------------------
class FakeRequest:
    """
    A prepared client request, e.g. service.users().messages().list(...).

    execute() looks up the response registered for the dotted method path
    ("users.messages.list"). A registered callable receives the call's
    keyword arguments; a registered exception is raised.
    """

    def __init__(self, service, path: tuple[str, ...], kwargs: dict):
        self._service = service
        self._path = path
        self.kwargs = kwargs

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return FakeRequest(self._service, (*self._path, name), {})

    def __call__(self, **kwargs):
        return FakeRequest(self._service, self._path, kwargs)

    def execute(self):
        method = ".".join(self._path)
        self._service.calls.append((method, self.kwargs))
        response = self._service.responses.get(method, {})
        if callable(response):
            response = response(self.kwargs)
        if isinstance(response, Exception):
            raise response
        return response


class FakeBatch:
    def __init__(self, callback):
        self._callback = callback
        self._entries = []

    def add(self, request, request_id=None):
        self._entries.append((request_id, request))

    def execute(self):
        for request_id, request in self._entries:
            try:
                response = request.execute()
            except Exception as e:
                self._callback(request_id, None, e)
            else:
                self._callback(request_id, response, None)


class FakeGoogleService:
    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, dict]] = []
        self.batches = 0

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return FakeRequest(self, (name,), {})

    def new_batch_http_request(self, callback=None):
        self.batches += 1
        return FakeBatch(callback)

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


@pytest.fixture
def fake_google(monkeypatch):
    """
    Install an in-memory Google service.

    Usage:
        service = fake_google({"users.labels.list": {"labels": [...]}})
        ...
        assert service.methods() == ["users.labels.list"]

    The returned service also records which API each build targeted in
    `service.built`.
    """

    def _install(responses: dict | None = None) -> FakeGoogleService:
        service = FakeGoogleService(responses)
        service.built = []

        async def _build(api, version, credential):
            service.built.append((api, version, credential.kind.value))
            return service

        monkeypatch.setattr(google_api, "build_service", _build)
        return service

    return _install
