"""
Google API client plumbing shared by the Gmail and Calendar providers.

The google-api-python-client library is synchronous, so every request is
executed on a worker thread via asyncio.to_thread. Its failures are mapped
onto the tool error taxonomy here:

    RefreshError, HTTP 401/403  -> AuthenticationError
    any other HttpError         -> ProviderError (with Google's reason text)
    transport failures          -> ProviderError

Token refresh happens inside google-auth when the client sees an expired
access token; nothing in this module refreshes or stores tokens.
"""

import asyncio
import logging

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from toolbridge.credentials import OAuthCredential, google_credentials
from toolbridge.errors import AuthenticationError, ProviderError, ToolError

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 403)


async def build_service(api: str, version: str, credential: OAuthCredential):
    """
    Build a discovery client for `api`/`version` bound to the OAuth bundle.

    build() loads and parses the discovery document (bundled with the
    library, fetched over HTTP for unknown versions), so it runs on a
    worker thread like every other client call.
    """
    try:
        return await asyncio.to_thread(
            build,
            api,
            version,
            credentials=google_credentials(credential),
            cache_discovery=False,
        )
    except CLIENT_ERRORS as e:
        logger.warning("%s discovery failed: %s", api, e.__class__.__name__)
        raise translate_error(e, api) from e


def translate_error(error: Exception, service: str) -> ToolError:
    """Map a google client exception onto the tool error taxonomy."""
    if isinstance(error, ToolError):
        return error
    if isinstance(error, RefreshError):
        return AuthenticationError(
            f"{service} rejected the stored OAuth2 tokens ({error}). "
            "Repeat the OAuth consent flow to obtain a new refresh token."
        )
    if isinstance(error, HttpError):
        status = error.resp.status
        reason = error.reason or f"HTTP {status}"
        if status in AUTH_STATUSES:
            return AuthenticationError(f"{service} denied access (HTTP {status}): {reason}")
        return ProviderError(f"{service} API error (HTTP {status}): {reason}")
    return ProviderError(f"{service} request failed: {error}")


# Exceptions the client library raises for failed calls. Anything else is a
# programming error and propagates to the tool boundary unchanged.
CLIENT_ERRORS = (HttpError, RefreshError, TransportError, httplib2.HttpLib2Error, OSError)


async def execute(request, service: str):
    """Run one prepared client request off the event loop and return its JSON."""
    try:
        return await asyncio.to_thread(request.execute)
    except CLIENT_ERRORS as e:
        logger.warning("%s call failed: %s", service, e.__class__.__name__)
        raise translate_error(e, service) from e


async def execute_batch(client, requests: list, service: str) -> list:
    """
    Execute `requests` as one batch HTTP request and return the responses in
    the order given.

    The batch is all-or-nothing: if any entry fails, the first failure is
    raised (translated) and the successful responses are discarded.
    """
    responses: dict[str, dict] = {}
    failures: list[Exception] = []

    def collect(request_id, response, exception):
        if exception is not None:
            failures.append(exception)
        else:
            responses[request_id] = response

    batch = client.new_batch_http_request(callback=collect)
    for index, request in enumerate(requests):
        batch.add(request, request_id=str(index))

    try:
        await asyncio.to_thread(batch.execute)
    except CLIENT_ERRORS as e:
        logger.warning("%s batch failed: %s", service, e.__class__.__name__)
        raise translate_error(e, service) from e

    if failures:
        logger.warning("%s batch had %d failed entries", service, len(failures))
        raise translate_error(failures[0], service) from failures[0]

    return [responses[str(index)] for index in range(len(requests))]
