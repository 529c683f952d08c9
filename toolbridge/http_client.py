"""
Single-shot JSON GET used by the key-based providers (Google Maps, SerpApi).

One request per call, the httpx default timeout, no retries. Transport
failures, non-JSON bodies and HTTP error statuses all surface as
ProviderError with the provider's own error text when it sent one.
"""

import logging

import httpx

from toolbridge.errors import ProviderError

logger = logging.getLogger(__name__)


def _error_text(payload) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in ("error_message", "error"):
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("message")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


async def get_json(
    url: str,
    params: dict,
    *,
    provider: str,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """
    GET `url` with query `params` and return the decoded JSON object.

    Args:
        url: Endpoint URL
        params: Query parameters (already stripped of unsupplied optionals)
        provider: Provider label used in error messages
        client: Optional client to reuse (tests inject a MockTransport here)

    Raises:
        ProviderError: On transport failure, HTTP error status, or a body
                       that is not a JSON object
    """
    try:
        if client is None:
            async with httpx.AsyncClient() as owned:
                response = await owned.get(url, params=params)
        else:
            response = await client.get(url, params=params)
    except httpx.HTTPError as e:
        logger.warning("%s request failed: %s", provider, e.__class__.__name__)
        raise ProviderError(f"{provider} request failed: {e}") from e

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if response.status_code >= 400:
        detail = _error_text(payload) or f"HTTP {response.status_code}"
        logger.warning("%s returned HTTP %d", provider, response.status_code)
        raise ProviderError(f"{provider} request failed: {detail}")

    if not isinstance(payload, dict):
        raise ProviderError(f"{provider} returned a response that is not a JSON object")

    return payload
