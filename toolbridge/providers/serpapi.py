"""Shared SerpApi plumbing for the finance and flights engines."""

import re

from toolbridge import http_client
from toolbridge.errors import EmptyResultError, ProviderError
from toolbridge.resolvers import dig, is_usable

SERPAPI_BASE_URL = "https://serpapi.com/search"

# SerpApi reports "nothing matched" through its error field.
_NO_RESULTS = re.compile(r"hasn.t returned any results", re.IGNORECASE)


def check_error(raw: dict, empty_message: str) -> None:
    """
    Map SerpApi's in-band error reporting onto the error taxonomy.

    An `error` field saying no results were returned becomes EmptyResultError
    with `empty_message`; any other error (or a search_metadata status of
    "Error") becomes ProviderError.
    """
    error = raw.get("error")
    if not is_usable(error):
        if dig(raw, ("search_metadata", "status")) != "Error":
            return
        error = "search failed"
    error = str(error)
    if _NO_RESULTS.search(error):
        raise EmptyResultError(empty_message)
    raise ProviderError(f"SerpApi error: {error}")


async def search(params: dict, provider: str) -> dict:
    return await http_client.get_json(SERPAPI_BASE_URL, params, provider=provider)
