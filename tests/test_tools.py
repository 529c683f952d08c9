"""
Tests for the tool registry and the tool-call boundary (toolbridge/tools.py).
"""

import pytest

from toolbridge import tools
from toolbridge.credentials import ProviderKind
from toolbridge.errors import EmptyResultError, ProviderError
from toolbridge.providers.calendar import CalendarCatalog, CalendarEntry
from toolbridge.schemas import GeocodeRequest
from toolbridge.tools import TOOLS, TOOLS_BY_NAME, ToolSpec, dispatch, parse_arguments, tool_parameters

EXPECTED_TOOLS = {
    "geocode",
    "reverse_geocode",
    "places_search",
    "get_directions",
    "distance_matrix",
    "place_details",
    "finance_search",
    "flights_search",
    "gmail_send",
    "gmail_list",
    "gmail_get",
    "gmail_list_labels",
    "gmail_create_label",
    "calendar_create_event",
    "calendar_list_events",
    "calendar_get_event",
    "calendar_update_event",
    "calendar_delete_event",
    "calendar_list_calendars",
}


def spec_with(handler) -> ToolSpec:
    return ToolSpec("probe", ProviderKind.MAPS, GeocodeRequest, handler, "probe")


class TestRegistry:
    def test_every_tool_is_registered_once(self):
        assert len(TOOLS) == len(EXPECTED_TOOLS)
        assert set(TOOLS_BY_NAME) == EXPECTED_TOOLS

    def test_wire_names_use_aliases(self):
        gmail_list = tool_parameters(TOOLS_BY_NAME["gmail_list"])
        flights_search = tool_parameters(TOOLS_BY_NAME["flights_search"])

        assert {"query", "maxResults", "labelIds"} <= set(gmail_list["properties"])
        assert flights_search["required"] == ["departure_id", "arrival_id"]

    def test_calendar_id_description_comes_from_catalog(self):
        catalog = CalendarCatalog(entries=(CalendarEntry(id="work@example.com", summary="Work"),))

        for name in ("calendar_create_event", "calendar_list_events", "calendar_delete_event"):
            parameters = tool_parameters(TOOLS_BY_NAME[name], catalog)
            assert parameters["properties"]["calendarId"]["description"] == (
                "Calendar ID - Available options: 'work@example.com' (Work)"
            )

    def test_catalog_does_not_touch_other_tools(self):
        catalog = CalendarCatalog.fallback()

        assert tool_parameters(TOOLS_BY_NAME["geocode"], catalog) == tool_parameters(TOOLS_BY_NAME["geocode"])

    def test_build_tools(self):
        built = tools.build_tools(CalendarCatalog.fallback())

        assert [tool.name for tool in built] == [spec.name for spec in TOOLS]
        assert built[0].spec is TOOLS[0]
        assert built[0].tags == {"maps"}


class TestParseArguments:
    def test_valid_arguments(self):
        assert parse_arguments(GeocodeRequest, {"address": "Paris"}) == GeocodeRequest(address="Paris")

    def test_missing_field_is_named(self):
        with pytest.raises(tools.ValidationError) as exc_info:
            parse_arguments(GeocodeRequest, {})

        assert exc_info.value.field == "address"
        assert exc_info.value.to_text().startswith("Invalid parameters: address: Field required")

    def test_model_level_errors_lose_the_pydantic_prefix(self):
        with pytest.raises(tools.ValidationError) as exc_info:
            parse_arguments(
                TOOLS_BY_NAME["flights_search"].request_model,
                {"departure_id": "AUS", "arrival_id": "LAX", "type": 1},
            )

        assert exc_info.value.message == "return_date is required when type=1 (round-trip)"
        assert "Value error" not in exc_info.value.to_text()


class TestDispatch:
    async def test_success_returns_handler_text(self):
        async def handler(request):
            return f"# {request.address}\n"

        assert await dispatch(spec_with(handler), {"address": "Paris"}) == "# Paris\n"

    async def test_invalid_arguments_never_reach_the_handler(self):
        calls = []

        async def handler(request):
            calls.append(request)
            return ""

        text = await dispatch(spec_with(handler), {"address": 42})

        assert text.startswith("Invalid parameters: address:")
        assert calls == []

    async def test_unknown_argument_is_rejected(self):
        async def handler(request):
            return ""

        text = await dispatch(spec_with(handler), {"address": "Paris", "bogus": 1})

        assert text.startswith("Invalid parameters: bogus:")

    async def test_empty_result_is_verbatim(self):
        async def handler(request):
            raise EmptyResultError("No results found for the given address.")

        assert await dispatch(spec_with(handler), {"address": "x"}) == "No results found for the given address."

    async def test_provider_error_is_prefixed(self):
        async def handler(request):
            raise ProviderError("Geocoding API returned REQUEST_DENIED")

        text = await dispatch(spec_with(handler), {"address": "x"})

        assert text == "Provider error: Geocoding API returned REQUEST_DENIED"

    async def test_unexpected_exception_becomes_internal_error(self, caplog):
        async def handler(request):
            raise KeyError("results")

        text = await dispatch(spec_with(handler), {"address": "x"})

        assert text == "Internal error: 'results'"
        assert "Unexpected error in tool call" in caplog.text

    async def test_missing_credential_through_real_handler(self):
        text = await dispatch(TOOLS_BY_NAME["geocode"], {"address": "Paris"})

        assert text.startswith("Configuration error: ")
        assert "GOOGLE_MAPS_API_KEY" in text

    async def test_run_wraps_text_in_a_single_block(self):
        tool = tools.ProviderTool.from_spec(TOOLS_BY_NAME["finance_search"])

        result = await tool.run({"q": "GOOGL:NASDAQ"})

        assert len(result.content) == 1
        assert result.content[0].type == "text"
        assert "SERP_API_KEY" in result.content[0].text
