"""
Tool registry and the tool-call boundary.

Every MCP tool this server exposes is described by one ToolSpec:

    ToolSpec(name, provider kind, request model, handler, description)

The registry (TOOLS) is the single place where a tool name is bound to its
parameter schema and its provider pipeline. build_tools() turns the registry
into FastMCP Tool objects; the advertised JSON schema of each tool is
generated from its pydantic request model.

dispatch() is the boundary between the MCP transport and the provider
pipelines. It validates the raw arguments, runs the handler and converts
every failure into a single text block, so a tool call can never raise out
of the server:

    ToolError (configuration, validation, provider, empty result)
        -> the error's own text ("<prefix>: <message>")
    anything else
        -> logged with traceback, returned as "Internal error: ..."
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import pydantic
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import TextContent
from pydantic import PrivateAttr

from toolbridge import schemas
from toolbridge.credentials import ProviderKind
from toolbridge.errors import ToolError, ValidationError
from toolbridge.providers import calendar, finance, flights, gmail, maps
from toolbridge.providers.calendar import CalendarCatalog

logger = logging.getLogger(__name__)

# Wire name of the calendar id parameter whose description comes from the
# startup catalog.
CALENDAR_ID_PARAMETER = "calendarId"


@dataclass(frozen=True)
class ToolSpec:
    name: str
    kind: ProviderKind
    request_model: type[schemas.ToolRequest]
    handler: Callable[[Any], Awaitable[str]]
    description: str


TOOLS: tuple[ToolSpec, ...] = (
    # --- Google Maps ---
    ToolSpec(
        "geocode",
        ProviderKind.MAPS,
        schemas.GeocodeRequest,
        maps.geocode,
        "Convert an address into geographic coordinates.",
    ),
    ToolSpec(
        "reverse_geocode",
        ProviderKind.MAPS,
        schemas.ReverseGeocodeRequest,
        maps.reverse_geocode,
        "Convert coordinates into an address.",
    ),
    ToolSpec(
        "places_search",
        ProviderKind.MAPS,
        schemas.PlacesSearchRequest,
        maps.places_search,
        "Search for places using a text query, optionally biased to a location.",
    ),
    ToolSpec(
        "get_directions",
        ProviderKind.MAPS,
        schemas.DirectionsRequest,
        maps.get_directions,
        "Get directions between two locations.",
    ),
    ToolSpec(
        "distance_matrix",
        ProviderKind.MAPS,
        schemas.DistanceMatrixRequest,
        maps.distance_matrix,
        "Calculate travel distances and times between multiple origins and destinations.",
    ),
    ToolSpec(
        "place_details",
        ProviderKind.MAPS,
        schemas.PlaceDetailsRequest,
        maps.place_details,
        "Get detailed information about a place by its Google Place ID.",
    ),
    # --- SerpApi ---
    ToolSpec(
        "finance_search",
        ProviderKind.FINANCE,
        schemas.FinanceSearchRequest,
        finance.search_finance,
        "Search financial data (stocks, indexes, mutual funds, currencies, futures) "
        "using Google Finance. Returns a summary by default; set summary_only=false "
        "for news, market overview and related instruments.",
    ),
    ToolSpec(
        "flights_search",
        ProviderKind.FLIGHTS,
        schemas.FlightsSearchRequest,
        flights.search_flights,
        "Search flights using Google Flights. Returns the best price and flight "
        "count by default; set summary_only=false for itineraries with segments "
        "and layovers.",
    ),
    # --- Gmail ---
    ToolSpec(
        "gmail_send",
        ProviderKind.GMAIL,
        schemas.SendEmailRequest,
        gmail.send_email,
        "Send an email through Gmail.",
    ),
    ToolSpec(
        "gmail_list",
        ProviderKind.GMAIL,
        schemas.ListEmailsRequest,
        gmail.list_emails,
        "List emails from Gmail, optionally filtered by a search query or labels.",
    ),
    ToolSpec(
        "gmail_get",
        ProviderKind.GMAIL,
        schemas.GetEmailRequest,
        gmail.get_email,
        "Get a specific email by its message ID.",
    ),
    ToolSpec(
        "gmail_list_labels",
        ProviderKind.GMAIL,
        schemas.ListLabelsRequest,
        gmail.list_labels,
        "List all Gmail labels.",
    ),
    ToolSpec(
        "gmail_create_label",
        ProviderKind.GMAIL,
        schemas.CreateLabelRequest,
        gmail.create_label,
        "Create a new Gmail label.",
    ),
    # --- Google Calendar ---
    ToolSpec(
        "calendar_create_event",
        ProviderKind.CALENDAR,
        schemas.CreateEventRequest,
        calendar.create_event,
        "Create a new Google Calendar event and invite its attendees.",
    ),
    ToolSpec(
        "calendar_list_events",
        ProviderKind.CALENDAR,
        schemas.ListEventsRequest,
        calendar.list_events,
        "List events from a Google Calendar. Starts from the current time unless timeMin is given.",
    ),
    ToolSpec(
        "calendar_get_event",
        ProviderKind.CALENDAR,
        schemas.GetEventRequest,
        calendar.get_event,
        "Get a specific calendar event by ID.",
    ),
    ToolSpec(
        "calendar_update_event",
        ProviderKind.CALENDAR,
        schemas.UpdateEventRequest,
        calendar.update_event,
        "Update fields of an existing calendar event. Fields left out are not changed.",
    ),
    ToolSpec(
        "calendar_delete_event",
        ProviderKind.CALENDAR,
        schemas.DeleteEventRequest,
        calendar.delete_event,
        "Delete a calendar event.",
    ),
    ToolSpec(
        "calendar_list_calendars",
        ProviderKind.CALENDAR,
        schemas.ListCalendarsRequest,
        calendar.list_calendars,
        "List the calendars available to the authorized account.",
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {spec.name: spec for spec in TOOLS}


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------
# Tool arguments arrive as a plain JSON object and are validated against the
# tool's pydantic request model before any credential is resolved, so a
# malformed call never reaches the network. Each pydantic error becomes one
# "loc: msg" fragment. Custom validators raise ValueError, and pydantic's
# "Value error, " prefix is dropped so the caller sees only the message.


def _describe(error: dict) -> str:
    message = error["msg"].removeprefix("Value error, ")
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {message}" if location else message


def parse_arguments(model: type[schemas.ToolRequest], arguments: dict | None) -> schemas.ToolRequest:
    """
    Validate raw tool arguments against the tool's request model.

    Raises:
        ValidationError: naming the first offending field, with every
                         failure listed in the message
    """
    try:
        return model.model_validate(arguments or {})
    except pydantic.ValidationError as e:
        errors = e.errors()
        field = ".".join(str(part) for part in errors[0].get("loc", ())) or None
        raise ValidationError("; ".join(_describe(error) for error in errors), field=field) from e


# ---------------------------------------------------------------------------
# Tool boundary
# ---------------------------------------------------------------------------
# dispatch() is the only place tool failures are caught. It turns them into
# the text block the client receives:
#
# 1. ToolError subclasses render through to_text() and are logged at INFO
# 2. Anything else is logged with its traceback and reported as
#    "Internal error: ..."
#
# ProviderTool plugs dispatch() into FastMCP. The advertised parameter
# schema is generated from the request model by alias, so the names match
# what callers send.


async def dispatch(spec: ToolSpec, arguments: dict | None) -> str:
    """
    Run one tool call end to end and return the text block to send back.

    Validation happens first, then the provider pipeline (which resolves its
    credential before building any request). Failures never propagate.
    """
    try:
        request = parse_arguments(spec.request_model, arguments)
        return await spec.handler(request)
    except ToolError as e:
        logger.info(
            "Tool call failed",
            extra={
                "tool_data": {
                    "tool": spec.name,
                    "provider": spec.kind.value,
                    "error": type(e).__name__,
                    "field": getattr(e, "field", None),
                }
            },
        )
        return e.to_text()
    except Exception as e:
        logger.exception(
            "Unexpected error in tool call",
            extra={"tool_data": {"tool": spec.name, "provider": spec.kind.value}},
        )
        return f"Internal error: {e}"


def tool_parameters(spec: ToolSpec, catalog: CalendarCatalog | None = None) -> dict:
    """JSON schema advertised for a tool, with the calendar id description filled in."""
    parameters = spec.request_model.model_json_schema(by_alias=True)
    properties = parameters.get("properties", {})
    if catalog is not None and CALENDAR_ID_PARAMETER in properties:
        properties[CALENDAR_ID_PARAMETER]["description"] = catalog.describe_calendar_id()
    return parameters


class ProviderTool(Tool):
    """A FastMCP tool whose execution is delegated to dispatch()."""

    _spec: ToolSpec = PrivateAttr()

    @classmethod
    def from_spec(cls, spec: ToolSpec, catalog: CalendarCatalog | None = None) -> "ProviderTool":
        tool = cls(
            name=spec.name,
            description=spec.description,
            parameters=tool_parameters(spec, catalog),
            tags={spec.kind.value},
        )
        tool._spec = spec
        return tool

    @property
    def spec(self) -> ToolSpec:
        return self._spec

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        text = await dispatch(self._spec, arguments)
        return ToolResult(content=[TextContent(type="text", text=text)])


def build_tools(catalog: CalendarCatalog | None = None) -> list[ProviderTool]:
    return [ProviderTool.from_spec(spec, catalog) for spec in TOOLS]
