"""
Parameter schemas for every tool.

One frozen pydantic model per tool declares the accepted fields, their types,
defaults, constraints and descriptions. The JSON schema advertised in
tools/list is generated from these models, and toolbridge.tools validates the
raw tool arguments against them before any credential or network work
happens.

Wire names follow the established tool contract: snake_case for maps,
finance and flights; camelCase for Gmail and Calendar (declared as aliases,
the Python attribute names stay snake_case).
"""

import enum
import json
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TravelMode = Literal["driving", "walking", "bicycling", "transit"]

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
IATA_PATTERN = r"^[A-Za-z]{3}$"


class ToolRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------------
# Maps
# ---------------------------------------------------------------------------


class GeocodeRequest(ToolRequest):
    address: str = Field(min_length=1, description="The address to geocode")


class ReverseGeocodeRequest(ToolRequest):
    latitude: float = Field(ge=-90, le=90, description="The latitude")
    longitude: float = Field(ge=-180, le=180, description="The longitude")


class PlacesSearchRequest(ToolRequest):
    query: str = Field(min_length=1, description="The search query")
    location: str | None = Field(
        default=None, description="Bias results around this location (e.g., 'lat,lng')"
    )
    radius: int | None = Field(default=None, gt=0, description="Search radius in meters")
    max_results: int = Field(default=5, description="Maximum number of places to return")


class DirectionsRequest(ToolRequest):
    origin: str = Field(min_length=1, description="Starting location (address or lat,lng)")
    destination: str = Field(min_length=1, description="Ending location (address or lat,lng)")
    mode: TravelMode | None = Field(default=None, description="Travel mode (default: driving)")


class DistanceMatrixRequest(ToolRequest):
    origins: list[str] = Field(min_length=1, description="Array of origin locations")
    destinations: list[str] = Field(min_length=1, description="Array of destination locations")
    mode: TravelMode | None = Field(default=None, description="Travel mode (default: driving)")


class PlaceDetailsRequest(ToolRequest):
    place_id: str = Field(min_length=1, description="The Google Place ID")


# ---------------------------------------------------------------------------
# Finance
# ---------------------------------------------------------------------------


class FinanceSearchRequest(ToolRequest):
    q: str = Field(
        min_length=1,
        description=(
            "Stock symbol, index, mutual fund, currency, or futures "
            "(e.g., 'GOOGL:NASDAQ', 'WMT:NYSE')"
        ),
    )
    window: Literal["1D", "5D", "1M", "6M", "YTD", "1Y", "5Y", "MAX"] | None = Field(
        default=None, description="Time range for graph data"
    )
    no_cache: bool | None = Field(default=None, description="Force fresh results instead of cached")
    summary_only: bool = Field(
        default=True,
        description=(
            "Return only essential information (price, movement, key statistics, "
            "compact futures list). Set false for news, markets and related sections."
        ),
    )
    include_news: bool = Field(default=True, description="Include top news (detailed mode)")
    include_markets: bool = Field(
        default=False, description="Include market overview data (detailed mode)"
    )
    include_discover: bool = Field(
        default=False, description="Include related instruments (detailed mode)"
    )
    include_price_insights: bool = Field(
        default=True, description="Include the price analysis section"
    )
    max_news: int = Field(default=5, description="Maximum number of news articles to return")
    max_futures: int = Field(
        default=3, description="Maximum number of futures chain items to return (summary mode)"
    )
    max_related: int = Field(default=5, description="Maximum number of related instruments")


# ---------------------------------------------------------------------------
# Flights
# ---------------------------------------------------------------------------


class TripType(enum.IntEnum):
    ROUND_TRIP = 1
    ONE_WAY = 2
    MULTI_CITY = 3


class FlightsSearchRequest(ToolRequest):
    departure_id: str = Field(
        pattern=IATA_PATTERN,
        description="Departure airport code (e.g., 'CDG', 'AUS', 'LAX', 'SFO'). Use 3-letter IATA codes.",
    )
    arrival_id: str = Field(
        pattern=IATA_PATTERN,
        description="Arrival airport code (e.g., 'NRT', 'LAX', 'JFK', 'LHR'). Use 3-letter IATA codes.",
    )
    outbound_date: str | None = Field(
        default=None, pattern=DATE_PATTERN, description="Outbound date in YYYY-MM-DD format"
    )
    return_date: str | None = Field(
        default=None,
        pattern=DATE_PATTERN,
        description="Return date in YYYY-MM-DD format (REQUIRED when type=1)",
    )
    multi_city_json: str | None = Field(
        default=None,
        description=(
            "JSON array of legs for multi-city trips, each with departure_id, "
            "arrival_id and date (REQUIRED when type=3)"
        ),
    )
    type: TripType = Field(
        default=TripType.ONE_WAY,
        description=(
            "Trip type: 1=Round-trip (requires return_date), 2=One-way (default), "
            "3=Multi-city (requires multi_city_json)"
        ),
    )
    summary_only: bool = Field(default=True, description="Return only essential flight information")
    include_price_insights: bool = Field(default=True, description="Include price insights")
    include_airports: bool = Field(
        default=False, description="Include airport information (detailed mode)"
    )
    include_links: bool = Field(
        default=False, description="Include booking links for each flight (detailed mode)"
    )
    max_best_flights: int = Field(default=3, description="Maximum number of best flights to return")
    max_other_flights: int = Field(default=5, description="Maximum number of other flights to return")

    @field_validator("departure_id", "arrival_id")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _trip_shape(self) -> "FlightsSearchRequest":
        if self.type == TripType.ROUND_TRIP and not self.return_date:
            raise ValueError("return_date is required when type=1 (round-trip)")
        if self.type == TripType.MULTI_CITY:
            if not self.multi_city_json:
                raise ValueError("multi_city_json is required when type=3 (multi-city)")
            try:
                legs = json.loads(self.multi_city_json)
            except ValueError as e:
                raise ValueError(f"multi_city_json is not valid JSON: {e}") from e
            if not isinstance(legs, list) or not legs or not all(isinstance(leg, dict) for leg in legs):
                raise ValueError("multi_city_json must be a non-empty JSON array of leg objects")
        return self


# ---------------------------------------------------------------------------
# Gmail
# ---------------------------------------------------------------------------


class SendEmailRequest(ToolRequest):
    to: str = Field(min_length=1, description="Recipient email address")
    subject: str = Field(description="Email subject")
    body: str = Field(description="Email body content")
    cc: str | None = Field(default=None, description="CC email addresses (comma-separated)")
    bcc: str | None = Field(default=None, description="BCC email addresses (comma-separated)")

    # These four become RFC 2822 header values; a line break would start a
    # new header (e.g. an injected "Bcc:"), which the MIME builder refuses.
    @field_validator("to", "subject", "cc", "bcc")
    @classmethod
    def _single_line_header(cls, value: str | None) -> str | None:
        if value is not None and ("\r" in value or "\n" in value):
            raise ValueError("must not contain line breaks")
        return value


class ListEmailsRequest(ToolRequest):
    query: str | None = Field(
        default=None,
        description="Gmail search query (e.g., 'is:unread', 'from:example@gmail.com')",
    )
    max_results: int = Field(
        default=10, ge=1, le=100, alias="maxResults", description="Maximum number of emails to return"
    )
    label_ids: list[str] | None = Field(
        default=None, alias="labelIds", description="Array of label IDs to filter by"
    )


class GetEmailRequest(ToolRequest):
    message_id: str = Field(min_length=1, alias="messageId", description="Gmail message ID")


class ListLabelsRequest(ToolRequest):
    pass


class CreateLabelRequest(ToolRequest):
    name: str = Field(min_length=1, description="Label name")
    message_list_visibility: Literal["show", "hide"] = Field(
        default="show", alias="messageListVisibility", description="Message list visibility"
    )
    label_list_visibility: Literal["labelShow", "labelHide"] = Field(
        default="labelShow", alias="labelListVisibility", description="Label list visibility"
    )


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

# The real description is filled in from the startup calendar catalog when
# the server registers the tools (see toolbridge.tools).
CalendarId = Annotated[
    str,
    Field(
        alias="calendarId",
        description=(
            "Calendar ID - Options: 'primary' (your main calendar), a specific "
            "calendar ID like 'john.doe@gmail.com', or a shared calendar ID"
        ),
    ),
]

EventId = Annotated[str, Field(min_length=1, alias="eventId", description="Event ID")]

Attendees = Annotated[
    list[str] | None,
    Field(description="Array of attendee email addresses"),
]


class CreateEventRequest(ToolRequest):
    summary: str = Field(min_length=1, description="Event title/summary")
    description: str | None = Field(default=None, description="Event description")
    location: str | None = Field(default=None, description="Event location")
    start_date_time: str = Field(
        alias="startDateTime",
        description="Start date/time in ISO format (e.g., '2025-01-15T09:00:00-07:00')",
    )
    end_date_time: str = Field(
        alias="endDateTime",
        description="End date/time in ISO format (e.g., '2025-01-15T10:00:00-07:00')",
    )
    attendees: Attendees = None
    calendar_id: CalendarId = "primary"
    time_zone: str | None = Field(
        default=None,
        alias="timeZone",
        description=(
            "IANA time zone (e.g., 'America/New_York', 'Europe/London'). "
            "Defaults to the server's configured time zone."
        ),
    )


class ListEventsRequest(ToolRequest):
    calendar_id: CalendarId = "primary"
    time_min: str | None = Field(
        default=None,
        alias="timeMin",
        description="Lower bound for event start time (ISO format, defaults to now)",
    )
    time_max: str | None = Field(
        default=None, alias="timeMax", description="Upper bound for event start time (ISO format)"
    )
    max_results: int = Field(
        default=10, ge=1, le=250, alias="maxResults", description="Maximum number of events to return"
    )
    single_events: bool = Field(
        default=True, alias="singleEvents", description="Whether to expand recurring events"
    )
    order_by: Literal["startTime", "updated"] = Field(
        default="startTime", alias="orderBy", description="Order of events"
    )


class GetEventRequest(ToolRequest):
    event_id: EventId
    calendar_id: CalendarId = "primary"


class UpdateEventRequest(ToolRequest):
    event_id: EventId
    calendar_id: CalendarId = "primary"
    summary: str | None = Field(default=None, description="Event title/summary")
    description: str | None = Field(default=None, description="Event description")
    location: str | None = Field(default=None, description="Event location")
    start_date_time: str | None = Field(
        default=None, alias="startDateTime", description="Start date/time in ISO format"
    )
    end_date_time: str | None = Field(
        default=None, alias="endDateTime", description="End date/time in ISO format"
    )
    attendees: Attendees = None
    time_zone: str | None = Field(
        default=None,
        alias="timeZone",
        description="IANA time zone applied to a changed start or end time",
    )


class DeleteEventRequest(ToolRequest):
    event_id: EventId
    calendar_id: CalendarId = "primary"


class ListCalendarsRequest(ToolRequest):
    max_results: int = Field(
        default=10, ge=1, le=250, alias="maxResults", description="Maximum number of calendars to return"
    )
