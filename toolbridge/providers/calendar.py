"""
Google Calendar tools and the startup calendar catalog.

The catalog is a one-time listing of the user's calendars taken before the
tools are registered. It only feeds the `calendarId` parameter description
so callers can see which ids exist; calendar ids are never checked against
it. Loading it can fail (missing credentials, revoked token, no network), in
which case the server falls back to a catalog holding just "primary".

Event writes (create, update, delete) send update notifications to
attendees. Values that depend on the moment of the call (the default
`timeMin` of a listing, the configured default time zone) are computed
inside the handlers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from toolbridge.config import settings
from toolbridge.credentials import ProviderKind, resolve
from toolbridge.errors import EmptyResultError, ToolError, ValidationError
from toolbridge.markdown import MarkdownDocument
from toolbridge.providers import google_api
from toolbridge.resolvers import Resolver, text
from toolbridge.schemas import (
    CreateEventRequest,
    DeleteEventRequest,
    GetEventRequest,
    ListCalendarsRequest,
    ListEventsRequest,
    UpdateEventRequest,
)

logger = logging.getLogger(__name__)

SERVICE = "Google Calendar"
SEND_UPDATES = "all"

NO_EVENTS = "No events found in the requested time range."
NO_CALENDARS = "No calendars found."

GENERIC_CALENDAR_DESCRIPTION = (
    "Calendar ID - Options: 'primary' (your main calendar), a specific calendar "
    "ID like 'john.doe@gmail.com', or a shared calendar ID"
)

START = Resolver("start", "start.dateTime", "start.date")
END = Resolver("end", "end.dateTime", "end.date")
ORGANIZER = Resolver("organizer", "organizer.displayName", "organizer.email")


# ---------------------------------------------------------------------------
# Calendar catalog
# ---------------------------------------------------------------------------
# The catalog is taken once, before tools are registered, and only shapes the
# `calendarId` parameter description. load_calendar_catalog() never raises:
# a missing credential or a provider failure is logged and the "primary"
# fallback is used instead.


@dataclass(frozen=True)
class CalendarEntry:
    id: str
    summary: str
    description: str | None = None
    time_zone: str | None = None
    access_role: str | None = None
    primary: bool = False


@dataclass(frozen=True)
class CalendarCatalog:
    """
    Immutable snapshot of the calendars visible at startup.

    Attributes:
        entries: Calendars in provider order
        loaded: False when the snapshot is the "primary" fallback
    """

    entries: tuple[CalendarEntry, ...]
    loaded: bool = True

    @classmethod
    def fallback(cls) -> "CalendarCatalog":
        return cls(entries=(CalendarEntry(id="primary", summary="Primary Calendar"),), loaded=False)

    def describe_calendar_id(self) -> str:
        """Description text for the `calendarId` tool parameter."""
        if not self.entries:
            return GENERIC_CALENDAR_DESCRIPTION
        options = ", ".join(f"'{entry.id}' ({entry.summary})" for entry in self.entries)
        return f"Calendar ID - Available options: {options}"


def normalize_calendars(raw: dict) -> tuple[CalendarEntry, ...]:
    entries = []
    for record in raw.get("items") or []:
        if not isinstance(record, dict) or not record.get("id"):
            continue
        entries.append(
            CalendarEntry(
                id=record["id"],
                summary=text(record.get("summaryOverride")) or text(record.get("summary")) or record["id"],
                description=text(record.get("description")),
                time_zone=text(record.get("timeZone")),
                access_role=text(record.get("accessRole")),
                primary=bool(record.get("primary")),
            )
        )
    return tuple(entries)


async def load_calendar_catalog(max_results: int | None = None) -> CalendarCatalog:
    """
    Take the startup calendar snapshot.

    Never raises: any configuration or provider failure is logged and the
    fallback catalog is returned instead.
    """
    if max_results is None:
        max_results = settings.calendar_catalog_size
    try:
        service = await _service()
        raw = await google_api.execute(
            service.calendarList().list(maxResults=max_results), SERVICE
        )
    except ToolError as e:
        logger.warning(
            "Could not load calendars, falling back to primary",
            extra={"tool_data": {"provider": ProviderKind.CALENDAR.value, "error": e.to_text()}},
        )
        return CalendarCatalog.fallback()

    entries = normalize_calendars(raw)
    if not entries:
        return CalendarCatalog.fallback()
    logger.info("Loaded %d calendars", len(entries))
    return CalendarCatalog(entries=entries)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attendee:
    email: str
    display_name: str | None = None
    response_status: str | None = None


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str | None
    start: str | None
    end: str | None
    description: str | None = None
    location: str | None = None
    status: str | None = None
    organizer: str | None = None
    html_link: str | None = None
    attendees: tuple[Attendee, ...] = ()
    recurrence: tuple[str, ...] = ()
    updated: str | None = None


def normalize_event(record: dict) -> CalendarEvent:
    attendees = tuple(
        Attendee(
            email=attendee["email"],
            display_name=text(attendee.get("displayName")),
            response_status=text(attendee.get("responseStatus")),
        )
        for attendee in record.get("attendees") or []
        if isinstance(attendee, dict) and attendee.get("email")
    )
    return CalendarEvent(
        id=record.get("id", ""),
        summary=text(record.get("summary")),
        start=text(START.resolve(record)),
        end=text(END.resolve(record)),
        description=text(record.get("description")),
        location=text(record.get("location")),
        status=text(record.get("status")),
        organizer=text(ORGANIZER.resolve(record)),
        html_link=text(record.get("htmlLink")),
        attendees=attendees,
        recurrence=tuple(r for r in record.get("recurrence") or [] if isinstance(r, str)),
        updated=text(record.get("updated")),
    )


def normalize_events(raw: dict) -> tuple[CalendarEvent, ...]:
    return tuple(normalize_event(r) for r in raw.get("items") or [] if isinstance(r, dict))


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------
# Create sends a complete event body and falls back to the configured default
# time zone. Update is a PATCH that carries only the supplied fields. A
# changed start or end clears `date`, which turns an all-day event into a
# timed one.


def _event_time(value: str, time_zone: str | None) -> dict:
    moment = {"dateTime": value}
    if time_zone:
        moment["timeZone"] = time_zone
    return moment


def build_event_body(request: CreateEventRequest, default_timezone: str) -> dict:
    time_zone = request.time_zone or default_timezone
    body = {
        "summary": request.summary,
        "start": _event_time(request.start_date_time, time_zone),
        "end": _event_time(request.end_date_time, time_zone),
    }
    if request.description is not None:
        body["description"] = request.description
    if request.location is not None:
        body["location"] = request.location
    if request.attendees:
        body["attendees"] = [{"email": email} for email in request.attendees]
    return body


def build_patch_body(request: UpdateEventRequest) -> dict:
    """
    Only the fields the caller supplied; everything else is left as is.

    A changed start or end also clears `date`: patch merges into the stored
    object, and an all-day event keeps its `date` next to the new
    `dateTime` otherwise, which Google rejects.
    """
    body = {}
    for field in ("summary", "description", "location"):
        value = getattr(request, field)
        if value is not None:
            body[field] = value
    if request.start_date_time is not None:
        body["start"] = {**_event_time(request.start_date_time, request.time_zone), "date": None}
    if request.end_date_time is not None:
        body["end"] = {**_event_time(request.end_date_time, request.time_zone), "date": None}
    if request.attendees is not None:
        body["attendees"] = [{"email": email} for email in request.attendees]
    return body


def build_list_params(request: ListEventsRequest, now: datetime | None = None) -> dict:
    if now is None:
        now = datetime.now(timezone.utc)
    params = {
        "calendarId": request.calendar_id,
        "maxResults": request.max_results,
        "singleEvents": request.single_events,
        "orderBy": request.order_by,
        "timeMin": request.time_min or now.isoformat(timespec="seconds").replace("+00:00", "Z"),
    }
    if request.time_max:
        params["timeMax"] = request.time_max
    return params


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _when(event: CalendarEvent) -> str | None:
    if event.start and event.end:
        return f"{event.start} → {event.end}"
    return event.start or event.end


def render_event(event: CalendarEvent, title: str | None = None) -> str:
    doc = MarkdownDocument().title(title or event.summary or "(No Title)")
    if title:
        doc.field("Title", event.summary)
    doc.field("When", _when(event))
    doc.field("Location", event.location)
    doc.field("Status", event.status)
    doc.field("Organizer", event.organizer)
    doc.field("Updated", event.updated)
    doc.line(f"Event ID: `{event.id}`")
    if event.html_link:
        doc.line(f"[Open in Google Calendar]({event.html_link})")
    doc.blank()

    if event.description:
        doc.section("Description")
        doc.raw(f"{event.description}\n\n")

    if event.attendees:
        doc.section("Attendees")
        for attendee in event.attendees:
            label = attendee.email
            if attendee.display_name:
                label = f"{attendee.display_name} <{attendee.email}>"
            if attendee.response_status:
                label += f" ({attendee.response_status})"
            doc.bullet(label)
        doc.blank()

    if event.recurrence:
        doc.section("Recurrence")
        for rule in event.recurrence:
            doc.bullet(f"`{rule}`")
        doc.blank()

    return doc.render()


def render_event_list(events: tuple[CalendarEvent, ...], calendar_id: str) -> str:
    doc = MarkdownDocument().title(f"Events in {calendar_id} ({len(events)})")
    for index, event in enumerate(events, 1):
        doc.heading(f"{index}. {event.summary or '(No Title)'}", level=2)
        doc.field("When", _when(event))
        doc.field("Location", event.location)
        if event.attendees:
            doc.line(f"Attendees: {len(event.attendees)}")
        doc.line(f"Event ID: `{event.id}`")
        doc.blank()
    return doc.render()


def render_calendars(entries: tuple[CalendarEntry, ...]) -> str:
    doc = MarkdownDocument().title(f"Calendars ({len(entries)})")
    for entry in entries:
        heading = f"{entry.summary} (primary)" if entry.primary else entry.summary
        doc.heading(heading, level=2)
        doc.line(f"ID: `{entry.id}`")
        doc.field("Time Zone", entry.time_zone)
        doc.field("Access Role", entry.access_role)
        doc.field("Description", entry.description)
        doc.blank()
    return doc.render()


# ---------------------------------------------------------------------------
# Tool pipelines
# ---------------------------------------------------------------------------
# Writes pass sendUpdates="all" so attendees are notified. Update refuses an
# empty patch before building a client.


async def _service():
    credential = resolve(ProviderKind.CALENDAR)
    return await google_api.build_service("calendar", "v3", credential)


async def create_event(request: CreateEventRequest) -> str:
    body = build_event_body(request, settings.default_timezone)
    service = await _service()
    created = await google_api.execute(
        service.events().insert(
            calendarId=request.calendar_id, body=body, sendUpdates=SEND_UPDATES
        ),
        SERVICE,
    )
    return render_event(normalize_event(created), title="Event Created")


async def list_events(request: ListEventsRequest) -> str:
    params = build_list_params(request)
    service = await _service()
    raw = await google_api.execute(service.events().list(**params), SERVICE)
    events = normalize_events(raw)
    if not events:
        raise EmptyResultError(NO_EVENTS)
    return render_event_list(events, request.calendar_id)


async def get_event(request: GetEventRequest) -> str:
    service = await _service()
    raw = await google_api.execute(
        service.events().get(calendarId=request.calendar_id, eventId=request.event_id),
        SERVICE,
    )
    return render_event(normalize_event(raw))


async def update_event(request: UpdateEventRequest) -> str:
    body = build_patch_body(request)
    if not body:
        raise ValidationError("at least one event field to change is required")
    service = await _service()
    updated = await google_api.execute(
        service.events().patch(
            calendarId=request.calendar_id,
            eventId=request.event_id,
            body=body,
            sendUpdates=SEND_UPDATES,
        ),
        SERVICE,
    )
    return render_event(normalize_event(updated), title="Event Updated")


async def delete_event(request: DeleteEventRequest) -> str:
    service = await _service()
    await google_api.execute(
        service.events().delete(
            calendarId=request.calendar_id, eventId=request.event_id, sendUpdates=SEND_UPDATES
        ),
        SERVICE,
    )
    doc = MarkdownDocument().title("Event Deleted")
    doc.line(f"Event `{request.event_id}` was deleted from calendar `{request.calendar_id}`.")
    return doc.render()


async def list_calendars(request: ListCalendarsRequest) -> str:
    service = await _service()
    raw = await google_api.execute(
        service.calendarList().list(maxResults=request.max_results), SERVICE
    )
    entries = normalize_calendars(raw)
    if not entries:
        raise EmptyResultError(NO_CALENDARS)
    return render_calendars(entries)
