"""
Google Maps Platform tools: geocoding, places, directions, distance matrix.

Each tool runs the same pipeline:

    resolve credential -> build query -> GET -> check status -> normalize -> render

The Maps web services answer HTTP 200 even for failures and report the
outcome in a top-level "status" field. ZERO_RESULTS / NOT_FOUND mean the
call worked but matched nothing (EmptyResultError); any other non-OK status
is a ProviderError carrying the service's error_message.
"""

import logging
from dataclasses import dataclass, replace

from toolbridge import http_client
from toolbridge.credentials import ApiKeyCredential, ProviderKind, resolve
from toolbridge.errors import EmptyResultError, ProviderError
from toolbridge.markdown import MarkdownDocument, format_number, is_present, strip_tags
from toolbridge.resolvers import Resolver, dig, text
from toolbridge.schemas import (
    DirectionsRequest,
    DistanceMatrixRequest,
    GeocodeRequest,
    PlaceDetailsRequest,
    PlacesSearchRequest,
    ReverseGeocodeRequest,
)

logger = logging.getLogger(__name__)

MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"
GEOCODE_URL = f"{MAPS_BASE_URL}/geocode/json"
TEXT_SEARCH_URL = f"{MAPS_BASE_URL}/place/textsearch/json"
DIRECTIONS_URL = f"{MAPS_BASE_URL}/directions/json"
DISTANCE_MATRIX_URL = f"{MAPS_BASE_URL}/distancematrix/json"
PLACE_DETAILS_URL = f"{MAPS_BASE_URL}/place/details/json"

DEFAULT_MODE = "driving"
EMPTY_STATUSES = ("ZERO_RESULTS", "NOT_FOUND")

NO_ADDRESS_RESULTS = "No results found for the given address."
NO_COORDINATE_RESULTS = "No results found for the given coordinates."
NO_PLACES = "No places found for the given query."
NO_ROUTES = "No routes found between the given locations."
NO_PLACE_DETAILS = "No details found for the given place ID."

LATITUDE = Resolver("latitude", "geometry.location.lat", "lat")
LONGITUDE = Resolver("longitude", "geometry.location.lng", "lng")
ADDRESS = Resolver("address", "formatted_address", "vicinity")
PHONE = Resolver("phone", "formatted_phone_number", "international_phone_number")
OPENING_HOURS = Resolver(
    "opening_hours", "opening_hours.weekday_text", "current_opening_hours.weekday_text"
)
STEP_INSTRUCTION = Resolver("instruction", "html_instructions", "instructions")


# ---------------------------------------------------------------------------
# Normalized results
# ---------------------------------------------------------------------------
# Frozen records the renderers read from. A field the provider left out is
# None (or an empty tuple) and the renderer skips its line.


@dataclass(frozen=True)
class GeocodedLocation:
    address: str
    latitude: float
    longitude: float
    place_id: str | None = None
    types: tuple[str, ...] = ()


@dataclass(frozen=True)
class Place:
    name: str
    address: str | None
    latitude: float | None
    longitude: float | None
    place_id: str | None
    rating: float | None


@dataclass(frozen=True)
class PlaceDetails:
    name: str
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    rating: float | None = None
    ratings_total: int | None = None
    price_level: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    opening_hours: tuple[str, ...] = ()
    types: tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteStep:
    instruction: str
    distance: str | None
    duration: str | None


@dataclass(frozen=True)
class Route:
    start_address: str | None
    end_address: str | None
    distance: str | None
    duration: str | None
    steps: tuple[RouteStep, ...] = ()


@dataclass(frozen=True)
class DistanceCell:
    origin: str
    destination: str
    status: str
    distance: str | None = None
    duration: str | None = None


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------
# Query strings for the Maps web services. Parameters the caller left out are
# dropped instead of being sent empty; the API key is added to every query.


def _with_key(credential: ApiKeyCredential, **params) -> dict:
    query = {name: value for name, value in params.items() if value is not None}
    query["key"] = credential.api_key
    return query


def build_geocode_params(request: GeocodeRequest, credential: ApiKeyCredential) -> dict:
    return _with_key(credential, address=request.address)


def build_reverse_geocode_params(
    request: ReverseGeocodeRequest, credential: ApiKeyCredential
) -> dict:
    return _with_key(credential, latlng=f"{request.latitude},{request.longitude}")


def build_places_search_params(
    request: PlacesSearchRequest, credential: ApiKeyCredential
) -> dict:
    return _with_key(
        credential,
        query=request.query,
        location=request.location,
        radius=request.radius,
    )


def build_directions_params(request: DirectionsRequest, credential: ApiKeyCredential) -> dict:
    return _with_key(
        credential,
        origin=request.origin,
        destination=request.destination,
        mode=request.mode or DEFAULT_MODE,
    )


def build_distance_matrix_params(
    request: DistanceMatrixRequest, credential: ApiKeyCredential
) -> dict:
    return _with_key(
        credential,
        origins="|".join(request.origins),
        destinations="|".join(request.destinations),
        mode=request.mode or DEFAULT_MODE,
    )


def build_place_details_params(
    request: PlaceDetailsRequest, credential: ApiKeyCredential
) -> dict:
    return _with_key(credential, place_id=request.place_id)


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------
# Every normalizer starts with check_status(), since Maps reports failures
# inside an HTTP 200 body. Records are then read through the Resolvers at
# the top of this module:
# - a geocode result without an address or coordinates counts as no result
# - places without a name and route steps without an instruction are skipped
# - a missing distance matrix cell becomes status UNKNOWN, not an error


def check_status(raw: dict, empty_message: str) -> None:
    """Translate the Maps "status" field into the error taxonomy."""
    status = raw.get("status", "OK")
    if status == "OK":
        return
    if status in EMPTY_STATUSES:
        raise EmptyResultError(empty_message)
    detail = raw.get("error_message") or "no error message returned"
    logger.warning("Google Maps returned status %s", status)
    raise ProviderError(f"Google Maps returned {status}: {detail}")


def _types(record: dict) -> tuple[str, ...]:
    values = record.get("types")
    if not isinstance(values, list):
        return ()
    return tuple(str(value) for value in values)


def normalize_location(raw: dict, empty_message: str) -> GeocodedLocation:
    check_status(raw, empty_message)
    results = raw.get("results")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise EmptyResultError(empty_message)

    record = results[0]
    address = text(ADDRESS.resolve(record))
    latitude = LATITUDE.resolve(record)
    longitude = LONGITUDE.resolve(record)
    if address is None or latitude is None or longitude is None:
        raise EmptyResultError(empty_message)

    return GeocodedLocation(
        address=address,
        latitude=latitude,
        longitude=longitude,
        place_id=text(record.get("place_id")),
        types=_types(record),
    )


def normalize_places(raw: dict) -> list[Place]:
    check_status(raw, NO_PLACES)
    places = []
    for record in raw.get("results") or []:
        if not isinstance(record, dict):
            continue
        name = text(record.get("name"))
        if name is None:
            continue
        places.append(
            Place(
                name=name,
                address=text(ADDRESS.resolve(record)),
                latitude=LATITUDE.resolve(record),
                longitude=LONGITUDE.resolve(record),
                place_id=text(record.get("place_id")),
                rating=record.get("rating"),
            )
        )
    if not places:
        raise EmptyResultError(NO_PLACES)
    return places


def normalize_route(raw: dict) -> Route:
    check_status(raw, NO_ROUTES)
    leg = dig(raw, ("routes", 0, "legs", 0))
    if not isinstance(leg, dict):
        raise EmptyResultError(NO_ROUTES)

    steps = []
    for step in leg.get("steps") or []:
        instruction = STEP_INSTRUCTION.resolve(step)
        if instruction is None:
            continue
        steps.append(
            RouteStep(
                instruction=strip_tags(str(instruction)),
                distance=text(dig(step, ("distance", "text"))),
                duration=text(dig(step, ("duration", "text"))),
            )
        )

    return Route(
        start_address=text(leg.get("start_address")),
        end_address=text(leg.get("end_address")),
        distance=text(dig(leg, ("distance", "text"))),
        duration=text(dig(leg, ("duration", "text"))),
        steps=tuple(steps),
    )


def normalize_distance_matrix(raw: dict, request: DistanceMatrixRequest) -> list[DistanceCell]:
    """
    Flatten the origins x destinations grid, row-major.

    Cells are labelled with the caller's own origin/destination strings; a
    missing row or element yields a cell with status UNKNOWN rather than an
    error.
    """
    check_status(raw, "No distances found for the given locations.")
    rows = raw.get("rows") or []
    cells = []
    for i, origin in enumerate(request.origins):
        for j, destination in enumerate(request.destinations):
            element = dig(rows, (i, "elements", j))
            if not isinstance(element, dict):
                element = {}
            cells.append(
                DistanceCell(
                    origin=origin,
                    destination=destination,
                    status=text(element.get("status")) or "UNKNOWN",
                    distance=text(dig(element, ("distance", "text"))),
                    duration=text(dig(element, ("duration", "text"))),
                )
            )
    return cells


def normalize_place_details(raw: dict) -> PlaceDetails:
    check_status(raw, NO_PLACE_DETAILS)
    record = raw.get("result")
    if not isinstance(record, dict) or text(record.get("name")) is None:
        raise EmptyResultError(NO_PLACE_DETAILS)

    hours = OPENING_HOURS.resolve(record) or []
    return PlaceDetails(
        name=text(record.get("name")),
        address=text(ADDRESS.resolve(record)),
        phone=text(PHONE.resolve(record)),
        website=text(record.get("website")),
        rating=record.get("rating"),
        ratings_total=record.get("user_ratings_total"),
        price_level=record.get("price_level"),
        latitude=LATITUDE.resolve(record),
        longitude=LONGITUDE.resolve(record),
        opening_hours=tuple(str(h) for h in hours if is_present(h)),
        types=_types(record),
    )


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------
# Markdown output built with MarkdownDocument. Coordinates go through
# format_number, and locations carry a maps.google.com link built from them.


def _maps_link(latitude, longitude) -> str:
    return f"https://maps.google.com/?q={format_number(latitude)},{format_number(longitude)}"


def render_location(title: str, location: GeocodedLocation) -> str:
    doc = MarkdownDocument().title(title)
    doc.field("Address", location.address)
    doc.line(f"Coordinates: {format_number(location.latitude)}, {format_number(location.longitude)}")
    if location.place_id:
        doc.line(f"Place ID: `{location.place_id}`")
    doc.raw(f"Google Maps: [View on Maps]({_maps_link(location.latitude, location.longitude)})\n")
    return doc.render()


def render_places(places: list[Place]) -> str:
    doc = MarkdownDocument().title(f"Places Search Results ({len(places)})")
    for index, place in enumerate(places, 1):
        doc.heading(f"{index}. {place.name}", level=2)
        doc.field("Address", place.address)
        doc.field("Rating", place.rating, suffix="⭐")
        if place.latitude is not None and place.longitude is not None:
            doc.line(f"Location: {format_number(place.latitude)}, {format_number(place.longitude)}")
            doc.line(f"Maps: [View]({_maps_link(place.latitude, place.longitude)})")
        if place.place_id:
            doc.line(f"Place ID: `{place.place_id}`")
        doc.blank()
    return doc.render()


def render_route(route: Route) -> str:
    start = route.start_address or "Origin"
    end = route.end_address or "Destination"
    doc = MarkdownDocument().title(f"Directions: {start} → {end}")
    doc.field("Distance", route.distance)
    doc.field("Duration", route.duration)
    if route.steps:
        doc.blank().section("Step-by-Step Directions")
        for index, step in enumerate(route.steps, 1):
            details = ", ".join(part for part in (step.distance, step.duration) if part)
            suffix = f" *({details})*" if details else ""
            doc.numbered(index, f"{step.instruction}{suffix}")
    return doc.render()


def render_distance_matrix(cells: list[DistanceCell]) -> str:
    doc = MarkdownDocument().title("Distance Matrix Results")
    for index, cell in enumerate(cells, 1):
        doc.heading(f"{index}. {cell.origin} → {cell.destination}", level=2)
        doc.field("Distance", cell.distance)
        doc.field("Duration", cell.duration)
        doc.field("Status", cell.status)
        doc.blank()
    return doc.render()


def render_place_details(place: PlaceDetails) -> str:
    doc = MarkdownDocument().title(place.name)
    doc.field("Address", place.address)
    doc.field("Phone", place.phone)
    if place.website:
        doc.line(f"Website: [Visit]({place.website})")
    if place.rating is not None:
        reviews = f" ({place.ratings_total} reviews)" if place.ratings_total else ""
        doc.line(f"Rating: {format_number(place.rating)}⭐{reviews}")
    if isinstance(place.price_level, int):
        doc.line(f"Price Level: {'$' * (place.price_level + 1)}")
    if place.latitude is not None and place.longitude is not None:
        doc.line(f"Location: {format_number(place.latitude)}, {format_number(place.longitude)}")
        doc.line(f"Maps: [View]({_maps_link(place.latitude, place.longitude)})")
    if place.opening_hours:
        doc.blank().heading("Hours", level=2)
        for hours in place.opening_hours:
            doc.bullet(hours)
    if place.types:
        doc.blank().raw(f"Categories: {', '.join(place.types)}\n")
    return doc.render()


# ---------------------------------------------------------------------------
# Tool pipelines
# ---------------------------------------------------------------------------
# One coroutine per tool. The Maps key is resolved first, so a missing key
# raises ConfigurationError before any request is built.


async def _fetch(url: str, params: dict) -> dict:
    return await http_client.get_json(url, params, provider="Google Maps")


async def geocode(request: GeocodeRequest) -> str:
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(GEOCODE_URL, build_geocode_params(request, credential))
    location = normalize_location(raw, NO_ADDRESS_RESULTS)
    return render_location("Geocoded Location", location)


async def reverse_geocode(request: ReverseGeocodeRequest) -> str:
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(GEOCODE_URL, build_reverse_geocode_params(request, credential))
    location = normalize_location(raw, NO_COORDINATE_RESULTS)
    # Show the coordinates the caller asked about, not the snapped result.
    location = replace(location, latitude=request.latitude, longitude=request.longitude)
    return render_location("Reverse Geocoded Location", location)


async def places_search(request: PlacesSearchRequest) -> str:
    """
    Text search, rendered as the first `max_results` places in provider order.

    A cap of zero or less suppresses the list but keeps the header, so the
    caller still sees a well-formed document ("# Places Search Results (0)").
    "No places found" is reserved for a search that matched nothing.
    """
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(TEXT_SEARCH_URL, build_places_search_params(request, credential))
    places = normalize_places(raw)
    return render_places(places[: max(request.max_results, 0)])


async def get_directions(request: DirectionsRequest) -> str:
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(DIRECTIONS_URL, build_directions_params(request, credential))
    return render_route(normalize_route(raw))


async def distance_matrix(request: DistanceMatrixRequest) -> str:
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(DISTANCE_MATRIX_URL, build_distance_matrix_params(request, credential))
    return render_distance_matrix(normalize_distance_matrix(raw, request))


async def place_details(request: PlaceDetailsRequest) -> str:
    credential = resolve(ProviderKind.MAPS)
    raw = await _fetch(PLACE_DETAILS_URL, build_place_details_params(request, credential))
    return render_place_details(normalize_place_details(raw))
