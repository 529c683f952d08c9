"""
Flight search through the SerpApi google_flights engine.

Pipeline: build query -> GET -> normalize_search -> project_search -> render_search.

Summary mode renders only the headline (best price, airline, number of
flights found) and the price level. Detailed mode keeps that headline and
adds the itinerary buckets ("Best Options", "Other Options") with their
segments and layovers, plus the optional booking link and airport sections.
"""

import logging
from dataclasses import dataclass

from toolbridge.credentials import ApiKeyCredential, ProviderKind, resolve
from toolbridge.errors import EmptyResultError
from toolbridge.markdown import MarkdownDocument, format_number, is_present
from toolbridge.providers import serpapi
from toolbridge.resolvers import Resolver, dig, is_usable, text
from toolbridge.schemas import FlightsSearchRequest

logger = logging.getLogger(__name__)


def _scalar(value) -> bool:
    return isinstance(value, (str, int, float)) and is_usable(value)


BEST_PRICE = Resolver(
    "best_price",
    "best_flights.0.price",
    "other_flights.0.price",
    "price_insights.lowest_price",
)
HEADLINE_AIRLINE = Resolver(
    "airline", "best_flights.0.flights.0.airline", "other_flights.0.flights.0.airline"
)

DEPARTURE_CODE = Resolver(
    "departure_code",
    "departure_airport.id",
    "departure_airport.code",
    "departure_airport.name",
    "departure_airport",
    accept=_scalar,
)
ARRIVAL_CODE = Resolver(
    "arrival_code",
    "arrival_airport.id",
    "arrival_airport.code",
    "arrival_airport.name",
    "arrival_airport",
    accept=_scalar,
)
DEPARTURE_TIME = Resolver("departure_time", "departure_airport.time")
ARRIVAL_TIME = Resolver("arrival_time", "arrival_airport.time")

AIRPORT_CODE = Resolver("code", "airport.id", "airport.code", "id", "code")
AIRPORT_NAME = Resolver("name", "airport.name", "name")


# ---------------------------------------------------------------------------
# Normalized result
# ---------------------------------------------------------------------------
# Itineraries keep provider order within their bucket. Durations stay in
# minutes until the renderer formats them.


@dataclass(frozen=True)
class Segment:
    airline: str | None
    flight_number: str | None
    departure_code: str | None
    departure_time: str | None
    arrival_code: str | None
    arrival_time: str | None


@dataclass(frozen=True)
class Layover:
    duration: int | None
    airport: str | None = None


@dataclass(frozen=True)
class Itinerary:
    price: int | float | str | None
    total_duration: int | None
    segments: tuple[Segment, ...]
    layovers: tuple[Layover, ...] = ()

    @property
    def stops(self) -> int:
        return max(len(self.segments) - 1, 0)


@dataclass(frozen=True)
class FlightPriceInsights:
    lowest_price: int | float | str | None = None
    price_level: str | None = None
    typical_range: tuple = ()


@dataclass(frozen=True)
class AirportInfo:
    role: str  # "Departure" or "Arrival"
    code: str | None
    name: str | None
    city: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class FlightSearch:
    departure_id: str
    arrival_id: str
    best_price: int | float | str | None
    airline: str | None
    best: tuple[Itinerary, ...]
    other: tuple[Itinerary, ...]
    price_insights: FlightPriceInsights | None = None
    airports: tuple[AirportInfo, ...] = ()
    booking_url: str | None = None

    @property
    def flights_found(self) -> int:
        return len(self.best) + len(self.other)


@dataclass(frozen=True)
class FlightFlags:
    summary_only: bool = True
    include_price_insights: bool = True
    include_airports: bool = False
    include_links: bool = False
    max_best_flights: int = 3
    max_other_flights: int = 5

    @classmethod
    def from_request(cls, request: FlightsSearchRequest) -> "FlightFlags":
        return cls(
            summary_only=request.summary_only,
            include_price_insights=request.include_price_insights,
            include_airports=request.include_airports,
            include_links=request.include_links,
            max_best_flights=request.max_best_flights,
            max_other_flights=request.max_other_flights,
        )


@dataclass(frozen=True)
class FlightProjection:
    title: str
    best_price: int | float | str | None
    airline: str | None
    flights_found: int
    detailed: bool
    price_insights: FlightPriceInsights | None = None
    best: tuple[Itinerary, ...] = ()
    other: tuple[Itinerary, ...] = ()
    airports: tuple[AirportInfo, ...] = ()
    booking_url: str | None = None


# ---------------------------------------------------------------------------
# Request builder
# ---------------------------------------------------------------------------
# Results are always requested in English and USD. `type` is the numeric trip
# type (1 round trip, 2 one way, 3 multi-city). Dates and the multi-city legs
# are only sent when present.


def build_flights_params(request: FlightsSearchRequest, credential: ApiKeyCredential) -> dict:
    params = {
        "engine": "google_flights",
        "api_key": credential.api_key,
        "departure_id": request.departure_id,
        "arrival_id": request.arrival_id,
        "hl": "en",
        "currency": "USD",
        "type": str(int(request.type)),
    }
    for name in ("outbound_date", "return_date", "multi_city_json"):
        value = getattr(request, name)
        if value:
            params[name] = value
    return params


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------
# serpapi.check_error() runs first, so an in-band "no results" error becomes
# EmptyResultError. The headline price falls back from the first best flight
# to the first other flight to price_insights.lowest_price. Airports with
# neither a code nor a name are dropped.


def _minutes(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_segment(record: dict) -> Segment:
    return Segment(
        airline=text(record.get("airline")),
        flight_number=text(record.get("flight_number")),
        departure_code=text(DEPARTURE_CODE.resolve(record)),
        departure_time=text(DEPARTURE_TIME.resolve(record)),
        arrival_code=text(ARRIVAL_CODE.resolve(record)),
        arrival_time=text(ARRIVAL_TIME.resolve(record)),
    )


def normalize_itinerary(record: dict) -> Itinerary:
    segments = tuple(
        normalize_segment(segment)
        for segment in record.get("flights") or []
        if isinstance(segment, dict)
    )
    layovers = tuple(
        Layover(duration=_minutes(layover.get("duration")), airport=text(layover.get("name")))
        for layover in record.get("layovers") or []
        if isinstance(layover, dict)
    )
    return Itinerary(
        price=record.get("price"),
        total_duration=_minutes(record.get("total_duration")),
        segments=segments,
        layovers=layovers,
    )


def _itineraries(raw: dict, key: str) -> tuple[Itinerary, ...]:
    records = raw.get(key)
    if not isinstance(records, list):
        return ()
    return tuple(normalize_itinerary(r) for r in records if isinstance(r, dict))


def normalize_price_insights(raw: dict) -> FlightPriceInsights | None:
    insights = raw.get("price_insights")
    if not isinstance(insights, dict):
        return None
    typical = insights.get("typical_price_range")
    return FlightPriceInsights(
        lowest_price=insights.get("lowest_price"),
        price_level=text(insights.get("price_level")),
        typical_range=tuple(typical) if isinstance(typical, list) else (),
    )


def normalize_airports(raw: dict) -> tuple[AirportInfo, ...]:
    airports = []
    for group in raw.get("airports") or []:
        if not isinstance(group, dict):
            continue
        for role, key in (("Departure", "departure"), ("Arrival", "arrival")):
            for record in group.get(key) or []:
                if not isinstance(record, dict):
                    continue
                code = text(AIRPORT_CODE.resolve(record))
                name = text(AIRPORT_NAME.resolve(record))
                if code is None and name is None:
                    continue
                airports.append(
                    AirportInfo(
                        role=role,
                        code=code,
                        name=name,
                        city=text(record.get("city")),
                        country=text(record.get("country")),
                    )
                )
    return tuple(airports)


def normalize_search(raw: dict, request: FlightsSearchRequest) -> FlightSearch:
    """
    Resolve the google_flights payload into a FlightSearch.

    The headline price comes from the first best flight, then the first
    other flight, then price_insights.lowest_price. A payload with no
    itineraries and no lowest price is a data failure.
    """
    empty_message = f"No flights found from {request.departure_id} to {request.arrival_id}."
    serpapi.check_error(raw, empty_message)

    best = _itineraries(raw, "best_flights")
    other = _itineraries(raw, "other_flights")
    best_price = BEST_PRICE.resolve(raw)
    if not best and not other and not is_usable(best_price):
        raise EmptyResultError(empty_message)

    return FlightSearch(
        departure_id=request.departure_id,
        arrival_id=request.arrival_id,
        best_price=best_price,
        airline=text(HEADLINE_AIRLINE.resolve(raw)),
        best=best,
        other=other,
        price_insights=normalize_price_insights(raw),
        airports=normalize_airports(raw),
        booking_url=text(dig(raw, ("search_metadata", "google_flights_url"))),
    )


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------
# Summary mode keeps only the headline and the price insights. The itinerary
# buckets and the optional airport and link sections exist only in detailed
# mode, each capped or toggled by its own flag.


def project_search(search: FlightSearch, flags: FlightFlags) -> FlightProjection:
    projection = dict(
        title=f"{search.departure_id} → {search.arrival_id}",
        best_price=search.best_price,
        airline=search.airline,
        flights_found=search.flights_found,
        detailed=not flags.summary_only,
        price_insights=search.price_insights if flags.include_price_insights else None,
    )
    if flags.summary_only:
        return FlightProjection(**projection)
    return FlightProjection(
        **projection,
        best=search.best[: flags.max_best_flights] if flags.max_best_flights > 0 else (),
        other=search.other[: flags.max_other_flights] if flags.max_other_flights > 0 else (),
        airports=search.airports if flags.include_airports else (),
        booking_url=search.booking_url if flags.include_links else None,
    )


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


def format_duration(minutes: int | None) -> str | None:
    """Minutes as h:mm (e.g. 135 -> "2:15")."""
    if minutes is None:
        return None
    hours, rest = divmod(minutes, 60)
    return f"{hours}:{rest:02d}"


def stops_label(stops: int) -> str:
    if stops == 0:
        return "Direct"
    return f"{stops} stop" if stops == 1 else f"{stops} stops"


def _money(value) -> str:
    return f"${format_number(value)}"


def _render_itinerary(doc: MarkdownDocument, itinerary: Itinerary, booking_url: str | None) -> None:
    header = []
    if is_present(itinerary.price):
        header.append(_money(itinerary.price))
    duration = format_duration(itinerary.total_duration)
    if duration:
        header.append(duration)
    header.append(stops_label(itinerary.stops))
    doc.heading(" • ".join(header), level=3)
    if booking_url:
        doc.bold_field("URL", booking_url)

    for index, segment in enumerate(itinerary.segments):
        flight = " ".join(p for p in (segment.airline, segment.flight_number) if p)
        departure = " ".join(p for p in (segment.departure_code, segment.departure_time) if p)
        arrival = " ".join(p for p in (segment.arrival_code, segment.arrival_time) if p)
        route = f"{departure} → {arrival}"
        doc.raw(f"{flight}: {route}\n" if flight else f"{route}\n")
        if index < len(itinerary.segments) - 1 and index < len(itinerary.layovers):
            layover = format_duration(itinerary.layovers[index].duration)
            if layover:
                doc.raw(f"  Layover: {layover}\n")
    doc.blank()


def render_search(projection: FlightProjection) -> str:
    doc = MarkdownDocument().title(projection.title)

    if is_present(projection.best_price):
        doc.bold_field("Best Price", _money(projection.best_price))
    doc.bold_field("Airline", projection.airline)
    doc.bold_field("Flights Found", str(projection.flights_found))
    doc.blank()

    insights = projection.price_insights
    if not projection.detailed:
        if insights is not None:
            doc.bold_field("Price Level", insights.price_level)
            if insights.typical_range:
                doc.bold_field(
                    "Typical Range", "-".join(_money(v) for v in insights.typical_range)
                )
        return doc.render()

    if projection.best:
        doc.section("Best Options")
        for itinerary in projection.best:
            _render_itinerary(doc, itinerary, projection.booking_url)

    if projection.other:
        doc.section("Other Options")
        for itinerary in projection.other:
            _render_itinerary(doc, itinerary, projection.booking_url)

    if projection.airports:
        doc.section("Airports")
        for airport in projection.airports:
            label = airport.name or airport.code
            if airport.code and airport.name:
                label = f"{airport.name} ({airport.code})"
            place = ", ".join(p for p in (airport.city, airport.country) if p)
            doc.bullet(f"{airport.role}: {label}" + (f", {place}" if place else ""))
        doc.blank()

    if insights is not None:
        parts = []
        if insights.price_level:
            parts.append(insights.price_level)
        if is_present(insights.lowest_price):
            parts.append(f"Lowest: {_money(insights.lowest_price)}")
        if parts:
            doc.bold_field("Price Level", " • ".join(parts))
        if insights.typical_range:
            doc.bold_field("Typical Range", "-".join(_money(v) for v in insights.typical_range))

    return doc.render()


# ---------------------------------------------------------------------------
# Tool pipeline
# ---------------------------------------------------------------------------


async def search_flights(request: FlightsSearchRequest) -> str:
    credential = resolve(ProviderKind.FLIGHTS)
    raw = await serpapi.search(build_flights_params(request, credential), provider="Flights API")
    search = normalize_search(raw, request)
    logger.debug(
        "Resolved %d itineraries for %s-%s",
        search.flights_found,
        search.departure_id,
        search.arrival_id,
    )
    return render_search(project_search(search, FlightFlags.from_request(request)))
