"""
Tests for the Google Flights pipeline (toolbridge/providers/flights.py).
"""

import copy

import pytest
from pydantic import ValidationError

from toolbridge.errors import ConfigurationError, EmptyResultError
from toolbridge.providers import flights
from toolbridge.providers.flights import (
    FlightFlags,
    format_duration,
    normalize_search,
    project_search,
    render_search,
)
from toolbridge.schemas import FlightsSearchRequest, TripType


def itinerary(price, duration, *legs, layovers=()):
    return {
        "price": price,
        "total_duration": duration,
        "flights": [
            {
                "airline": airline,
                "flight_number": number,
                "departure_airport": {"id": dep, "name": f"{dep} Airport", "time": dep_time},
                "arrival_airport": {"id": arr, "name": f"{arr} Airport", "time": arr_time},
            }
            for airline, number, dep, dep_time, arr, arr_time in legs
        ],
        "layovers": [{"duration": minutes, "name": "Somewhere"} for minutes in layovers],
    }


FLIGHTS_PAYLOAD = {
    "search_metadata": {
        "status": "Success",
        "google_flights_url": "https://www.google.com/travel/flights?q=AUS-LAX",
    },
    "best_flights": [
        itinerary(89, 215, ("Spirit", "NK 123", "AUS", "2025-03-01 06:00", "LAX", "2025-03-01 07:35")),
        itinerary(
            134,
            385,
            ("United", "UA 1", "AUS", "2025-03-01 08:00", "DEN", "2025-03-01 09:30"),
            ("United", "UA 2", "DEN", "2025-03-01 11:00", "LAX", "2025-03-01 12:25"),
            layovers=(90,),
        ),
    ],
    "other_flights": [
        itinerary(150 + i, 300, ("Delta", f"DL {i}", "AUS", "09:00", "LAX", "11:00")) for i in range(6)
    ],
    "price_insights": {
        "lowest_price": 89,
        "price_level": "low",
        "typical_price_range": [110, 240],
    },
    "airports": [
        {
            "departure": [{"airport": {"id": "AUS", "name": "Austin-Bergstrom International Airport"}, "city": "Austin", "country": "United States"}],
            "arrival": [{"airport": {"id": "LAX", "name": "Los Angeles International Airport"}, "city": "Los Angeles", "country": "United States"}],
        }
    ],
}


def request(**fields):
    fields.setdefault("departure_id", "AUS")
    fields.setdefault("arrival_id", "LAX")
    return FlightsSearchRequest(**fields)


def render(payload=None, **flags):
    search = normalize_search(copy.deepcopy(payload or FLIGHTS_PAYLOAD), request())
    return render_search(project_search(search, FlightFlags(**flags)))


class TestSchema:
    def test_codes_are_upper_cased_and_one_way_is_default(self):
        parsed = request(departure_id="aus", arrival_id="lax")

        assert (parsed.departure_id, parsed.arrival_id) == ("AUS", "LAX")
        assert parsed.type is TripType.ONE_WAY

    def test_round_trip_requires_return_date(self):
        with pytest.raises(ValidationError, match="return_date is required"):
            request(type=1, outbound_date="2025-03-01")

    def test_multi_city_requires_a_leg_array(self):
        with pytest.raises(ValidationError, match="multi_city_json"):
            request(type=3)
        with pytest.raises(ValidationError, match="not valid JSON"):
            request(type=3, multi_city_json="[{")
        with pytest.raises(ValidationError, match="non-empty JSON array"):
            request(type=3, multi_city_json="[]")

    def test_bad_date_format(self):
        with pytest.raises(ValidationError):
            request(outbound_date="03/01/2025")


class TestSummary:
    def test_first_price_figure_is_best_flight_price(self):
        output = render()

        assert output == (
            "# AUS → LAX\n\n"
            "**Best Price**: $89\n"
            "**Airline**: Spirit\n"
            "**Flights Found**: 8\n"
            "\n"
            "**Price Level**: low\n"
            "**Typical Range**: $110-$240\n"
        )

    def test_best_price_does_not_depend_on_lowest_price(self):
        payload = copy.deepcopy(FLIGHTS_PAYLOAD)
        payload["price_insights"]["lowest_price"] = 75

        output = render(payload)

        first_price = output[output.index("$"):].split("\n")[0]
        assert first_price == "$89"

    def test_best_price_falls_back_to_other_then_lowest(self):
        payload = copy.deepcopy(FLIGHTS_PAYLOAD)
        del payload["best_flights"]
        assert "**Best Price**: $150\n" in render(payload)

        del payload["other_flights"]
        assert "**Best Price**: $89\n" in render(payload)

    def test_summary_has_no_itineraries(self):
        projection = project_search(normalize_search(copy.deepcopy(FLIGHTS_PAYLOAD), request()), FlightFlags())

        assert projection.best == ()
        assert projection.other == ()
        assert "###" not in render()

    def test_price_insights_toggle(self):
        assert "Price Level" not in render(include_price_insights=False)

    def test_missing_price_insights_never_raises(self):
        payload = copy.deepcopy(FLIGHTS_PAYLOAD)
        del payload["price_insights"]

        assert "Price Level" not in render(payload)


class TestDetailed:
    def test_itinerary_sections(self):
        output = render(summary_only=False)

        assert output.startswith("# AUS → LAX\n\n**Best Price**: $89\n**Airline**: Spirit\n**Flights Found**: 8\n\n")
        assert "## Best Options\n\n### $89 • 3:35 • Direct\n" in output
        assert (
            "### $134 • 6:25 • 1 stop\n"
            "United UA 1: AUS 2025-03-01 08:00 → DEN 2025-03-01 09:30\n"
            "  Layover: 1:30\n"
            "United UA 2: DEN 2025-03-01 11:00 → LAX 2025-03-01 12:25\n"
        ) in output
        assert output.endswith("**Price Level**: low • Lowest: $89\n**Typical Range**: $110-$240\n")

    def test_other_options_truncation_is_prefix_stable(self):
        two = render(summary_only=False, max_other_flights=2)
        three = render(summary_only=False, max_other_flights=3)

        other_two = two.split("## Other Options\n\n")[1].split("**Price Level**")[0]
        other_three = three.split("## Other Options\n\n")[1].split("**Price Level**")[0]
        assert other_three.startswith(other_two)
        assert "DL 2" in other_three and "DL 2" not in other_two

    def test_zero_caps_suppress_buckets(self):
        output = render(summary_only=False, max_best_flights=0, max_other_flights=-1)

        assert "Best Options" not in output
        assert "Other Options" not in output
        assert "**Best Price**: $89" in output

    def test_links_and_airports_are_opt_in(self):
        plain = render(summary_only=False)
        rich = render(summary_only=False, include_links=True, include_airports=True)

        assert "URL" not in plain and "Airports" not in plain
        assert "**URL**: https://www.google.com/travel/flights?q=AUS-LAX\n" in rich
        assert "- Departure: Austin-Bergstrom International Airport (AUS), Austin, United States\n" in rich

    def test_airport_given_as_plain_string(self):
        payload = copy.deepcopy(FLIGHTS_PAYLOAD)
        segment = payload["best_flights"][0]["flights"][0]
        segment["departure_airport"] = "AUS"
        segment["arrival_airport"] = {"code": "LAX"}

        output = render(payload, summary_only=False)

        assert "Spirit NK 123: AUS → LAX\n" in output

    def test_deterministic(self):
        assert render(summary_only=False, include_airports=True) == render(
            summary_only=False, include_airports=True
        )


class TestHelpers:
    @pytest.mark.parametrize(
        ("minutes", "expected"), [(0, "0:00"), (59, "0:59"), (135, "2:15"), (None, None)]
    )
    def test_format_duration(self, minutes, expected):
        assert format_duration(minutes) == expected

    def test_stop_labels(self):
        assert flights.stops_label(0) == "Direct"
        assert flights.stops_label(1) == "1 stop"
        assert flights.stops_label(2) == "2 stops"


class TestSearchFlights:
    async def test_request_parameters(self, serp_key, fake_http):
        fake_http.payload = FLIGHTS_PAYLOAD

        await flights.search_flights(request(type=1, outbound_date="2025-03-01", return_date="2025-03-08"))

        assert fake_http.calls[0][1] == {
            "engine": "google_flights",
            "api_key": serp_key,
            "departure_id": "AUS",
            "arrival_id": "LAX",
            "hl": "en",
            "currency": "USD",
            "type": "1",
            "outbound_date": "2025-03-01",
            "return_date": "2025-03-08",
        }

    async def test_no_flights_is_empty_result(self, serp_key, fake_http):
        fake_http.payload = {"search_metadata": {"status": "Success"}}

        with pytest.raises(EmptyResultError) as exc_info:
            await flights.search_flights(request())

        assert exc_info.value.to_text() == "No flights found from AUS to LAX."

    async def test_missing_key_makes_no_request(self, fake_http):
        with pytest.raises(ConfigurationError):
            await flights.search_flights(request())

        assert fake_http.calls == []
