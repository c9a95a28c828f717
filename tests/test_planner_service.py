"""Tests for the planner service behind the MCP tools."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from commute_watch.data.config import Settings
from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.models.commute import TimeMode
from commute_watch.models.transit import StationCategory, StopArea
from commute_watch.services import planner_service
from commute_watch.services.compensation import TicketType
from commute_watch.services.station_resolver import StationResolver
from factories import TZ, raw_trip, ride

ODENPLAN = StopArea(id="740021665", name="Odenplan", category=StationCategory.METRO)
CENTRAL = StopArea(id="740000001", name="Stockholm Centralstation", category=StationCategory.RAIL)


@pytest.fixture(autouse=True)
def reset_service():
    """Reset the service state before and after each test."""
    planner_service.reset_service()
    yield
    planner_service.reset_service()


def _stations_by_query(query: str) -> list[StopArea]:
    return {"odenplan": [ODENPLAN], "central": [CENTRAL]}.get(query.lower(), [])


@pytest.fixture
def station_provider() -> MagicMock:
    provider = MagicMock()
    provider.search_stations = AsyncMock(side_effect=_stations_by_query)
    return provider


@pytest.fixture(autouse=True)
def service(reset_service, station_provider):
    """Wire the service to fakes instead of ResRobot."""
    planner_service._settings = Settings(COMMUTE_TIMEZONE="Europe/Stockholm")
    planner_service._resolver = StationResolver(station_provider)


def _trip_provider(result=None, error: Exception | None = None) -> MagicMock:
    provider = MagicMock()
    provider.search_trips = AsyncMock(return_value=result, side_effect=error)
    return provider


@pytest.mark.asyncio
async def test_resolve_station():
    response = await planner_service.resolve_station("Odenplan")

    assert response.count == 1
    assert response.best_match.id == "740021665"
    assert response.is_fallback is False


@pytest.mark.asyncio
async def test_resolve_station_no_match():
    response = await planner_service.resolve_station("Nowhere")

    assert response.count == 0
    assert response.best_match is None


@pytest.mark.asyncio
async def test_plan_trip_evaluates_itineraries():
    provider = _trip_provider(
        [
            raw_trip(ride("740021665", "08:10", "740000001", "08:16", delay=25)),
            raw_trip(ride("740021665", "08:00", "740000001", "08:06")),
        ]
    )

    response = await planner_service.plan_trip(
        "Odenplan", "Central", time_str="08:00", provider=provider
    )

    assert response.success is True
    assert response.count == 2
    assert response.origin_resolution.resolved_station_id == "740021665"
    assert response.destination_resolution.category == "rail"
    # sorted by departure
    first, second = response.itineraries
    assert first.itinerary.planned_departure.hour == 8
    assert first.itinerary.planned_departure.minute == 0
    assert first.compensation.eligible is False
    assert second.evaluation.total_delay_minutes == 25
    assert second.compensation.eligible is True
    assert second.num_transfers == 0

    at_time = provider.search_trips.call_args.args[2]
    assert (at_time.hour, at_time.minute) == (8, 0)
    assert at_time.tzinfo is not None


@pytest.mark.asyncio
async def test_plan_trip_accepts_stop_ids():
    provider = _trip_provider([raw_trip(ride("740000001", "08:00", "740000003", "08:04"))])

    response = await planner_service.plan_trip(
        "740000001", "740000003", time_str="08:00", mode=TimeMode.ARRIVE, provider=provider
    )

    assert response.success is True
    assert response.origin_resolution.resolved_station_name == "Stockholm Centralstation"
    assert provider.search_trips.call_args.args[3] == TimeMode.ARRIVE


@pytest.mark.asyncio
async def test_plan_trip_unresolved_station():
    provider = _trip_provider()

    response = await planner_service.plan_trip("Odenplan", "Nowhere", provider=provider)

    assert response.success is False
    assert "Nowhere" in response.error
    provider.search_trips.assert_not_awaited()


@pytest.mark.asyncio
async def test_plan_trip_invalid_time():
    response = await planner_service.plan_trip(
        "Odenplan", "Central", time_str="25:00", provider=_trip_provider()
    )

    assert response.success is False
    assert "Invalid time" in response.error


@pytest.mark.asyncio
async def test_plan_trip_no_itinerary():
    response = await planner_service.plan_trip(
        "Odenplan", "Central", provider=_trip_provider(error=NoItineraryFound("none"))
    )

    assert response.success is False
    assert response.error == "No itineraries found"


@pytest.mark.asyncio
async def test_plan_trip_upstream_failure():
    response = await planner_service.plan_trip(
        "Odenplan", "Central", provider=_trip_provider(error=UpstreamUnavailable("down"))
    )

    assert response.success is False
    assert "unavailable" in response.error


@pytest.mark.asyncio
async def test_plan_trip_ticket_type():
    provider = _trip_provider([raw_trip(ride("740021665", "08:00", "740000001", "08:06", delay=20))])

    response = await planner_service.plan_trip(
        "Odenplan", "Central", time_str="08:00", ticket_type=TicketType.SINGLE, provider=provider
    )

    assert response.itineraries[0].compensation.estimated_amount == 65


def test_query_time_defaults_to_now():
    now = datetime(2025, 3, 10, 8, 17, 42, tzinfo=TZ)
    assert planner_service._parse_query_time(None, now) == datetime(2025, 3, 10, 8, 17, tzinfo=TZ)
