"""Tests for the ResRobot client."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from commute_watch.data.config import Settings
from commute_watch.data.resrobot_client import ResRobotClient, ResRobotProvider
from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.models.commute import TimeMode
from commute_watch.models.transit import StationCategory
from factories import at, ride, trip_json


@pytest.fixture
def settings() -> Settings:
    """Create test settings.

    Note: Must use alias names to override .env file values.
    """
    return Settings(RESROBOT_API_KEY="test_key", COMMUTE_TIMEZONE="Europe/Stockholm")


def _response(body=None, status_code: int = 200, json_error: bool = False) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


def _patched_client(response=None, error: Exception | None = None):
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(return_value=response, side_effect=error)
    return mock_client


@pytest.mark.asyncio
async def test_search_trips_sends_query(settings: Settings):
    body = {"Trip": [trip_json(ride("740000001", "08:00", "740000003", "08:04"))]}

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _patched_client(_response(body))
        mock_client_class.return_value = mock_client

        async with ResRobotClient(settings) as client:
            trips = await client.search_trips(
                "740000001", "740000003", at("08:00"), TimeMode.ARRIVE
            )

    assert len(trips) == 1
    assert trips[0].legs[0].origin.ext_id == "740000001"

    path = mock_client.get.call_args.args[0]
    params = mock_client.get.call_args.kwargs["params"]
    assert path == "/trip"
    assert params["originId"] == "740000001"
    assert params["destId"] == "740000003"
    assert params["date"] == "2025-03-10"
    assert params["time"] == "08:00"
    assert params["searchForArrival"] == 1
    assert params["format"] == "json"
    assert params["accessId"] == "test_key"


@pytest.mark.asyncio
async def test_search_trips_converts_to_network_time(settings: Settings):
    body = {"Trip": [trip_json(ride("740000001", "08:00", "740000003", "08:04"))]}

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _patched_client(_response(body))
        mock_client_class.return_value = mock_client

        async with ResRobotClient(settings) as client:
            await client.search_trips(
                "740000001", "740000003", datetime(2025, 3, 10, 7, 0, tzinfo=UTC), TimeMode.DEPART
            )

    params = mock_client.get.call_args.kwargs["params"]
    assert params["time"] == "08:00"
    assert params["searchForArrival"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["SVC_NO_RESULT", "SVC_LOC", "SVC_LOC_ARR", "SVC_LOC_DEP"])
async def test_no_result_codes_raise_no_itinerary(settings: Settings, code: str):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(
            _response({"errorCode": code, "errorText": "nothing"}, status_code=400)
        )

        async with ResRobotClient(settings) as client:
            with pytest.raises(NoItineraryFound):
                await client.search_trips("740000001", "0", at("08:00"), TimeMode.DEPART)


@pytest.mark.asyncio
async def test_empty_trip_list_raises_no_itinerary(settings: Settings):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(_response({"Trip": []}))

        async with ResRobotClient(settings) as client:
            with pytest.raises(NoItineraryFound):
                await client.search_trips("740000001", "740000003", at("08:00"), TimeMode.DEPART)


@pytest.mark.asyncio
async def test_other_error_code_is_upstream_failure(settings: Settings):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(
            _response({"errorCode": "API_AUTH", "errorText": "bad key"}, status_code=403)
        )

        async with ResRobotClient(settings) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.search_trips("740000001", "740000003", at("08:00"), TimeMode.DEPART)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        _response({"Trip": []}, status_code=503),
        _response(status_code=200, json_error=True),
        _response(["not", "a", "dict"]),
        _response({"message": "not found"}, status_code=404),
    ],
)
async def test_bad_responses_are_upstream_failures(settings: Settings, response):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(response)

        async with ResRobotClient(settings) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.search_trips("740000001", "740000003", at("08:00"), TimeMode.DEPART)


@pytest.mark.asyncio
async def test_transport_error_is_upstream_failure(settings: Settings):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(error=httpx.ConnectTimeout("slow"))

        async with ResRobotClient(settings) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.search_trips("740000001", "740000003", at("08:00"), TimeMode.DEPART)


@pytest.mark.asyncio
async def test_search_stations(settings: Settings):
    body = {
        "stopLocationOrCoordLocation": [
            {
                "StopLocation": {
                    "extId": "740000001",
                    "name": "Stockholm Centralstation",
                    "lat": 59.33,
                    "lon": 18.06,
                    "products": 1 | 8 | 16 | 64,
                }
            },
            {
                "StopLocation": {
                    "extId": "740020749",
                    "name": "T-Centralen T-bana",
                    "products": 16,
                }
            },
        ]
    }

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _patched_client(_response(body))
        mock_client_class.return_value = mock_client

        async with ResRobotClient(settings) as client:
            stations = await client.search_stations("centralen")

    assert [s.id for s in stations] == ["740000001", "740020749"]
    assert stations[0].category == StationCategory.RAIL
    assert stations[1].category == StationCategory.METRO

    params = mock_client.get.call_args.kwargs["params"]
    assert mock_client.get.call_args.args[0] == "/location.name"
    assert params["input"] == "centralen"
    assert params["maxNo"] == settings.max_station_results


@pytest.mark.asyncio
async def test_search_stations_no_result(settings: Settings):
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _patched_client(
            _response({"errorCode": "SVC_LOC", "errorText": "no match"}, status_code=400)
        )

        async with ResRobotClient(settings) as client:
            assert await client.search_stations("xyzzy") == []


@pytest.mark.asyncio
async def test_client_requires_context(settings: Settings):
    client = ResRobotClient(settings)
    with pytest.raises(RuntimeError):
        await client.search_stations("Odenplan")


@pytest.mark.asyncio
async def test_provider_opens_client_per_request(settings: Settings):
    body = {"stopLocationOrCoordLocation": [{"StopLocation": {"extId": "1", "name": "A"}}]}

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _patched_client(_response(body))
        mock_client_class.return_value = mock_client

        provider = ResRobotProvider(settings)
        await provider.search_stations("A")
        await provider.search_stations("A")

    assert mock_client_class.call_count == 2
    assert mock_client.aclose.await_count == 2
