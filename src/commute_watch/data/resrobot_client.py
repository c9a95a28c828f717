import logging
from datetime import datetime

import httpx
from pydantic import ValidationError

from commute_watch.data.config import Settings
from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.models.commute import TimeMode
from commute_watch.models.resrobot import LocationResponse, RawTrip, TripResponse
from commute_watch.models.transit import StopArea
from commute_watch.services.line_classifier import category_from_products

logger = logging.getLogger(__name__)

# errorCode values meaning "nothing to return" rather than "service broken"
NO_RESULT_ERROR_CODES = frozenset({"SVC_NO_RESULT", "SVC_LOC", "SVC_LOC_ARR", "SVC_LOC_DEP"})


class ResRobotClient:
    """Async HTTP client for the ResRobot trip and location APIs.

    Implements both ItineraryProvider and StationProvider.

    Usage:
        async with ResRobotClient(settings) as client:
            trips = await client.search_trips(origin_id, dest_id, at_time, TimeMode.DEPART)
    """

    def __init__(self, settings: Settings):
        """Initialize the client.

        Args:
            settings: Settings with API key, base URL and timeouts.
        """
        self._settings = settings
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ResRobotClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._settings.resrobot_base_url,
            timeout=self._settings.upstream_timeout_seconds,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict[str, str | int]) -> dict:
        """GET an endpoint and return its JSON body.

        Error bodies are returned too (ResRobot reports errors as JSON with an
        errorCode); only transport failures and unparseable bodies raise.

        Raises:
            RuntimeError: If client not initialized.
            UpstreamUnavailable: On transport errors, timeouts or non-JSON bodies.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        query = {**params, "format": "json"}
        if self._settings.api_key:
            query["accessId"] = self._settings.api_key

        try:
            response = await self._client.get(path, params=query)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"ResRobot {path} request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                f"ResRobot {path} returned non-JSON body (HTTP {response.status_code})"
            ) from e

        if response.status_code >= 500 or not isinstance(body, dict):
            raise UpstreamUnavailable(f"ResRobot {path} returned HTTP {response.status_code}")
        if response.status_code >= 400 and "errorCode" not in body:
            raise UpstreamUnavailable(f"ResRobot {path} returned HTTP {response.status_code}")

        return body

    async def search_trips(
        self,
        origin_id: str,
        destination_id: str,
        at_time: datetime,
        mode: TimeMode,
    ) -> list[RawTrip]:
        """Search trips between two stop ids.

        Args:
            origin_id: Origin stop area id (extId).
            destination_id: Destination stop area id (extId).
            at_time: Departure or arrival time; converted to the network timezone.
            mode: DEPART searches forward from at_time, ARRIVE backwards.

        Returns:
            Raw trips as returned by the API, earliest first.

        Raises:
            NoItineraryFound: If no trip exists or a stop id is unknown.
            UpstreamUnavailable: If the request fails.
        """
        local_time = at_time.astimezone(self._settings.tzinfo)
        params: dict[str, str | int] = {
            "originId": origin_id,
            "destId": destination_id,
            "date": local_time.strftime("%Y-%m-%d"),
            "time": local_time.strftime("%H:%M"),
            "searchForArrival": 1 if mode == TimeMode.ARRIVE else 0,
            "numF": self._settings.trips_per_search,
        }

        body = await self._get_json("/trip", params)
        try:
            data = TripResponse.model_validate(body)
        except ValidationError as e:
            raise UpstreamUnavailable(f"Unexpected trip response shape: {e}") from e

        if data.error_code in NO_RESULT_ERROR_CODES:
            raise NoItineraryFound(
                f"No trip {origin_id} -> {destination_id} at {local_time:%Y-%m-%d %H:%M}: "
                f"{data.error_code}"
            )
        if data.error_code:
            raise UpstreamUnavailable(f"ResRobot error {data.error_code}: {data.error_text}")
        if not data.trips:
            raise NoItineraryFound(
                f"No trip {origin_id} -> {destination_id} at {local_time:%Y-%m-%d %H:%M}"
            )

        logger.debug(f"Fetched {len(data.trips)} trips {origin_id} -> {destination_id}")
        return data.trips

    async def search_stations(self, query: str) -> list[StopArea]:
        """Search stop areas by name.

        Args:
            query: Free-text station name.

        Returns:
            StopAreas in API order (ranking is the resolver's job).

        Raises:
            UpstreamUnavailable: If the request fails.
        """
        params: dict[str, str | int] = {
            "input": query,
            "maxNo": self._settings.max_station_results,
        }

        body = await self._get_json("/location.name", params)
        try:
            data = LocationResponse.model_validate(body)
        except ValidationError as e:
            raise UpstreamUnavailable(f"Unexpected location response shape: {e}") from e

        if data.error_code in NO_RESULT_ERROR_CODES:
            return []
        if data.error_code:
            raise UpstreamUnavailable(f"ResRobot error {data.error_code}: {data.error_text}")

        stations = [
            StopArea(
                id=entry.stop_location.ext_id,
                name=entry.stop_location.name,
                latitude=entry.stop_location.lat,
                longitude=entry.stop_location.lon,
                category=category_from_products(entry.stop_location.products),
            )
            for entry in data.entries
            if entry.stop_location is not None
        ]
        logger.debug(f"Fetched {len(stations)} stations for {query!r}")
        return stations


class ResRobotProvider:
    """ItineraryProvider/StationProvider that opens a client per request.

    For callers that can't hold a ResRobotClient context open, such as the
    MCP tools.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    async def search_trips(
        self,
        origin_id: str,
        destination_id: str,
        at_time: datetime,
        mode: TimeMode,
    ) -> list[RawTrip]:
        async with ResRobotClient(self._settings) as client:
            return await client.search_trips(origin_id, destination_id, at_time, mode)

    async def search_stations(self, query: str) -> list[StopArea]:
        async with ResRobotClient(self._settings) as client:
            return await client.search_stations(query)
