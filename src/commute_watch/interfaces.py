"""Boundaries to the collaborators the monitoring core depends on.

Anything satisfying these protocols can be injected: the ResRobot client,
the SQLite store and dispatchers in this package, or test doubles.
"""

from datetime import datetime
from typing import Protocol

from commute_watch.models.commute import AlertEvent, CommuteRoute, TimeMode, Weekday
from commute_watch.models.resrobot import RawTrip
from commute_watch.models.transit import StopArea


class ItineraryProvider(Protocol):
    async def search_trips(
        self,
        origin_id: str,
        destination_id: str,
        at_time: datetime,
        mode: TimeMode,
    ) -> list[RawTrip]:
        """Return raw trip suggestions.

        Raises:
            NoItineraryFound: The source has no trip for this request.
            UpstreamUnavailable: The source failed or could not be reached.
        """
        ...


class StationProvider(Protocol):
    async def search_stations(self, query: str) -> list[StopArea]:
        """Return stop areas matching a free-text query.

        Raises:
            UpstreamUnavailable: The source failed or could not be reached.
        """
        ...


class NotificationDispatcher(Protocol):
    async def emit(self, event: AlertEvent) -> None:
        """Hand an alert over for delivery. Fire-and-forget."""
        ...


class CommuteRouteStore(Protocol):
    async def active_routes_for_weekday(self, weekday: Weekday) -> list[CommuteRoute]:
        """Point-in-time snapshot of routes active on a weekday.

        Raises:
            RouteConfigError: A stored route is invalid.
        """
        ...
