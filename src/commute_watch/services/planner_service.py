"""Station lookup and trip planning for the MCP tools.

Errors are caught and reported in the response (success=False with an error
message) rather than raised.
"""

import logging
from datetime import datetime

from commute_watch.data.config import Settings, get_settings
from commute_watch.data.resrobot_client import ResRobotProvider
from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.interfaces import ItineraryProvider
from commute_watch.models.commute import PREFERRED_TIME_PATTERN, TimeMode
from commute_watch.models.responses import (
    PlannedItinerary,
    PlanTripResponse,
    ResolveStationResponse,
    StationResolutionInfo,
)
from commute_watch.services.compensation import TicketType, check_compensation
from commute_watch.services.delay_evaluator import evaluate
from commute_watch.services.station_resolver import StationResolver
from commute_watch.services.synthesizer import ItinerarySynthesizer
from commute_watch.services.trip_search import search_itineraries

logger = logging.getLogger(__name__)

# Module-level singletons (lazy-initialized)
_settings: Settings | None = None
_provider: ResRobotProvider | None = None
_resolver: StationResolver | None = None
_synthesizer: ItinerarySynthesizer | None = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def _get_provider() -> ResRobotProvider:
    """Get or create the upstream provider singleton."""
    global _provider
    if _provider is None:
        _provider = ResRobotProvider(_get_settings())
    return _provider


def get_resolver() -> StationResolver:
    """Get or create the station resolver singleton (holds the lookup cache)."""
    global _resolver
    if _resolver is None:
        settings = _get_settings()
        _resolver = StationResolver(
            _get_provider(),
            cache_ttl=settings.station_cache_ttl_seconds,
            timeout=settings.upstream_timeout_seconds,
        )
    return _resolver


def _get_synthesizer() -> ItinerarySynthesizer:
    global _synthesizer
    if _synthesizer is None:
        _synthesizer = ItinerarySynthesizer(_get_settings().tzinfo)
    return _synthesizer


def reset_service() -> None:
    """Reset all singletons. Useful for testing."""
    global _settings, _provider, _resolver, _synthesizer
    _settings = None
    _provider = None
    _resolver = None
    _synthesizer = None


async def resolve_station(query: str, limit: int = 5) -> ResolveStationResponse:
    """Resolve a station name to ranked stop areas."""
    resolution = await get_resolver().resolve(query)
    stations = resolution.stations[:limit]
    return ResolveStationResponse(
        query=query,
        stations=stations,
        best_match=stations[0] if stations else None,
        count=len(stations),
        is_fallback=resolution.is_fallback,
    )


async def _resolve_for_planning(query: str) -> StationResolutionInfo:
    """Resolve a station query (name or numeric stop id) for trip planning."""
    resolver = get_resolver()
    query = query.strip()

    if query.isdigit():
        known = resolver.resolve_by_id(query)
        return StationResolutionInfo(
            query=query,
            resolved_station_id=query,
            resolved_station_name=known.name if known else None,
            category=known.category.value if known else None,
            resolved=True,
        )

    resolution = await resolver.resolve(query)
    if not resolution.stations:
        return StationResolutionInfo(
            query=query,
            is_fallback=resolution.is_fallback,
            resolved=False,
            error="No matching station found",
        )

    best = resolution.stations[0]
    return StationResolutionInfo(
        query=query,
        resolved_station_id=best.id,
        resolved_station_name=best.name,
        category=best.category.value,
        is_fallback=resolution.is_fallback,
        resolved=True,
    )


def _parse_query_time(time_str: str | None, now: datetime) -> datetime:
    """HH:MM today in the network timezone, or now when omitted.

    Raises:
        ValueError: If time_str isn't HH:MM.
    """
    if not time_str:
        return now.replace(second=0, microsecond=0)
    if not PREFERRED_TIME_PATTERN.match(time_str):
        raise ValueError(f"Invalid time format: {time_str!r}. Expected HH:MM")
    hours, minutes = time_str.split(":")
    return now.replace(hour=int(hours), minute=int(minutes), second=0, microsecond=0)


async def plan_trip(
    origin: str,
    destination: str,
    time_str: str | None = None,
    mode: TimeMode = TimeMode.DEPART,
    limit: int = 3,
    ticket_type: TicketType = TicketType.PERIOD,
    provider: ItineraryProvider | None = None,
) -> PlanTripResponse:
    """Plan a trip between two stations and evaluate each itinerary.

    Args:
        origin: Origin station name or stop id.
        destination: Destination station name or stop id.
        time_str: Departure (or arrival) time as HH:MM, default now.
        mode: Whether time_str is a departure or an arrival target.
        limit: Maximum itineraries to return.
        ticket_type: Ticket used for the compensation estimate.
        provider: Trip source override (defaults to ResRobot).

    Returns:
        PlanTripResponse with itineraries, their delay evaluation and
        compensation eligibility.
    """
    settings = _get_settings()
    now = datetime.now(settings.tzinfo)

    origin_info = await _resolve_for_planning(origin)
    destination_info = await _resolve_for_planning(destination)

    def failure(error: str, query_time: str = "") -> PlanTripResponse:
        return PlanTripResponse(
            origin_resolution=origin_info,
            destination_resolution=destination_info,
            query_time=query_time,
            time_mode=mode.value,
            count=0,
            success=False,
            error=error,
        )

    if not origin_info.resolved or not destination_info.resolved:
        unresolved = [
            info.query for info in (origin_info, destination_info) if not info.resolved
        ]
        return failure(f"Could not resolve station(s): {', '.join(unresolved)}")

    try:
        at_time = _parse_query_time(time_str, now)
    except ValueError as e:
        return failure(str(e))
    query_time = f"{at_time:%Y-%m-%d %H:%M}"

    try:
        itineraries = await search_itineraries(
            provider or _get_provider(),
            _get_synthesizer(),
            origin_info.resolved_station_id,
            destination_info.resolved_station_id,
            at_time,
            mode,
            settings.upstream_timeout_seconds,
        )
    except NoItineraryFound as e:
        logger.info(f"No trip {origin!r} -> {destination!r}: {e}")
        return failure("No itineraries found", query_time)
    except UpstreamUnavailable as e:
        logger.warning(f"Trip planning {origin!r} -> {destination!r} failed: {e}")
        return failure(f"Trip planner unavailable: {e}", query_time)

    if mode == TimeMode.ARRIVE:
        itineraries.sort(key=lambda it: it.planned_arrival, reverse=True)
    else:
        itineraries.sort(key=lambda it: it.planned_departure)

    planned = [
        PlannedItinerary(
            itinerary=itinerary,
            evaluation=evaluate(itinerary),
            compensation=check_compensation(itinerary, ticket_type),
            num_transfers=max(0, len(itinerary.transit_legs) - 1),
        )
        for itinerary in itineraries[:limit]
    ]

    return PlanTripResponse(
        origin_resolution=origin_info,
        destination_resolution=destination_info,
        itineraries=planned,
        query_time=query_time,
        time_mode=mode.value,
        count=len(planned),
        success=True,
        error=None if planned else "Every returned trip was malformed",
    )
