"""Provider call + synthesis, with a timeout and malformed-trip filtering."""

import asyncio
import logging
from datetime import datetime

from commute_watch.errors import MalformedUpstreamData, NoItineraryFound, UpstreamUnavailable
from commute_watch.interfaces import ItineraryProvider
from commute_watch.models.commute import TimeMode
from commute_watch.models.transit import Itinerary
from commute_watch.services.synthesizer import ItinerarySynthesizer

logger = logging.getLogger(__name__)


async def search_itineraries(
    provider: ItineraryProvider,
    synthesizer: ItinerarySynthesizer,
    origin_id: str,
    destination_id: str,
    at_time: datetime,
    mode: TimeMode,
    timeout: float,
) -> list[Itinerary]:
    """Search the provider and synthesize every usable trip.

    Malformed trips are logged and dropped. An empty list means the provider
    answered but every trip was malformed.

    Args:
        provider: Upstream trip source.
        synthesizer: Converter to the canonical model.
        origin_id: Origin stop id.
        destination_id: Destination stop id.
        at_time: Departure (DEPART) or arrival (ARRIVE) target.
        mode: Search direction.
        timeout: Seconds before the upstream call is abandoned.

    Returns:
        Itineraries in provider order.

    Raises:
        NoItineraryFound: The provider has no trip for this request.
        UpstreamUnavailable: The provider failed or timed out.
    """
    try:
        raw_trips = await asyncio.wait_for(
            provider.search_trips(origin_id, destination_id, at_time, mode),
            timeout=timeout,
        )
    except TimeoutError as e:
        raise UpstreamUnavailable(
            f"Trip search {origin_id} -> {destination_id} timed out after {timeout}s"
        ) from e

    if not raw_trips:
        raise NoItineraryFound(f"No trip {origin_id} -> {destination_id} at {at_time:%H:%M}")

    itineraries: list[Itinerary] = []
    for raw_trip in raw_trips:
        try:
            itineraries.append(synthesizer.synthesize(raw_trip))
        except MalformedUpstreamData as e:
            logger.warning(f"Discarding malformed trip {origin_id} -> {destination_id}: {e}")

    return itineraries


def pick_itinerary(
    itineraries: list[Itinerary], target: datetime, mode: TimeMode
) -> Itinerary | None:
    """Pick the itinerary that best matches a departure or arrival target.

    DEPART: earliest planned departure at or after the target.
    ARRIVE: latest planned arrival at or before the target.
    Falls back to the first itinerary when none fits.
    """
    if not itineraries:
        return None

    if mode == TimeMode.ARRIVE:
        fitting = [it for it in itineraries if it.planned_arrival <= target]
        if fitting:
            return max(fitting, key=lambda it: it.planned_arrival)
    else:
        fitting = [it for it in itineraries if it.planned_departure >= target]
        if fitting:
            return min(fitting, key=lambda it: it.planned_departure)

    return itineraries[0]
