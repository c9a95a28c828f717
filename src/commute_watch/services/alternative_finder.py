"""Search nearby departure times for a materially better itinerary."""

import asyncio
import logging
from datetime import datetime, timedelta

from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.interfaces import ItineraryProvider
from commute_watch.models.commute import CommuteRoute, TimeMode
from commute_watch.models.transit import Alternative, Itinerary
from commute_watch.services.delay_evaluator import evaluate
from commute_watch.services.synthesizer import ItinerarySynthesizer
from commute_watch.services.trip_search import search_itineraries

logger = logging.getLogger(__name__)

PROBE_COUNT = 6
PROBE_STEP_MINUTES = 5

# Candidates must not end up this much later than the current itinerary
MAX_TIME_DIFFERENCE_MINUTES = 30

# A cancelled itinerary is treated as this late
CANCELLED_DELAY_MINUTES = MAX_TIME_DIFFERENCE_MINUTES


def _minutes(delta: timedelta) -> int:
    return round(delta.total_seconds() / 60)


class AlternativeFinder:
    """Probes the next half hour of departures for a better itinerary.

    Args:
        provider: Upstream trip source.
        synthesizer: Converter to the canonical model.
        timeout: Per-probe upstream timeout in seconds.
        probe_spacing: Pause between probes, in seconds.
    """

    def __init__(
        self,
        provider: ItineraryProvider,
        synthesizer: ItinerarySynthesizer,
        timeout: float = 10.0,
        probe_spacing: float = 0.0,
    ):
        self._provider = provider
        self._synthesizer = synthesizer
        self._timeout = timeout
        self._probe_spacing = probe_spacing

    async def _probe(self, route: CommuteRoute, at_time: datetime) -> Itinerary | None:
        try:
            itineraries = await search_itineraries(
                self._provider,
                self._synthesizer,
                route.origin_stop_id,
                route.destination_stop_id,
                at_time,
                TimeMode.DEPART,
                self._timeout,
            )
        except (NoItineraryFound, UpstreamUnavailable) as e:
            logger.info(f"Alternative probe at {at_time:%H:%M} for route {route.id} skipped: {e}")
            return None

        if not itineraries:
            return None
        return min(itineraries, key=lambda it: it.planned_departure)

    async def find_better(
        self, route: CommuteRoute, current: Itinerary, now: datetime
    ) -> Alternative | None:
        """Find the candidate that saves the most time over the current itinerary.

        For each probe, total_time_difference = (candidate arrival - current
        arrival) + candidate delay - current delay. A candidate qualifies when
        that difference is below both the current delay and 30 minutes.

        Args:
            route: The commute being monitored.
            current: The itinerary currently being monitored.
            now: Current time; probes start here.

        Returns:
            The best Alternative, or None if nothing saves time.
        """
        current_evaluation = evaluate(current)
        if current_evaluation.has_cancellations:
            current_delay = max(CANCELLED_DELAY_MINUTES, current_evaluation.total_delay_minutes)
        else:
            current_delay = current_evaluation.total_delay_minutes

        best: Alternative | None = None
        for index in range(PROBE_COUNT):
            if index and self._probe_spacing:
                await asyncio.sleep(self._probe_spacing)

            candidate = await self._probe(
                route, now + timedelta(minutes=index * PROBE_STEP_MINUTES)
            )
            if candidate is None or candidate.id == current.id:
                continue

            candidate_evaluation = evaluate(candidate)
            if candidate_evaluation.has_cancellations:
                continue

            difference = (
                _minutes(candidate.planned_arrival - current.planned_arrival)
                + candidate_evaluation.total_delay_minutes
                - current_delay
            )
            if difference >= current_delay or difference >= MAX_TIME_DIFFERENCE_MINUTES:
                continue

            time_saved = current_delay - difference
            if best is None or time_saved > best.time_saved_minutes:
                best = Alternative(
                    itinerary=candidate,
                    total_time_difference_minutes=difference,
                    time_saved_minutes=time_saved,
                )

        if best:
            logger.info(
                f"Route {route.id}: alternative departing "
                f"{best.itinerary.planned_departure:%H:%M} saves {best.time_saved_minutes} min"
            )
        return best
