"""Itinerary synthesis: raw upstream trips -> canonical Itinerary.

Rules:
- Legs are classified by the provider's `type` field (JNY/WALK/TRSF), never
  by looking at line names.
- Missing live data means expected == planned with has_live_data=False.
- TRSF records become synthetic walk legs; walk legs last at least 1 minute.
- All times are interpreted in the network's timezone.
"""

import logging
import re
from datetime import datetime, timedelta, tzinfo

from commute_watch.errors import MalformedUpstreamData
from commute_watch.models.resrobot import RawLeg, RawStop, RawTrip
from commute_watch.models.transit import Itinerary, Leg, StopRef, TransitLeg, WalkLeg
from commute_watch.services.line_classifier import classify_line

logger = logging.getLogger(__name__)

TRANSIT_LEG_TYPE = "JNY"
WALK_LEG_TYPE = "WALK"
TRANSFER_LEG_TYPE = "TRSF"

MIN_WALK_MINUTES = 1

ISO_DURATION_PATTERN = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")


def parse_iso_duration(value: str) -> timedelta:
    """Parse the ISO-8601 durations ResRobot emits (PT5M, PT1H2M, P1DT3M).

    Raises:
        ValueError: If the value isn't a supported duration.
    """
    match = ISO_DURATION_PATTERN.match(value)
    if not match or value in ("P", "PT"):
        raise ValueError(f"Unsupported duration: {value!r}")
    days, hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


class ItinerarySynthesizer:
    """Converts raw trips into canonical itineraries.

    Args:
        tz: Timezone the upstream dates and times are expressed in.
    """

    def __init__(self, tz: tzinfo):
        self._tz = tz

    def _local_datetime(self, date_str: str, time_str: str) -> datetime:
        # upstream sends HH:MM:SS, but tolerate HH:MM
        fmt = "%Y-%m-%d %H:%M:%S" if time_str.count(":") == 2 else "%Y-%m-%d %H:%M"
        try:
            naive = datetime.strptime(f"{date_str} {time_str}", fmt)
        except ValueError as e:
            raise MalformedUpstreamData(f"Bad date/time {date_str!r} {time_str!r}") from e
        return naive.replace(tzinfo=self._tz)

    def _planned_time(self, stop: RawStop, what: str) -> datetime:
        if not stop.date or not stop.time:
            raise MalformedUpstreamData(f"Leg {what} has no planned date/time")
        return self._local_datetime(stop.date, stop.time)

    def _expected_time(self, stop: RawStop, planned: datetime) -> tuple[datetime, bool]:
        """Return (expected time, whether it came from live data)."""
        if stop.rt_time:
            return self._local_datetime(stop.rt_date or stop.date or "", stop.rt_time), True
        return planned, False

    @staticmethod
    def _stop_ref(stop: RawStop | None, what: str) -> StopRef:
        if stop is None or not stop.ext_id or not stop.name:
            raise MalformedUpstreamData(f"Leg {what} is missing its stop id or name")
        return StopRef(stop_id=stop.ext_id, name=stop.name)

    def _transit_leg(self, raw: RawLeg) -> TransitLeg:
        from_stop = self._stop_ref(raw.origin, "origin")
        to_stop = self._stop_ref(raw.destination, "destination")
        if not raw.products:
            raise MalformedUpstreamData(
                f"Transit leg {from_stop.name} -> {to_stop.name} has no product"
            )

        planned_departure = self._planned_time(raw.origin, "origin")
        planned_arrival = self._planned_time(raw.destination, "destination")
        expected_departure, live_departure = self._expected_time(raw.origin, planned_departure)
        expected_arrival, live_arrival = self._expected_time(raw.destination, planned_arrival)

        return TransitLeg(
            line=classify_line(raw.products[0]),
            from_stop=from_stop,
            to_stop=to_stop,
            direction=raw.direction,
            planned_departure=planned_departure,
            planned_arrival=planned_arrival,
            expected_departure=expected_departure,
            expected_arrival=expected_arrival,
            platform=raw.origin.rt_track or raw.origin.track,
            cancelled=raw.cancelled or raw.origin.cancelled or raw.destination.cancelled,
            has_live_data=live_departure or live_arrival,
        )

    def _walk_leg(self, raw: RawLeg, synthetic: bool) -> WalkLeg:
        from_stop = self._stop_ref(raw.origin, "origin")
        to_stop = self._stop_ref(raw.destination, "destination")

        if raw.duration:
            try:
                duration = parse_iso_duration(raw.duration)
            except ValueError as e:
                raise MalformedUpstreamData(str(e)) from e
        else:
            duration = self._planned_time(raw.destination, "destination") - self._planned_time(
                raw.origin, "origin"
            )

        minutes = max(MIN_WALK_MINUTES, round(duration.total_seconds() / 60))
        return WalkLeg(
            from_stop=from_stop,
            to_stop=to_stop,
            duration_minutes=minutes,
            distance_meters=raw.dist,
            synthetic=synthetic,
        )

    def _leg(self, raw: RawLeg) -> Leg:
        if raw.type == TRANSIT_LEG_TYPE:
            return self._transit_leg(raw)
        if raw.type == WALK_LEG_TYPE:
            return self._walk_leg(raw, synthetic=False)
        if raw.type == TRANSFER_LEG_TYPE:
            return self._walk_leg(raw, synthetic=True)
        raise MalformedUpstreamData(f"Unknown leg type {raw.type!r}")

    def synthesize(self, raw_trip: RawTrip) -> Itinerary:
        """Build an Itinerary from one raw trip.

        Args:
            raw_trip: A trip as returned by the provider.

        Returns:
            Itinerary with planned/expected times and signed arrival delay.

        Raises:
            MalformedUpstreamData: If the trip has no legs or a leg lacks required fields.
        """
        raw_legs = raw_trip.legs
        if not raw_legs:
            raise MalformedUpstreamData("Trip has no legs")

        legs = [self._leg(raw) for raw in raw_legs]

        for previous, following in zip(legs, legs[1:]):
            if previous.to_stop.stop_id != following.from_stop.stop_id:
                logger.debug(
                    f"Non-contiguous legs: {previous.to_stop.name} ({previous.to_stop.stop_id}) "
                    f"-> {following.from_stop.name} ({following.from_stop.stop_id})"
                )

        first_raw, last_raw = raw_legs[0], raw_legs[-1]
        if first_raw.origin is None or last_raw.destination is None:
            raise MalformedUpstreamData("Trip has no origin or destination")
        planned_departure = self._planned_time(first_raw.origin, "origin")
        planned_arrival = self._planned_time(last_raw.destination, "destination")

        first_leg = legs[0]
        if isinstance(first_leg, TransitLeg):
            expected_departure = first_leg.expected_departure
        else:
            expected_departure = planned_departure

        # trailing walks keep their duration, so they shift by the last ride's delay
        transit_legs = [leg for leg in legs if isinstance(leg, TransitLeg)]
        if transit_legs:
            last_ride = transit_legs[-1]
            expected_arrival = planned_arrival + (
                last_ride.expected_arrival - last_ride.planned_arrival
            )
        else:
            expected_arrival = planned_arrival

        delay_minutes = round((expected_arrival - planned_arrival).total_seconds() / 60)

        origin_id = legs[0].from_stop.stop_id
        destination_id = legs[-1].to_stop.stop_id
        itinerary_id = f"{origin_id}-{destination_id}-{planned_departure:%Y%m%dT%H%M}"

        return Itinerary(
            id=itinerary_id,
            legs=legs,
            planned_departure=planned_departure,
            planned_arrival=planned_arrival,
            expected_departure=expected_departure,
            expected_arrival=expected_arrival,
            delay_minutes=delay_minutes,
        )
