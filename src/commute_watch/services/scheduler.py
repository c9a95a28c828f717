"""Periodic commute monitoring.

Each tick walks today's routes, opens the alert window `alert_lead_minutes`
before the scheduled departure, and while the window is open re-checks the
live itinerary and emits alerts through the dispatcher.

Per-route state lives only in memory and is discarded once the departure has
passed. Routes are re-read from the store once per calendar day.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from commute_watch.data.config import Settings, get_settings
from commute_watch.errors import NoItineraryFound, UpstreamUnavailable
from commute_watch.interfaces import CommuteRouteStore, ItineraryProvider, NotificationDispatcher
from commute_watch.models.commute import (
    AlertEvent,
    AlertKind,
    CommuteRoute,
    MonitoringState,
    Severity,
    TimeMode,
    Weekday,
)
from commute_watch.models.transit import Alternative, DelayEvaluation, Itinerary
from commute_watch.services.alternative_finder import AlternativeFinder
from commute_watch.services.delay_evaluator import evaluate
from commute_watch.services.synthesizer import ItinerarySynthesizer
from commute_watch.services.trip_search import pick_itinerary, search_itineraries

logger = logging.getLogger(__name__)

RouteKey = tuple[str, str]

# The reminder fires if the window is first seen this close to its opening, or
# if the previous tick came at most one period plus this much before it
REMINDER_GRACE = timedelta(minutes=1)

# Delay changes smaller than this don't produce a new alert
DELAY_DEBOUNCE_MINUTES = 5

# Missed-connection risk triggers an alternative search only above this delay
ALTERNATIVE_SEARCH_DELAY_MINUTES = 15

HIGH_SEVERITY_DELAY_MINUTES = 10

# Arrive-by routes resolve their departure this long before the target arrival
ARRIVAL_LOOKAHEAD = timedelta(hours=3)


class MonitoringScheduler:
    """Drives per-route monitoring on a fixed tick.

    Args:
        route_store: Source of the day's active routes.
        provider: Upstream trip source.
        dispatcher: Receives alert events.
        synthesizer: Raw trip converter (defaults to one in the network timezone).
        finder: Alternative finder (defaults to one sharing provider and synthesizer).
        clock: Returns the current timezone-aware time.
        settings: Loop and upstream settings (defaults to get_settings()).
    """

    def __init__(
        self,
        route_store: CommuteRouteStore,
        provider: ItineraryProvider,
        dispatcher: NotificationDispatcher,
        *,
        synthesizer: ItinerarySynthesizer | None = None,
        finder: AlternativeFinder | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self._tz = settings.tzinfo
        self._tick_seconds = settings.tick_seconds
        self._timeout = settings.upstream_timeout_seconds

        self._route_store = route_store
        self._provider = provider
        self._dispatcher = dispatcher
        self._synthesizer = synthesizer or ItinerarySynthesizer(self._tz)
        self._finder = finder or AlternativeFinder(
            provider,
            self._synthesizer,
            timeout=self._timeout,
            probe_spacing=settings.probe_spacing_seconds,
        )
        self._clock = clock or (lambda: datetime.now(self._tz))

        self._semaphore = asyncio.Semaphore(settings.max_concurrency)
        self._routes: list[CommuteRoute] = []
        self._routes_loaded_for: date | None = None
        self._states: dict[RouteKey, MonitoringState] = {}
        self._locks: dict[RouteKey, asyncio.Lock] = {}
        self._departure_anchors: dict[RouteKey, tuple[date, datetime]] = {}
        self._task: asyncio.Task | None = None
        self._last_tick: datetime | None = None
        self._previous_tick: datetime | None = None

    def _now(self) -> datetime:
        return self._clock().astimezone(self._tz)

    @property
    def routes(self) -> list[CommuteRoute]:
        return list(self._routes)

    def state_for(self, user_id: str, route_id: str) -> MonitoringState | None:
        """Current monitoring state of a route, if its window is being tracked."""
        return self._states.get((user_id, route_id))

    async def load_routes(self, day: date | None = None) -> list[CommuteRoute]:
        """Snapshot the routes active on a day.

        Raises:
            RouteConfigError: A stored route is invalid.
        """
        day = day or self._now().date()
        routes = await self._route_store.active_routes_for_weekday(Weekday(day.weekday()))
        self._routes = routes
        self._routes_loaded_for = day

        keys = {route.key for route in routes}
        for key in set(self._locks) - keys:
            del self._locks[key]
        for key in set(self._departure_anchors) - keys:
            del self._departure_anchors[key]

        logger.info(f"Loaded {len(routes)} commute routes for {day:%A %Y-%m-%d}")
        return routes

    def sweep(self, now: datetime) -> None:
        """Drop state for windows whose departure has passed."""
        expired = [key for key, state in self._states.items() if now > state.scheduled_departure]
        for key in expired:
            del self._states[key]
            logger.debug(f"Closed alert window for {key}")

        today = now.date()
        stale_anchors = [k for k, (day, _) in self._departure_anchors.items() if day != today]
        for key in stale_anchors:
            del self._departure_anchors[key]

    async def tick(self) -> None:
        """Run one monitoring pass over today's routes."""
        now = self._now()
        self._previous_tick, self._last_tick = self._last_tick, now
        self.sweep(now)

        if self._routes_loaded_for != now.date():
            try:
                await self.load_routes(now.date())
            except Exception as e:
                logger.error(f"Reloading commute routes failed, retrying next tick: {e}")

        weekday = Weekday(now.weekday())
        routes = [r for r in self._routes if r.is_active_on(weekday)]
        if routes:
            await asyncio.gather(*(self._process(route, now) for route in routes))

    async def _process(self, route: CommuteRoute, now: datetime) -> None:
        lock = self._locks.setdefault(route.key, asyncio.Lock())
        if lock.locked():
            logger.debug(f"Route {route.id} still being checked, skipping this tick")
            return

        async with lock, self._semaphore:
            try:
                await self._check_route(route, now)
            except UpstreamUnavailable as e:
                logger.warning(f"Route {route.id}: upstream unavailable, retrying next tick: {e}")
            except NoItineraryFound as e:
                logger.info(f"Route {route.id}: no itinerary this tick: {e}")
            except Exception:
                logger.exception(f"Route {route.id}: monitoring failed")

    async def _scheduled_departure(self, route: CommuteRoute, now: datetime) -> datetime | None:
        preferred = datetime.combine(now.date(), route.preferred_clock_time, tzinfo=self._tz)
        if route.time_mode == TimeMode.DEPART:
            return preferred

        anchor = self._departure_anchors.get(route.key)
        if anchor and anchor[0] == now.date():
            return anchor[1]

        if not preferred - ARRIVAL_LOOKAHEAD <= now <= preferred:
            return None

        itineraries = await search_itineraries(
            self._provider,
            self._synthesizer,
            route.origin_stop_id,
            route.destination_stop_id,
            preferred,
            TimeMode.ARRIVE,
            self._timeout,
        )
        chosen = pick_itinerary(itineraries, preferred, TimeMode.ARRIVE)
        if chosen is None:
            return None

        self._departure_anchors[route.key] = (now.date(), chosen.planned_departure)
        logger.info(
            f"Route {route.id}: arriving by {route.preferred_time} means leaving "
            f"{chosen.planned_departure:%H:%M}"
        )
        return chosen.planned_departure

    async def _check_route(self, route: CommuteRoute, now: datetime) -> None:
        if not route.notifications_enabled:
            return

        departure = await self._scheduled_departure(route, now)
        if departure is None:
            return

        fire_time = departure - timedelta(minutes=route.alert_lead_minutes)
        if not fire_time <= now <= departure:
            return

        state = self._states.get(route.key)
        if state is None or state.scheduled_departure != departure:
            state = MonitoringState(alert_fire_time=fire_time, scheduled_departure=departure)
            self._states[route.key] = state

        if not state.is_alert_window_open:
            state.is_alert_window_open = True
            if self._reminder_due(fire_time, now):
                await self._emit(self._reminder_event(route, departure))
            else:
                logger.info(
                    f"Route {route.id}: window opened at {fire_time:%H:%M} but first seen "
                    f"{now:%H:%M}, skipping departure reminder"
                )

        await self._check_itinerary(route, state, now)

    def _reminder_due(self, fire_time: datetime, now: datetime) -> bool:
        """Whether a window first seen at `now` still gets its departure reminder.

        A tick that drifts past the grace still counts as on time when the tick
        before it ran shortly before the window opened.
        """
        if now - fire_time <= REMINDER_GRACE:
            return True

        previous = self._previous_tick
        if previous is None or previous >= fire_time:
            return False
        return fire_time - previous <= timedelta(seconds=self._tick_seconds) + REMINDER_GRACE

    async def _check_itinerary(
        self, route: CommuteRoute, state: MonitoringState, now: datetime
    ) -> None:
        itineraries = await search_itineraries(
            self._provider,
            self._synthesizer,
            route.origin_stop_id,
            route.destination_stop_id,
            state.scheduled_departure,
            TimeMode.DEPART,
            self._timeout,
        )
        current = pick_itinerary(itineraries, state.scheduled_departure, TimeMode.DEPART)
        if current is None:
            logger.info(f"Route {route.id}: every trip was malformed, nothing to monitor")
            return

        evaluation = evaluate(current)
        state.last_checked_at = now

        # Timetable times copied into expected times are not an on-time signal
        if not evaluation.has_cancellations and not any(
            leg.has_live_data for leg in current.transit_legs
        ):
            logger.info(f"Route {route.id}: no live data for {current.id}, keeping last status")
            return

        delay = evaluation.total_delay_minutes
        previous = state.last_observed_delay_minutes
        baseline = previous if previous is not None else 0
        status_flipped = (
            evaluation.has_cancellations != state.has_cancellations
            or evaluation.missed_connection_risk != state.missed_connection_risk
        )
        newly_risky = (evaluation.has_cancellations and not state.has_cancellations) or (
            evaluation.missed_connection_risk and not state.missed_connection_risk
        )

        event: AlertEvent | None = None
        if (
            delay == 0
            and not evaluation.has_cancellations
            and state.delay_alert_sent
            and (baseline > 0 or status_flipped)
        ):
            event = self._resolved_event(route, current)
            state.delay_alert_sent = False
        elif newly_risky or (
            delay >= route.delay_alert_threshold_minutes
            and abs(delay - baseline) >= DELAY_DEBOUNCE_MINUTES
        ):
            event = self._delay_event(route, current, evaluation)
            state.delay_alert_sent = True
        elif status_flipped:
            event = self._status_cleared_event(
                route, current, evaluation, was_cancelled=state.has_cancellations
            )

        if event is not None:
            await self._emit(event)
        if event is not None or previous is None:
            state.last_observed_delay_minutes = delay
        state.has_cancellations = evaluation.has_cancellations
        state.missed_connection_risk = evaluation.missed_connection_risk

        if evaluation.has_cancellations or (
            evaluation.missed_connection_risk and delay > ALTERNATIVE_SEARCH_DELAY_MINUTES
        ):
            alternative = await self._finder.find_better(route, current, now)
            if alternative and alternative.itinerary.id != state.last_alternative_id:
                state.last_alternative_id = alternative.itinerary.id
                await self._emit(self._alternative_event(route, alternative))

    async def _emit(self, event: AlertEvent) -> None:
        try:
            await self._dispatcher.emit(event)
        except Exception as e:
            logger.error(f"Dispatching {event.kind.value} for route {event.route_id} failed: {e}")

    def _reminder_event(self, route: CommuteRoute, departure: datetime) -> AlertEvent:
        return AlertEvent(
            kind=AlertKind.DEPARTURE_REMINDER,
            route_id=route.id,
            user_id=route.user_id,
            title=f"{route.name} - Departure Alert",
            message=(
                f"Your trip departs at {departure:%H:%M}, "
                f"leave within {route.alert_lead_minutes} minutes."
            ),
            severity=Severity.MEDIUM,
        )

    def _delay_event(
        self, route: CommuteRoute, itinerary: Itinerary, evaluation: DelayEvaluation
    ) -> AlertEvent:
        delay = evaluation.total_delay_minutes
        departs = f"{itinerary.planned_departure:%H:%M}"
        if evaluation.has_cancellations:
            message = f"Part of your {departs} trip is cancelled."
        elif evaluation.missed_connection_risk:
            message = f"Your {departs} trip is {delay} min late and you may miss a connection."
        else:
            message = f"Your {departs} trip is running {delay} min late."

        if evaluation.has_cancellations or delay > HIGH_SEVERITY_DELAY_MINUTES:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return AlertEvent(
            kind=AlertKind.DELAY_DETECTED,
            route_id=route.id,
            user_id=route.user_id,
            title=f"{route.name} - Delay Alert",
            message=message,
            severity=severity,
        )

    def _status_cleared_event(
        self,
        route: CommuteRoute,
        itinerary: Itinerary,
        evaluation: DelayEvaluation,
        was_cancelled: bool,
    ) -> AlertEvent:
        delay = evaluation.total_delay_minutes
        departs = f"{itinerary.planned_departure:%H:%M}"
        if was_cancelled and not evaluation.has_cancellations:
            message = f"Your {departs} trip is running again, {delay} min late."
        else:
            message = f"Your {departs} trip is {delay} min late, your connection should still work."

        return AlertEvent(
            kind=AlertKind.DELAY_DETECTED,
            route_id=route.id,
            user_id=route.user_id,
            title=f"{route.name} - Delay Update",
            message=message,
            severity=Severity.MEDIUM if delay > HIGH_SEVERITY_DELAY_MINUTES else Severity.LOW,
        )

    def _resolved_event(self, route: CommuteRoute, itinerary: Itinerary) -> AlertEvent:
        return AlertEvent(
            kind=AlertKind.DELAY_RESOLVED,
            route_id=route.id,
            user_id=route.user_id,
            title=f"{route.name} - Back on Time",
            message=f"Your {itinerary.planned_departure:%H:%M} trip is running on schedule again.",
            severity=Severity.LOW,
        )

    def _alternative_event(self, route: CommuteRoute, alternative: Alternative) -> AlertEvent:
        itinerary = alternative.itinerary
        return AlertEvent(
            kind=AlertKind.ALTERNATIVE_AVAILABLE,
            route_id=route.id,
            user_id=route.user_id,
            title=f"{route.name} - Better Option",
            message=(
                f"The {itinerary.planned_departure:%H:%M} departure arrives "
                f"{itinerary.expected_arrival:%H:%M} and saves about "
                f"{alternative.time_saved_minutes} min."
            ),
            severity=Severity.MEDIUM,
        )

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            await self.tick()
            # Fixed-rate ticks; an overrunning tick restarts the schedule from now
            deadline = max(deadline + self._tick_seconds, loop.time())
            await asyncio.sleep(deadline - loop.time())

    async def run(self) -> None:
        """Load today's routes and tick until cancelled.

        Raises:
            RouteConfigError: The initial route load failed.
        """
        await self.load_routes()
        await self._loop()

    async def start(self) -> None:
        """Load today's routes and start ticking in a background task.

        Raises:
            RouteConfigError: The initial route load failed.
        """
        if self._task is not None:
            return
        await self.load_routes()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
