"""SQLite-backed CommuteRouteStore."""

import logging
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from commute_watch.data.database import get_db
from commute_watch.errors import RouteConfigError
from commute_watch.models.commute import CommuteRoute, Weekday

logger = logging.getLogger(__name__)


def encode_weekdays(active_weekdays: tuple[bool, ...]) -> str:
    """Store weekdays as seven 0/1 characters, Monday first."""
    return "".join("1" if active else "0" for active in active_weekdays)


def decode_weekdays(value: str) -> tuple[bool, ...]:
    if len(value) != 7 or set(value) - {"0", "1"}:
        raise RouteConfigError(f"active_weekdays must be seven 0/1 characters, got {value!r}")
    return tuple(char == "1" for char in value)


def route_from_row(row: aiosqlite.Row) -> CommuteRoute:
    """Build a CommuteRoute from a commute_routes row.

    Raises:
        RouteConfigError: The row doesn't describe a valid route.
    """
    try:
        return CommuteRoute(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            origin_stop_id=row["origin_stop_id"],
            destination_stop_id=row["destination_stop_id"],
            preferred_time=row["preferred_time"],
            time_mode=row["time_mode"],
            active_weekdays=decode_weekdays(row["active_weekdays"]),
            notifications_enabled=bool(row["notifications_enabled"]),
            alert_lead_minutes=row["alert_lead_minutes"],
            delay_alert_threshold_minutes=row["delay_alert_threshold_minutes"],
        )
    except ValidationError as e:
        raise RouteConfigError(f"Invalid commute route {row['user_id']}/{row['id']}: {e}") from e


class SQLiteCommuteRouteStore:
    """Reads (and saves) commute routes in the commute_routes table."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    async def active_routes_for_weekday(self, weekday: Weekday) -> list[CommuteRoute]:
        """Routes active on a weekday.

        Raises:
            RouteConfigError: A stored route is invalid.
        """
        sql = "SELECT * FROM commute_routes WHERE substr(active_weekdays, ?, 1) = '1'"
        async with get_db(self._db_path) as db:
            async with db.execute(sql, (int(weekday) + 1,)) as cursor:
                rows = await cursor.fetchall()

        routes = [route_from_row(row) for row in rows]
        logger.debug(f"{len(routes)} routes active on {weekday.name.title()}")
        return routes

    async def save_route(self, route: CommuteRoute) -> None:
        """Insert or replace a route."""
        sql = """
            INSERT OR REPLACE INTO commute_routes (
                id, user_id, name, origin_stop_id, destination_stop_id, preferred_time,
                time_mode, active_weekdays, notifications_enabled, alert_lead_minutes,
                delay_alert_threshold_minutes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        async with get_db(self._db_path) as db:
            await db.execute(
                sql,
                (
                    route.id,
                    route.user_id,
                    route.name,
                    route.origin_stop_id,
                    route.destination_stop_id,
                    route.preferred_time,
                    route.time_mode.value,
                    encode_weekdays(route.active_weekdays),
                    int(route.notifications_enabled),
                    route.alert_lead_minutes,
                    route.delay_alert_threshold_minutes,
                ),
            )
            await db.commit()
