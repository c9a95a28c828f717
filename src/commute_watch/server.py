import argparse
import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from commute_watch.app import mcp
from commute_watch.data.config import get_settings
from commute_watch.data.database import init_db
from commute_watch.data.resrobot_client import ResRobotClient
from commute_watch.data.route_store import SQLiteCommuteRouteStore
from commute_watch.models.commute import CommuteRoute, TimeMode
from commute_watch.services.notifications import LoggingDispatcher, SQLiteNotificationDispatcher
from commute_watch.services.scheduler import MonitoringScheduler

# Register tools
from commute_watch.tools import alert_tools, station_tools, trip_tools  # noqa: F401

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    api_key_configured: bool


@mcp.tool()
def health() -> HealthResponse:
    """Check if the Commute Watch server is running and healthy.

    Returns the server status, version, current timestamp and whether an
    upstream API key is configured.
    """
    from commute_watch import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        api_key_configured=get_settings().api_key is not None,
    )


async def run_init_db(db_path: Path) -> None:
    path = await init_db(db_path)
    print(f"Database ready at {path}")


async def run_add_route(db_path: Path, route: CommuteRoute) -> None:
    await SQLiteCommuteRouteStore(db_path).save_route(route)
    print(f"Saved route {route.user_id}/{route.id}: {route.name}")


async def run_monitor(db_path: Path, log_only: bool) -> None:
    """Run the monitoring loop until interrupted."""
    settings = get_settings()
    if settings.api_key is None:
        logger.warning("RESROBOT_API_KEY is not set; trip searches will likely fail")

    store = SQLiteCommuteRouteStore(db_path)
    dispatcher = LoggingDispatcher() if log_only else SQLiteNotificationDispatcher(db_path)

    async with ResRobotClient(settings) as client:
        scheduler = MonitoringScheduler(store, client, dispatcher, settings=settings)
        await scheduler.run()


def _parse_weekdays(value: str) -> tuple[bool, ...]:
    if len(value) != 7 or set(value) - {"0", "1"}:
        raise argparse.ArgumentTypeError("weekdays must be seven 0/1 characters, Monday first")
    return tuple(char == "1" for char in value)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="commute-watch",
        description="Commute Watch MCP server and commute monitor",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    db_default = Path(get_settings().db_path)

    # init-db command
    init_parser = subparsers.add_parser("init-db", help="Create the commute database")
    init_parser.add_argument(
        "--db",
        type=Path,
        default=db_default,
        help="SQLite database path (default: data/commute.db or COMMUTE_DB_PATH env var)",
    )

    # add-route command
    route_parser = subparsers.add_parser("add-route", help="Save a commute route")
    route_parser.add_argument("--db", type=Path, default=db_default)
    route_parser.add_argument("--id", required=True, dest="route_id")
    route_parser.add_argument("--user", required=True, dest="user_id")
    route_parser.add_argument("--name", default="Commute")
    route_parser.add_argument("--origin", required=True, help="Origin stop id")
    route_parser.add_argument("--destination", required=True, help="Destination stop id")
    route_parser.add_argument("--time", required=True, help="Preferred time HH:MM")
    route_parser.add_argument("--arrive-by", action="store_true", help="--time is an arrival")
    route_parser.add_argument(
        "--weekdays", type=_parse_weekdays, default="1111100", help="e.g. 1111100 (Mon-Fri)"
    )
    route_parser.add_argument("--lead", type=int, default=15, help="Alert lead minutes")
    route_parser.add_argument(
        "--threshold", type=int, default=20, help="Delay alert threshold minutes"
    )

    # monitor command
    monitor_parser = subparsers.add_parser("monitor", help="Run the commute monitoring loop")
    monitor_parser.add_argument("--db", type=Path, default=db_default)
    monitor_parser.add_argument(
        "--log-only",
        action="store_true",
        help="Log alerts instead of storing them in the database",
    )

    args = parser.parse_args()

    if args.command is None:
        # Default: run MCP server
        mcp.run()
        return

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "init-db":
        asyncio.run(run_init_db(args.db))
    elif args.command == "add-route":
        try:
            route = CommuteRoute(
                id=args.route_id,
                user_id=args.user_id,
                name=args.name,
                origin_stop_id=args.origin,
                destination_stop_id=args.destination,
                preferred_time=args.time,
                time_mode=TimeMode.ARRIVE if args.arrive_by else TimeMode.DEPART,
                active_weekdays=args.weekdays,
                alert_lead_minutes=args.lead,
                delay_alert_threshold_minutes=args.threshold,
            )
        except ValidationError as e:
            parser.error(str(e))
        asyncio.run(run_add_route(args.db, route))
    elif args.command == "monitor":
        try:
            asyncio.run(run_monitor(args.db, args.log_only))
        except KeyboardInterrupt:
            logger.info("Monitoring stopped")


if __name__ == "__main__":
    main()
