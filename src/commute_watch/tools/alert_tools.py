from commute_watch.app import mcp
from commute_watch.data.database import get_db_path
from commute_watch.models.responses import RecentAlertsResponse
from commute_watch.services.notifications import SQLiteNotificationDispatcher


@mcp.tool()
async def recent_alerts(user_id: str, limit: int = 10) -> RecentAlertsResponse:
    """Get the latest commute alerts stored by the monitor for a user.

    Alerts are written by `commute-watch monitor` and include departure
    reminders, delay and cancellation alerts, back-on-time notices and
    better-option suggestions.

    Args:
        user_id: The user whose alerts to list.
        limit: Maximum number of alerts to return (1-50, default: 10).

    Returns:
        RecentAlertsResponse with alerts newest first. error is set when the
        notification database has not been created yet.
    """
    limit = max(1, min(50, limit))

    dispatcher = SQLiteNotificationDispatcher(get_db_path())
    try:
        alerts = await dispatcher.recent_for_user(user_id, limit=limit)
    except FileNotFoundError as e:
        return RecentAlertsResponse(user_id=user_id, count=0, error=str(e))

    return RecentAlertsResponse(user_id=user_id, alerts=alerts, count=len(alerts))
