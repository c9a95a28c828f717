"""NotificationDispatcher implementations."""

import logging
from pathlib import Path

from commute_watch.data.database import get_db
from commute_watch.models.commute import AlertEvent, AlertKind, Severity

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.INFO,
    Severity.HIGH: logging.WARNING,
}


class LoggingDispatcher:
    """Writes alerts to the log. Used when no database is configured."""

    async def emit(self, event: AlertEvent) -> None:
        logger.log(
            LOG_LEVELS[event.severity],
            f"[{event.user_id}/{event.route_id}] {event.title}: {event.message}",
        )


class SQLiteNotificationDispatcher:
    """Stores alerts in the user_notifications table for delivery elsewhere."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path

    async def emit(self, event: AlertEvent) -> None:
        sql = """
            INSERT INTO user_notifications (
                user_id, route_id, kind, title, message, severity, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """
        async with get_db(self._db_path) as db:
            await db.execute(
                sql,
                (
                    event.user_id,
                    event.route_id,
                    event.kind.value,
                    event.title,
                    event.message,
                    event.severity.value,
                    event.created_at.isoformat(),
                ),
            )
            await db.commit()
        logger.debug(f"Stored {event.kind.value} notification for {event.user_id}")

    async def recent_for_user(self, user_id: str, limit: int = 20) -> list[AlertEvent]:
        """Most recent stored alerts for a user, newest first."""
        sql = """
            SELECT * FROM user_notifications
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        """
        async with get_db(self._db_path) as db:
            async with db.execute(sql, (user_id, limit)) as cursor:
                rows = await cursor.fetchall()

        return [
            AlertEvent(
                kind=AlertKind(row["kind"]),
                route_id=row["route_id"],
                user_id=row["user_id"],
                title=row["title"],
                message=row["message"],
                severity=Severity(row["severity"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]
