"""Commute routes, per-route monitoring state and alert events."""

import re
from datetime import UTC, datetime, time
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

PREFERRED_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class TimeMode(str, Enum):
    """Whether the preferred time is a departure or an arrival target."""

    DEPART = "depart"
    ARRIVE = "arrive"


class Weekday(IntEnum):
    """Day of week, numbered like date.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class CommuteRoute(BaseModel):
    """A user's saved recurring commute.

    Read-only from the monitoring core's point of view.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str = "Commute"
    origin_stop_id: str = Field(min_length=1)
    destination_stop_id: str = Field(min_length=1)
    preferred_time: str = Field(description="HH:MM in the network's local time")
    time_mode: TimeMode = TimeMode.DEPART
    active_weekdays: tuple[bool, bool, bool, bool, bool, bool, bool] = Field(
        description="Monday first"
    )
    notifications_enabled: bool = True
    alert_lead_minutes: int = Field(default=15, ge=0, le=24 * 60)
    delay_alert_threshold_minutes: int = Field(default=20, ge=0)

    @field_validator("preferred_time")
    @classmethod
    def _check_preferred_time(cls, value: str) -> str:
        if not PREFERRED_TIME_PATTERN.match(value):
            raise ValueError(f"preferred_time must be HH:MM, got {value!r}")
        return value

    @property
    def preferred_clock_time(self) -> time:
        hours, minutes = self.preferred_time.split(":")
        return time(int(hours), int(minutes))

    @property
    def key(self) -> tuple[str, str]:
        """Monitoring key (user_id, route_id)."""
        return (self.user_id, self.id)

    def is_active_on(self, weekday: Weekday) -> bool:
        return self.active_weekdays[weekday]


class MonitoringState(BaseModel):
    """Ephemeral per-route state for one day's alert window. Never persisted."""

    is_alert_window_open: bool = False
    alert_fire_time: datetime
    scheduled_departure: datetime
    last_observed_delay_minutes: int | None = None
    last_checked_at: datetime | None = None

    has_cancellations: bool = False
    missed_connection_risk: bool = False
    delay_alert_sent: bool = False
    last_alternative_id: str | None = None


class AlertKind(str, Enum):
    DEPARTURE_REMINDER = "departure_reminder"
    DELAY_DETECTED = "delay_detected"
    DELAY_RESOLVED = "delay_resolved"
    ALTERNATIVE_AVAILABLE = "alternative_available"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertEvent(BaseModel):
    """Structured alert handed to a NotificationDispatcher."""

    kind: AlertKind
    route_id: str
    user_id: str
    title: str
    message: str
    severity: Severity
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
