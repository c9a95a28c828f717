"""Canonical journey model: stations, lines, legs and itineraries.

Every itinerary handed to the rest of the system is built from these types,
whatever the upstream source looked like. All datetimes are timezone-aware.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class StationCategory(str, Enum):
    """Kind of stop area, used for ranking search results.

    RAIL, METRO and BUS_TERMINAL are ranked explicitly; the rest sort after them.
    """

    RAIL = "rail"
    METRO = "metro"
    BUS_TERMINAL = "bus_terminal"
    TRAM = "tram"
    FERRY = "ferry"
    OTHER = "other"


class TransportMode(str, Enum):
    """Mode of a transit line."""

    METRO = "metro"
    BUS = "bus"
    TRAIN = "train"
    TRAM = "tram"
    FERRY = "ferry"


class StopArea(BaseModel):
    """A station or stop area from the upstream source."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    latitude: float | None = None
    longitude: float | None = None
    category: StationCategory = StationCategory.OTHER


class Line(BaseModel):
    """A transit line, classified from provider metadata."""

    model_config = ConfigDict(frozen=True)

    id: str
    number: str
    mode: TransportMode
    display_name: str
    color: str
    classification_confident: bool = Field(
        default=True,
        description="False when the mode was guessed from the line name instead of a category code",
    )


class StopRef(BaseModel):
    """A leg endpoint."""

    model_config = ConfigDict(frozen=True)

    stop_id: str
    name: str


class TransitLeg(BaseModel):
    """A ride on a transit line."""

    kind: Literal["transit"] = "transit"
    line: Line
    from_stop: StopRef
    to_stop: StopRef
    direction: str | None = None
    planned_departure: datetime
    planned_arrival: datetime
    expected_departure: datetime
    expected_arrival: datetime
    platform: str | None = None
    cancelled: bool = False
    has_live_data: bool = Field(
        default=False,
        description="False when expected times were copied from the timetable",
    )

    @property
    def departure_delay_minutes(self) -> int:
        return round((self.expected_departure - self.planned_departure).total_seconds() / 60)

    @property
    def arrival_delay_minutes(self) -> int:
        return round((self.expected_arrival - self.planned_arrival).total_seconds() / 60)


class WalkLeg(BaseModel):
    """A walk between two stops (including transfers inside one station)."""

    kind: Literal["walk"] = "walk"
    from_stop: StopRef
    to_stop: StopRef
    duration_minutes: int = Field(ge=1)
    distance_meters: int | None = None
    synthetic: bool = Field(
        default=False,
        description="True for transfer walks derived from a provider change-of-stop record",
    )


Leg = Annotated[TransitLeg | WalkLeg, Field(discriminator="kind")]


class Itinerary(BaseModel):
    """One complete journey from origin to destination."""

    id: str
    legs: list[Leg]
    planned_departure: datetime
    planned_arrival: datetime
    expected_departure: datetime
    expected_arrival: datetime
    delay_minutes: int = Field(description="Arrival delay; negative when running early")

    @property
    def transit_legs(self) -> list[TransitLeg]:
        return [leg for leg in self.legs if isinstance(leg, TransitLeg)]

    @property
    def duration_minutes(self) -> int:
        return round((self.planned_arrival - self.planned_departure).total_seconds() / 60)


class DelayEvaluation(BaseModel):
    """Aggregate delay signals derived from one itinerary."""

    total_delay_minutes: int
    has_cancellations: bool
    missed_connection_risk: bool


class Alternative(BaseModel):
    """A better itinerary than the one currently being monitored."""

    itinerary: Itinerary
    total_time_difference_minutes: int
    time_saved_minutes: int


class StationResolution(BaseModel):
    """Ranked stations for a free-text query."""

    query: str
    stations: list[StopArea]
    is_fallback: bool = Field(
        default=False,
        description="True when upstream failed and results come from the curated offline set",
    )
