from pydantic import BaseModel, Field

from commute_watch.models.commute import AlertEvent
from commute_watch.models.transit import DelayEvaluation, Itinerary, StopArea
from commute_watch.services.compensation import CompensationEligibility


class ResolveStationResponse(BaseModel):
    query: str
    stations: list[StopArea]
    best_match: StopArea | None = Field(default=None, description="First ranked station")
    count: int = Field(description="Number of stations returned")
    is_fallback: bool = Field(
        default=False, description="True when upstream failed and a curated set was searched"
    )


class StationResolutionInfo(BaseModel):
    """How a station query was resolved."""

    query: str = Field(description="Original user query")
    resolved_station_id: str | None = None
    resolved_station_name: str | None = None
    category: str | None = Field(default=None, description="rail, metro, bus_terminal, ...")
    is_fallback: bool = False
    resolved: bool
    error: str | None = None


class PlannedItinerary(BaseModel):
    """An itinerary with its delay evaluation and compensation check."""

    itinerary: Itinerary
    evaluation: DelayEvaluation
    compensation: CompensationEligibility
    num_transfers: int = Field(description="Number of transit legs minus one")


class PlanTripResponse(BaseModel):
    """Response from plan_trip tool."""

    # Resolution status
    origin_resolution: StationResolutionInfo
    destination_resolution: StationResolutionInfo

    # Results
    itineraries: list[PlannedItinerary] = Field(default_factory=list)

    # Time context
    query_time: str = Field(description="Requested time, YYYY-MM-DD HH:MM local")
    time_mode: str = Field(description="depart or arrive")

    # Status
    count: int
    success: bool
    error: str | None = None


class RecentAlertsResponse(BaseModel):
    """Response from recent_alerts tool."""

    user_id: str
    alerts: list[AlertEvent] = Field(default_factory=list, description="Newest first")
    count: int
    error: str | None = None
