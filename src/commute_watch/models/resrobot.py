"""Pydantic models for ResRobot v2.1 responses.

These models represent the subset of fields we actually use. Everything is
optional at this level; the synthesizer decides what is required.
ResRobot emits a bare object where a list has one element, so list fields
accept either shape.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_list(value: Any) -> Any:
    """Wrap a single object in a list; leave lists and None alone."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


class RawStop(BaseModel):
    """Origin or Destination of a leg."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    ext_id: str | None = Field(default=None, alias="extId")
    lat: float | None = None
    lon: float | None = None
    date: str | None = None  # YYYY-MM-DD, planned
    time: str | None = None  # HH:MM:SS, planned
    rt_date: str | None = Field(default=None, alias="rtDate")
    rt_time: str | None = Field(default=None, alias="rtTime")
    track: str | None = None
    rt_track: str | None = Field(default=None, alias="rtTrack")
    cancelled: bool = False

    @field_validator("ext_id", mode="before")
    @classmethod
    def _ext_id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class RawProduct(BaseModel):
    """Vehicle/line metadata of a journey leg."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    num: str | None = None
    line: str | None = None
    display_number: str | None = Field(default=None, alias="displayNumber")
    cat_code: str | None = Field(default=None, alias="catCode")
    cat_out: str | None = Field(default=None, alias="catOut")
    operator: str | None = None

    @field_validator("cat_code", "num", "line", mode="before")
    @classmethod
    def _number_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class RawLeg(BaseModel):
    """One leg of a trip. `type` is JNY (ride), WALK or TRSF (transfer)."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    origin: RawStop | None = Field(default=None, alias="Origin")
    destination: RawStop | None = Field(default=None, alias="Destination")
    products: list[RawProduct] = Field(default_factory=list, alias="Product")
    cancelled: bool = False
    duration: str | None = None  # ISO-8601 duration, e.g. PT5M
    dist: int | None = None
    direction: str | None = None
    name: str | None = None

    @field_validator("products", mode="before")
    @classmethod
    def _products_as_list(cls, value: Any) -> Any:
        return _as_list(value)


class RawLegList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    legs: list[RawLeg] = Field(default_factory=list, alias="Leg")

    @field_validator("legs", mode="before")
    @classmethod
    def _legs_as_list(cls, value: Any) -> Any:
        return _as_list(value)


class RawTrip(BaseModel):
    """One trip suggestion from the trip endpoint."""

    model_config = ConfigDict(extra="ignore")

    leg_list: RawLegList | None = Field(default=None, alias="LegList")
    trip_id: str | None = Field(default=None, alias="tripId")
    duration: str | None = None

    @property
    def legs(self) -> list[RawLeg]:
        return self.leg_list.legs if self.leg_list else []


class TripResponse(BaseModel):
    """Top-level response from the trip endpoint."""

    model_config = ConfigDict(extra="ignore")

    trips: list[RawTrip] = Field(default_factory=list, alias="Trip")
    error_code: str | None = Field(default=None, alias="errorCode")
    error_text: str | None = Field(default=None, alias="errorText")

    @field_validator("trips", mode="before")
    @classmethod
    def _trips_as_list(cls, value: Any) -> Any:
        return _as_list(value)


class RawStopLocation(BaseModel):
    """A stop location from the location.name endpoint."""

    model_config = ConfigDict(extra="ignore")

    ext_id: str = Field(alias="extId")
    name: str
    lat: float | None = None
    lon: float | None = None
    products: int = 0  # bitmask, bit (catCode - 1) set per served category

    @field_validator("ext_id", mode="before")
    @classmethod
    def _ext_id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class RawLocationEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stop_location: RawStopLocation | None = Field(default=None, alias="StopLocation")


class LocationResponse(BaseModel):
    """Top-level response from the location.name endpoint."""

    model_config = ConfigDict(extra="ignore")

    entries: list[RawLocationEntry] = Field(
        default_factory=list, alias="stopLocationOrCoordLocation"
    )
    error_code: str | None = Field(default=None, alias="errorCode")
    error_text: str | None = Field(default=None, alias="errorText")

    @field_validator("entries", mode="before")
    @classmethod
    def _entries_as_list(cls, value: Any) -> Any:
        return _as_list(value)
