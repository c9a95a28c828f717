"""Tests for model validation."""

import pytest
from pydantic import ValidationError

from commute_watch.models.commute import CommuteRoute, TimeMode, Weekday
from commute_watch.models.resrobot import LocationResponse, TripResponse

WEEKDAYS = (True, True, True, True, True, False, False)


def _route(**overrides) -> CommuteRoute:
    fields = {
        "id": "r1",
        "user_id": "u1",
        "origin_stop_id": "740000001",
        "destination_stop_id": "740000003",
        "preferred_time": "08:00",
        "active_weekdays": WEEKDAYS,
    }
    fields.update(overrides)
    return CommuteRoute(**fields)


class TestCommuteRoute:
    def test_defaults(self) -> None:
        route = _route()
        assert route.time_mode == TimeMode.DEPART
        assert route.alert_lead_minutes == 15
        assert route.delay_alert_threshold_minutes == 20
        assert route.notifications_enabled is True
        assert route.key == ("u1", "r1")

    def test_preferred_clock_time(self) -> None:
        route = _route(preferred_time="07:05")
        assert route.preferred_clock_time.hour == 7
        assert route.preferred_clock_time.minute == 5

    @pytest.mark.parametrize("value", ["8:00", "24:00", "08:60", "0800", ""])
    def test_rejects_malformed_time(self, value) -> None:
        with pytest.raises(ValidationError):
            _route(preferred_time=value)

    def test_rejects_wrong_weekday_count(self) -> None:
        with pytest.raises(ValidationError):
            _route(active_weekdays=(True,) * 6)

    def test_rejects_negative_minutes(self) -> None:
        with pytest.raises(ValidationError):
            _route(alert_lead_minutes=-1)
        with pytest.raises(ValidationError):
            _route(delay_alert_threshold_minutes=-5)

    def test_is_active_on(self) -> None:
        route = _route()
        assert route.is_active_on(Weekday.MONDAY)
        assert not route.is_active_on(Weekday.SUNDAY)

    def test_is_immutable(self) -> None:
        route = _route()
        with pytest.raises(ValidationError):
            route.name = "Other"


class TestResRobotShapes:
    def test_single_objects_become_lists(self) -> None:
        """ResRobot sends a bare object when a list has one element."""
        data = TripResponse.model_validate(
            {
                "Trip": {
                    "LegList": {
                        "Leg": {
                            "type": "JNY",
                            "Origin": {"name": "A", "extId": 1},
                            "Destination": {"name": "B", "extId": 2},
                            "Product": {"num": 17, "catCode": 5},
                        }
                    }
                }
            }
        )

        assert len(data.trips) == 1
        leg = data.trips[0].legs[0]
        assert leg.origin.ext_id == "1"
        assert leg.products[0].num == "17"
        assert leg.products[0].cat_code == "5"

    def test_error_fields(self) -> None:
        data = TripResponse.model_validate({"errorCode": "SVC_NO_RESULT", "errorText": "none"})
        assert data.trips == []
        assert data.error_code == "SVC_NO_RESULT"

    def test_location_entries(self) -> None:
        data = LocationResponse.model_validate(
            {
                "stopLocationOrCoordLocation": [
                    {"StopLocation": {"extId": "740021665", "name": "Odenplan", "products": 16}},
                    {"CoordLocation": {"name": "Somewhere"}},
                ]
            }
        )
        assert len(data.entries) == 2
        assert data.entries[0].stop_location.ext_id == "740021665"
        assert data.entries[1].stop_location is None
