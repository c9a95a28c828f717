"""Tests for the MCP server, its tools and the CLI."""

import sqlite3
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from commute_watch import __version__
from commute_watch.data.database import init_db
from commute_watch.models.commute import AlertEvent, AlertKind, Severity, TimeMode
from commute_watch.server import health, main
from commute_watch.services.notifications import SQLiteNotificationDispatcher
from commute_watch.tools import alert_tools, trip_tools


def test_health_returns_ok_status():
    """Health check should return status ok."""
    response = health()
    assert response.status == "ok"


def test_health_returns_version():
    """Health check should return the current version."""
    response = health()
    assert response.version == __version__


def test_health_returns_timestamp():
    """Health check should return a valid ISO timestamp."""
    response = health()
    # Should be parseable as ISO format
    assert "T" in response.timestamp


@pytest.mark.asyncio
async def test_plan_trip_tool_clamps_limit_and_maps_mode():
    with patch.object(trip_tools, "_plan_trip", new=AsyncMock()) as plan:
        await trip_tools.plan_trip("Odenplan", "Slussen", time="08:30", arrive_by=True, limit=50)

    kwargs = plan.call_args.kwargs
    assert kwargs["limit"] == 5
    assert kwargs["mode"] == TimeMode.ARRIVE
    assert kwargs["time_str"] == "08:30"


def test_init_db_command(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "commute.db"
    monkeypatch.setattr(sys, "argv", ["commute-watch", "init-db", "--db", str(db_path)])

    main()

    assert db_path.exists()


def test_add_route_command(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "commute.db"
    monkeypatch.setattr(sys, "argv", ["commute-watch", "init-db", "--db", str(db_path)])
    main()

    monkeypatch.setattr(
        sys,
        "argv",
        [
            "commute-watch", "add-route", "--db", str(db_path),
            "--id", "r1", "--user", "u1", "--origin", "740000001",
            "--destination", "740000003", "--time", "07:40", "--weekdays", "1111100",
        ],
    )
    main()

    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(
            "SELECT id, preferred_time, active_weekdays FROM commute_routes"
        ).fetchall()
    assert rows == [("r1", "07:40", "1111100")]


def test_add_route_rejects_bad_time(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "commute-watch", "add-route", "--db", str(tmp_path / "commute.db"),
            "--id", "r1", "--user", "u1", "--origin", "1", "--destination", "2",
            "--time", "7.40",
        ],
    )

    with pytest.raises(SystemExit):
        main()


@pytest.mark.asyncio
async def test_recent_alerts_tool(tmp_path: Path):
    db_path = await init_db(tmp_path / "commute.db")
    dispatcher = SQLiteNotificationDispatcher(db_path)
    for kind in (AlertKind.DEPARTURE_REMINDER, AlertKind.DELAY_DETECTED):
        await dispatcher.emit(
            AlertEvent(
                kind=kind,
                route_id="r1",
                user_id="u1",
                title="Work",
                message="...",
                severity=Severity.MEDIUM,
            )
        )

    with patch.object(alert_tools, "get_db_path", return_value=db_path):
        response = await alert_tools.recent_alerts("u1", limit=1)

    assert response.count == 1
    assert response.alerts[0].kind == AlertKind.DELAY_DETECTED
    assert response.error is None


@pytest.mark.asyncio
async def test_recent_alerts_tool_without_database(tmp_path: Path):
    with patch.object(alert_tools, "get_db_path", return_value=tmp_path / "missing.db"):
        response = await alert_tools.recent_alerts("u1")

    assert response.count == 0
    assert "init-db" in response.error
