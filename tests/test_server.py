"""Tests for the MCP tools and CLI entrypoints against a temporary database."""

import json
import sys

import pytest

from zone_coach_mcp import cli, server
from zone_coach_mcp.providers import ProviderError
from zone_coach_mcp.zones import HeartRateStream

from conftest import FakeProvider, make_activity


@pytest.fixture
def db(tmp_path, monkeypatch):
    path = str(tmp_path / "zone_coach.db")
    monkeypatch.setenv("ZONE_COACH_DB", path)
    server.set_week.fn(week_start="2026-10-12")
    return path


def test_add_and_summarize(db):
    added = server.add_session.fn(date="2026-10-13", activity_type="run", duration_min=90, z2_min=60)
    server.add_session.fn(date="2026-10-20", activity_type="swim", duration_min=30)

    assert added["saved"] is True
    assert added["session"]["source"] == "manual"

    summary = server.weekly_summary.fn()
    assert summary["window_start"] == "2026-10-12"
    assert summary["zone_min"]["Z1"] == 30
    assert summary["zone_min"]["Z2"] == 60
    assert summary["aerobic_min"] == 90
    assert summary["activity_min"]["Run"] == 90
    assert summary["activity_min"]["Swim"] == 0
    assert summary["total_display"] == "1h 30m"

    listed = server.list_sessions.fn()["sessions"]
    assert len(listed) == 1
    assert listed[0]["warning"] == "Some time is unzoned (counts as Z1)"

    next_week = server.weekly_summary.fn(week_start="2026-10-19")
    assert next_week["activity_min"]["Swim"] == 30


def test_delete_session_tool(db):
    sid = server.add_session.fn(duration_min=20)["session"]["id"]

    assert server.delete_session.fn(session_id=sid)["deleted"] == sid
    assert "error" in server.delete_session.fn(session_id=sid)


def test_set_zones_and_classify(db):
    zones = server.set_hr_zones.fn(z5_low=185)["zone_thresholds"]
    assert zones == {"z2_low": 130, "z3_low": 150, "z4_low": 165, "z5_low": 185}

    result = server.classify_stream.fn(time=[0, 60, 120], heartrate=[100, 182, 190])
    assert result["zone_min"] == {"Z1": 0, "Z2": 0, "Z3": 0, "Z4": 1, "Z5": 1}
    assert result["has_data"] is True

    assert server.classify_stream.fn(time=[0], heartrate=[100])["has_data"] is False


def test_sync_week_tool(db, monkeypatch):
    provider = FakeProvider(
        activities=[make_activity("7")],
        streams={"7": HeartRateStream(time=[0, 1800], heartrate=[150, 150])},
    )
    monkeypatch.setattr(server, "provider_from_env", lambda: provider)
    server.add_session.fn(date="2026-10-14", duration_min=45)

    out = server.sync_week.fn()

    assert out["synced"] == 1
    assert out["zoned"] == 1
    assert out["saved"] is True
    sessions = server.list_sessions.fn()["sessions"]
    assert {s["source"] for s in sessions} == {"manual", "external"}
    assert server.weekly_summary.fn()["zone_min"]["Z3"] == 30


def test_sync_week_failure_leaves_state(db, monkeypatch):
    server.add_session.fn(duration_min=45)
    provider = FakeProvider(list_error=ProviderError("down"))
    monkeypatch.setattr(server, "provider_from_env", lambda: provider)

    out = server.sync_week.fn()

    assert "down" in out["error"]
    assert len(server.list_sessions.fn()["sessions"]) == 1


def test_export_import_tools(db, tmp_path):
    server.add_session.fn(duration_min=45, notes="easy")
    path = str(tmp_path / "export.json")

    assert server.export_data.fn(path=path)["sessions"] == 1

    doc = json.loads(open(path).read())
    doc["sessions"].append({"date": "2026-10-15", "type": "Bike", "durationMin": 50})
    with open(path, "w") as f:
        json.dump(doc, f)

    assert server.import_data.fn(path=path)["sessions"] == 2
    assert server.weekly_summary.fn()["activity_min"]["Bike"] == 50


# ── CLI ──────────────────────────────────────────────────────────────────────


def test_cli_add_zones_and_summary(db, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["zone-coach-add", "--db", db, "--date", "2026-10-12",
                                      "--type", "bike", "--duration", "75", "--z2", "60"])
    cli.cmd_add()
    added = json.loads(capsys.readouterr().out)
    assert added["activity_type"] == "Bike"

    monkeypatch.setattr(sys, "argv", ["zone-coach-zones", "--db", db, "--z2", "125"])
    cli.cmd_zones()
    assert "Z1: < 125" in capsys.readouterr().out

    monkeypatch.setattr(sys, "argv", ["zone-coach-summary", "--db", db])
    cli.cmd_summary()
    out = capsys.readouterr().out
    assert "=== Week of 2026-10-12 (total 1h 15m) ===" in out
    assert "Z1: 15m" in out
    assert "Bike: 1h 15m (100%)" in out


def test_cli_sync_without_token_exits(db, monkeypatch, capsys):
    monkeypatch.delenv("STRAVA_ACCESS_TOKEN", raising=False)
    monkeypatch.setattr(sys, "argv", ["zone-coach-sync", "--db", db, "--provider", "strava"])

    with pytest.raises(SystemExit) as exc:
        cli.cmd_sync()

    assert exc.value.code == 1
    assert "STRAVA_ACCESS_TOKEN" in capsys.readouterr().err


def test_cli_delete_unknown_id_exits(db, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["zone-coach-delete", "--db", db, "missing"])

    with pytest.raises(SystemExit):
        cli.cmd_delete()
