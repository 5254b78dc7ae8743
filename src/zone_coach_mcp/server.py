"""FastMCP server — exposes weekly zone tracking tools over MCP (stdio)."""

from __future__ import annotations

import os
from typing import Any

from fastmcp import FastMCP

from . import state as edits
from .auth import provider_from_env
from .models import ZONES, TrainingState
from .normalize import parse_date
from .store import SqliteStorage, StateStore, dump_session, dump_state, export_file, import_file
from .sync import SyncError, sync_window
from .weekly import format_duration, weekly_totals
from .zones import HeartRateStream, classify_zones

# ── Server setup ─────────────────────────────────────────────────────────────

mcp = FastMCP(
    "Zone Coach",
    instructions=(
        "Weekly heart-rate zone tracker.  Use weekly_summary for the selected "
        "week's zone, aerobic/anaerobic and activity totals, add_session / "
        "delete_session for manual entries, and sync_week to import the "
        "week's activities from the connected provider.  Unzoned time counts as Z1."
    ),
)


def _db_path() -> str:
    return os.environ.get("ZONE_COACH_DB", os.path.expanduser("~/.zone-coach/zone_coach.db"))


def _get_store() -> StateStore:
    path = _db_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return StateStore(SqliteStorage(path))


def _window(current: TrainingState, week_start: str | None):
    return parse_date(week_start, current.window_start) if week_start else current.window_start


# ── MCP Tools ────────────────────────────────────────────────────────────────


@mcp.tool
def weekly_summary(week_start: str | None = None) -> dict[str, Any]:
    """Zone totals (unzoned folded into Z1), aerobic (Z1+Z2), anaerobic (Z4+Z5),
    per-activity and per-day minutes for a 7-day window.

    *week_start* is YYYY-MM-DD; defaults to the selected week.
    """
    current = _get_store().load()
    totals = weekly_totals(current.sessions, _window(current, week_start))
    out = totals.to_dict()
    out["total_display"] = format_duration(totals.total_min)
    return out


@mcp.tool
def list_sessions(week_start: str | None = None) -> dict[str, Any]:
    """Sessions inside the window, oldest first."""
    current = _get_store().load()
    totals = weekly_totals(current.sessions, _window(current, week_start))
    sessions = [dump_session(s) for s in totals.sessions]
    for s in sessions:
        if s["id"] in totals.warnings:
            s["warning"] = totals.warnings[s["id"]]
    return {"window_start": totals.window_start.isoformat(), "sessions": sessions}


@mcp.tool
def add_session(
    date: str | None = None,
    activity_type: str = "Run",
    duration_min: float = 60,
    z1_min: float = 0,
    z2_min: float = 0,
    z3_min: float = 0,
    z4_min: float = 0,
    z5_min: float = 0,
    notes: str = "",
) -> dict[str, Any]:
    """Add a manual session.  Zone minutes may sum to less than the duration."""
    store = _get_store()
    raw = dict(
        activity_type=activity_type, duration_min=duration_min,
        z1_min=z1_min, z2_min=z2_min, z3_min=z3_min, z4_min=z4_min, z5_min=z5_min,
        notes=notes,
    )
    if date:
        raw["date"] = date
    new = edits.add_session(store.load(), raw)
    saved = store.save(new)
    return {"session": dump_session(new.sessions[0]), "saved": saved}


@mcp.tool
def delete_session(session_id: str) -> dict[str, Any]:
    """Delete a session by id."""
    store = _get_store()
    current = store.load()
    new = edits.delete_session(current, session_id)
    if len(new.sessions) == len(current.sessions):
        return {"error": f"No session with id {session_id}."}
    return {"deleted": session_id, "saved": store.save(new)}


@mcp.tool
def set_hr_zones(
    z2_low: float | None = None,
    z3_low: float | None = None,
    z4_low: float | None = None,
    z5_low: float | None = None,
) -> dict[str, Any]:
    """Set zone lower bounds in bpm.  Omitted bounds keep their current value."""
    store = _get_store()
    raw = {k: v for k, v in dict(z2_low=z2_low, z3_low=z3_low, z4_low=z4_low, z5_low=z5_low).items() if v is not None}
    new = edits.set_thresholds(store.load(), raw)
    saved = store.save(new)
    return {"zone_thresholds": dump_state(new)["zone_thresholds"], "saved": saved}


@mcp.tool
def set_week(week_start: str | None = None) -> dict[str, Any]:
    """Select the week to display and sync.  Omit for the current week."""
    store = _get_store()
    current = store.load()
    start = parse_date(week_start, current.window_start) if week_start else None
    new = edits.set_window(current, start)
    return {"window_start": new.window_start.isoformat(), "saved": store.save(new)}


@mcp.tool
def sync_week(week_start: str | None = None) -> dict[str, Any]:
    """Import the week's activities from the provider and compute their zones.

    Manual sessions and other weeks' imported sessions are left untouched.
    """
    store = _get_store()
    current = store.load()
    try:
        provider = provider_from_env()
        result = sync_window(provider, current, _window(current, week_start))
    except (RuntimeError, SyncError) as e:
        return {"error": str(e)}
    out = result.to_dict()
    out["saved"] = store.save(result.state)
    return out


@mcp.tool
def classify_stream(time: list[float], heartrate: list[float]) -> dict[str, Any]:
    """Minutes per zone for a raw (seconds, bpm) stream using the saved zones."""
    current = _get_store().load()
    result = classify_zones(HeartRateStream(time=time, heartrate=heartrate), current.thresholds)
    return {
        "has_data": result.has_data,
        "zone_min": dict(zip(ZONES, result.minutes)),
        "total_seconds": result.total_seconds,
    }


@mcp.tool
def export_data(path: str) -> dict[str, Any]:
    """Write the full saved state to a JSON file."""
    current = _get_store().load()
    try:
        written = export_file(current, path)
    except OSError as e:
        return {"error": str(e)}
    return {"path": str(written), "sessions": len(current.sessions)}


@mcp.tool
def import_data(path: str) -> dict[str, Any]:
    """Replace the saved state from an exported JSON file (bad fields keep current values)."""
    store = _get_store()
    new = import_file(path, store.load())
    return {
        "window_start": new.window_start.isoformat(),
        "sessions": len(new.sessions),
        "saved": store.save(new),
    }
