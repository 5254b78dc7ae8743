"""CLI entrypoints for zone-coach-mcp.

  zone-coach-sync      — import a week of activities from Strava or Garmin
  zone-coach-summary   — print the week's zone / activity / per-day totals
  zone-coach-add       — add a manual session
  zone-coach-delete    — delete a session by id
  zone-coach-zones     — show or set heart-rate zone bounds
  zone-coach-export    — write the saved state to a JSON file
  zone-coach-import    — load the saved state from a JSON file
  zone-coach-mcp       — start the MCP server (stdio)
"""

from __future__ import annotations

import argparse
import json
import os
import signal
import sys

DEFAULT_DB = os.path.expanduser("~/.zone-coach/zone_coach.db")


def _add_db_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db", default=os.environ.get("ZONE_COACH_DB", DEFAULT_DB),
        help=f"Path to SQLite database (default: {DEFAULT_DB})",
    )


def _store(db_path: str):
    from .store import SqliteStorage, StateStore

    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    return StateStore(SqliteStorage(db_path))


def _parse_week(value: str | None):
    if not value:
        return None
    from datetime import date

    try:
        return date.fromisoformat(value)
    except ValueError:
        print(f"Error: --week must be YYYY-MM-DD, got {value!r}", file=sys.stderr)
        sys.exit(1)


# ── zone-coach-sync ──────────────────────────────────────────────────────────


def cmd_sync():
    """Sync one week of provider activities into the local store."""
    parser = argparse.ArgumentParser(
        prog="zone-coach-sync",
        description="Import a week of activities and compute their HR zones.",
    )
    parser.add_argument("--week", help="Week start YYYY-MM-DD (default: selected week)")
    parser.add_argument(
        "--provider", choices=["strava", "garmin"],
        help="Activity provider (default: $ZONE_COACH_PROVIDER or strava)",
    )
    parser.add_argument("--access-token", help="Strava access token (or set STRAVA_ACCESS_TOKEN)")
    parser.add_argument("--token-dir", help="Garmin token directory (or set GARMIN_TOKEN_DIR)")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .auth import provider_from_env
    from .sync import CancelToken, SyncCancelled, SyncError, sync_window

    try:
        provider = provider_from_env(args.provider, args.token_dir, args.access_token)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    store = _store(args.db)
    current = store.load()

    # Ctrl-C stops between stream fetches and discards the batch
    cancel = CancelToken()
    signal.signal(signal.SIGINT, lambda *_: cancel.cancel())

    week = _parse_week(args.week) or current.window_start
    print(f"Syncing {provider.name} activities for week of {week} ...", file=sys.stderr)
    try:
        result = sync_window(provider, current, week, cancel=cancel)
    except SyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except SyncCancelled:
        print("Sync cancelled; nothing was saved.", file=sys.stderr)
        sys.exit(130)

    out = result.to_dict()
    if not store.save(result.state):
        out["saved"] = False
    print(json.dumps(out, indent=2))

    if out.get("warnings"):
        print(f"\n{len(out['warnings'])} activity stream(s) failed — zones left at 0.", file=sys.stderr)


# ── zone-coach-summary ───────────────────────────────────────────────────────


def cmd_summary():
    """Print a human-readable weekly summary (local store only, no sync)."""
    parser = argparse.ArgumentParser(
        prog="zone-coach-summary",
        description="Print HR zone, aerobic/anaerobic and activity totals for a week.",
    )
    parser.add_argument("--week", help="Week start YYYY-MM-DD (default: selected week)")
    _add_db_arg(parser)
    args = parser.parse_args()

    _parse_week(args.week)
    _print_summary(args.db, args.week)


def _print_summary(db_path: str, week: str | None):
    os.environ["ZONE_COACH_DB"] = db_path

    from .server import list_sessions, weekly_summary
    from .weekly import format_duration, percent

    ws = weekly_summary.fn(week_start=week)
    total = ws["total_min"]
    print(f"=== Week of {ws['window_start']} (total {format_duration(total)}) ===\n")

    zone_total = sum(ws["zone_min"].values())
    print("Zones (unzoned counts as Z1):")
    for zone, minutes in ws["zone_min"].items():
        print(f"  {zone}: {format_duration(minutes)} ({percent(minutes, zone_total):.0f}%)")
    print(f"  Aerobic (Z1+Z2): {format_duration(ws['aerobic_min'])}")
    print(f"  Anaerobic (Z4+Z5): {format_duration(ws['anaerobic_min'])}")
    print()

    print("By activity:")
    for kind, minutes in ws["activity_min"].items():
        if minutes > 0:
            print(f"  {kind}: {format_duration(minutes)} ({percent(minutes, total):.0f}%)")
    print()

    print("By day:")
    for d in ws["daily_min"]:
        print(f"  {d['date']}: {format_duration(d['minutes'])}")
    print()

    sessions = list_sessions.fn(week_start=week)["sessions"]
    if sessions:
        print("Sessions:")
        for s in sessions:
            zones = "/".join(f"{s[f'z{i}_min']:g}" for i in range(1, 6))
            line = f"  {s['date']} {s['activity_type']} {format_duration(s['duration_min'])} [{zones}] ({s['source']}) id={s['id']}"
            if s.get("notes"):
                line += f" — {s['notes']}"
            if s.get("warning"):
                line += f"  ! {s['warning']}"
            print(line)


# ── zone-coach-add ───────────────────────────────────────────────────────────


def cmd_add():
    """Add a manual session."""
    parser = argparse.ArgumentParser(
        prog="zone-coach-add",
        description="Add a manually entered session.",
    )
    parser.add_argument("--date", help="Session date YYYY-MM-DD (default: selected week start)")
    parser.add_argument("--type", default="Run", help="Run, Lift, Swim, Bike or Cardio (default: Run)")
    parser.add_argument("--duration", type=float, default=60, help="Duration in minutes (default: 60)")
    for i in range(1, 6):
        parser.add_argument(f"--z{i}", type=float, default=0, help=f"Minutes in zone {i}")
    parser.add_argument("--notes", default="")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .state import add_session
    from .store import dump_session

    store = _store(args.db)
    raw = {
        "activity_type": args.type,
        "duration_min": args.duration,
        "notes": args.notes,
        **{f"z{i}_min": getattr(args, f"z{i}") for i in range(1, 6)},
    }
    if args.date:
        raw["date"] = args.date
    new = add_session(store.load(), raw)
    store.save(new)
    print(json.dumps(dump_session(new.sessions[0]), indent=2))


# ── zone-coach-delete ────────────────────────────────────────────────────────


def cmd_delete():
    """Delete a session by id."""
    parser = argparse.ArgumentParser(prog="zone-coach-delete", description="Delete a session.")
    parser.add_argument("session_id")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .state import delete_session

    store = _store(args.db)
    current = store.load()
    new = delete_session(current, args.session_id)
    if len(new.sessions) == len(current.sessions):
        print(f"Error: no session with id {args.session_id}", file=sys.stderr)
        sys.exit(1)
    store.save(new)
    print(f"Deleted {args.session_id}")


# ── zone-coach-zones ─────────────────────────────────────────────────────────


def cmd_zones():
    """Show or update heart-rate zone lower bounds."""
    parser = argparse.ArgumentParser(
        prog="zone-coach-zones",
        description="Show or set HR zone lower bounds (bpm). Z1 is everything below Z2.",
    )
    for i in range(2, 6):
        parser.add_argument(f"--z{i}", type=float, help=f"Zone {i} lower bound")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .state import set_thresholds

    store = _store(args.db)
    current = store.load()
    raw = {f"z{i}_low": getattr(args, f"z{i}") for i in range(2, 6) if getattr(args, f"z{i}") is not None}
    if raw:
        current = set_thresholds(current, raw)
        store.save(current)

    t = current.thresholds
    print(f"Z1: < {t.z2_low:g}")
    print(f"Z2: {t.z2_low:g} - {t.z3_low:g}")
    print(f"Z3: {t.z3_low:g} - {t.z4_low:g}")
    print(f"Z4: {t.z4_low:g} - {t.z5_low:g}")
    print(f"Z5: >= {t.z5_low:g}")


# ── zone-coach-export / zone-coach-import ────────────────────────────────────


def cmd_export():
    """Export the saved state to JSON."""
    parser = argparse.ArgumentParser(prog="zone-coach-export", description="Export all data to JSON.")
    parser.add_argument("path", nargs="?", help="Output file (default: weekly-training-<week>.json)")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .store import export_file, export_filename

    current = _store(args.db).load()
    try:
        written = export_file(current, args.path or export_filename(current))
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Exported {len(current.sessions)} sessions to {written}")


def cmd_import():
    """Import a JSON export, replacing the saved state."""
    parser = argparse.ArgumentParser(prog="zone-coach-import", description="Import data from a JSON export.")
    parser.add_argument("path")
    _add_db_arg(parser)
    args = parser.parse_args()

    from .store import import_file

    store = _store(args.db)
    new = import_file(args.path, store.load())
    store.save(new)
    print(f"Loaded {len(new.sessions)} sessions (week of {new.window_start})")


# ── zone-coach-mcp ───────────────────────────────────────────────────────────


def cmd_server():
    """Start the Zone Coach MCP server (stdio transport)."""
    parser = argparse.ArgumentParser(
        prog="zone-coach-mcp",
        description="Start the Zone Coach MCP server (stdio).",
    )
    _add_db_arg(parser)
    args = parser.parse_args()

    # Set DB path for the server module to pick up
    os.environ["ZONE_COACH_DB"] = args.db

    from .server import mcp

    print(f"Starting Zone Coach MCP server (db: {args.db})", file=sys.stderr)
    mcp.run()
