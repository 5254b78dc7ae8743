"""Durable state slot, JSON document codec, and file import/export.

The whole application state lives in one slot keyed by ``STATE_KEY``.  Loads
and imports never raise on bad data: each field falls back to its default
independently.  Save failures are logged and swallowed.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from .models import (
    DEFAULT_THRESHOLDS,
    AppStateRow,
    Connection,
    Session,
    TrainingState,
    init_db,
)
from .normalize import normalize_session, normalize_thresholds, parse_date
from .weekly import week_start

STATE_KEY = "weekly-training-dashboard"


class Storage(Protocol):
    def load(self) -> dict | None: ...

    def save(self, document: dict) -> None: ...


class SqliteStorage:
    """One JSON row in a SQLite ``app_state`` table."""

    def __init__(self, db_path: str, key: str = STATE_KEY):
        self.db_path = db_path
        self.key = key

    def load(self) -> dict | None:
        session = init_db(self.db_path)
        try:
            row = session.get(AppStateRow, self.key)
            return json.loads(row.payload) if row else None
        finally:
            session.close()

    def save(self, document: dict) -> None:
        session = init_db(self.db_path)
        try:
            payload = json.dumps(document)
            now = datetime.now(timezone.utc).isoformat()
            row = session.get(AppStateRow, self.key)
            if row:
                row.payload = payload
                row.updated_at = now
            else:
                session.add(AppStateRow(key=self.key, payload=payload, updated_at=now))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()


class MemoryStorage:
    def __init__(self, document: dict | None = None):
        self.document = document

    def load(self) -> dict | None:
        return self.document

    def save(self, document: dict) -> None:
        self.document = json.loads(json.dumps(document))


class StateStore:
    """Load/save :class:`TrainingState` through an injected storage backend."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def load(self) -> TrainingState:
        try:
            document = self.storage.load()
        except Exception as e:
            logger.warning(f"[STORE] Could not read saved state, using defaults: {e}")
            return default_state()
        if document is None:
            return default_state()
        return parse_state(document)

    def save(self, state: TrainingState) -> bool:
        try:
            self.storage.save(dump_state(state))
        except Exception as e:
            logger.warning(f"[STORE] Could not save state: {e}")
            return False
        return True


# ── Document codec ───────────────────────────────────────────────────────────


def default_state() -> TrainingState:
    return TrainingState(window_start=week_start())


def dump_state(state: TrainingState) -> dict[str, Any]:
    t = state.thresholds
    return {
        "window_start": state.window_start.isoformat(),
        "sessions": [dump_session(s) for s in state.sessions],
        "zone_thresholds": {
            "z2_low": t.z2_low,
            "z3_low": t.z3_low,
            "z4_low": t.z4_low,
            "z5_low": t.z5_low,
        },
        "connection": {
            "connected": state.connection.connected,
            "athlete_name": state.connection.athlete_name,
            "provider": state.connection.provider,
        },
    }


def parse_state(document: Any, fallback: TrainingState | None = None) -> TrainingState:
    """Rebuild a state from a document, field by field.

    Missing or invalid fields come from *fallback* (default: a fresh default
    state).  Older exports using ``weekStartISO`` / ``hrZones`` / ``strava``
    are read as well.
    """
    base = fallback or default_state()
    if not isinstance(document, dict):
        return base

    raw_start = _first(document, "window_start", "weekStartISO")
    window = parse_date(raw_start, base.window_start) if isinstance(raw_start, str) else base.window_start

    raw_sessions = document.get("sessions")
    if isinstance(raw_sessions, list):
        sessions = tuple(normalize_session(s) for s in raw_sessions)
    else:
        sessions = base.sessions

    raw_zones = _first(document, "zone_thresholds", "hrZones")
    thresholds = normalize_thresholds(raw_zones, base.thresholds or DEFAULT_THRESHOLDS)

    raw_conn = _first(document, "connection", "strava")
    if isinstance(raw_conn, dict):
        name = _first(raw_conn, "athlete_name", "athleteName")
        provider = raw_conn.get("provider")
        if provider is None and "strava" in document:
            provider = "strava"
        connection = Connection(
            connected=raw_conn.get("connected") is True,
            athlete_name=name if isinstance(name, str) else None,
            provider=provider if isinstance(provider, str) else None,
        )
    else:
        connection = base.connection

    return TrainingState(
        window_start=window,
        sessions=sessions,
        thresholds=thresholds,
        connection=connection,
    )


# ── File import / export ─────────────────────────────────────────────────────


def export_file(state: TrainingState, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dump_state(state), indent=2), encoding="utf-8")
    logger.info(f"[STORE] Exported {len(state.sessions)} sessions to {path}")
    return path


def import_file(path: str | Path, current: TrainingState) -> TrainingState:
    """Read an exported document; unreadable files leave *current* unchanged."""
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"[STORE] Ignoring unreadable import file {path}: {e}")
        return current
    state = parse_state(document, fallback=current)
    logger.info(f"[STORE] Imported {len(state.sessions)} sessions from {path}")
    return state


def export_filename(state: TrainingState) -> str:
    return f"weekly-training-{state.window_start.isoformat()}.json"


def dump_session(s: Session) -> dict[str, Any]:
    return {
        "id": s.id,
        "date": s.date.isoformat(),
        "activity_type": s.activity_type.value,
        "duration_min": s.duration_min,
        "z1_min": s.z1_min,
        "z2_min": s.z2_min,
        "z3_min": s.z3_min,
        "z4_min": s.z4_min,
        "z5_min": s.z5_min,
        "notes": s.notes,
        "source": s.source.value,
        "external_id": s.external_id,
    }


# ── helpers ──────────────────────────────────────────────────────────────────


def _first(data: dict, *keys: str) -> Any:
    for k in keys:
        if k in data:
            return data[k]
    return None
