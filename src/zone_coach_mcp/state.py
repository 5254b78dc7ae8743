"""User edits on the owned :class:`TrainingState`.  Each returns a new state."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any

from .models import Connection, Source, TrainingState
from .normalize import normalize_session, normalize_thresholds
from .weekly import week_start


def add_session(state: TrainingState, raw: Any) -> TrainingState:
    """Add a manually entered session at the front of the collection."""
    fields = dict(raw) if isinstance(raw, dict) else {}
    fields["source"] = Source.MANUAL.value
    fields.pop("id", None)
    fields.pop("external_id", None)
    fields.pop("externalId", None)
    fields.setdefault("date", state.window_start)
    session = normalize_session(fields)
    return replace(state, sessions=(session,) + state.sessions)


def delete_session(state: TrainingState, session_id: str) -> TrainingState:
    return replace(state, sessions=tuple(s for s in state.sessions if s.id != session_id))


def set_thresholds(state: TrainingState, raw: Any) -> TrainingState:
    """Update zone bounds; omitted fields keep their current values."""
    return replace(state, thresholds=normalize_thresholds(raw, state.thresholds))


def set_window(state: TrainingState, start: date | None = None) -> TrainingState:
    """Select the week starting at *start*, or the current week."""
    return replace(state, window_start=start or week_start())


def set_connection(state: TrainingState, connection: Connection) -> TrainingState:
    return replace(state, connection=connection)


def disconnect(state: TrainingState) -> TrainingState:
    return set_connection(state, Connection())
