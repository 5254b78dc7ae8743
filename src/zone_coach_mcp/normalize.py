"""Coerce untrusted session payloads into canonical :class:`Session` records.

Everything here is total: malformed input degrades to safe defaults instead of
raising.  Both snake_case keys and the camelCase keys written by the original
web dashboard are accepted.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from .models import (
    DEFAULT_THRESHOLDS,
    ActivityType,
    Session,
    Source,
    ZoneThresholds,
)

_TYPE_SYNONYMS = {
    "run": ActivityType.RUN,
    "lift": ActivityType.LIFT,
    "strength": ActivityType.LIFT,
    "weight": ActivityType.LIFT,
    "weights": ActivityType.LIFT,
    "swim": ActivityType.SWIM,
    "bike": ActivityType.BIKE,
    "ride": ActivityType.BIKE,
    "cycling": ActivityType.BIKE,
}

# Provider source labels written by older exports
_EXTERNAL_SOURCES = {"external", "strava", "garmin"}

_ALIASES = {
    "activity_type": ("activity_type", "type", "activityType"),
    "duration_min": ("duration_min", "durationMin", "duration"),
    "z1_min": ("z1_min", "z1Min", "z1"),
    "z2_min": ("z2_min", "z2Min", "z2"),
    "z3_min": ("z3_min", "z3Min", "z3"),
    "z4_min": ("z4_min", "z4Min", "z4"),
    "z5_min": ("z5_min", "z5Min", "z5"),
    "external_id": ("external_id", "externalId"),
}

_THRESHOLD_ALIASES = {
    "z2_low": ("z2_low", "z2Low"),
    "z3_low": ("z3_low", "z3Low"),
    "z4_low": ("z4_low", "z4Low"),
    "z5_low": ("z5_low", "z5Low"),
}


def new_id() -> str:
    return uuid.uuid4().hex


def clamp_non_negative(value: Any) -> float:
    """Parse *value* as a number; non-numeric, non-finite or negative -> 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(n):
        return 0.0
    return max(0.0, n)


def parse_date(value: Any, default: date | None = None) -> date:
    """Accept date/datetime objects and ISO strings; fall back to *default* or today."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    return default if default is not None else date.today()


def normalize_activity_type(value: Any) -> ActivityType:
    """Map a user-entered type (case-insensitive, with synonyms) to an ActivityType."""
    if isinstance(value, ActivityType):
        return value
    key = str(value or "").strip().lower()
    return _TYPE_SYNONYMS.get(key, ActivityType.CARDIO)


def map_provider_type(activity_type: Any, sport_type: Any = None) -> ActivityType:
    """Map a provider's type/sport_type string by substring, e.g. "TrailRun" -> Run."""
    t = str(sport_type or activity_type or "").lower()
    if "run" in t:
        return ActivityType.RUN
    if "swim" in t:
        return ActivityType.SWIM
    if "ride" in t or "bike" in t or "cycling" in t:
        return ActivityType.BIKE
    if "weight" in t or "strength" in t:
        return ActivityType.LIFT
    return ActivityType.CARDIO


def normalize_session(raw: Any) -> Session:
    """Return a valid Session for any input shape."""
    if isinstance(raw, Session):
        raw = asdict(raw)
    if not isinstance(raw, dict):
        raw = {}

    sid = raw.get("id")
    if isinstance(sid, int) and not isinstance(sid, bool):
        sid = str(sid)
    if not isinstance(sid, str) or not sid.strip():
        sid = new_id()

    notes = raw.get("notes")
    external_id = _pick(raw, "external_id")
    if isinstance(external_id, int) and not isinstance(external_id, bool):
        external_id = str(external_id)
    if not isinstance(external_id, str) or not external_id:
        external_id = None

    source = raw.get("source")
    if isinstance(source, Source):
        source = source.value
    is_external = str(source or "").lower() in _EXTERNAL_SOURCES and external_id is not None

    return Session(
        id=sid,
        date=parse_date(raw.get("date")),
        activity_type=normalize_activity_type(_pick(raw, "activity_type")),
        duration_min=clamp_non_negative(_pick(raw, "duration_min")),
        z1_min=clamp_non_negative(_pick(raw, "z1_min")),
        z2_min=clamp_non_negative(_pick(raw, "z2_min")),
        z3_min=clamp_non_negative(_pick(raw, "z3_min")),
        z4_min=clamp_non_negative(_pick(raw, "z4_min")),
        z5_min=clamp_non_negative(_pick(raw, "z5_min")),
        notes=notes if isinstance(notes, str) else "",
        source=Source.EXTERNAL if is_external else Source.MANUAL,
        external_id=external_id if is_external else None,
    )


def normalize_thresholds(
    raw: Any, fallback: ZoneThresholds = DEFAULT_THRESHOLDS
) -> ZoneThresholds:
    """Build thresholds field-by-field from *raw*, defaulting to *fallback*.

    Bounds are forced non-decreasing: a bound lower than the one before it is
    raised to match, so every bpm value still maps to exactly one zone.
    """
    if isinstance(raw, ZoneThresholds):
        raw = asdict(raw)
    if not isinstance(raw, dict):
        return fallback

    values: list[float] = []
    for name, keys in _THRESHOLD_ALIASES.items():
        value = next((raw[k] for k in keys if k in raw), None)
        n = _finite(value)
        values.append(n if n is not None else getattr(fallback, name))

    floor = 0.0
    bounds = []
    for v in values:
        floor = max(floor, v)
        bounds.append(floor)
    return ZoneThresholds(*bounds)


# ── helpers ──────────────────────────────────────────────────────────────────


def _pick(raw: dict, field: str) -> Any:
    for key in _ALIASES[field]:
        if key in raw:
            return raw[key]
    return None


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return n if math.isfinite(n) else None
