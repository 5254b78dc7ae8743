"""Weekly roll-up of sessions into zone, activity and per-day totals.

Unzoned time (duration not covered by any zone) is folded into Z1, so the
reported Z1 is ``raw z1 + unzoned`` rather than the session's own field.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from .models import ZONES, ActivityType, Session

WINDOW_DAYS = 7


def week_start(day: date | None = None) -> date:
    """Monday of the week containing *day* (default: today)."""
    day = day or date.today()
    return day - timedelta(days=day.weekday())


def window_end(start: date) -> date:
    """Exclusive end of the 7-day window starting at *start*."""
    return start + timedelta(days=WINDOW_DAYS)


def in_window(day: date, start: date) -> bool:
    return start <= day < window_end(start)


def unzoned_minutes(session: Session) -> float:
    return max(0.0, session.duration_min - session.zoned_min)


def zone_warning(session: Session, tolerance: float = 0.001) -> str | None:
    zoned = session.zoned_min
    if zoned == 0:
        return None
    if zoned > session.duration_min + tolerance:
        return "Zone minutes exceed duration"
    if zoned < session.duration_min - tolerance:
        return "Some time is unzoned (counts as Z1)"
    return None


@dataclass(frozen=True)
class WeeklyTotals:
    window_start: date
    window_end: date
    sessions: tuple[Session, ...]
    total_min: float
    zone_min: dict[str, float]
    unzoned_min: float
    activity_min: dict[str, float]
    daily_min: tuple[tuple[date, float], ...]
    warnings: dict[str, str] = field(default_factory=dict)

    @property
    def aerobic_min(self) -> float:
        return self.zone_min["Z1"] + self.zone_min["Z2"]

    @property
    def anaerobic_min(self) -> float:
        return self.zone_min["Z4"] + self.zone_min["Z5"]

    def to_dict(self) -> dict:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "total_min": self.total_min,
            "zone_min": dict(self.zone_min),
            "unzoned_min": self.unzoned_min,
            "aerobic_min": self.aerobic_min,
            "anaerobic_min": self.anaerobic_min,
            "activity_min": dict(self.activity_min),
            "daily_min": [{"date": d.isoformat(), "minutes": m} for d, m in self.daily_min],
            "session_count": len(self.sessions),
            "warnings": dict(self.warnings),
        }


def weekly_totals(sessions: Iterable[Session], start: date) -> WeeklyTotals:
    """Aggregate the sessions dated inside ``[start, start + 7 days)``.

    Recomputed from scratch on every call; the input is never modified.
    """
    end = window_end(start)
    # sorted() is stable, so same-day sessions keep their collection order
    week = tuple(sorted((s for s in sessions if start <= s.date < end), key=lambda s: s.date))

    zone_min = dict.fromkeys(ZONES, 0.0)
    activity_min = {t.value: 0.0 for t in ActivityType}
    days = [start + timedelta(days=i) for i in range(WINDOW_DAYS)]
    daily = dict.fromkeys(days, 0.0)
    unzoned_total = 0.0
    warnings: dict[str, str] = {}

    for s in week:
        unzoned = unzoned_minutes(s)
        unzoned_total += unzoned
        for name, minutes in zip(ZONES, s.zone_min):
            zone_min[name] += minutes
        zone_min["Z1"] += unzoned
        activity_min[s.activity_type.value] += s.duration_min
        daily[s.date] += s.duration_min
        warning = zone_warning(s)
        if warning:
            warnings[s.id] = warning

    return WeeklyTotals(
        window_start=start,
        window_end=end,
        sessions=week,
        total_min=sum(s.duration_min for s in week),
        zone_min=zone_min,
        unzoned_min=unzoned_total,
        activity_min=activity_min,
        daily_min=tuple((d, daily[d]) for d in days),
        warnings=warnings,
    )


# ── formatting ───────────────────────────────────────────────────────────────


def percent(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return part / total * 100


def format_duration(minutes: float) -> str:
    """``45`` -> ``"45m"``, ``90`` -> ``"1h 30m"``, ``120`` -> ``"2h"``."""
    m = max(0.0, minutes)
    if m < 60:
        return f"{int(m + 0.5)}m"
    h = int(m // 60)
    rem = int(m - h * 60 + 0.5)
    if rem <= 0:
        return f"{h}h"
    if rem >= 60:
        return f"{h + 1}h"
    return f"{h}h {rem}m"
