"""Sync engine: pull a week of provider activities, zone them, and merge.

External sessions for the synced week are replaced wholesale by the fresh
batch.  Manual sessions, and external sessions from other weeks, are kept.
Session ids are derived from the provider's native id, so re-syncing the same
week is idempotent.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timezone
from typing import Literal

from loguru import logger

from .models import Connection, Session, Source, TrainingState, ZoneThresholds
from .normalize import map_provider_type, normalize_session
from .providers import ActivityMeta, ActivityProvider
from .weekly import in_window, window_end
from .zones import classify_zones

STREAM_FETCH_CAP = 25

OutcomeStatus = Literal["zoned", "no_stream", "failed", "over_cap"]


class SyncError(RuntimeError):
    """The sync could not start; the persisted state is unchanged."""


class SyncCancelled(RuntimeError):
    """The sync was cancelled before it merged anything."""


class CancelToken:
    """Checked after listing, between per-activity stream fetches, and before merging."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ActivityOutcome:
    external_id: str
    status: OutcomeStatus
    error: str | None = None


@dataclass(frozen=True)
class SyncResult:
    state: TrainingState
    fetched: tuple[Session, ...]
    outcomes: tuple[ActivityOutcome, ...] = field(default_factory=tuple)
    stream_fetch_count: int = 0

    def _count(self, *statuses: str) -> int:
        return sum(1 for o in self.outcomes if o.status in statuses)

    @property
    def zoned(self) -> int:
        return self._count("zoned")

    @property
    def skipped(self) -> int:
        return self._count("no_stream", "over_cap")

    @property
    def failed(self) -> int:
        return self._count("failed")

    def summary(self) -> str:
        return (
            f"Synced {len(self.fetched)} activities. "
            f"Zones computed for up to {self.stream_fetch_count}."
        )

    def to_dict(self) -> dict:
        out = {
            "status": "ok",
            "window_start": self.state.window_start.isoformat(),
            "synced": len(self.fetched),
            "zoned": self.zoned,
            "skipped": self.skipped,
            "failed": self.failed,
            "message": self.summary(),
        }
        warnings = [f"{o.external_id}: {o.error}" for o in self.outcomes if o.status == "failed"]
        if warnings:
            out["warnings"] = warnings
        return out


def sync_window(
    provider: ActivityProvider,
    state: TrainingState,
    window_start: date | None = None,
    cancel: CancelToken | None = None,
    cap: int = STREAM_FETCH_CAP,
) -> SyncResult:
    """Run one sync of *window_start* (default: the state's window).

    Raises SyncError if the activity list cannot be fetched and SyncCancelled
    if *cancel* fires mid-batch; in both cases nothing is merged.
    """
    start = window_start or state.window_start
    end = window_end(start)
    logger.info(f"[SYNC] Fetching {provider.name} activities {start} .. {end}")

    try:
        activities = provider.list_activities(start, end)
    except Exception as e:
        logger.exception(f"[SYNC] Activity list fetch failed: {e}")
        raise SyncError(f"Failed to sync from {provider.name}: {e}") from e
    _check_cancel(cancel, "after listing activities")

    base = [build_external_session(a, provider.name) for a in activities]

    selected, rest = select_for_zoning(activities, cap)
    zones_by_id: dict[str, dict[str, int]] = {}
    outcomes: list[ActivityOutcome] = []

    for i, activity in enumerate(selected, start=1):
        if cancel is not None and cancel.cancelled:
            logger.info(f"[SYNC] Cancelled after {i - 1}/{len(selected)} streams")
            raise SyncCancelled("Sync cancelled")
        logger.debug(f"[SYNC] Syncing zones ({i}/{len(selected)}) for {activity.id}")
        outcome, fields = _zone_activity(provider, activity, state.thresholds)
        outcomes.append(outcome)
        if fields is not None:
            zones_by_id[activity.id] = fields

    outcomes.extend(ActivityOutcome(a.id, "over_cap") for a in rest)
    _check_cancel(cancel, "before merging")

    fetched = tuple(
        normalize_session({**_session_dict(s), **zones_by_id[s.external_id]})
        if s.external_id in zones_by_id
        else s
        for s in base
    )

    new_state = replace(
        state,
        window_start=start,
        sessions=reconcile_sync(state.sessions, fetched, start),
        connection=_connection(provider),
    )
    result = SyncResult(
        state=new_state,
        fetched=fetched,
        outcomes=tuple(outcomes),
        stream_fetch_count=len(selected),
    )
    logger.info(f"[SYNC] {result.summary()} ({result.failed} failed)")
    return result


def reconcile_sync(
    sessions: Iterable[Session], fetched: Sequence[Session], window_start: date
) -> tuple[Session, ...]:
    """Return a new collection with the window's external sessions replaced by *fetched*.

    Keeps every manual session and every external session dated outside the
    window, except where its id is in *fetched*, so ids stay unique.  The
    input collection is not modified.
    """
    fresh_ids = {s.id for s in fetched}
    kept = tuple(
        s for s in sessions
        if s.id not in fresh_ids
        and (s.source is Source.MANUAL or not in_window(s.date, window_start))
    )
    return tuple(fetched) + kept


def build_external_session(activity: ActivityMeta, provider_name: str) -> Session:
    """Normalize a provider activity into an external Session with zero zones."""
    seconds = activity.moving_time if activity.moving_time is not None else activity.elapsed_time
    started = activity.start_date
    if started.tzinfo is not None:
        started = started.astimezone(timezone.utc)
    return normalize_session({
        "id": f"{provider_name}-{activity.id}",
        "external_id": activity.id,
        "source": Source.EXTERNAL.value,
        "date": started.date(),
        "activity_type": map_provider_type(activity.type, activity.sport_type),
        "duration_min": int((seconds or 0) / 60 + 0.5),
        "notes": activity.name or "",
    })


def select_for_zoning(
    activities: Sequence[ActivityMeta], cap: int = STREAM_FETCH_CAP
) -> tuple[list[ActivityMeta], list[ActivityMeta]]:
    """Split HR-bearing activities into (first *cap*, remainder)."""
    with_hr = [a for a in activities if a.has_hr]
    return with_hr[:cap], with_hr[cap:]


# ── helpers ──────────────────────────────────────────────────────────────────


def _zone_activity(
    provider: ActivityProvider, activity: ActivityMeta, thresholds: ZoneThresholds
) -> tuple[ActivityOutcome, dict[str, int] | None]:
    try:
        stream = provider.get_stream(activity.id)
        result = classify_zones(stream, thresholds)
    except Exception as e:
        logger.warning(f"[SYNC] Zone computation failed for {activity.id}: {e}")
        return ActivityOutcome(activity.id, "failed", str(e)), None
    if not result.has_data:
        return ActivityOutcome(activity.id, "no_stream"), None
    return ActivityOutcome(activity.id, "zoned"), result.as_session_fields()


def _check_cancel(cancel: CancelToken | None, stage: str) -> None:
    if cancel is not None and cancel.cancelled:
        logger.info(f"[SYNC] Cancelled {stage}")
        raise SyncCancelled("Sync cancelled")


def _session_dict(s: Session) -> dict:
    return {
        "id": s.id,
        "date": s.date,
        "activity_type": s.activity_type,
        "duration_min": s.duration_min,
        "notes": s.notes,
        "source": s.source.value,
        "external_id": s.external_id,
    }


def _connection(provider: ActivityProvider) -> Connection:
    try:
        name = provider.athlete_name()
    except Exception as e:
        logger.warning(f"[SYNC] Could not fetch athlete name: {e}")
        name = None
    return Connection(connected=True, athlete_name=name, provider=provider.name)
