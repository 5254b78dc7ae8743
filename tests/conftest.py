"""Shared fixtures: a scriptable fake provider, session factory, in-memory store."""

from datetime import date, datetime, timezone

import pytest

from zone_coach_mcp.models import ActivityType, Session, Source, TrainingState, ZoneThresholds
from zone_coach_mcp.providers import ActivityMeta
from zone_coach_mcp.store import MemoryStorage, StateStore
from zone_coach_mcp.zones import HeartRateStream

WEEK = date(2026, 10, 12)  # a Monday


class FakeProvider:
    """In-memory ActivityProvider.

    ``streams`` maps activity id -> HeartRateStream, None, or an exception to raise.
    """

    name = "strava"

    def __init__(self, activities=None, streams=None, athlete="Alex", list_error=None):
        self.activities = list(activities or [])
        self.streams = dict(streams or {})
        self.athlete = athlete
        self.list_error = list_error
        self.stream_calls: list[str] = []
        self.list_calls: list[tuple[date, date]] = []

    def list_activities(self, start, end):
        self.list_calls.append((start, end))
        if self.list_error is not None:
            raise self.list_error
        return list(self.activities)

    def get_stream(self, activity_id):
        self.stream_calls.append(activity_id)
        stream = self.streams.get(activity_id)
        if isinstance(stream, Exception):
            raise stream
        return stream

    def athlete_name(self):
        if isinstance(self.athlete, Exception):
            raise self.athlete
        return self.athlete


def make_activity(activity_id, day=WEEK, moving=3600, hr=True, **kwargs) -> ActivityMeta:
    fields = dict(
        id=activity_id,
        name=f"Activity {activity_id}",
        type="Run",
        start_date=datetime(day.year, day.month, day.day, 7, 0, tzinfo=timezone.utc),
        moving_time=moving,
        elapsed_time=moving,
        average_heartrate=140 if hr else None,
    )
    fields.update(kwargs)
    return ActivityMeta(**fields)


@pytest.fixture
def thresholds() -> ZoneThresholds:
    return ZoneThresholds(z2_low=130, z3_low=150, z4_low=165, z5_low=180)


@pytest.fixture
def make_session():
    counter = iter(range(1, 10_000))

    def _make(day=WEEK, duration=60, zones=(0, 0, 0, 0, 0), activity=ActivityType.RUN,
              source=Source.MANUAL, external_id=None, sid=None, notes=""):
        return Session(
            id=sid or f"s{next(counter)}",
            date=day,
            activity_type=activity,
            duration_min=duration,
            z1_min=zones[0],
            z2_min=zones[1],
            z3_min=zones[2],
            z4_min=zones[3],
            z5_min=zones[4],
            notes=notes,
            source=source,
            external_id=external_id,
        )

    return _make


@pytest.fixture
def state() -> TrainingState:
    return TrainingState(window_start=WEEK)


@pytest.fixture
def memory_store() -> StateStore:
    return StateStore(MemoryStorage())


@pytest.fixture
def steady_stream() -> HeartRateStream:
    # 0-60s at 160 (Z3), 60-120s at 190 (Z5)
    return HeartRateStream(time=[0, 60, 120], heartrate=[100, 160, 190])
