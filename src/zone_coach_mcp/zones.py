"""Heart-rate zone classification over irregular (time, bpm) sample streams."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .models import ZoneThresholds


@dataclass(frozen=True)
class HeartRateStream:
    time: Sequence[float]
    heartrate: Sequence[float]

    @classmethod
    def from_payload(cls, payload: Any) -> HeartRateStream | None:
        """Build from ``{"time": [...], "heartrate": [...]}``.

        Each value may also be wrapped as ``{"data": [...]}`` (Strava's
        ``key_by_type`` streams response).
        """
        if isinstance(payload, HeartRateStream):
            return payload
        if not isinstance(payload, Mapping):
            return None
        time = _unwrap(payload.get("time"))
        hr = _unwrap(payload.get("heartrate"))
        if time is None or hr is None:
            return None
        return cls(time=time, heartrate=hr)


@dataclass(frozen=True)
class ZoneResult:
    seconds: tuple[float, float, float, float, float]
    has_data: bool = True

    @classmethod
    def no_data(cls) -> ZoneResult:
        return cls(seconds=(0.0, 0.0, 0.0, 0.0, 0.0), has_data=False)

    @property
    def minutes(self) -> tuple[int, int, int, int, int]:
        return tuple(_round_half_up(s / 60) for s in self.seconds)  # type: ignore[return-value]

    @property
    def total_seconds(self) -> float:
        return sum(self.seconds)

    def as_session_fields(self) -> dict[str, int]:
        return {f"z{i}_min": m for i, m in enumerate(self.minutes, start=1)}


def zone_for_hr(bpm: float, thresholds: ZoneThresholds) -> int:
    """Return the zone number (1-5) for a heart rate, checking from Z5 down."""
    if bpm >= thresholds.z5_low:
        return 5
    if bpm >= thresholds.z4_low:
        return 4
    if bpm >= thresholds.z3_low:
        return 3
    if bpm >= thresholds.z2_low:
        return 2
    return 1


def classify_zones(stream: Any, thresholds: ZoneThresholds) -> ZoneResult:
    """Accumulate elapsed time per zone in a single pass.

    Each interval ``(t[i-1], t[i]]`` is attributed to the zone of ``hr[i]``.
    Backwards or duplicate timestamps contribute zero time.  Streams that are
    missing, shorter than two samples, or of unequal length yield
    :meth:`ZoneResult.no_data`.
    """
    stream = HeartRateStream.from_payload(stream)
    if stream is None:
        return ZoneResult.no_data()
    time, hr = stream.time, stream.heartrate
    if len(time) < 2 or len(hr) < 2 or len(time) != len(hr):
        return ZoneResult.no_data()

    totals = [0.0] * 5
    prev_t = _num(time[0])
    for i in range(1, len(time)):
        cur_t = _num(time[i])
        dt = max(0.0, cur_t - prev_t)
        prev_t = cur_t
        totals[zone_for_hr(_num(hr[i]), thresholds) - 1] += dt

    return ZoneResult(seconds=tuple(totals))  # type: ignore[arg-type]


# ── helpers ──────────────────────────────────────────────────────────────────


def _unwrap(value: Any) -> Sequence | None:
    if isinstance(value, Mapping):
        value = value.get("data")
    if isinstance(value, (list, tuple)):
        return value
    return None


def _num(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))
