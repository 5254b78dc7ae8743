"""Activity-provider clients: Strava (REST over httpx) and Garmin Connect.

Both expose the same small surface used by the sync engine: list the
activities in a date window, fetch one activity's heart-rate stream, and look
up the athlete's display name.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, field_validator

from .zones import HeartRateStream

STRAVA_BASE_URL = "https://www.strava.com/api/v3"
STRAVA_PAGE_SIZE = 200


class ProviderError(RuntimeError):
    """The provider could not be reached or returned an error."""


class ActivityMeta(BaseModel):
    """Summary of one provider activity, shaped after Strava's list payload."""

    id: str
    name: str | None = None
    type: str | None = None
    sport_type: str | None = None
    start_date: datetime
    moving_time: float | None = None
    elapsed_time: float | None = None
    average_heartrate: float | None = None
    max_heartrate: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> str:
        return str(v)

    @property
    def has_hr(self) -> bool:
        return self.average_heartrate is not None or self.max_heartrate is not None


class ActivityProvider(Protocol):
    name: str

    def list_activities(self, start: date, end: date) -> list[ActivityMeta]:
        """Activities starting in ``[start, end)``."""
        ...

    def get_stream(self, activity_id: str) -> HeartRateStream | None: ...

    def athlete_name(self) -> str | None: ...


# ── Strava ───────────────────────────────────────────────────────────────────


class StravaProvider:
    """Thin Strava API client.  Token refresh is the caller's concern."""

    name = "strava"

    def __init__(self, access_token: str, timeout: float = 15):
        self._access_token = access_token
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            resp = httpx.get(
                f"{STRAVA_BASE_URL}{path}",
                headers=self._headers(),
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Strava request failed: {e}") from e
        return resp

    def list_activities(self, start: date, end: date) -> list[ActivityMeta]:
        resp = self._get(
            "/athlete/activities",
            params={
                "after": _unix(start),
                "before": _unix(end),
                "per_page": STRAVA_PAGE_SIZE,
            },
        )
        if resp.status_code != 200:
            raise ProviderError(f"Strava activities request failed ({resp.status_code})")

        payload = resp.json()
        if not isinstance(payload, list):
            raise ProviderError("Unexpected Strava activities payload")
        activities = []
        for raw in payload:
            try:
                activities.append(ActivityMeta.model_validate(raw))
            except ValueError as e:
                logger.warning(f"[PROVIDER] Skipping malformed Strava activity: {e}")
        return activities

    def get_stream(self, activity_id: str) -> HeartRateStream | None:
        resp = self._get(
            f"/activities/{activity_id}/streams",
            params={"keys": "time,heartrate", "key_by_type": "true"},
        )
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise ProviderError(f"Strava streams request failed ({resp.status_code})")
        return HeartRateStream.from_payload(resp.json())

    def athlete_name(self) -> str | None:
        resp = self._get("/athlete")
        if resp.status_code != 200:
            raise ProviderError(f"Strava athlete request failed ({resp.status_code})")
        data = resp.json()
        return (data.get("firstname") or None) if isinstance(data, dict) else None


# ── Garmin Connect ───────────────────────────────────────────────────────────


class GarminProvider:
    """Adapter over an authenticated ``garminconnect.Garmin`` client."""

    name = "garmin"

    def __init__(self, client: Any):
        self._client = client

    def list_activities(self, start: date, end: date) -> list[ActivityMeta]:
        # Garmin's end date is inclusive
        last = end - timedelta(days=1)
        try:
            payload = self._client.get_activities_by_date(start.isoformat(), last.isoformat())
        except Exception as e:
            raise ProviderError(f"Garmin activities request failed: {e}") from e

        activities = []
        for a in payload or []:
            try:
                activities.append(_garmin_meta(a))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"[PROVIDER] Skipping malformed Garmin activity: {e}")
        return activities

    def get_stream(self, activity_id: str) -> HeartRateStream | None:
        try:
            details = self._client.get_activity_details(activity_id)
        except Exception as e:
            raise ProviderError(f"Garmin details request failed: {e}") from e
        return _garmin_stream(details)

    def athlete_name(self) -> str | None:
        name = getattr(self._client, "full_name", None)
        if name:
            return name
        try:
            return self._client.get_full_name()
        except Exception as e:
            raise ProviderError(f"Garmin profile request failed: {e}") from e


# ── helpers ──────────────────────────────────────────────────────────────────


def _unix(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def _g(data: Any, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dicts."""
    for k in keys:
        if isinstance(data, dict):
            data = data.get(k, default)
        else:
            return default
    return data


def _garmin_meta(a: dict) -> ActivityMeta:
    started = a.get("startTimeLocal") or a.get("startTimeGMT")
    if not isinstance(started, str):
        raise ValueError(f"activity {a.get('activityId')} has no start time")
    return ActivityMeta(
        id=a["activityId"],
        name=a.get("activityName"),
        type=_g(a, "activityType", "typeKey"),
        start_date=started.replace(" ", "T"),
        moving_time=a.get("movingDuration"),
        elapsed_time=a.get("elapsedDuration") or a.get("duration"),
        average_heartrate=a.get("averageHR"),
        max_heartrate=a.get("maxHR"),
    )


def _garmin_stream(details: Any) -> HeartRateStream | None:
    """Extract (seconds, bpm) pairs from Garmin's metricDescriptors layout."""
    descriptors = _g(details, "metricDescriptors")
    rows = _g(details, "activityDetailMetrics")
    if not isinstance(descriptors, list) or not isinstance(rows, list):
        return None

    idx: dict[str, int] = {}
    for d in descriptors:
        if isinstance(d, dict) and d.get("key") and isinstance(d.get("metricsIndex"), int):
            idx[str(d["key"])] = d["metricsIndex"]

    hr_idx = idx.get("directHeartRate", idx.get("heartRate"))
    t_idx = idx.get("sumElapsedDuration")
    ts_idx = idx.get("directTimestamp")
    if hr_idx is None or (t_idx is None and ts_idx is None):
        return None

    times: list[float] = []
    bpm: list[float] = []
    for row in rows:
        metrics = _g(row, "metrics")
        if not isinstance(metrics, list):
            continue
        hr = _metric(metrics, hr_idx)
        if t_idx is not None:
            t = _metric(metrics, t_idx)
        else:
            ts = _metric(metrics, ts_idx)
            t = ts / 1000 if ts is not None else None
        if hr is None or t is None:
            continue
        times.append(t)
        bpm.append(hr)
    return HeartRateStream(time=times, heartrate=bpm)


def _metric(metrics: list, i: int) -> float | None:
    if i >= len(metrics) or metrics[i] is None:
        return None
    try:
        return float(metrics[i])
    except (TypeError, ValueError):
        return None
