"""Build an activity provider from saved credentials.

Obtaining and refreshing credentials happens outside this package: Strava
needs a current access token, Garmin a token directory written by a previous
garminconnect login.
"""

from __future__ import annotations

import os
from pathlib import Path

from garminconnect import Garmin

from .providers import ActivityProvider, GarminProvider, StravaProvider

DEFAULT_TOKEN_DIR = os.path.expanduser("~/.garminconnect")
PROVIDERS = ("strava", "garmin")


def provider_from_env(
    name: str | None = None,
    token_dir: str | None = None,
    access_token: str | None = None,
) -> ActivityProvider:
    """Pick the provider named by *name* or ``ZONE_COACH_PROVIDER`` (default strava)."""
    name = (name or os.environ.get("ZONE_COACH_PROVIDER") or "strava").lower()
    if name == "strava":
        return strava_from_token(access_token)
    if name == "garmin":
        return garmin_from_tokens(token_dir or os.environ.get("GARMIN_TOKEN_DIR") or DEFAULT_TOKEN_DIR)
    raise RuntimeError(f"Unknown provider {name!r}; expected one of {', '.join(PROVIDERS)}.")


def strava_from_token(access_token: str | None = None) -> StravaProvider:
    token = access_token or os.environ.get("STRAVA_ACCESS_TOKEN")
    if not token:
        raise RuntimeError("No Strava access token. Set STRAVA_ACCESS_TOKEN or pass --access-token.")
    return StravaProvider(token)


def garmin_from_tokens(token_dir: str = DEFAULT_TOKEN_DIR) -> GarminProvider:
    """Resume from saved tokens (non-interactive).  Raises on failure."""
    client = _try_resume(token_dir)
    if client is None:
        raise RuntimeError(
            f"No valid Garmin tokens at {token_dir}. "
            "Log in with garminconnect first to create them."
        )
    return GarminProvider(client)


# ── helpers ──────────────────────────────────────────────────────────────────


def _try_resume(token_dir: str) -> Garmin | None:
    """Try to resume a session from saved tokens.  Returns None on failure."""
    if not Path(token_dir).exists():
        return None
    try:
        client = Garmin()
        client.login(token_dir)
        return client
    except Exception:
        return None
