from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip() or None


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    return int(raw)


@dataclass(frozen=True, slots=True)
class BoardRuntimeConfig:
    """Runtime settings of the departure board, read from the environment."""

    gtfs_path: str
    gtfs_overlay_path: str
    feed_url: str | None
    default_window_minutes: int
    refresh_interval_ms: int
    timezone: str
    stop: str | None = None
    platform: str | None = None
    line: str | None = None
    reveal_errors: bool = False

    @staticmethod
    def from_env() -> "BoardRuntimeConfig":
        window = _env_int("STOPBOARD_DEFAULT_WINDOW_MIN", 120)
        interval = _env_int("STOPBOARD_REFRESH_INTERVAL_MS", 20000)
        if window <= 0:
            raise ValueError(f"Invalid STOPBOARD_DEFAULT_WINDOW_MIN: {window}")
        if interval <= 0:
            raise ValueError(f"Invalid STOPBOARD_REFRESH_INTERVAL_MS: {interval}")

        return BoardRuntimeConfig(
            gtfs_path=_env_str("GTFS_PATH") or "data/gtfs",
            gtfs_overlay_path=_env_str("GTFS_OVERLAY_PATH") or "data/gtfs2",
            feed_url=_env_str("GTFS_RT_TRIP_UPDATES_URL"),
            default_window_minutes=window,
            refresh_interval_ms=interval,
            timezone=_env_str("STOPBOARD_TIMEZONE") or "Europe/Paris",
            stop=_env_str("STOPBOARD_STOP"),
            platform=_env_str("STOPBOARD_PLATFORM"),
            line=_env_str("STOPBOARD_LINE"),
            reveal_errors=_env_bool("STOPBOARD_REVEAL_ERRORS", False),
        )
