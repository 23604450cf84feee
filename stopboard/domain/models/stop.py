from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RawStop:
    id: str
    name: str
    platform_code: str | None = None
    stop_code: str | None = None


@dataclass(frozen=True, slots=True)
class Place:
    """A logical station: every raw stop whose name normalizes to the same key."""

    key: str
    base_name: str
    member_stop_ids: tuple[str, ...]
    platforms: tuple[str, ...] = ()
