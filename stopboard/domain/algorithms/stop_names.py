from __future__ import annotations

import re
from typing import Iterable

from stopboard.domain.models import Place, RawStop

_PLATFORM_SUFFIX_RE = re.compile(
    r"\b(?:Quai|Quais|Voie|Voies|Platform|Plateforme)\b.*$", re.IGNORECASE
)
_PARENTHETICAL_RE = re.compile(r"\(.*?\)")
_TRAILING_TOKEN_RE = re.compile(r"\s+[A-Z0-9]{1,2}$", re.IGNORECASE)
_DASH_RE = re.compile(r"[-–—]")
_WHITESPACE_RE = re.compile(r"\s+")
_NOISE_WORD_RE = re.compile(r"\b(?:arrêt|station)\b", re.IGNORECASE)

_PLATFORM_MARKER_RE = re.compile(
    r"\b(?:Quai|Voie|Platform|Plateforme)\b[^\w]*([A-Z0-9]+)\b", re.IGNORECASE
)
# Case-sensitive: a lowercase last word is not a platform letter.
_TRAILING_PLATFORM_RE = re.compile(r"\b([A-Z0-9])\b$")
_BASE_NAME_MARKER_RE = re.compile(
    r"\s*\b(?:Quai|Voie|Platform|Bus|Tram)\b.*", re.IGNORECASE
)


def normalize_name(name: str | None) -> str:
    """Return the grouping key for a stop display name.

    Two stop names with the same key belong to the same place. This is a
    heuristic: it can merge or split stations that a human would not.
    """

    if not name:
        return ""
    s = _PLATFORM_SUFFIX_RE.sub("", name)
    s = _PARENTHETICAL_RE.sub("", s)
    s = _TRAILING_TOKEN_RE.sub("", s)
    s = _DASH_RE.sub(" ", s)
    s = _WHITESPACE_RE.sub(" ", s).strip().lower()
    s = _NOISE_WORD_RE.sub("", s)
    return _WHITESPACE_RE.sub(" ", s).strip()


def detect_platform(name: str | None) -> str | None:
    if not name:
        return None
    m = _PLATFORM_MARKER_RE.search(name) or _TRAILING_PLATFORM_RE.search(name)
    return m.group(1) if m else None


def base_name(name: str) -> str:
    return _BASE_NAME_MARKER_RE.sub("", name).strip() or name.strip()


def stop_platform(stop: RawStop) -> str | None:
    """Platform label of a raw stop: name marker first, then platform/stop code."""

    return detect_platform(stop.name) or stop.platform_code or stop.stop_code or None


def build_place_index(stops: Iterable[RawStop]) -> dict[str, Place]:
    members: dict[str, list[str]] = {}
    names: dict[str, str] = {}
    platforms: dict[str, set[str]] = {}

    for stop in stops:
        key = normalize_name(stop.name)
        if not key:
            continue
        if key not in members:
            members[key] = []
            names[key] = base_name(stop.name)
            platforms[key] = set()
        members[key].append(stop.id)
        pf = stop_platform(stop)
        if pf:
            platforms[key].add(str(pf))

    return {
        key: Place(
            key=key,
            base_name=names[key],
            member_stop_ids=tuple(ids),
            platforms=tuple(sorted(platforms[key])),
        )
        for key, ids in members.items()
    }


def resolve_place(index: dict[str, Place], ref: str | None) -> Place | None:
    """Find a place by key, then by member stop id, then by base name fragment."""

    if not ref:
        return None
    ref = str(ref)

    place = index.get(ref)
    if place is not None:
        return place

    for place in index.values():
        if ref in place.member_stop_ids:
            return place

    needle = ref.lower()
    for place in index.values():
        if needle in place.base_name.lower():
            return place
    return None


def search_places(
    index: dict[str, Place], query: str, *, limit: int = 30
) -> tuple[Place, ...]:
    q = query.strip().lower()
    if not q:
        return ()
    matches = [p for p in index.values() if q in p.key or q in p.base_name.lower()]
    matches.sort(key=lambda p: (p.base_name.lower(), p.key))
    return tuple(matches[:limit])
