"""Base DraftKings URL/error helpers."""

from __future__ import annotations

import re
from typing import Optional, Tuple
from urllib.parse import urljoin

from dk_tennis.config import DK_HOME_URL

# Section pages known to host the tennis listing, tried in order.
TENNIS_SECTION_PATHS: Tuple[str, ...] = (
    "/sports/tennis",
    "/leagues/tennis",
    "/sports/tennis?category=odds",
)

_TOUR_PREFIX_RE = re.compile(r"^(ATP|WTA|ITF|Challenger)\s*-\s*", re.I)
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


class DraftKingsError(RuntimeError):
    pass


class CatalogError(DraftKingsError):
    pass


def _absolute_url(href: str, base: str = DK_HOME_URL) -> str:
    """
    Resolve a possibly relative href against the sportsbook origin.
    Absolute http(s) URLs are returned unchanged.
    """
    raw = (href or "").strip()
    if not raw:
        return base
    if re.match(r"^https?://", raw, re.I):
        return raw
    return urljoin(base.rstrip("/") + "/", raw.lstrip("/"))


def _slugify(name: str) -> str:
    low = (name or "").strip().lower().replace("'", "")
    return _SLUG_STRIP_RE.sub("-", low).strip("-")


def tournament_search_name(name: str) -> str:
    """'ATP - Delray Beach' -> 'delray beach' (text used to spot in-page links)."""
    return _TOUR_PREFIX_RE.sub("", (name or "").strip()).strip().lower()


def tournament_deep_link(name: str, slug: Optional[str] = None, *, base: str = DK_HOME_URL) -> str:
    s = (slug or "").strip().strip("/") or _slugify(name)
    return _absolute_url(f"/leagues/tennis/{s}", base)


def event_detail_url(event_id: str, *, base: str = DK_HOME_URL) -> str:
    return _absolute_url(f"/event/{event_id}", base)


def section_candidate_urls(base: str = DK_HOME_URL) -> Tuple[str, ...]:
    return tuple(_absolute_url(p, base) for p in TENNIS_SECTION_PATHS)
