from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib import request as _urlrequest
from urllib.error import HTTPError, URLError

from dk_tennis.config import SPORT_NAME, TENNIS_DISPLAY_GROUP_ID, USER_AGENT, ScraperConfig
from dk_tennis.draftkings_client.base import CatalogError
from dk_tennis.logging_utils import _log


@dataclass(frozen=True)
class Tournament:
    event_group_id: int
    name: str
    slug: Optional[str] = None


def _matches_any(name: str, keywords: Iterable[str]) -> bool:
    low = (name or "").lower()
    return any(kw and kw in low for kw in keywords)


def _fetch_nav_document(url: str, *, timeout: float) -> Dict[str, Any]:
    req = _urlrequest.Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"}, method="GET")
    try:
        with _urlrequest.urlopen(req, timeout=timeout) as resp:
            status = int(getattr(resp, "status", 200) or 200)
            body = resp.read().decode("utf-8", "ignore")
    except HTTPError as e:
        try:
            body = e.read().decode("utf-8", "ignore")
        except Exception:
            body = ""
        raise CatalogError(f"Nav API returned {e.code}: {body[:200]}") from e
    except (URLError, OSError) as e:
        raise CatalogError(f"Nav API unreachable: {e}") from e
    if not 200 <= status < 300:
        raise CatalogError(f"Nav API returned {status}: {body[:200]}")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Nav API returned invalid JSON: {body[:200]}") from e
    if not isinstance(data, dict):
        raise CatalogError("Nav API returned a non-object document")
    return data


def _find_sport_group(groups: List[Any]) -> Optional[Dict[str, Any]]:
    for g in groups:
        if not isinstance(g, dict):
            continue
        if str(g.get("displayGroupId")) == TENNIS_DISPLAY_GROUP_ID:
            return g
        if str(g.get("displayName") or "").strip().lower() == SPORT_NAME.lower():
            return g
    return None


def tournaments_from_nav(data: Dict[str, Any], config: ScraperConfig) -> List[Tournament]:
    """
    Pure part of the resolver: pick the tennis group from a nav document and
    apply the exclusion filters. Catalog order is preserved.
    """
    groups = data.get("displayGroupInfos")
    if groups is None:
        groups = []
    if not isinstance(groups, list):
        raise CatalogError("Nav API document has malformed displayGroupInfos")

    sport = _find_sport_group(groups)
    if sport is None:
        available = ", ".join(
            f"{g.get('displayName')} ({g.get('displayGroupId')})" for g in groups if isinstance(g, dict)
        )
        _log("DK", "Tennis sport not found in nav response")
        _log("DK", f"Available sports: {available}")
        return []

    out: List[Tournament] = []
    for eg in sport.get("eventGroupInfos") or []:
        if not isinstance(eg, dict):
            continue
        name = str(eg.get("eventGroupName") or eg.get("displayName") or eg.get("name") or "").strip()
        raw_id = eg.get("eventGroupId")
        try:
            gid = int(raw_id)
        except (TypeError, ValueError):
            continue
        if not gid or not name:
            continue
        if _matches_any(name, config.excluded_keywords):
            _log("DK", f'Skipping "{name}" (covered by another source)')
            continue
        if _matches_any(name, config.category_excludes):
            _log("DK", f'Skipping "{name}" (category excluded)')
            continue
        if config.allowed_keywords and not _matches_any(name, config.allowed_keywords):
            _log("DK", f'Skipping "{name}" (not in allow-list)')
            continue
        slug = eg.get("urlName") or eg.get("seoIdentifier") or eg.get("slug")
        out.append(Tournament(event_group_id=gid, name=name, slug=str(slug) if slug else None))
    return out


def resolve_tournaments(config: ScraperConfig) -> List[Tournament]:
    """
    Fetch the nav document (plain HTTP, the endpoint is not geo-blocked) and
    return the tennis tournaments worth scraping this cycle.
    """
    _log("DK", "Fetching tennis tournaments from nav API...")
    data = _fetch_nav_document(config.nav_url, timeout=config.http_timeout_s)
    tournaments = tournaments_from_nav(data, config)
    _log("DK", f"Found {len(tournaments)} uncovered tournaments to scrape")
    for t in tournaments:
        _log("DK", f"  - {t.name} (eventGroupId: {t.event_group_id})")
    return tournaments
