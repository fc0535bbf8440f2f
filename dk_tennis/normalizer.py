from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from dk_tennis.config import SPORT_NAME
from dk_tennis.odds import resolve_american
from dk_tennis.payloads import CapturedPayload, JoinedEvent, JoinedMarket, JoinedSelection, decode_payload

MONEYLINE = "moneyline"
SPREAD = "spread"
TOTAL = "total"

# Checked in order; a market lands in the first bucket whose keyword it contains.
MARKET_BUCKETS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (MONEYLINE, ("moneyline", "match winner", "winner", "match lines")),
    (SPREAD, ("spread", "handicap")),
    (TOTAL, ("total", "over/under")),
)

# Exact market names per bucket. Within a bucket these are tried before
# keyword-only matches such as "Set 1 Winner" or "Player A Total Games".
EXACT_MARKET_NAMES: Dict[str, Tuple[str, ...]] = {
    MONEYLINE: ("moneyline", "match winner", "match lines", "winner"),
    SPREAD: ("spread", "handicap", "game spread", "games spread", "game handicap", "games handicap"),
    TOTAL: ("total", "total games", "over/under", "total games over/under"),
}

UPCOMING_STATES = {"", "NOT_STARTED", "NOTSTARTED", "PREGAME", "PRE_GAME", "SCHEDULED", "UPCOMING"}
PLACEHOLDER_NAMES = {"", "tbd", "tba", "unknown", "n/a", "?"}

_VS_SPLIT_RE = re.compile(r"\s+v(?:s)?\.?\s+", re.I)
_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class NormalizedMatchRecord:
    external_id: str
    sport: str
    league: str
    home_team_name: str
    home_team_abbr: str
    away_team_name: str
    away_team_abbr: str
    start_time: str
    status: str
    is_outdoor: bool
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    spread_home: Optional[float] = None
    spread_away: Optional[float] = None
    total_over: Optional[float] = None
    total_under: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def abbreviate_name(full_name: str) -> str:
    """'Jannik Sinner' -> 'J. Sinner'"""
    parts = (full_name or "").strip().split()
    if len(parts) <= 1:
        return (full_name or "").strip()[:3].upper()
    return f"{parts[0][0]}. {parts[-1]}"


def parse_start_time(raw: str) -> Optional[datetime]:
    """
    Parse DraftKings start dates ('2025-02-17T16:00:00Z',
    '2025-02-17T16:00:00.0000000Z', '+00:00' offsets). Naive values are UTC.
    """
    text = (raw or "").strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text)
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_start(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _clean_name(name: Optional[str]) -> Optional[str]:
    n = re.sub(r"\s+", " ", name or "").strip()
    if n.lower() in PLACEHOLDER_NAMES:
        return None
    return n


def _names_from_participants(ev: JoinedEvent) -> Tuple[Optional[str], Optional[str]]:
    return _clean_name(ev.home), _clean_name(ev.away)


def _names_from_display(ev: JoinedEvent) -> Tuple[Optional[str], Optional[str]]:
    parts = _VS_SPLIT_RE.split(ev.name or "", maxsplit=1)
    if len(parts) != 2:
        return None, None
    return _clean_name(parts[0]), _clean_name(parts[1])


# Participant name resolution; first strategy yielding both names wins.
NAME_STRATEGIES: Tuple[Callable[[JoinedEvent], Tuple[Optional[str], Optional[str]]], ...] = (
    _names_from_participants,
    _names_from_display,
)


def resolve_participants(ev: JoinedEvent) -> Tuple[Optional[str], Optional[str]]:
    for strategy in NAME_STRATEGIES:
        home, away = strategy(ev)
        if home and away:
            return home, away
    return None, None


def classify_market(name: str) -> Optional[str]:
    low = (name or "").lower()
    for bucket, keywords in MARKET_BUCKETS:
        if any(kw in low for kw in keywords):
            return bucket
    return None


def _market_rank(market: JoinedMarket) -> int:
    name = (market.name or "").strip().lower()
    bucket = classify_market(name)
    return 0 if bucket is not None and name in EXACT_MARKET_NAMES[bucket] else 1


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


SelPair = Tuple[Optional[JoinedSelection], Optional[JoinedSelection]]


def _pair_by_participant(sels: Tuple[JoinedSelection, ...], home: str, away: str) -> SelPair:
    h = next((s for s in sels if _same_name(s.participant, home) or _same_name(s.label, home)), None)
    a = next((s for s in sels if _same_name(s.participant, away) or _same_name(s.label, away)), None)
    return h, a


def _pair_by_outcome_type(sels: Tuple[JoinedSelection, ...], home: str, away: str) -> SelPair:
    h = next((s for s in sels if (s.outcome_type or "").lower() == "home"), None)
    a = next((s for s in sels if (s.outcome_type or "").lower() == "away"), None)
    return h, a


def _pair_by_position(sels: Tuple[JoinedSelection, ...], *_names: str) -> SelPair:
    return (sels[0] if sels else None), (sels[1] if len(sels) > 1 else None)


def _pair_over_under(sels: Tuple[JoinedSelection, ...], *_names: str) -> SelPair:
    def _side(s: JoinedSelection) -> str:
        return (s.label or s.outcome_type or "").strip().lower()

    over = next((s for s in sels if _side(s) == "over" or (s.outcome_type or "").lower() == "over"), None)
    under = next((s for s in sels if _side(s) == "under" or (s.outcome_type or "").lower() == "under"), None)
    return over, under


# Ordered resolution contracts: a strategy wins as soon as it finds either side.
SIDE_PAIR_STRATEGIES = (_pair_by_participant, _pair_by_outcome_type, _pair_by_position)
TOTAL_PAIR_STRATEGIES = (_pair_over_under, _pair_by_position)


def _resolve_pair(strategies, sels: Tuple[JoinedSelection, ...], home: str, away: str) -> SelPair:
    for strategy in strategies:
        first, second = strategy(sels, home, away)
        if first is not None or second is not None:
            return first, second
    return None, None


def _price(sel: Optional[JoinedSelection]) -> Optional[int]:
    return resolve_american(sel.american, sel.decimal) if sel is not None else None


def _line(sel: Optional[JoinedSelection]) -> Optional[float]:
    return sel.line if sel is not None else None


def extract_odds(markets: Tuple[JoinedMarket, ...], *, home: str, away: str) -> Dict[str, Any]:
    odds: Dict[str, Any] = {
        "moneyline_home": None,
        "moneyline_away": None,
        "spread_home": None,
        "spread_away": None,
        "total_over": None,
        "total_under": None,
    }
    for market in sorted(markets, key=_market_rank):
        if market.suspended or len(market.selections) < 2:
            continue
        bucket = classify_market(market.name)
        if bucket == MONEYLINE and odds["moneyline_home"] is None and odds["moneyline_away"] is None:
            h, a = _resolve_pair(SIDE_PAIR_STRATEGIES, market.selections, home, away)
            odds["moneyline_home"], odds["moneyline_away"] = _price(h), _price(a)
        elif bucket == SPREAD and odds["spread_home"] is None and odds["spread_away"] is None:
            h, a = _resolve_pair(SIDE_PAIR_STRATEGIES, market.selections, home, away)
            odds["spread_home"], odds["spread_away"] = _line(h), _line(a)
        elif bucket == TOTAL and odds["total_over"] is None and odds["total_under"] is None:
            o, u = _resolve_pair(TOTAL_PAIR_STRATEGIES, market.selections, home, away)
            odds["total_over"], odds["total_under"] = _line(o), _line(u)
    return odds


def _bump(stats: Optional[Dict[str, int]], key: str) -> None:
    if stats is not None:
        stats[key] = int(stats.get(key, 0) or 0) + 1


def is_upcoming_status(status: str) -> bool:
    return (status or "").strip().upper().replace(" ", "_") in UPCOMING_STATES


def normalize_events(
    events: List[JoinedEvent],
    tournament_label: str,
    *,
    now: Optional[datetime] = None,
    stats: Optional[Dict[str, int]] = None,
) -> List[NormalizedMatchRecord]:
    cutoff = now or datetime.now(timezone.utc)
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    out: List[NormalizedMatchRecord] = []
    for ev in events:
        if not is_upcoming_status(ev.status):
            _bump(stats, "not_upcoming")
            continue
        start = parse_start_time(ev.start)
        if start is None:
            _bump(stats, "bad_start")
            continue
        if start <= cutoff:
            _bump(stats, "started")
            continue
        home, away = resolve_participants(ev)
        if not home or not away:
            _bump(stats, "unnamed")
            continue
        odds = extract_odds(ev.markets, home=home, away=away)
        out.append(
            NormalizedMatchRecord(
                external_id=f"dk_tennis_{ev.id}",
                sport=SPORT_NAME,
                league=tournament_label,
                home_team_name=home,
                home_team_abbr=abbreviate_name(home),
                away_team_name=away,
                away_team_abbr=abbreviate_name(away),
                start_time=_format_start(start),
                status="scheduled",
                is_outdoor=True,
                **odds,
            )
        )
    return out


def normalize(
    payload: CapturedPayload,
    tournament_label: str,
    *,
    now: Optional[datetime] = None,
    stats: Optional[Dict[str, int]] = None,
) -> List[NormalizedMatchRecord]:
    """
    Turn one tournament's captured payload into upcoming-match records.
    Pure: the only time dependency is `now` (defaults to the call time).
    """
    return normalize_events(decode_payload(payload), tournament_label, now=now, stats=stats)
