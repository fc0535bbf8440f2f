"""
Captured DraftKings payloads and their decoders.

Two document shapes are seen in the wild:

- grouped: one `eventGroup` document per tournament, with events plus nested
  offerCategories -> offerSubcategoryDescriptors -> offers[][] -> outcomes.
- flat: global `events` / `markets` / `selections` arrays cross-referenced by
  leagueId / eventId / marketId.

Both decode into the same joined view (JoinedEvent -> JoinedMarket ->
JoinedSelection) so normalization never looks at the raw shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Set, Tuple, Union

from dk_tennis.odds import parse_line

GROUPED = "grouped"
FLAT = "flat"


@dataclass
class GroupedPayload:
    tournament_id: int
    documents: List[Dict[str, Any]] = field(default_factory=list)
    kind: ClassVar[str] = GROUPED


@dataclass
class FlatPayload:
    tournament_id: int
    documents: List[Dict[str, Any]] = field(default_factory=list)
    kind: ClassVar[str] = FLAT


CapturedPayload = Union[GroupedPayload, FlatPayload]


@dataclass(frozen=True)
class JoinedSelection:
    id: str
    label: str
    american: Any
    decimal: Any
    line: Optional[float]
    participant: Optional[str]
    outcome_type: Optional[str]


@dataclass(frozen=True)
class JoinedMarket:
    id: str
    name: str
    suspended: bool
    selections: Tuple[JoinedSelection, ...]


@dataclass(frozen=True)
class JoinedEvent:
    id: str
    name: str
    start: str
    status: str
    home: Optional[str]
    away: Optional[str]
    markets: Tuple[JoinedMarket, ...]


def _sid(v: Any) -> str:
    if v is None or isinstance(v, bool):
        return ""
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


def _s(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def _list(v: Any) -> List[Any]:
    return v if isinstance(v, list) else []


# ---- shape detection ---------------------------------------------------------


def grouped_group_id(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    eg = body.get("eventGroup")
    if not isinstance(eg, dict):
        return None
    gid = _sid(eg.get("eventGroupId"))
    return gid or None


def is_flat_body(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    return any(isinstance(body.get(k), list) for k in ("events", "markets", "selections"))


def flat_league_ids(body: Any) -> Set[str]:
    out: Set[str] = set()
    if not isinstance(body, dict):
        return out
    for ev in _list(body.get("events")):
        if isinstance(ev, dict):
            lid = _sid(ev.get("leagueId"))
            if lid:
                out.add(lid)
    return out


def flat_event_ids_for_league(body: Any, league_id: str) -> Set[str]:
    out: Set[str] = set()
    if not isinstance(body, dict):
        return out
    for ev in _list(body.get("events")):
        if isinstance(ev, dict) and _sid(ev.get("leagueId")) == league_id:
            eid = _sid(ev.get("id"))
            if eid:
                out.add(eid)
    return out


def flat_market_event_ids(body: Any) -> Set[str]:
    out: Set[str] = set()
    if not isinstance(body, dict):
        return out
    for m in _list(body.get("markets")):
        if isinstance(m, dict):
            eid = _sid(m.get("eventId"))
            if eid:
                out.add(eid)
    return out


def grouped_event_ids(body: Any) -> Set[str]:
    out: Set[str] = set()
    eg = body.get("eventGroup") if isinstance(body, dict) else None
    if not isinstance(eg, dict):
        return out
    for ev in _list(eg.get("events")):
        if isinstance(ev, dict):
            eid = _sid(ev.get("eventId"))
            if eid:
                out.add(eid)
    return out


# ---- flat decoder --------------------------------------------------------------


def _flat_selection_key(sel: Dict[str, Any]) -> Tuple[str, str]:
    outcome = _sid(sel.get("id")) or _s(sel.get("outcomeType")) or _s(sel.get("label"))
    return _sid(sel.get("marketId")), outcome


def _flat_participants(ev: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    parts = [p for p in _list(ev.get("participants")) if isinstance(p, dict)]
    if not parts:
        return None, None
    home = away = None
    for p in parts:
        role = _s(p.get("venueRole")).lower()
        name = _s(p.get("name")) or None
        if role == "home" and home is None:
            home = name
        elif role == "away" and away is None:
            away = name
    if home is None and away is None:
        home = _s(parts[0].get("name")) or None
        away = _s(parts[1].get("name")) or None if len(parts) > 1 else None
    return home, away


def _flat_selection(sel: Dict[str, Any]) -> JoinedSelection:
    odds = sel.get("displayOdds") if isinstance(sel.get("displayOdds"), dict) else {}
    decimal = odds.get("decimal")
    if decimal in (None, ""):
        decimal = sel.get("trueOdds")
    parts = [p for p in _list(sel.get("participants")) if isinstance(p, dict)]
    participant = _s(parts[0].get("name")) if parts else ""
    return JoinedSelection(
        id=_sid(sel.get("id")),
        label=_s(sel.get("label")),
        american=odds.get("american"),
        decimal=decimal,
        line=parse_line(sel.get("points")),
        participant=participant or None,
        outcome_type=_s(sel.get("outcomeType")) or None,
    )


def decode_flat(documents: Iterable[Dict[str, Any]], tournament_id: Any) -> List[JoinedEvent]:
    """
    Client-side join of flat documents. Events, markets and selections are
    deduplicated by identifier; later entries win.
    """
    tid = _sid(tournament_id)
    events: Dict[str, Dict[str, Any]] = {}
    markets: Dict[str, Dict[str, Any]] = {}
    selections: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        for ev in _list(doc.get("events")):
            if isinstance(ev, dict) and _sid(ev.get("id")):
                events[_sid(ev.get("id"))] = ev
        for m in _list(doc.get("markets")):
            if isinstance(m, dict) and _sid(m.get("id")):
                markets[_sid(m.get("id"))] = m
        for sel in _list(doc.get("selections")):
            if isinstance(sel, dict) and _sid(sel.get("marketId")):
                selections[_flat_selection_key(sel)] = sel

    sels_by_market: Dict[str, List[JoinedSelection]] = {}
    for (mid, _outcome), sel in selections.items():
        sels_by_market.setdefault(mid, []).append(_flat_selection(sel))

    markets_by_event: Dict[str, List[JoinedMarket]] = {}
    for mid, m in markets.items():
        mt = m.get("marketType") if isinstance(m.get("marketType"), dict) else {}
        name = _s(m.get("name")) or _s(mt.get("name"))
        markets_by_event.setdefault(_sid(m.get("eventId")), []).append(
            JoinedMarket(
                id=mid,
                name=name,
                suspended=bool(m.get("isSuspended") or m.get("suspended")),
                selections=tuple(sels_by_market.get(mid, [])),
            )
        )

    out: List[JoinedEvent] = []
    for eid, ev in events.items():
        if _sid(ev.get("leagueId")) != tid:
            continue
        home, away = _flat_participants(ev)
        status = ev.get("status")
        if isinstance(status, dict):
            status = status.get("state")
        out.append(
            JoinedEvent(
                id=eid,
                name=_s(ev.get("name")),
                start=_s(ev.get("startEventDate") or ev.get("startDate")),
                status=_s(status),
                home=home,
                away=away,
                markets=tuple(markets_by_event.get(eid, [])),
            )
        )
    return out


# ---- grouped decoder ------------------------------------------------------------


def _grouped_offer_event_id(offer: Dict[str, Any]) -> str:
    eid = _sid(offer.get("eventId"))
    if eid:
        return eid
    provider = _s(offer.get("providerEventId"))
    try:
        return str(int(provider)) if provider else ""
    except ValueError:
        return ""


def _grouped_selection(o: Dict[str, Any]) -> JoinedSelection:
    return JoinedSelection(
        id=_sid(o.get("providerOutcomeId")) or _s(o.get("label")),
        label=_s(o.get("label")),
        american=o.get("oddsAmerican"),
        decimal=o.get("oddsDecimal"),
        line=parse_line(o.get("line")),
        participant=_s(o.get("participant")) or None,
        outcome_type=None,
    )


def decode_grouped(documents: Iterable[Dict[str, Any]], tournament_id: Any) -> List[JoinedEvent]:
    tid = _sid(tournament_id)
    events: Dict[str, Dict[str, Any]] = {}
    # offer key -> (event id, market name, suspended, outcomes by key)
    offers: Dict[str, Tuple[str, str, bool, Dict[str, JoinedSelection]]] = {}
    for doc in documents:
        eg = doc.get("eventGroup") if isinstance(doc, dict) else None
        if not isinstance(eg, dict) or _sid(eg.get("eventGroupId")) != tid:
            continue
        for ev in _list(eg.get("events")):
            if isinstance(ev, dict) and _sid(ev.get("eventId")):
                events[_sid(ev.get("eventId"))] = ev
        for cat in _list(eg.get("offerCategories")):
            if not isinstance(cat, dict):
                continue
            for desc in _list(cat.get("offerSubcategoryDescriptors")):
                if not isinstance(desc, dict):
                    continue
                sub = desc.get("offerSubcategory") if isinstance(desc.get("offerSubcategory"), dict) else {}
                for row in _list(sub.get("offers")):
                    for offer in _list(row):
                        if not isinstance(offer, dict):
                            continue
                        eid = _grouped_offer_event_id(offer)
                        if not eid:
                            continue
                        name = _s(offer.get("label")) or _s(desc.get("name"))
                        key = _sid(offer.get("providerOfferId")) or _sid(offer.get("offerId")) or f"{eid}:{name.lower()}"
                        outcomes: Dict[str, JoinedSelection] = {}
                        for o in _list(offer.get("outcomes")):
                            if isinstance(o, dict):
                                sel = _grouped_selection(o)
                                outcomes[sel.id or str(len(outcomes))] = sel
                        offers[key] = (eid, name, bool(offer.get("isSuspended")), outcomes)

    markets_by_event: Dict[str, List[JoinedMarket]] = {}
    for key, (eid, name, suspended, outcomes) in offers.items():
        markets_by_event.setdefault(eid, []).append(
            JoinedMarket(id=key, name=name, suspended=suspended, selections=tuple(outcomes.values()))
        )

    out: List[JoinedEvent] = []
    for eid, ev in events.items():
        status = ev.get("eventStatus")
        state = status.get("state") if isinstance(status, dict) else status
        out.append(
            JoinedEvent(
                id=eid,
                name=_s(ev.get("name")),
                start=_s(ev.get("startDate") or ev.get("startEventDate")),
                status=_s(state),
                home=_s(ev.get("teamName1")) or None,
                away=_s(ev.get("teamName2")) or None,
                markets=tuple(markets_by_event.get(eid, [])),
            )
        )
    return out


def decode_payload(payload: CapturedPayload) -> List[JoinedEvent]:
    if isinstance(payload, GroupedPayload):
        return decode_grouped(payload.documents, payload.tournament_id)
    if isinstance(payload, FlatPayload):
        return decode_flat(payload.documents, payload.tournament_id)
    raise TypeError(f"unsupported payload type: {type(payload).__name__}")


def payload_from_documents(tournament_id: int, documents: List[Dict[str, Any]], *, shape: str = "auto") -> CapturedPayload:
    """Build a payload from raw documents (offline normalization / dumps)."""
    kind = shape
    if kind == "auto":
        kind = GROUPED if any(grouped_group_id(d) for d in documents) else FLAT
    if kind == GROUPED:
        return GroupedPayload(tournament_id=int(tournament_id), documents=list(documents))
    if kind == FLAT:
        return FlatPayload(tournament_id=int(tournament_id), documents=list(documents))
    raise ValueError(f"unknown payload shape: {shape}")
