"""
Response-interception capture of DraftKings odds traffic.

DraftKings' own front-end issues the odds requests (after WAF / session checks
we cannot replicate), so capture is a producer/observer protocol:

- ResponseObserver listens on the page and pushes admitted JSON bodies onto an
  asyncio.Queue;
- CaptureEngine navigates, then drains the queue for a fixed settle window;
- CaptureAccumulator matches each body against the target tournaments and
  keeps the documents per tournament.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

from playwright.async_api import Page, Response

from dk_tennis.catalog import Tournament
from dk_tennis.config import SPORT_NAME, ScraperConfig
from dk_tennis.draftkings_client.base import (
    _absolute_url,
    event_detail_url,
    section_candidate_urls,
    tournament_deep_link,
)
from dk_tennis.draftkings_client.navigation import (
    _safe_goto,
    click_text_element,
    collect_page_links,
    pick_sport_link,
    pick_tournament_link,
)
from dk_tennis.draftkings_client.overlays import _dismiss_overlays_basic
from dk_tennis.logging_utils import _dbg, _debug_enabled, _log, _short_url
from dk_tennis.normalizer import SPREAD, TOTAL, classify_market, is_upcoming_status, parse_start_time
from dk_tennis.payloads import (
    CapturedPayload,
    FlatPayload,
    GroupedPayload,
    decode_payload,
    flat_event_ids_for_league,
    flat_league_ids,
    flat_market_event_ids,
    grouped_event_ids,
    grouped_group_id,
    is_flat_body,
)
from dk_tennis.session import establish_session

STATIC_ASSET_RE = re.compile(r"\.(js|css|png|svg|jpg|jpeg|gif|webp|woff2?|ttf|eot|ico|map|mp4)(\?|$)", re.I)

SPORT_LINK_KEYWORDS = ("tennis", "football", "basketball", "baseball", "hockey", "soccer", "golf", "mma")


@dataclass(frozen=True)
class CapturedResponse:
    url: str
    status: int
    body: Any


def admission_reject_reason(url: str, status: int, content_type: str) -> Optional[str]:
    """Header-level admission filters, in order. None means 'read the body'."""
    u = url or ""
    if u.startswith("data:") or STATIC_ASSET_RE.search(u):
        return "static"
    if not 200 <= int(status or 0) < 300:
        return "status"
    if "json" not in (content_type or "").lower():
        return "not_json"
    return None


class ResponseObserver:
    def __init__(self, queue: "asyncio.Queue[CapturedResponse]"):
        self.queue = queue
        self.api_log: List[str] = []
        self.rejected: Dict[str, int] = {}
        self._page: Optional[Page] = None
        self._closed = True
        self._tasks: Set[asyncio.Task] = set()

    def _reject(self, reason: str) -> None:
        self.rejected[reason] = int(self.rejected.get(reason, 0)) + 1

    def attach(self, page: Page) -> None:
        self._page = page
        self._closed = False
        page.on("response", self._on_response)

    async def detach(self) -> None:
        self._closed = True
        page, self._page = self._page, None
        if page is not None:
            try:
                page.remove_listener("response", self._on_response)
            except Exception as ex:
                _dbg(f"remove_listener failed: {ex}")
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _on_response(self, resp: Response) -> None:
        if self._closed:
            return
        t = asyncio.create_task(self.handle(resp))
        self._tasks.add(t)

        def _done(tt: asyncio.Task) -> None:
            self._tasks.discard(tt)
            try:
                if not tt.cancelled():
                    _ = tt.exception()
            except Exception:
                pass

        t.add_done_callback(_done)

    async def handle(self, resp: Response) -> Optional[CapturedResponse]:
        url = resp.url or ""
        status = int(resp.status or 0)
        try:
            headers = resp.headers or {}
        except Exception:
            headers = {}
        reason = admission_reject_reason(url, status, headers.get("content-type", ""))
        if reason == "static":
            self._reject(reason)
            return None
        self.api_log.append(f"[{status}] {_short_url(url)}")
        if reason is not None:
            self._reject(reason)
            return None
        try:
            raw = await resp.body()
        except Exception as ex:
            # Redirects and evicted resources have no retrievable body.
            _dbg(f"body unavailable for {_short_url(url)}: {ex}")
            self._reject("no_body")
            return None
        if not raw:
            self._reject("empty")
            return None
        try:
            data = json.loads(raw)
        except ValueError as ex:
            _dbg(f"invalid JSON from {_short_url(url)}: {ex}")
            self._reject("bad_json")
            return None
        msg = CapturedResponse(url=url, status=status, body=data)
        self.queue.put_nowait(msg)
        return msg


class CaptureAccumulator:
    def __init__(self, tournaments: Sequence[Tournament]):
        self.tournaments = list(tournaments)
        self.targets: Dict[str, Tournament] = {str(t.event_group_id): t for t in self.tournaments}
        self._grouped: Dict[int, GroupedPayload] = {}
        self._flat: Dict[int, FlatPayload] = {}
        self._event_owner: Dict[str, int] = {}
        self._flat_events: Dict[int, Set[str]] = {}
        self._grouped_events: Dict[int, Set[str]] = {}
        self.unmatched: List[str] = []

    def offer(self, msg: CapturedResponse) -> List[int]:
        """Merge a body into every target tournament it belongs to; return their ids."""
        body = msg.body
        matched: List[int] = []
        gid = grouped_group_id(body)
        if gid is not None:
            if gid in self.targets:
                tid = int(gid)
                payload = self._grouped.setdefault(tid, GroupedPayload(tournament_id=tid))
                payload.documents.append(body)
                for eid in grouped_event_ids(body):
                    self._event_owner[eid] = tid
                    self._grouped_events.setdefault(tid, set()).add(eid)
                matched.append(tid)
        elif is_flat_body(body):
            tids: Set[int] = set()
            for lid in sorted(flat_league_ids(body)):
                if lid in self.targets:
                    tid = int(lid)
                    tids.add(tid)
                    for eid in flat_event_ids_for_league(body, lid):
                        self._event_owner[eid] = tid
                        self._flat_events.setdefault(tid, set()).add(eid)
            # Detail-page documents: markets for events already attributed to a target.
            for eid in flat_market_event_ids(body):
                owner = self._event_owner.get(eid)
                if owner is not None:
                    tids.add(owner)
            for tid in sorted(tids):
                self._flat.setdefault(tid, FlatPayload(tournament_id=tid)).documents.append(body)
                matched.append(tid)
        if not matched:
            keys = ", ".join(list(body.keys())[:15]) if isinstance(body, dict) else type(body).__name__
            self.unmatched.append(f"{_short_url(msg.url)} keys: {keys}")
        return matched

    def satisfied(self) -> Set[int]:
        return {tid for tid, p in self._flat.items() if p.documents} | {
            tid for tid, p in self._grouped.items() if p.documents
        }

    def missing(self) -> List[Tournament]:
        have = self.satisfied()
        return [t for t in self.tournaments if t.event_group_id not in have]

    def results(self) -> Dict[int, CapturedPayload]:
        # A shape is only used whole. Flat wins when it lists at least as many of
        # the league's events as the grouped listing, so a single detail-page
        # event never replaces a grouped listing.
        out: Dict[int, CapturedPayload] = {}
        for t in self.tournaments:
            tid = t.event_group_id
            flat_n = len(self._flat_events.get(tid, ()))
            if flat_n and flat_n >= len(self._grouped_events.get(tid, ())):
                out[tid] = self._flat[tid]
            elif tid in self._grouped and self._grouped[tid].documents:
                out[tid] = self._grouped[tid]
            elif tid in self._flat and self._flat[tid].documents:
                out[tid] = self._flat[tid]
        return out


def detail_candidates(results: Dict[int, CapturedPayload], *, now: Optional[datetime] = None) -> List[str]:
    """
    Upcoming event ids whose captured markets still lack a spread or a total.
    Only flat payloads qualify: event pages answer in the flat shape, which
    cannot be merged into a grouped listing.
    """
    cutoff = now or datetime.now(timezone.utc)
    out: List[str] = []
    for payload in results.values():
        if not isinstance(payload, FlatPayload):
            continue
        for ev in decode_payload(payload):
            if not is_upcoming_status(ev.status):
                continue
            start = parse_start_time(ev.start)
            if start is None or start <= cutoff:
                continue
            buckets = {classify_market(m.name) for m in ev.markets}
            if SPREAD not in buckets or TOTAL not in buckets:
                out.append(ev.id)
    return out


class CaptureEngine:
    def __init__(self, config: ScraperConfig):
        self.config = config

    async def capture(
        self,
        page: Page,
        tournaments: Sequence[Tournament],
        *,
        establish: bool = True,
    ) -> Dict[int, CapturedPayload]:
        if not tournaments:
            return {}
        queue: "asyncio.Queue[CapturedResponse]" = asyncio.Queue()
        observer = ResponseObserver(queue)
        acc = CaptureAccumulator(tournaments)

        # Listen before the first navigation: the home visit can already carry odds.
        observer.attach(page)
        try:
            if establish:
                await establish_session(page, self.config)
            self._drain_nowait(queue, acc)
            await self._run_strategies(page, queue, acc)
            if self.config.detail_limit > 0 and acc.satisfied():
                await self._detail_pass(page, queue, acc)
        finally:
            await observer.detach()
            self._drain_nowait(queue, acc)

        self._log_summary(observer, acc)
        return acc.results()

    # ---- queue draining --------------------------------------------------------

    def _accept(self, acc: CaptureAccumulator, msg: CapturedResponse) -> None:
        tids = acc.offer(msg)
        for tid in tids:
            t = acc.targets.get(str(tid))
            _log("Capture", f"Captured {t.name if t else tid} ({tid}) from {_short_url(msg.url, 120)}")

    def _drain_nowait(self, queue: "asyncio.Queue[CapturedResponse]", acc: CaptureAccumulator) -> None:
        while True:
            try:
                msg = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._accept(acc, msg)

    async def _drain(self, queue: "asyncio.Queue[CapturedResponse]", acc: CaptureAccumulator, settle_ms: int) -> None:
        """
        Consume messages for a fixed settle window. There is no ready signal,
        and pages holding streaming connections never go network-idle.
        """
        loop = asyncio.get_running_loop()
        end = loop.time() + max(0, settle_ms) / 1000.0
        while True:
            remaining = end - loop.time()
            if remaining <= 0:
                break
            try:
                msg = await asyncio.wait_for(queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            self._accept(acc, msg)
        self._drain_nowait(queue, acc)

    async def _visit(
        self,
        page: Page,
        url: str,
        queue: "asyncio.Queue[CapturedResponse]",
        acc: CaptureAccumulator,
        *,
        settle_ms: Optional[int] = None,
    ) -> bool:
        if not await _safe_goto(page, url, timeout_ms=self.config.nav_timeout_ms):
            return False
        await self._drain(queue, acc, self.config.settle_ms if settle_ms is None else settle_ms)
        _log("DK", f"Landed on: {page.url}")
        return True

    # ---- navigation strategies -------------------------------------------------

    async def _run_strategies(self, page: Page, queue, acc: CaptureAccumulator) -> None:
        strategy = self.config.capture_strategy
        if strategy == "direct":
            for t in acc.missing():
                if t.event_group_id in acc.satisfied():
                    continue
                await self._visit(page, tournament_deep_link(t.name, t.slug, base=self.config.home_url), queue, acc)
            if acc.missing():
                await self._secondary(page, queue, acc, deep_links=False)
            return

        if strategy in ("auto", "discover"):
            await self._via_sport_link(page, queue, acc)
        if strategy == "sections" or (strategy == "auto" and not acc.satisfied()):
            await self._via_sections(page, queue, acc)
        _log("DK", f"After {SPORT_NAME.lower()} navigation: captured {len(acc.satisfied())}/{len(acc.tournaments)} tournaments")
        if acc.missing():
            await self._secondary(page, queue, acc, deep_links=True)

    async def _via_sport_link(self, page: Page, queue, acc: CaptureAccumulator) -> None:
        _log("DK", "Scanning page for navigation links...")
        links = await collect_page_links(page)
        sport_links = [l for l in links if any(kw in l["text"].lower() for kw in SPORT_LINK_KEYWORDS)]
        _log("DK", f"Found {len(links)} links, {len(sport_links)} sport-related")
        for link in sport_links:
            _dbg(f"  {link['text']}: {link['href']}")

        link = pick_sport_link(links, SPORT_NAME)
        if link is not None:
            url = _absolute_url(link["href"], self.config.home_url)
            _log("DK", f'Found {SPORT_NAME.lower()} link: "{link["text"]}" -> {url}')
            await self._visit(page, url, queue, acc)
            return

        _log("DK", f"No {SPORT_NAME.lower()} <a> link found. Trying to click {SPORT_NAME} element...")
        clicked = await click_text_element(page, SPORT_NAME)
        if not clicked:
            _log("DK", f"Could not find any {SPORT_NAME} element to click")
            return
        _log("DK", f"Clicked {clicked}")
        await self._drain(queue, acc, self.config.settle_ms)
        _log("DK", f"After click, URL: {page.url}")

    async def _via_sections(self, page: Page, queue, acc: CaptureAccumulator) -> None:
        for url in section_candidate_urls(self.config.home_url):
            before = len(acc.satisfied())
            _log("DK", f"Trying section {url}")
            await self._visit(page, url, queue, acc)
            if len(acc.satisfied()) > before:
                return

    async def _secondary(self, page: Page, queue, acc: CaptureAccumulator, *, deep_links: bool) -> None:
        await _dismiss_overlays_basic(page)
        links = await collect_page_links(page)
        for t in acc.missing():
            if t.event_group_id in acc.satisfied():
                continue
            link = pick_tournament_link(links, name=t.name, event_group_id=t.event_group_id)
            if link is not None:
                url = _absolute_url(link["href"], self.config.home_url)
                _log("DK", f"Opening tournament link: {link['text']} ({url})")
            elif deep_links:
                url = tournament_deep_link(t.name, t.slug, base=self.config.home_url)
                _log("DK", f"Opening tournament deep link: {url}")
            else:
                continue
            await self._visit(page, url, queue, acc)

    async def _detail_pass(self, page: Page, queue, acc: CaptureAccumulator) -> None:
        ids = detail_candidates(acc.results())[: self.config.detail_limit]
        if not ids:
            return
        _log("DK", f"Detail pass: {len(ids)} events missing spread/total markets")
        for eid in ids:
            await self._visit(
                page,
                event_detail_url(eid, base=self.config.home_url),
                queue,
                acc,
                settle_ms=self.config.detail_settle_ms,
            )

    # ---- diagnostics -----------------------------------------------------------

    def _log_summary(self, observer: ResponseObserver, acc: CaptureAccumulator) -> None:
        if _debug_enabled():
            _dbg(f"{len(observer.api_log)} API/network responses:")
            for line in observer.api_log:
                _dbg(f"  {line}")
            _dbg(f"{len(acc.unmatched)} JSON responses matched no target:")
            for line in acc.unmatched:
                _dbg(f"  {line}")
            if observer.rejected:
                parts = ", ".join(f"{k}={v}" for k, v in sorted(observer.rejected.items()))
                _dbg(f"rejected: {parts}")

        results = acc.results()
        _log("DK", f"Captured data for {len(results)}/{len(acc.tournaments)} tournaments:")
        for t in acc.tournaments:
            payload = results.get(t.event_group_id)
            if payload is None:
                _log("DK", f"  MISSING {t.name} ({t.event_group_id})")
                continue
            n_events = len(decode_payload(payload))
            _log("DK", f"  OK {t.name} ({t.event_group_id}) - {n_events} events ({payload.kind})")
