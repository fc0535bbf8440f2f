"""
Capture cycle orchestration and the recurring trigger.

A cycle is: discovery -> session capture -> normalization -> publish. Each
cycle owns the BrowserSession exclusively; any failure closes the session so
the next cycle starts from a fresh browser.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import schedule

from dk_tennis.capture import CaptureEngine
from dk_tennis.catalog import Tournament, resolve_tournaments
from dk_tennis.config import ScraperConfig
from dk_tennis.logging_utils import _log
from dk_tennis.normalizer import NormalizedMatchRecord, _bump, normalize
from dk_tennis.payloads import CapturedPayload
from dk_tennis.publisher import PublishResult, publish_events
from dk_tennis.session import BrowserSession, SessionBusyError
from dk_tennis.summary import _error_code, _skip_reason_parts


@dataclass
class CycleReport:
    started_at: str
    tournaments: List[Tournament] = field(default_factory=list)
    payloads: Dict[int, CapturedPayload] = field(default_factory=dict)
    records: List[NormalizedMatchRecord] = field(default_factory=list)
    published: Optional[PublishResult] = None
    skip_reasons: Dict[str, int] = field(default_factory=dict)
    error_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None


def normalize_captured(
    tournaments: Sequence[Tournament],
    payloads: Dict[int, CapturedPayload],
    *,
    now: Optional[datetime] = None,
    stats: Optional[Dict[str, int]] = None,
) -> List[NormalizedMatchRecord]:
    out: List[NormalizedMatchRecord] = []
    for t in tournaments:
        payload = payloads.get(t.event_group_id)
        if payload is None:
            _log("Transform", f"{t.name}: no data captured")
            continue
        try:
            recs = normalize(payload, t.name, now=now, stats=stats)
        except Exception as ex:
            _bump(stats, "normalize_failed")
            _log("Transform", f"{t.name}: normalization failed: {type(ex).__name__}: {ex}")
            continue
        _log("Transform", f"{t.name}: {len(recs)} upcoming matches")
        out.extend(recs)
    return out


def _log_cycle_summary(report: CycleReport) -> None:
    line = (
        f"Cycle done: tournaments={len(report.tournaments)} captured={len(report.payloads)} "
        f"records={len(report.records)}"
    )
    if report.published is not None:
        line += f" uploaded={report.published.events_processed}"
    parts = _skip_reason_parts(report.skip_reasons)
    if parts:
        line += " | skipped: " + ", ".join(parts)
    if report.error_code:
        line += f" | error={report.error_code}"
    _log("Scraper", line)


async def run_cycle(
    session: BrowserSession,
    config: ScraperConfig,
    *,
    publish: bool = True,
    engine: Optional[CaptureEngine] = None,
    resolver: Callable[[ScraperConfig], List[Tournament]] = resolve_tournaments,
    publisher: Callable[..., Optional[PublishResult]] = publish_events,
    now: Optional[datetime] = None,
) -> CycleReport:
    report = CycleReport(started_at=datetime.now(timezone.utc).isoformat())
    _log("Scraper", f"Starting DraftKings tennis scrape at {report.started_at}")
    engine = engine or CaptureEngine(config)
    try:
        async with session.cycle():
            report.tournaments = list(await asyncio.to_thread(resolver, config))
            if not report.tournaments:
                _log("Scraper", "No tournaments to scrape")
                return report

            page = await session.new_page()
            try:
                report.payloads = await engine.capture(page, report.tournaments)
            finally:
                await session.close_page(page)

            report.records = normalize_captured(
                report.tournaments, report.payloads, now=now, stats=report.skip_reasons
            )
            _log("Transform", f"Total: {len(report.records)} events")
            if publish:
                report.published = await asyncio.to_thread(publisher, report.records, config=config)
    except Exception as ex:
        report.error_code = _error_code(ex)
        report.error = f"{type(ex).__name__}: {ex}"
        _log("Scraper", f"Fatal error ({report.error_code}): {report.error}")
        if not isinstance(ex, SessionBusyError):
            await session.close()
    finally:
        _log_cycle_summary(report)
    return report


async def run_forever(
    config: ScraperConfig,
    *,
    session: Optional[BrowserSession] = None,
    stop: Optional[asyncio.Event] = None,
    poll_s: float = 30.0,
    cycle: Optional[Callable[..., Awaitable[CycleReport]]] = None,
) -> int:
    """
    Run a cycle every `interval_minutes` (plus one on start unless disabled)
    until `stop` is set. Cycles are awaited in-line, so they never overlap.
    """
    session = session or BrowserSession(config)
    stop = stop or asyncio.Event()
    cycle = cycle or run_cycle

    due: List[int] = []
    scheduler = schedule.Scheduler()
    scheduler.every(max(1, int(config.interval_minutes))).minutes.do(lambda: due.append(1))
    _log("Scheduler", f"Scheduled every {config.interval_minutes} minutes")

    cycles = 0
    try:
        if config.run_on_start:
            _log("Scheduler", "Running initial scrape...")
            await cycle(session, config)
            cycles += 1
        while not stop.is_set():
            scheduler.run_pending()
            if due:
                due.clear()
                _log("Scheduler", "Scheduled scrape triggered")
                await cycle(session, config)
                cycles += 1
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_s)
            except asyncio.TimeoutError:
                pass
    finally:
        scheduler.clear()
        await session.close()
        _log("Scheduler", f"Stopped after {cycles} cycles")
    return 0
