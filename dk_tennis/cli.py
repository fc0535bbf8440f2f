from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dk_tennis.catalog import Tournament, resolve_tournaments
from dk_tennis.config import CAPTURE_STRATEGIES, ScraperConfig, load_config
from dk_tennis.draftkings_client.base import CatalogError
from dk_tennis.logging_utils import _log
from dk_tennis.normalizer import normalize
from dk_tennis.payloads import (
    CapturedPayload,
    flat_league_ids,
    grouped_group_id,
    payload_from_documents,
)
from dk_tennis.publisher import records_as_dicts
from dk_tennis.runner import run_cycle, run_forever
from dk_tennis.session import BrowserSession
from dk_tennis.summary import _skip_reason_parts


def _dump_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def _dump_captured(dump_dir: Path, tournaments: List[Tournament], payloads: Dict[int, CapturedPayload]) -> List[Path]:
    written: List[Path] = []
    for t in tournaments:
        payload = payloads.get(t.event_group_id)
        if payload is None:
            continue
        path = dump_dir / f"{t.event_group_id}_{payload.kind}.json"
        _dump_json(
            path,
            {
                "tournament_id": t.event_group_id,
                "name": t.name,
                "shape": payload.kind,
                "documents": payload.documents,
            },
        )
        written.append(path)
    return written


def _load_payload_file(path: Path, *, tournament_id: Optional[int], shape: str) -> Tuple[CapturedPayload, Optional[str]]:
    """
    Accepts a capture dump ({tournament_id, name, shape, documents}), a list of
    raw documents, or a single raw document.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    name: Optional[str] = None
    if isinstance(data, dict) and isinstance(data.get("documents"), list):
        documents = [d for d in data["documents"] if isinstance(d, dict)]
        name = data.get("name")
        if tournament_id is None and data.get("tournament_id") is not None:
            tournament_id = int(data["tournament_id"])
        if shape == "auto" and data.get("shape") in ("grouped", "flat"):
            shape = data["shape"]
    elif isinstance(data, list):
        documents = [d for d in data if isinstance(d, dict)]
    elif isinstance(data, dict):
        documents = [data]
    else:
        raise SystemExit(f"{path}: expected a JSON object or array")

    if tournament_id is None:
        ids = {gid for gid in (grouped_group_id(d) for d in documents) if gid}
        for d in documents:
            ids |= flat_league_ids(d)
        if len(ids) != 1:
            raise SystemExit(f"{path}: cannot infer tournament id (found {sorted(ids)}); pass --tournament-id")
        tournament_id = int(next(iter(ids)))
    return payload_from_documents(tournament_id, documents, shape=shape), name


async def cmd_run(config: ScraperConfig, *, once: bool) -> int:
    if not config.api_key:
        _log("Scraper", "WARNING: SCRAPER_API_KEY is not set, uploads will be rejected")
    _log("Scraper", f"DraftKings tennis scraper starting (interval {config.interval_minutes} min)")
    if not once:
        return await run_forever(config)
    session = BrowserSession(config)
    try:
        report = await run_cycle(session, config)
    finally:
        await session.close()
    return 0 if report.ok else 1


async def cmd_tournaments(config: ScraperConfig) -> int:
    try:
        tournaments = await asyncio.to_thread(resolve_tournaments, config)
    except CatalogError as ex:
        print(f"Discovery failed: {ex}", flush=True)
        return 1
    for t in tournaments:
        slug = f" [{t.slug}]" if t.slug else ""
        print(f"{t.event_group_id}\t{t.name}{slug}", flush=True)
    return 0


async def cmd_capture(config: ScraperConfig, *, dump_dir: Optional[str]) -> int:
    session = BrowserSession(config)
    try:
        report = await run_cycle(session, config, publish=False)
    finally:
        await session.close()
    if dump_dir:
        out = Path(dump_dir)
        for path in _dump_captured(out, report.tournaments, report.payloads):
            _log("Scraper", f"Wrote {path}")
        records_path = out / "records.json"
        _dump_json(records_path, records_as_dicts(report.records))
        _log("Scraper", f"Wrote {records_path}")
    else:
        print(json.dumps(records_as_dicts(report.records), ensure_ascii=False, indent=2), flush=True)
    return 0 if report.ok else 1


async def cmd_normalize(*, payload_path: str, label: Optional[str], shape: str, tournament_id: Optional[int]) -> int:
    payload, dumped_name = _load_payload_file(Path(payload_path), tournament_id=tournament_id, shape=shape)
    stats: Dict[str, int] = {}
    records = normalize(payload, label or dumped_name or str(payload.tournament_id), stats=stats)
    print(json.dumps(records_as_dicts(records), ensure_ascii=False, indent=2), flush=True)
    parts = _skip_reason_parts(stats)
    _log("Transform", f"{len(records)} records ({payload.kind})" + (f" | skipped: {', '.join(parts)}" if parts else ""))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="dk-tennis")
    parser.add_argument("--headed", action="store_true", help="Run with visible browser window")
    parser.add_argument(
        "--strategy",
        choices=list(CAPTURE_STRATEGIES),
        default=None,
        help="Capture navigation strategy (default: DKT_CAPTURE_STRATEGY or auto)",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Scrape on a recurring interval and upload to Supabase")
    p_run.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    p_run.add_argument("--no-run-on-start", action="store_true", help="Wait for the first scheduled run")

    sub.add_parser("tournaments", help="List the tennis tournaments that would be scraped")

    p_capture = sub.add_parser("capture", help="Capture and normalize without uploading")
    p_capture.add_argument("--dump-dir", type=str, default=None, help="Write raw captured documents and records here")

    p_norm = sub.add_parser("normalize", help="Normalize a saved payload file offline")
    p_norm.add_argument("--payload", type=str, required=True, help="Capture dump or raw DraftKings JSON")
    p_norm.add_argument("--label", type=str, default=None, help="Tournament label for the league field")
    p_norm.add_argument("--shape", choices=["auto", "grouped", "flat"], default="auto")
    p_norm.add_argument("--tournament-id", type=int, default=None)

    args = parser.parse_args(argv)

    config = load_config()
    overrides: Dict[str, Any] = {}
    if args.headed:
        overrides["headless"] = False
    if args.strategy:
        overrides["capture_strategy"] = args.strategy
    if getattr(args, "no_run_on_start", False):
        overrides["run_on_start"] = False
    if overrides:
        config = config.with_overrides(**overrides)

    if args.cmd == "run":
        return asyncio.run(cmd_run(config, once=args.once))
    if args.cmd == "tournaments":
        return asyncio.run(cmd_tournaments(config))
    if args.cmd == "capture":
        return asyncio.run(cmd_capture(config, dump_dir=args.dump_dir))
    if args.cmd == "normalize":
        return asyncio.run(
            cmd_normalize(
                payload_path=args.payload,
                label=args.label,
                shape=args.shape,
                tournament_id=args.tournament_id,
            )
        )
    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
