"""Logging helpers for scraper internals."""

from __future__ import annotations

import os


def _debug_enabled() -> bool:
    return os.getenv("DKT_DEBUG") in ("1", "true", "yes")


def _dbg(msg: str) -> None:
    if _debug_enabled():
        print(f"[debug] {msg}", flush=True)


def _log(tag: str, msg: str) -> None:
    """
    Progress line for the unattended scrape job.
    Always printed; the tag names the stage (DK, Browser, Capture, Upload, ...).
    """
    print(f"[{tag}] {msg}", flush=True)


def _short_url(url: str, limit: int = 200) -> str:
    u = url or ""
    return u if len(u) <= limit else u[:limit] + "..."
