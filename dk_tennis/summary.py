from __future__ import annotations

from typing import Dict, List, Tuple

from playwright.async_api import Error as PlaywrightError

from dk_tennis.draftkings_client.base import CatalogError
from dk_tennis.publisher import PublishError
from dk_tennis.session import SessionBusyError

SKIP_KEYS: Tuple[str, ...] = ("not_upcoming", "started", "bad_start", "unnamed", "normalize_failed")


def _error_code(ex: BaseException) -> str:
    """Short, stable code for a cycle-level failure (used in the cycle summary)."""
    if isinstance(ex, CatalogError):
        return "discovery_failed"
    if isinstance(ex, PublishError):
        return "publish_failed"
    if isinstance(ex, SessionBusyError):
        return "session_busy"
    if isinstance(ex, PlaywrightError):
        return "browser_failed"
    lo = str(ex or "").lower()
    if "browser has been closed" in lo or "target closed" in lo or "chromium" in lo:
        return "browser_failed"
    return "unexpected"


def _skip_reason_parts(
    skip_reasons: Dict[str, int],
    *,
    base_keys: Tuple[str, ...] = SKIP_KEYS,
    include_other: bool = True,
) -> List[str]:
    parts: List[str] = []
    for k in base_keys:
        v = int(skip_reasons.get(k, 0) or 0)
        if v > 0:
            parts.append(f"{k}={v}")
    if include_other:
        other = sorted(
            ((k, int(v)) for k, v in skip_reasons.items() if k not in base_keys and int(v or 0) > 0),
            key=lambda kv: kv[1],
            reverse=True,
        )
        if other:
            parts.append("other[" + ", ".join(f"{k}={v}" for k, v in other) + "]")
    return parts
