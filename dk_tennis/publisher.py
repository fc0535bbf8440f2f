from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib import request as _urlrequest
from urllib.error import HTTPError, URLError

from dk_tennis.config import USER_AGENT, ScraperConfig
from dk_tennis.logging_utils import _log, _short_url
from dk_tennis.normalizer import NormalizedMatchRecord


class PublishError(RuntimeError):
    def __init__(self, status: int, body: str):
        self.status = int(status)
        self.body = body
        super().__init__(f"Upload failed: {self.status} {body[:300]}")


@dataclass(frozen=True)
class PublishResult:
    events_processed: Optional[int]
    timestamp: Optional[str]


def _build_request(records: Sequence[NormalizedMatchRecord], config: ScraperConfig) -> _urlrequest.Request:
    body = json.dumps({"events": [r.to_dict() for r in records]}, ensure_ascii=False).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return _urlrequest.Request(config.upload_endpoint, data=body, headers=headers, method="POST")


def _parse_result(raw: str) -> PublishResult:
    try:
        data: Any = json.loads(raw) if raw else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    processed = data.get("events_processed")
    try:
        processed = int(processed) if processed is not None else None
    except (TypeError, ValueError):
        processed = None
    ts = data.get("timestamp")
    return PublishResult(events_processed=processed, timestamp=str(ts) if ts is not None else None)


def publish_events(records: List[NormalizedMatchRecord], *, config: ScraperConfig) -> Optional[PublishResult]:
    """
    POST all records of a cycle in one request. Non-2xx raises PublishError;
    an empty batch is skipped and returns None.
    """
    if not records:
        _log("Upload", "No events to upload")
        return None

    req = _build_request(records, config)
    _log("Upload", f"Sending {len(records)} events to {_short_url(config.upload_endpoint)}")
    try:
        with _urlrequest.urlopen(req, timeout=config.http_timeout_s) as resp:
            status = int(getattr(resp, "status", 200) or 200)
            raw = resp.read().decode("utf-8", "ignore")
    except HTTPError as e:
        try:
            detail = e.read().decode("utf-8", "ignore")
        except Exception:
            detail = str(e)
        raise PublishError(e.code, detail) from e
    except URLError as e:
        raise PublishError(0, str(e.reason)) from e

    if not 200 <= status < 300:
        raise PublishError(status, raw)
    result = _parse_result(raw)
    _log("Upload", f"Success: {result.events_processed} events processed at {result.timestamp}")
    return result


def records_as_dicts(records: Sequence[NormalizedMatchRecord]) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in records]
