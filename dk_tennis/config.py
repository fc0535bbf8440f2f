from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

DK_NAV_URL = "https://sportsbook-nash.draftkings.com/api/sportscontent/dkusnj/v1/nav/sports"
DK_HOME_URL = "https://sportsbook.draftkings.com"
# Tennis is displayGroupId "6" in the nav API (returned as a string).
TENNIS_DISPLAY_GROUP_ID = "6"
SPORT_NAME = "Tennis"

DEFAULT_SUPABASE_URL = "https://atfqqsejqbtebwouggpl.supabase.co"
UPLOAD_FUNCTION_PATH = "/functions/v1/save-draftkings-tennis"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}

# Grand Slams and 1000-level events come from the odds API feed already.
DEFAULT_EXCLUDED_KEYWORDS: Tuple[str, ...] = (
    "australian open",
    "french open",
    "roland garros",
    "wimbledon",
    "us open",
    "indian wells",
    "miami",
    "monte carlo",
    "madrid",
    "rome",
    "italian open",
    "montreal",
    "toronto",
    "canadian open",
    "cincinnati",
    "shanghai",
    "paris masters",
)
DEFAULT_CATEGORY_EXCLUDES: Tuple[str, ...] = ("doubles",)

CAPTURE_STRATEGIES = ("auto", "discover", "sections", "direct")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw not in (None, "") else default
    except Exception:
        return default


def _env_keywords(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(k.strip().lower() for k in raw.split(",") if k.strip())


@dataclass(frozen=True)
class ScraperConfig:
    nav_url: str = DK_NAV_URL
    home_url: str = DK_HOME_URL
    supabase_url: str = DEFAULT_SUPABASE_URL
    api_key: str = ""
    upload_url: str = ""
    interval_minutes: int = 120
    run_on_start: bool = True
    excluded_keywords: Tuple[str, ...] = DEFAULT_EXCLUDED_KEYWORDS
    category_excludes: Tuple[str, ...] = DEFAULT_CATEGORY_EXCLUDES
    allowed_keywords: Tuple[str, ...] = field(default_factory=tuple)
    chromium_path: Optional[str] = None
    headless: bool = True
    nav_timeout_ms: int = 60_000
    settle_ms: int = 10_000
    detail_settle_ms: int = 4_000
    detail_limit: int = 12
    capture_strategy: str = "auto"
    http_timeout_s: float = 30.0

    @property
    def upload_endpoint(self) -> str:
        if self.upload_url:
            return self.upload_url
        return f"{self.supabase_url.rstrip('/')}{UPLOAD_FUNCTION_PATH}"

    def with_overrides(self, **changes) -> "ScraperConfig":
        return replace(self, **changes)


def load_config() -> ScraperConfig:
    strategy = (os.getenv("DKT_CAPTURE_STRATEGY") or "auto").strip().lower()
    if strategy not in CAPTURE_STRATEGIES:
        strategy = "auto"
    chromium = (os.getenv("DKT_CHROMIUM_PATH") or os.getenv("PUPPETEER_EXECUTABLE_PATH") or "").strip()
    return ScraperConfig(
        nav_url=(os.getenv("DK_NAV_URL") or DK_NAV_URL).strip(),
        home_url=(os.getenv("DKT_HOME_URL") or DK_HOME_URL).strip().rstrip("/"),
        supabase_url=(os.getenv("SUPABASE_URL") or DEFAULT_SUPABASE_URL).strip(),
        api_key=(os.getenv("SCRAPER_API_KEY") or "").strip(),
        upload_url=(os.getenv("DKT_UPLOAD_URL") or "").strip(),
        interval_minutes=max(1, _env_int("DKT_INTERVAL_MINUTES", 120)),
        # Only an explicit "false" disables the startup run.
        run_on_start=(os.getenv("RUN_ON_START") or "").strip().lower() != "false",
        excluded_keywords=_env_keywords("DKT_EXCLUDED_TOURNAMENTS", DEFAULT_EXCLUDED_KEYWORDS),
        category_excludes=_env_keywords("DKT_CATEGORY_EXCLUDES", DEFAULT_CATEGORY_EXCLUDES),
        allowed_keywords=_env_keywords("DKT_ALLOWED_TOURNAMENTS", ()),
        chromium_path=chromium or None,
        headless=_env_flag("DKT_HEADLESS", True),
        nav_timeout_ms=_env_int("DKT_NAV_TIMEOUT_MS", 60_000),
        settle_ms=_env_int("DKT_SETTLE_MS", 10_000),
        detail_settle_ms=_env_int("DKT_DETAIL_SETTLE_MS", 4_000),
        detail_limit=max(0, _env_int("DKT_DETAIL_LIMIT", 12)),
        capture_strategy=strategy,
        http_timeout_s=_env_float("DKT_HTTP_TIMEOUT_S", 30.0),
    )
