"""Navigation helpers for DraftKings scraping."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from dk_tennis.draftkings_client.base import tournament_search_name
from dk_tennis.logging_utils import _dbg, _log, _short_url

_LINKS_JS = """
() => {
  const out = [];
  document.querySelectorAll('a[href]').forEach((a) => {
    const href = a.getAttribute('href') || '';
    const text = (a.textContent || '').replace(/\\s+/g, ' ').trim().substring(0, 80);
    if (href && text) out.push({ href, text });
  });
  return out;
}
"""

_CLICK_TEXT_JS = """
(want) => {
  const els = document.querySelectorAll(
    'a, button, [role="link"], [role="button"], [role="tab"], li, span, div'
  );
  for (const el of els) {
    const text = (el.textContent || '').trim();
    if (text.toLowerCase() === want && el.children.length <= 2) {
      el.click();
      return `${el.tagName}.${el.className}: "${text}"`;
    }
  }
  return null;
}
"""


async def _safe_goto(page: Page, url: str, *, timeout_ms: int = 60_000) -> bool:
    """
    Navigation that never raises:
    - try domcontentloaded
    - on failure, retry with wait_until='commit'
    Returns False when both attempts failed.
    """
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        return True
    except Exception as ex:
        _dbg(f"goto domcontentloaded failed for {_short_url(url)}: {ex}")
    try:
        await page.goto(url, wait_until="commit", timeout=timeout_ms)
        return True
    except Exception as ex:
        _log("DK", f"Navigation failed for {_short_url(url)}: {ex}")
        return False


async def collect_page_links(page: Page) -> List[Dict[str, str]]:
    try:
        data = await page.evaluate(_LINKS_JS)
    except Exception as ex:
        _dbg(f"link scan failed: {ex}")
        return []
    out: List[Dict[str, str]] = []
    if not isinstance(data, list):
        return out
    for row in data:
        if not isinstance(row, dict):
            continue
        href = row.get("href")
        text = row.get("text")
        if isinstance(href, str) and href and isinstance(text, str) and text:
            out.append({"href": href, "text": text})
    return out


def pick_sport_link(links: List[Dict[str, str]], sport: str) -> Optional[Dict[str, str]]:
    """Exact (case-insensitive) link text wins; substring match is the fallback."""
    want = (sport or "").strip().lower()
    if not want:
        return None
    for link in links:
        if link["text"].strip().lower() == want:
            return link
    for link in links:
        if want in link["text"].lower():
            return link
    return None


def pick_tournament_link(links: List[Dict[str, str]], *, name: str, event_group_id: int) -> Optional[Dict[str, str]]:
    want = tournament_search_name(name)
    gid = str(event_group_id)
    for link in links:
        if want and want in link["text"].lower():
            return link
        if gid in link["href"]:
            return link
    return None


async def click_text_element(page: Page, text: str) -> Optional[str]:
    """Click the first small element whose whole text equals `text` (SPA routing)."""
    try:
        res: Any = await page.evaluate(_CLICK_TEXT_JS, (text or "").strip().lower())
    except Exception as ex:
        _dbg(f"click by text failed: {ex}")
        return None
    return res if isinstance(res, str) and res else None
