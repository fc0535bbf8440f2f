# Page-level helpers for the capture session.

from typing import Optional

from playwright.async_api import Page

from dk_tennis.logging_utils import _dbg


async def disable_network_cache(page: Page) -> bool:
    """
    Turn off the HTTP cache for this page's CDP target. Cached or 304 odds
    responses reach the observer without a body, so every capture page needs it.
    Returns False when the browser has no CDP (non-Chromium) or the call fails.
    """
    try:
        cdp = await page.context.new_cdp_session(page)
        await cdp.send("Network.setCacheDisabled", {"cacheDisabled": True})
    except Exception as ex:
        _dbg(f"HTTP cache left enabled: {ex}")
        return False
    return True


def page_is_usable(page: Optional[Page]) -> bool:
    """A page that is still open and worth closing."""
    if page is None:
        return False
    try:
        return not page.is_closed()
    except Exception:
        return False


async def cookie_count(page: Page) -> int:
    try:
        cookies = await page.context.cookies()
    except Exception:
        return 0
    return len(cookies or [])
