"""Process-wide browser session, owned explicitly by the caller of each cycle."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from dk_tennis.browser_utils import cookie_count, disable_network_cache, page_is_usable
from dk_tennis.config import USER_AGENT, VIEWPORT, ScraperConfig
from dk_tennis.draftkings_client.base import DraftKingsError
from dk_tennis.draftkings_client.navigation import _safe_goto
from dk_tennis.draftkings_client.overlays import _dismiss_overlays_basic
from dk_tennis.logging_utils import _log

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-blink-features=AutomationControlled",
]

# Registered on the context, so it runs before any page script of every navigation.
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""

SESSION_SETTLE_MS = 5_000


class SessionBusyError(DraftKingsError):
    pass


class BrowserSession:
    def __init__(self, config: ScraperConfig):
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: List[BrowserContext] = []
        self._owner: Optional[asyncio.Lock] = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def open(self) -> Browser:
        """Launch Chromium once; later calls reuse it while it stays connected."""
        if self._browser is not None:
            try:
                if self._browser.is_connected():
                    return self._browser
            except Exception:
                pass
            _log("Browser", "Chromium disconnected, relaunching")
            await self.close()

        path = self.config.chromium_path
        _log("Browser", f"Launching Chromium{' from ' + path if path else ''}...")
        pw = await async_playwright().start()
        try:
            browser = await pw.chromium.launch(
                headless=self.config.headless,
                executable_path=path,
                args=list(LAUNCH_ARGS),
            )
        except Exception:
            await pw.stop()
            raise
        self._playwright = pw
        self._browser = browser
        _log("Browser", "Chromium launched")
        return browser

    async def new_page(self) -> Page:
        browser = await self.open()
        context = await browser.new_context(
            viewport=dict(VIEWPORT),
            user_agent=USER_AGENT,
            locale="en-US",
        )
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            context.set_default_timeout(15_000)
            context.set_default_navigation_timeout(self.config.nav_timeout_ms)
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        await disable_network_cache(page)
        self._contexts.append(context)
        return page

    async def close_page(self, page: Optional[Page]) -> None:
        if not page_is_usable(page):
            return
        ctx = page.context
        try:
            await ctx.close()
        except Exception as ex:
            _log("Browser", f"Page close failed: {ex}")
        if ctx in self._contexts:
            self._contexts.remove(ctx)

    async def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        self._contexts = []
        if browser is None and pw is None:
            return
        if browser is not None:
            try:
                await browser.close()
            except Exception as ex:
                _log("Browser", f"Chromium close failed: {ex}")
        if pw is not None:
            try:
                await pw.stop()
            except Exception as ex:
                _log("Browser", f"Playwright stop failed: {ex}")
        _log("Browser", "Chromium closed")

    @asynccontextmanager
    async def cycle(self) -> AsyncIterator["BrowserSession"]:
        """
        Exclusive ownership of the session for one scrape cycle.
        A second concurrent owner is refused instead of queued.
        """
        if self._owner is None:
            self._owner = asyncio.Lock()
        if self._owner.locked():
            raise SessionBusyError("session is owned by another capture cycle")
        async with self._owner:
            yield self


async def establish_session(page: Page, config: ScraperConfig) -> bool:
    """
    Visit the sportsbook home so cookies land on .draftkings.com before the
    site's own API calls fire.
    """
    _log("Browser", "Navigating to DraftKings to establish session...")
    ok = await _safe_goto(page, config.home_url, timeout_ms=config.nav_timeout_ms)
    if not ok:
        return False
    await page.wait_for_timeout(SESSION_SETTLE_MS)
    await _dismiss_overlays_basic(page)
    n = await cookie_count(page)
    _log("Browser", f"Session established. {n} cookies set. Landed on: {page.url}")
    return True
