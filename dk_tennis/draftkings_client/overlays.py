"""Overlay/consent handling helpers."""

from __future__ import annotations

import re

from playwright.async_api import Page

from dk_tennis.logging_utils import _dbg


async def _dismiss_overlays_basic(page: Page) -> None:
    try:
        await page.keyboard.press("Escape")
    except Exception:
        pass

    # Cookie banner (OneTrust) exposes a stable button id.
    try:
        banner_btn = page.locator("#onetrust-accept-btn-handler")
        if await banner_btn.count() and await banner_btn.first.is_visible():
            await banner_btn.first.click(timeout=2000, force=True)
            await page.wait_for_timeout(300)
    except Exception as ex:
        _dbg(f"cookie banner: {ex}")

    # Location / promo modals: accept or close.
    for rx in (
        r"accept all|allow all|accept|agree|got it|ok|okay",
        r"^\s*(close|no thanks|not now|maybe later)\s*$",
    ):
        try:
            btn = page.locator("button").filter(has_text=re.compile(rx, re.I))
            if await btn.count() and await btn.first.is_visible():
                await btn.first.click(timeout=2000, force=True)
                await page.wait_for_timeout(350)
        except Exception as ex:
            _dbg(f"overlay button {rx!r}: {ex}")
