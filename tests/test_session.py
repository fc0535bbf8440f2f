import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from dk_tennis.config import USER_AGENT, ScraperConfig
from dk_tennis.session import LAUNCH_ARGS, STEALTH_INIT_SCRIPT, BrowserSession, SessionBusyError


def _fake_playwright():
    browser = MagicMock()
    browser.is_connected.return_value = True
    browser.close = AsyncMock()
    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    return starter, pw, browser


class BrowserSessionTests(unittest.IsolatedAsyncioTestCase):
    async def test_close_without_session_is_a_no_op(self) -> None:
        session = BrowserSession(ScraperConfig())
        await session.close()
        await session.close()
        self.assertFalse(session.is_open)

    async def test_open_is_idempotent_and_close_tears_down(self) -> None:
        starter, pw, browser = _fake_playwright()
        session = BrowserSession(ScraperConfig(headless=True, chromium_path="/usr/bin/chromium"))
        with patch("dk_tennis.session.async_playwright", return_value=starter):
            self.assertIs(await session.open(), browser)
            self.assertIs(await session.open(), browser)
        pw.chromium.launch.assert_awaited_once()
        kwargs = pw.chromium.launch.await_args.kwargs
        self.assertEqual(kwargs["executable_path"], "/usr/bin/chromium")
        self.assertIn("--disable-blink-features=AutomationControlled", kwargs["args"])
        self.assertEqual(len(kwargs["args"]), len(LAUNCH_ARGS))
        await session.close()
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        self.assertFalse(session.is_open)

    async def test_disconnected_browser_is_relaunched(self) -> None:
        starter, pw, browser = _fake_playwright()
        session = BrowserSession(ScraperConfig())
        with patch("dk_tennis.session.async_playwright", return_value=starter):
            await session.open()
            browser.is_connected.return_value = False
            await session.open()
        self.assertEqual(pw.chromium.launch.await_count, 2)
        browser.close.assert_awaited_once()

    async def test_new_page_masks_webdriver_before_page_exists(self) -> None:
        starter, pw, browser = _fake_playwright()
        order = []
        page = MagicMock()
        cdp = MagicMock()
        cdp.send = AsyncMock()
        context = MagicMock()
        context.add_init_script = AsyncMock(side_effect=lambda *a, **k: order.append("init_script"))
        context.new_page = AsyncMock(side_effect=lambda: order.append("new_page") or page)
        context.new_cdp_session = AsyncMock(return_value=cdp)
        page.context = context
        browser.new_context = AsyncMock(return_value=context)

        session = BrowserSession(ScraperConfig(nav_timeout_ms=45_000))
        with patch("dk_tennis.session.async_playwright", return_value=starter):
            got = await session.new_page()

        self.assertIs(got, page)
        self.assertEqual(order, ["init_script", "new_page"])
        kwargs = browser.new_context.await_args.kwargs
        self.assertEqual(kwargs["viewport"], {"width": 1920, "height": 1080})
        self.assertEqual(kwargs["user_agent"], USER_AGENT)
        self.assertEqual(kwargs["locale"], "en-US")
        self.assertEqual(context.add_init_script.await_args.args[0], STEALTH_INIT_SCRIPT)
        self.assertIn("webdriver", STEALTH_INIT_SCRIPT)
        context.set_default_navigation_timeout.assert_called_once_with(45_000)
        cdp.send.assert_awaited_once_with("Network.setCacheDisabled", {"cacheDisabled": True})

    async def test_close_page_closes_its_context(self) -> None:
        session = BrowserSession(ScraperConfig())
        page = MagicMock()
        page.is_closed.return_value = False
        page.context.close = AsyncMock()
        await session.close_page(page)
        page.context.close.assert_awaited_once()

        page.is_closed.return_value = True
        await session.close_page(page)
        page.context.close.assert_awaited_once()

    async def test_second_owner_is_refused(self) -> None:
        session = BrowserSession(ScraperConfig())
        async with session.cycle():
            with self.assertRaises(SessionBusyError):
                async with session.cycle():
                    pass
        async with session.cycle() as owned:
            self.assertIs(owned, session)


if __name__ == "__main__":
    unittest.main()
