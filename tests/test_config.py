import os
import unittest
from unittest.mock import patch

from dk_tennis.config import DEFAULT_EXCLUDED_KEYWORDS, ScraperConfig, load_config


class ConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        self.assertEqual(cfg, ScraperConfig())
        self.assertEqual(cfg.interval_minutes, 120)
        self.assertTrue(cfg.run_on_start)
        self.assertEqual(cfg.category_excludes, ("doubles",))
        self.assertEqual(cfg.excluded_keywords, DEFAULT_EXCLUDED_KEYWORDS)
        self.assertTrue(cfg.upload_endpoint.endswith("/functions/v1/save-draftkings-tennis"))

    def test_run_on_start_only_disabled_by_false(self) -> None:
        with patch.dict(os.environ, {"RUN_ON_START": "false"}, clear=True):
            self.assertFalse(load_config().run_on_start)
        with patch.dict(os.environ, {"RUN_ON_START": "0"}, clear=True):
            self.assertTrue(load_config().run_on_start)

    def test_env_overrides(self) -> None:
        env = {
            "SUPABASE_URL": "https://proj.supabase.co/",
            "SCRAPER_API_KEY": " key ",
            "DKT_INTERVAL_MINUTES": "30",
            "DKT_EXCLUDED_TOURNAMENTS": "Dubai, Doha ,",
            "DKT_ALLOWED_TOURNAMENTS": "delray",
            "DKT_HEADLESS": "no",
            "DKT_DETAIL_LIMIT": "-3",
            "DKT_CAPTURE_STRATEGY": "teleport",
            "PUPPETEER_EXECUTABLE_PATH": "/usr/bin/chromium",
            "DKT_SETTLE_MS": "not a number",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()
        self.assertEqual(cfg.api_key, "key")
        self.assertEqual(cfg.interval_minutes, 30)
        self.assertEqual(cfg.excluded_keywords, ("dubai", "doha"))
        self.assertEqual(cfg.allowed_keywords, ("delray",))
        self.assertFalse(cfg.headless)
        self.assertEqual(cfg.detail_limit, 0)
        self.assertEqual(cfg.capture_strategy, "auto")
        self.assertEqual(cfg.chromium_path, "/usr/bin/chromium")
        self.assertEqual(cfg.settle_ms, 10_000)
        self.assertEqual(cfg.upload_endpoint, "https://proj.supabase.co/functions/v1/save-draftkings-tennis")

    def test_with_overrides_keeps_config_frozen(self) -> None:
        cfg = ScraperConfig()
        headed = cfg.with_overrides(headless=False)
        self.assertTrue(cfg.headless)
        self.assertFalse(headed.headless)


if __name__ == "__main__":
    unittest.main()
