import unittest

from playwright.async_api import Error as PlaywrightError

from dk_tennis.draftkings_client.base import CatalogError
from dk_tennis.publisher import PublishError
from dk_tennis.session import SessionBusyError
from dk_tennis.summary import _error_code, _skip_reason_parts


class CycleSummaryTests(unittest.TestCase):
    def test_error_codes(self) -> None:
        self.assertEqual(_error_code(CatalogError("403")), "discovery_failed")
        self.assertEqual(_error_code(PublishError(500, "boom")), "publish_failed")
        self.assertEqual(_error_code(SessionBusyError("busy")), "session_busy")
        self.assertEqual(_error_code(PlaywrightError("Target closed")), "browser_failed")
        self.assertEqual(_error_code(RuntimeError("Browser has been closed")), "browser_failed")
        self.assertEqual(_error_code(KeyError("x")), "unexpected")

    def test_skip_reason_parts_known_keys_first(self) -> None:
        parts = _skip_reason_parts({"unnamed": 1, "started": 3, "not_upcoming": 0, "weird": 2})
        self.assertEqual(parts, ["started=3", "unnamed=1", "other[weird=2]"])

    def test_skip_reason_parts_without_other(self) -> None:
        parts = _skip_reason_parts({"started": 2, "weird": 5}, include_other=False)
        self.assertEqual(parts, ["started=2"])


if __name__ == "__main__":
    unittest.main()
