import io
import json
import unittest
from unittest.mock import patch
from urllib.error import HTTPError

from dk_tennis.catalog import Tournament, resolve_tournaments, tournaments_from_nav
from dk_tennis.config import ScraperConfig
from dk_tennis.draftkings_client.base import CatalogError


def _nav(*groups):
    return {"displayGroupInfos": list(groups)}


def _tennis(display_id="6", display_name="Tennis", *entries):
    return {
        "displayGroupId": display_id,
        "displayName": display_name,
        "eventGroupInfos": [{"eventGroupId": gid, "eventGroupName": name} for gid, name in entries],
    }


class _FakeHTTPResponse:
    def __init__(self, body: str, status: int = 200):
        self.status = status
        self._body = body.encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class CatalogResolverTests(unittest.TestCase):
    def test_doubles_and_covered_events_are_dropped(self) -> None:
        data = _nav(
            {"displayGroupId": "2", "displayName": "Football", "eventGroupInfos": [{"eventGroupId": "1", "eventGroupName": "NFL"}]},
            _tennis(
                "6",
                "Tennis",
                ("12345", "ATP - Delray Beach"),
                ("12346", "WTA Doubles - Delray Beach"),
                ("777", "ATP - Indian Wells"),
                ("12347", "WTA - Dubai"),
            ),
        )
        out = tournaments_from_nav(data, ScraperConfig())
        self.assertEqual([t.event_group_id for t in out], [12345, 12347])
        self.assertEqual(out[0].name, "ATP - Delray Beach")

    def test_sport_matched_by_display_name_case_insensitively(self) -> None:
        data = _nav(_tennis("99", "TENNIS", ("12345", "ATP - Delray Beach")))
        out = tournaments_from_nav(data, ScraperConfig())
        self.assertEqual(out, [Tournament(event_group_id=12345, name="ATP - Delray Beach")])

    def test_sport_missing_returns_empty(self) -> None:
        data = _nav({"displayGroupId": "2", "displayName": "Football", "eventGroupInfos": []})
        self.assertEqual(tournaments_from_nav(data, ScraperConfig()), [])

    def test_entries_without_id_or_name_are_skipped(self) -> None:
        data = _nav(
            {
                "displayGroupId": "6",
                "displayName": "Tennis",
                "eventGroupInfos": [
                    {"eventGroupName": "No Id"},
                    {"eventGroupId": "55"},
                    {"eventGroupId": "56", "displayName": "ATP - Rotterdam", "urlName": "atp-rotterdam"},
                ],
            }
        )
        out = tournaments_from_nav(data, ScraperConfig())
        self.assertEqual(out, [Tournament(event_group_id=56, name="ATP - Rotterdam", slug="atp-rotterdam")])

    def test_allow_list_is_applied_last(self) -> None:
        data = _nav(_tennis("6", "Tennis", ("1", "ATP - Dubai"), ("2", "ATP - Los Cabos"), ("3", "ATP Doubles - Dubai")))
        cfg = ScraperConfig(allowed_keywords=("dubai",))
        self.assertEqual([t.event_group_id for t in tournaments_from_nav(data, cfg)], [1])

    def test_malformed_group_list_raises(self) -> None:
        with self.assertRaises(CatalogError):
            tournaments_from_nav({"displayGroupInfos": "oops"}, ScraperConfig())

    def test_resolve_over_http(self) -> None:
        body = json.dumps(_nav(_tennis("6", "Tennis", ("12345", "ATP - Delray Beach"), ("12346", "WTA Doubles - Delray Beach"))))
        with patch("dk_tennis.catalog._urlrequest.urlopen", return_value=_FakeHTTPResponse(body)) as urlopen:
            out = resolve_tournaments(ScraperConfig())
        self.assertEqual([t.event_group_id for t in out], [12345])
        req = urlopen.call_args[0][0]
        self.assertIn("/nav/sports", req.full_url)

    def test_http_error_is_catalog_error(self) -> None:
        err = HTTPError("https://x", 403, "Forbidden", hdrs=None, fp=io.BytesIO(b"blocked"))
        with patch("dk_tennis.catalog._urlrequest.urlopen", side_effect=err):
            with self.assertRaises(CatalogError):
                resolve_tournaments(ScraperConfig())

    def test_invalid_json_and_non_object_are_catalog_errors(self) -> None:
        for body in ("<html>blocked</html>", "[1, 2, 3]"):
            with patch("dk_tennis.catalog._urlrequest.urlopen", return_value=_FakeHTTPResponse(body)):
                with self.assertRaises(CatalogError, msg=body):
                    resolve_tournaments(ScraperConfig())


if __name__ == "__main__":
    unittest.main()
