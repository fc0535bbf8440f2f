import io
import json
import unittest
from unittest.mock import patch
from urllib.error import HTTPError

from dk_tennis.config import ScraperConfig
from dk_tennis.normalizer import NormalizedMatchRecord
from dk_tennis.publisher import PublishError, PublishResult, publish_events


def _record(eid="e1"):
    return NormalizedMatchRecord(
        external_id=f"dk_tennis_{eid}",
        sport="Tennis",
        league="ATP - Delray Beach",
        home_team_name="Player A",
        home_team_abbr="P. A",
        away_team_name="Player B",
        away_team_abbr="P. B",
        start_time="2099-03-01T15:00:00Z",
        status="scheduled",
        is_outdoor=True,
        moneyline_home=-150,
        moneyline_away=130,
    )


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


class PublisherTests(unittest.TestCase):
    def test_posts_all_records_with_bearer_auth(self) -> None:
        cfg = ScraperConfig(supabase_url="https://proj.supabase.co", api_key="secret")
        resp = _FakeHTTPResponse(json.dumps({"events_processed": 2, "timestamp": "2099-01-01T00:00:00Z"}))
        with patch("dk_tennis.publisher._urlrequest.urlopen", return_value=resp) as urlopen:
            result = publish_events([_record("e1"), _record("e2")], config=cfg)
        self.assertEqual(result, PublishResult(events_processed=2, timestamp="2099-01-01T00:00:00Z"))
        req = urlopen.call_args[0][0]
        self.assertEqual(req.full_url, "https://proj.supabase.co/functions/v1/save-draftkings-tennis")
        self.assertEqual(req.get_method(), "POST")
        self.assertEqual(req.get_header("Authorization"), "Bearer secret")
        sent = json.loads(req.data.decode("utf-8"))
        self.assertEqual([e["external_id"] for e in sent["events"]], ["dk_tennis_e1", "dk_tennis_e2"])
        self.assertIsNone(sent["events"][0]["spread_home"])

    def test_upload_url_override(self) -> None:
        cfg = ScraperConfig(upload_url="https://example.test/ingest")
        self.assertEqual(cfg.upload_endpoint, "https://example.test/ingest")

    def test_empty_batch_is_a_no_op(self) -> None:
        with patch("dk_tennis.publisher._urlrequest.urlopen") as urlopen:
            self.assertIsNone(publish_events([], config=ScraperConfig()))
        urlopen.assert_not_called()

    def test_non_2xx_raises_publish_error(self) -> None:
        err = HTTPError("https://x", 401, "Unauthorized", hdrs=None, fp=io.BytesIO(b'{"error":"bad key"}'))
        with patch("dk_tennis.publisher._urlrequest.urlopen", side_effect=err):
            with self.assertRaises(PublishError) as ctx:
                publish_events([_record()], config=ScraperConfig(api_key="k"))
        self.assertEqual(ctx.exception.status, 401)
        self.assertIn("bad key", ctx.exception.body)

    def test_unparseable_success_body_still_succeeds(self) -> None:
        with patch("dk_tennis.publisher._urlrequest.urlopen", return_value=_FakeHTTPResponse("ok")):
            result = publish_events([_record()], config=ScraperConfig())
        self.assertEqual(result, PublishResult(events_processed=None, timestamp=None))


if __name__ == "__main__":
    unittest.main()
