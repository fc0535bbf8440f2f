import unittest

from dk_tennis.payloads import (
    FlatPayload,
    GroupedPayload,
    decode_flat,
    decode_grouped,
    decode_payload,
    flat_league_ids,
    grouped_group_id,
    payload_from_documents,
)


def _event(eid="e1", league="12345", **extra):
    ev = {
        "id": eid,
        "leagueId": league,
        "name": "Player A vs Player B",
        "startEventDate": "2099-03-01T15:00:00Z",
        "status": "NOT_STARTED",
        "participants": [
            {"name": "Player A", "venueRole": "Home"},
            {"name": "Player B", "venueRole": "Away"},
        ],
    }
    ev.update(extra)
    return ev


class FlatDecoderTests(unittest.TestCase):
    def test_later_duplicate_selection_wins(self) -> None:
        first = {
            "events": [_event()],
            "markets": [{"id": "m1", "eventId": "e1", "name": "Moneyline"}],
            "selections": [
                {"id": "s1", "marketId": "m1", "label": "Player A", "displayOdds": {"american": "-150"}},
                {"id": "s2", "marketId": "m1", "label": "Player B", "displayOdds": {"american": "+130"}},
            ],
        }
        second = {
            "markets": [{"id": "m1", "eventId": "e1", "name": "Moneyline"}],
            "selections": [{"id": "s1", "marketId": "m1", "label": "Player A", "displayOdds": {"american": "-175"}}],
        }
        events = decode_flat([first, second], 12345)
        self.assertEqual(len(events), 1)
        self.assertEqual(len(events[0].markets), 1)
        sels = {s.id: s for s in events[0].markets[0].selections}
        self.assertEqual(len(sels), 2)
        self.assertEqual(sels["s1"].american, "-175")
        self.assertEqual(sels["s2"].american, "+130")

    def test_selection_without_id_keys_on_outcome(self) -> None:
        doc = {
            "events": [_event()],
            "markets": [{"id": "m1", "eventId": "e1", "name": "Total Games"}],
            "selections": [
                {"marketId": "m1", "label": "Over", "points": 21.5},
                {"marketId": "m1", "label": "Under", "points": 21.5},
                {"marketId": "m1", "label": "Over", "points": 22.5},
            ],
        }
        sels = decode_flat([doc], "12345")[0].markets[0].selections
        self.assertEqual(sorted((s.label, s.line) for s in sels), [("Over", 22.5), ("Under", 21.5)])

    def test_events_of_other_leagues_are_ignored(self) -> None:
        doc = {"events": [_event("e1"), _event("e2", league="999")]}
        self.assertEqual([e.id for e in decode_flat([doc], 12345)], ["e1"])
        self.assertEqual(flat_league_ids(doc), {"12345", "999"})

    def test_positional_participants_without_roles(self) -> None:
        doc = {"events": [_event(participants=[{"name": "First"}, {"name": "Second"}])]}
        ev = decode_flat([doc], 12345)[0]
        self.assertEqual((ev.home, ev.away), ("First", "Second"))

    def test_status_object_uses_state(self) -> None:
        doc = {"events": [_event(status={"state": "STARTED"})]}
        self.assertEqual(decode_flat([doc], 12345)[0].status, "STARTED")


class GroupedDecoderTests(unittest.TestCase):
    def test_grouped_offers_join_to_events(self) -> None:
        doc = {
            "eventGroup": {
                "eventGroupId": 12345,
                "events": [
                    {
                        "eventId": 111,
                        "name": "A vs B",
                        "startDate": "2099-03-01T15:00:00Z",
                        "teamName1": "A",
                        "teamName2": "B",
                        "eventStatus": {"state": "NOT_STARTED"},
                    }
                ],
                "offerCategories": [
                    {
                        "offerSubcategoryDescriptors": [
                            {
                                "name": "Match Lines",
                                "offerSubcategory": {
                                    "offers": [
                                        [
                                            {
                                                "providerOfferId": "o1",
                                                "eventId": 111,
                                                "label": "Moneyline",
                                                "outcomes": [
                                                    {"label": "A", "oddsAmerican": "-120"},
                                                    {"label": "B", "oddsAmerican": "+100"},
                                                ],
                                            }
                                        ]
                                    ]
                                },
                            }
                        ]
                    }
                ],
            }
        }
        self.assertEqual(grouped_group_id(doc), "12345")
        events = decode_grouped([doc], 12345)
        self.assertEqual(len(events), 1)
        ev = events[0]
        self.assertEqual((ev.id, ev.home, ev.away, ev.status), ("111", "A", "B", "NOT_STARTED"))
        self.assertEqual(ev.markets[0].name, "Moneyline")
        self.assertEqual([s.american for s in ev.markets[0].selections], ["-120", "+100"])
        self.assertEqual(len(decode_payload(GroupedPayload(tournament_id=12345, documents=[doc]))), 1)
        self.assertEqual(decode_grouped([doc], 999), [])


class PayloadShapeTests(unittest.TestCase):
    def test_auto_shape_detection(self) -> None:
        self.assertIsInstance(payload_from_documents(1, [{"eventGroup": {"eventGroupId": 1}}]), GroupedPayload)
        self.assertIsInstance(payload_from_documents(1, [{"events": []}]), FlatPayload)
        with self.assertRaises(ValueError):
            payload_from_documents(1, [], shape="xml")

    def test_unknown_payload_type_rejected(self) -> None:
        with self.assertRaises(TypeError):
            decode_payload({"events": []})


if __name__ == "__main__":
    unittest.main()
