"""Unit tests for VerificationFanOut."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import time
from unittest.mock import Mock
from services.verification import VerificationFanOut
from models.venue import ExtractedEntity, VerifiedVenue, DISTRICT


def make_venue(title: str) -> VerifiedVenue:
    return VerifiedVenue(
        title=title,
        category="관광명소",
        description="",
        phone="",
        address=f"부산 {title}",
        road_address="",
        map_x="",
        map_y="",
        link="",
    )


class TestVerificationFanOut:

    def test_one_lookup_per_entity_with_limits(self):
        search_client = Mock()
        search_client.search.return_value = [make_venue("해운대해수욕장")]
        fan_out = VerificationFanOut(search_client, results_per_entity=3, timeout=3.0)

        venues = fan_out.verify(["해운대", ExtractedEntity(text="광안리", kind=DISTRICT)])

        assert len(venues) == 2
        assert [c.args[0] for c in search_client.search.call_args_list] == ["해운대", "광안리"]
        for c in search_client.search.call_args_list:
            assert c.kwargs == {"max_results": 3, "timeout": 3.0}

    def test_failed_lookup_is_skipped(self):
        """One failing entity out of three leaves the other two results intact."""
        search_client = Mock()
        search_client.search.side_effect = [
            [make_venue("A1"), make_venue("A2")],
            RuntimeError("boom"),
            [make_venue("C1")],
        ]
        fan_out = VerificationFanOut(search_client)

        venues = fan_out.verify(["가", "나", "다"])

        assert [v.title for v in venues] == ["A1", "A2", "C1"]
        assert search_client.search.call_count == 3

    def test_results_concatenated_in_entity_order_and_capped(self):
        search_client = Mock()
        search_client.search.side_effect = [
            [make_venue(f"{prefix}{i}") for i in range(3)] for prefix in "ABCD"
        ]
        fan_out = VerificationFanOut(search_client, results_per_entity=3, max_venues=10)

        venues = fan_out.verify(["A", "B", "C", "D"])

        assert len(venues) == 10
        assert [v.title for v in venues] == [
            "A0", "A1", "A2", "B0", "B1", "B2", "C0", "C1", "C2", "D0"
        ]

    def test_extra_results_per_entity_are_dropped(self):
        search_client = Mock()
        search_client.search.return_value = [make_venue(str(i)) for i in range(5)]
        fan_out = VerificationFanOut(search_client, results_per_entity=3)

        assert len(fan_out.verify(["해운대"])) == 3

    def test_duplicate_venues_across_entities_are_kept(self):
        search_client = Mock()
        search_client.search.return_value = [make_venue("광안대교")]
        fan_out = VerificationFanOut(search_client)

        venues = fan_out.verify(["광안리", "수영구"])

        assert venues == [make_venue("광안대교"), make_venue("광안대교")]

    def test_no_entities(self):
        search_client = Mock()
        fan_out = VerificationFanOut(search_client)

        assert fan_out.verify([]) == []
        search_client.search.assert_not_called()

    def test_no_lookups_after_deadline(self):
        search_client = Mock()
        fan_out = VerificationFanOut(search_client)

        venues = fan_out.verify(["해운대", "광안리"], deadline=time.monotonic() - 1)

        assert venues == []
        search_client.search.assert_not_called()

    def test_lookup_timeout_cut_to_remaining_budget(self):
        search_client = Mock()
        search_client.search.return_value = []
        fan_out = VerificationFanOut(search_client, timeout=3.0)

        fan_out.verify(["해운대"], deadline=time.monotonic() + 0.5)

        assert 0 < search_client.search.call_args.kwargs["timeout"] <= 0.5
