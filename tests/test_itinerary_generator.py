"""Unit tests for ItineraryGenerator and ItineraryStore."""
import sys
import json
from datetime import date
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from models.answer import ItineraryAnswer
from models.itinerary import Itinerary, TravelQuery
from models.venue import VerifiedVenue
from services.answer_parser import parse_answer
from services.budget_calculator import default_budget
from services.itinerary_generator import ItineraryGenerator
from services.itinerary_store import ItineraryStore
from services.llm_client import LLMResponse, LLMClientError, LLMError


def make_venue(title, category="관광명소", description=""):
    return VerifiedVenue(
        title=title,
        category=category,
        description=description,
        phone="",
        address=f"부산 {title}",
        road_address=f"부산 {title}로 1",
        map_x="",
        map_y="",
        link="",
    )


def llm_response(text):
    return LLMResponse(text=text, tokens_input=100, tokens_output=500, latency_ms=1200, model_used="m")


SEARCH_RESULTS = {
    "관광지": [make_venue(f"명소{i}") for i in range(7)],
    "맛집": [make_venue("할매국밥", "한식"), make_venue("개미집", "")],
    "체험": [make_venue(f"체험{i}") for i in range(4)],
}


@pytest.fixture
def search():
    search = Mock()
    search.search.side_effect = lambda keyword, **kwargs: SEARCH_RESULTS.get(keyword, [])
    return search


@pytest.fixture
def query():
    return TravelQuery(destination="부산", start_date=date(2025, 5, 1), end_date=date(2025, 5, 2))


class TestGatherDestinationInfo:

    def test_three_lookups_in_destination(self, search, query):
        info = ItineraryGenerator(None, search).gather_destination_info(query)

        assert [c.args[0] for c in search.search.call_args_list] == ["관광지", "맛집", "체험"]
        for c in search.search.call_args_list:
            assert c.kwargs == {"max_results": 10, "region": "부산"}
        assert len(info["places"]) == 7
        assert len(info["activities"]) == 4

    def test_interests_shape_activity_search(self, search):
        query = TravelQuery(destination="해운대", start_date=date(2025, 5, 1),
                            end_date=date(2025, 5, 3), interests=["야경", "카페"])

        ItineraryGenerator(None, search).gather_destination_info(query)

        assert search.search.call_args_list[2].args[0] == "야경 카페 체험"
        assert search.search.call_args_list[2].kwargs["region"] == "해운대"


class TestFallbackPlan:

    def test_plan_from_search_results(self, search, query):
        itinerary = ItineraryGenerator(None, search).generate(query)

        assert itinerary.destination == "부산"
        assert [d["date"] for d in itinerary.days] == ["2025-05-01", "2025-05-02"]

        day1, day2 = itinerary.days
        assert [a["name"] for a in day1["activities"]] == ["체험0", "체험1", "체험2"]
        assert [a["startTime"] for a in day1["activities"]] == ["9:00", "12:00", "15:00"]
        assert day1["activities"][0] == {
            "id": "activity-1-0",
            "name": "체험0",
            "description": "관광명소",
            "location": {"address": "부산 체험0로 1"},
            "duration": 120,
            "cost": 50,
            "category": "sightseeing",
            "startTime": "9:00",
            "endTime": "11:00",
        }
        assert [a["name"] for a in day2["activities"]] == ["체험3"]

        assert [m["type"] for m in day1["meals"]] == ["breakfast", "lunch"]
        assert day1["meals"][0]["restaurant"]["cuisine"] == "한식"
        assert day1["meals"][1]["restaurant"]["cuisine"] == "local"
        assert day1["meals"][0]["estimatedCost"] == 30
        assert day2["meals"] == []

        assert [r["name"] for r in itinerary.recommendations] == [f"명소{i}" for i in range(5)]
        assert all(r["type"] == "attraction" for r in itinerary.recommendations)

    def test_fallback_budget_is_default_split(self, search):
        query = TravelQuery(destination="부산", start_date=date(2025, 5, 1),
                            end_date=date(2025, 5, 3), budget=2000, currency="KRW")

        itinerary = ItineraryGenerator(None, search).generate(query)

        assert len(itinerary.days) == 3
        assert itinerary.budget.total == 2000
        assert itinerary.budget.currency == "KRW"

    def test_search_outage_still_plans_every_day(self, query):
        search = Mock()
        search.search.return_value = []

        itinerary = ItineraryGenerator(None, search).generate(query)

        assert len(itinerary.days) == 2
        assert itinerary.days[0]["activities"] == []
        assert itinerary.recommendations == []


class TestLLMPlan:

    PLAN = {
        "days": [
            {
                "day": 1,
                "date": "2025-05-01",
                "activities": [{"name": "해운대 해수욕장", "cost": 0, "startTime": "10:00"}],
                "meals": [{"type": "lunch", "restaurant": {"name": "할매국밥"}, "estimatedCost": 20}],
                "accommodation": {"name": "해운대 호텔", "pricePerNight": 120},
            },
            {"day": 2, "date": "2025-05-02", "activities": [], "meals": []},
        ],
        "recommendations": [{"type": "attraction", "name": "감천문화마을"}, "잘못된 항목"],
    }

    def test_plan_from_fenced_json_is_priced(self, search):
        llm = Mock()
        llm.generate.return_value = llm_response(f"일정입니다.\n```json\n{json.dumps(self.PLAN, ensure_ascii=False)}\n```")
        query = TravelQuery(destination="부산", start_date=date(2025, 5, 1),
                            end_date=date(2025, 5, 2), currency="KRW")

        itinerary = ItineraryGenerator(llm, search, timeout=12.0).generate(query)

        assert [d["day"] for d in itinerary.days] == [1, 2]
        assert itinerary.recommendations == [{"type": "attraction", "name": "감천문화마을"}]
        # 120 + (20 + 90) + (50 + 100) + 140 + 38
        assert itinerary.budget.total == 558
        assert itinerary.budget.currency == "KRW"

        kwargs = llm.generate.call_args.kwargs
        assert kwargs["timeout"] == 12.0
        assert kwargs["max_tokens"] == 4000
        assert kwargs["temperature"] == 0.8
        assert "JSON" in kwargs["system"]
        assert "2025-05-01 to 2025-05-02 (2 days)" in kwargs["prompt"]
        assert "할매국밥" in kwargs["prompt"]

    @pytest.mark.parametrize("outcome", [
        LLMClientError(LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={})),
        llm_response("죄송합니다, 일정을 만들 수 없어요."),
        llm_response('{"days": []}'),
        llm_response('{"days": "첫째 날 해운대"}'),
    ])
    def test_unusable_llm_output_falls_back(self, search, query, outcome):
        llm = Mock()
        if isinstance(outcome, Exception):
            llm.generate.side_effect = outcome
        else:
            llm.generate.return_value = outcome

        itinerary = ItineraryGenerator(llm, search).generate(query)

        assert [a["name"] for a in itinerary.days[0]["activities"]] == ["체험0", "체험1", "체험2"]
        assert itinerary.budget.total == 1000


class TestReviseAndOptimize:

    @pytest.fixture
    def itinerary(self):
        return Itinerary(
            id="it-1",
            destination="부산",
            start_date=date(2025, 5, 1),
            end_date=date(2025, 5, 2),
            budget=default_budget(),
            days=[{
                "day": 1,
                "activities": [
                    {"name": "야경", "cost": 50, "startTime": "15:00"},
                    {"name": "해변", "cost": 50, "startTime": "9:00"},
                    {"name": "시장", "cost": 50, "startTime": "12:00"},
                ],
                "meals": [],
            }],
        )

    def test_optimize_orders_activities_by_hour(self, search, itinerary):
        optimized = ItineraryGenerator(None, search).optimize(itinerary)

        assert [a["name"] for a in optimized.days[0]["activities"]] == ["해변", "시장", "야경"]
        assert optimized.updated_at >= itinerary.updated_at
        assert optimized.created_at == itinerary.created_at
        # Stored itinerary is left untouched
        assert itinerary.days[0]["activities"][0]["name"] == "야경"

    def test_optimize_fits_budget_target(self, search, itinerary):
        itinerary.budget = default_budget(200)

        optimized = ItineraryGenerator(None, search).optimize(itinerary)

        assert optimized.budget.total == 200

    def test_revise_budget_and_days(self, search, itinerary):
        edited = TravelQuery(destination="해운대", start_date=date(2025, 6, 1),
                             end_date=date(2025, 6, 3), budget=3000)
        new_days = [{"day": 1, "activities": [], "meals": []}]

        revised = ItineraryGenerator(None, search).revise(itinerary, edited, days=new_days)

        assert revised.destination == "해운대"
        assert revised.end_date == date(2025, 6, 3)
        assert revised.budget.total == 3000
        assert revised.budget.currency == "USD"
        assert revised.days == new_days
        assert revised.recommendations == itinerary.recommendations
        assert revised.id == itinerary.id

    def test_revise_currency_only_relabels_budget(self, search, itinerary):
        edited = TravelQuery(destination="부산", start_date=date(2025, 5, 1),
                             end_date=date(2025, 5, 2), currency="KRW")

        revised = ItineraryGenerator(None, search).revise(itinerary, edited)

        assert revised.budget.total == 1000
        assert revised.budget.currency == "KRW"
        assert revised.days == itinerary.days


class TestItinerarySerialization:

    def test_to_dict_is_recognised_as_itinerary_answer(self, search, query):
        itinerary = ItineraryGenerator(None, search).generate(query)

        data = itinerary.to_dict()
        parsed = parse_answer(json.dumps(data, ensure_ascii=False))

        assert data["startDate"] == "2025-05-01"
        assert data["budget"]["currency"] == "USD"
        assert isinstance(parsed, ItineraryAnswer)
        assert parsed.payload["id"] == itinerary.id


class TestItineraryStore:

    def test_save_and_get(self, search, query):
        store = ItineraryStore()
        itinerary = ItineraryGenerator(None, search).generate(query)

        store.save(itinerary)

        assert store.get(itinerary.id) is itinerary
        assert store.get("missing") is None
        assert len(store) == 1
