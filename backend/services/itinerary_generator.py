"""
Itinerary generator for the Busan Travel Assistant.

Gathers attractions, restaurants and activities from local search, asks the
LLM for a day-by-day plan in JSON, and prices it with the budget calculator.
When the LLM is unavailable or returns something unusable, a plan is built
directly from the search results instead.
"""

import json
import logging
import uuid
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, List, Optional

from config import ITINERARY_MAX_TOKENS, ITINERARY_TEMPERATURE, LLM_TIMEOUT_SECONDS
from models.itinerary import Itinerary, TravelQuery
from models.venue import VerifiedVenue
from services.answer_parser import extract_json_object
from services.budget_calculator import BudgetCalculator, default_budget
from services.llm_client import LLMClient, LLMClientError
from services.local_search_client import LocalSearchClient

logger = logging.getLogger(__name__)

ITINERARY_SYSTEM_PROMPT = (
    "You are an expert Busan travel planner. Create detailed, practical itineraries "
    "for Busan, South Korea only. Always respond in valid JSON format."
)

ITINERARY_PROMPT_TEMPLATE = """Create a detailed BUSAN travel itinerary.

Travel Details:
Destination: {destination}
Dates: {start_date} to {end_date} ({days} days)
Budget: {budget}
Travelers: {travelers}
Interests: {interests}
Accommodation Type: {accommodation_type}
Travel Style: {travel_style}

Available Busan Information:
- Attractions: {places}
- Restaurants: {restaurants}
- Activities: {activities}

Return one JSON object with:
- "days": one entry per day with "day", "date", "activities" (each with "name",
  "description", "location" {{"address"}}, "duration" in minutes, "cost",
  "category", "startTime", "endTime"), "meals" (each with "type",
  "restaurant" {{"name", "cuisine", "location"}}, "estimatedCost") and an optional
  "accommodation" {{"name", "type", "pricePerNight"}}
- "recommendations": extra places worth visiting (each with "type", "name", "description")

Use only Busan locations from the information above where possible."""

SEARCH_RESULTS_IN_PROMPT = 10
SEARCH_RESULTS_PER_CATEGORY = 10
PER_DAY = 3
MEAL_TYPES = ("breakfast", "lunch", "dinner")
RECOMMENDATION_COUNT = 5


def _start_hour(activity: Dict[str, Any]) -> int:
    """Hour of an activity's "HH:MM" startTime; unparseable times sort first."""
    try:
        return int(str(activity.get("startTime") or "0").split(":")[0])
    except ValueError:
        return 0


def _dict_items(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _location(venue: VerifiedVenue) -> Dict[str, str]:
    return {"address": venue.road_address or venue.address}


class ItineraryGenerator:
    """Generate and re-optimize itineraries."""

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        search_client: LocalSearchClient,
        calculator: Optional[BudgetCalculator] = None,
        timeout: float = LLM_TIMEOUT_SECONDS
    ):
        """
        Initialize the generator.

        Args:
            llm_client: LLM client; None always builds the search-based plan
            search_client: Local search client for destination information
            calculator: Budget calculator (defaults to BudgetCalculator())
            timeout: Deadline for the itinerary LLM call in seconds
        """
        self.llm_client = llm_client
        self.search_client = search_client
        self.calculator = calculator or BudgetCalculator()
        self.timeout = timeout

    def gather_destination_info(self, query: TravelQuery) -> Dict[str, List[VerifiedVenue]]:
        """
        Look up attractions, restaurants and activities for the destination.

        Each lookup fails closed to an empty list, so the plan degrades
        instead of failing when local search is down.
        """
        activity_query = " ".join(query.interests + ["체험"]) if query.interests else "체험"
        lookups = {
            "places": "관광지",
            "restaurants": "맛집",
            "activities": activity_query,
        }
        return {
            key: self.search_client.search(
                keyword,
                max_results=SEARCH_RESULTS_PER_CATEGORY,
                region=query.destination
            )
            for key, keyword in lookups.items()
        }

    def generate(self, query: TravelQuery) -> Itinerary:
        """
        Build an itinerary for a trip.

        Args:
            query: Validated trip parameters

        Returns:
            Itinerary with a calculated budget
        """
        logger.info(f"Generating itinerary for {query.destination} ({query.trip_days} days)")
        info = self.gather_destination_info(query)

        if self.llm_client is None:
            logger.warning("LLM client not configured, building itinerary from search results")
            return self._fallback(query, info)

        try:
            payload = self._request_plan(query, info)
            itinerary = self._from_plan(payload, query)
        except (LLMClientError, ValueError) as e:
            logger.error(f"Failed to generate AI itinerary, using fallback: {e}")
            return self._fallback(query, info)

        itinerary.budget = self.calculator.calculate(itinerary)
        return itinerary

    def revise(
        self,
        itinerary: Itinerary,
        query: TravelQuery,
        days: Optional[List[Dict[str, Any]]] = None,
        recommendations: Optional[List[Dict[str, Any]]] = None
    ) -> Itinerary:
        """
        Apply edited trip parameters to a stored itinerary.

        Destination and dates are replaced. A budget in the query becomes the
        new target split by default_budget; a currency alone relabels the
        current budget. Day plans and recommendations are replaced when given.
        """
        changes: Dict[str, Any] = {
            "destination": query.destination,
            "start_date": query.start_date,
            "end_date": query.end_date,
        }
        currency = query.currency or itinerary.budget.currency
        if query.budget is not None:
            changes["budget"] = default_budget(query.budget, currency)
        elif currency != itinerary.budget.currency:
            changes["budget"] = replace(itinerary.budget, currency=currency)
        if days is not None:
            changes["days"] = days
        if recommendations is not None:
            changes["recommendations"] = recommendations

        logger.info(f"Updating itinerary {itinerary.id}: {sorted(changes)}")
        return itinerary.updated(**changes)

    def optimize(self, itinerary: Itinerary) -> Itinerary:
        """Order each day's activities by start hour and fit the budget to its target."""
        logger.info(f"Optimizing itinerary {itinerary.id}")
        days = [
            {**day, "activities": sorted(_dict_items(day.get("activities")), key=_start_hour)}
            for day in itinerary.days
        ]
        optimized = itinerary.updated(days=days)
        optimized.budget = self.calculator.optimize(optimized)
        return optimized

    def _request_plan(self, query: TravelQuery, info: Dict[str, List[VerifiedVenue]]) -> Dict[str, Any]:
        def venues_json(venues: List[VerifiedVenue]) -> str:
            return json.dumps(
                [venue.to_dict() for venue in venues[:SEARCH_RESULTS_IN_PROMPT]],
                ensure_ascii=False
            )

        prompt = ITINERARY_PROMPT_TEMPLATE.format(
            destination=query.destination,
            start_date=query.start_date.isoformat(),
            end_date=query.end_date.isoformat(),
            days=query.trip_days,
            budget=f"{query.budget} {query.currency or ''}".strip() if query.budget else "not specified",
            travelers=query.travelers,
            interests=", ".join(query.interests) or "general sightseeing",
            accommodation_type=query.accommodation_type or "mid-range",
            travel_style=query.travel_style or "moderate",
            places=venues_json(info["places"]),
            restaurants=venues_json(info["restaurants"]),
            activities=venues_json(info["activities"]),
        )

        response = self.llm_client.generate(
            prompt=prompt,
            system=ITINERARY_SYSTEM_PROMPT,
            max_tokens=ITINERARY_MAX_TOKENS,
            temperature=ITINERARY_TEMPERATURE,
            timeout=self.timeout
        )

        payload = extract_json_object(response.text)
        if payload is None:
            raise ValueError("Itinerary response is not a JSON object")
        return payload

    def _from_plan(self, payload: Dict[str, Any], query: TravelQuery) -> Itinerary:
        days = _dict_items(payload.get("days"))
        if not days:
            raise ValueError("Itinerary response has no day plans")

        recommendations = _dict_items(payload.get("recommendations"))

        return Itinerary(
            id=str(uuid.uuid4()),
            destination=query.destination,
            start_date=query.start_date,
            end_date=query.end_date,
            budget=default_budget(query.budget, query.currency),
            days=days,
            recommendations=recommendations
        )

    def _fallback(self, query: TravelQuery, info: Dict[str, List[VerifiedVenue]]) -> Itinerary:
        """Plan up to three activities and three meals per day straight from search results."""
        activities = info.get("activities") or []
        restaurants = info.get("restaurants") or []
        days = []

        for day in range(1, query.trip_days + 1):
            window = slice((day - 1) * PER_DAY, day * PER_DAY)
            days.append({
                "day": day,
                "date": (query.start_date + timedelta(days=day - 1)).isoformat(),
                "activities": [
                    {
                        "id": f"activity-{day}-{index}",
                        "name": venue.title,
                        "description": venue.description or venue.category,
                        "location": _location(venue),
                        "duration": 120,
                        "cost": 50,
                        "category": "sightseeing",
                        "startTime": f"{9 + index * 3}:00",
                        "endTime": f"{11 + index * 3}:00",
                    }
                    for index, venue in enumerate(activities[window])
                ],
                "meals": [
                    {
                        "id": f"meal-{day}-{index}",
                        "type": MEAL_TYPES[index],
                        "restaurant": {
                            "name": venue.title,
                            "cuisine": venue.category or "local",
                            "location": _location(venue),
                            "priceRange": "$$",
                            "rating": 4.0,
                        },
                        "estimatedCost": 30,
                    }
                    for index, venue in enumerate(restaurants[window])
                ],
            })

        recommendations = [
            {
                "id": str(uuid.uuid4()),
                "type": "attraction",
                "name": venue.title,
                "description": venue.description or venue.category,
                "location": _location(venue),
            }
            for venue in (info.get("places") or [])[:RECOMMENDATION_COUNT]
        ]

        return Itinerary(
            id=str(uuid.uuid4()),
            destination=query.destination,
            start_date=query.start_date,
            end_date=query.end_date,
            budget=default_budget(query.budget, query.currency),
            days=days,
            recommendations=recommendations
        )
