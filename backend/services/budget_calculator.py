"""Trip budget estimation for itineraries."""
import logging
import math
from typing import Any, Dict, List, Optional

from config import DEFAULT_CURRENCY, DEFAULT_TRIP_BUDGET
from models.itinerary import Budget, Itinerary

logger = logging.getLogger(__name__)


def _round(value: float) -> int:
    """Round half up, so 2.5 becomes 3 rather than banker's 2."""
    return int(math.floor(value + 0.5))


def _number(value: Any, default: float) -> float:
    """Numeric field from an LLM-generated plan; missing, zero or junk gives the default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number else default


def _entries(day: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = day.get(key)
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def default_budget(total: Optional[float] = None, currency: Optional[str] = None) -> Budget:
    """Fixed percentage split of a total (35/25/25/10/5)."""
    total = total if total else DEFAULT_TRIP_BUDGET
    return Budget(
        total=total,
        accommodation=total * 0.35,
        food=total * 0.25,
        activities=total * 0.25,
        transportation=total * 0.10,
        miscellaneous=total * 0.05,
        currency=currency or DEFAULT_CURRENCY
    )


class BudgetCalculator:
    """Estimate trip costs from the day plans of an itinerary."""

    PRICE_PER_NIGHT = 100
    MEAL_COST = 30
    FOOD_PER_EMPTY_DAY = 90
    ACTIVITY_COST = 50
    ACTIVITIES_PER_EMPTY_DAY = 100
    DAILY_TRANSPORT = 20
    AIRPORT_TRANSFER = 50
    LONG_TRIP_DAYS = 3
    INTERCITY_TRAVEL = 100
    MISC_RATE = 0.1

    def calculate(self, itinerary: Itinerary) -> Budget:
        """
        Estimate the budget of an itinerary.

        Accommodation is nights (days - 1, at least 1) times the average
        pricePerNight of the days that name one. Meals and activities are
        summed per day, with flat amounts for days that list none. Transport
        is a daily amount plus two airport transfers, plus intercity travel
        for trips over three days. Miscellaneous is 10% of the first three.
        Every component is rounded separately.

        Args:
            itinerary: Itinerary whose days are costed; its budget supplies the currency

        Returns:
            Budget in the itinerary's currency
        """
        days = itinerary.days
        accommodation = self._accommodation_cost(days)
        food = self._food_cost(days)
        activities = self._activities_cost(days)
        transportation = self._transportation_cost(len(days))
        miscellaneous = (accommodation + food + activities) * self.MISC_RATE
        total = accommodation + food + activities + transportation + miscellaneous

        currency = itinerary.budget.currency if itinerary.budget else DEFAULT_CURRENCY
        logger.info(f"Calculated budget for itinerary {itinerary.id}: {_round(total)} {currency}")

        return Budget(
            total=_round(total),
            accommodation=_round(accommodation),
            food=_round(food),
            activities=_round(activities),
            transportation=_round(transportation),
            miscellaneous=_round(miscellaneous),
            currency=currency
        )

    def optimize(self, itinerary: Itinerary) -> Budget:
        """
        Fit the estimated budget under the itinerary's current budget total.

        When the estimate already fits, or there is no target, the estimate is
        returned unchanged. Otherwise every component is scaled by
        target / estimate and the total is set to the target.
        """
        current = self.calculate(itinerary)
        if not itinerary.budget or current.total <= itinerary.budget.total:
            return current

        target = itinerary.budget.total
        ratio = target / current.total
        logger.info(f"Scaling budget of itinerary {itinerary.id} by {ratio:.2f} to fit {target}")

        return Budget(
            total=target,
            accommodation=_round(current.accommodation * ratio),
            food=_round(current.food * ratio),
            activities=_round(current.activities * ratio),
            transportation=_round(current.transportation * ratio),
            miscellaneous=_round(current.miscellaneous * ratio),
            currency=current.currency
        )

    def _accommodation_cost(self, days: List[Dict[str, Any]]) -> float:
        nights = max(len(days) - 1, 1)
        prices = [
            _number(day["accommodation"].get("pricePerNight"), self.PRICE_PER_NIGHT)
            for day in days
            if isinstance(day.get("accommodation"), dict)
        ]
        price_per_night = sum(prices) / len(prices) if prices else self.PRICE_PER_NIGHT
        return nights * price_per_night

    def _food_cost(self, days: List[Dict[str, Any]]) -> float:
        total = 0.0
        for day in days:
            meals = _entries(day, "meals")
            if meals:
                total += sum(_number(meal.get("estimatedCost"), self.MEAL_COST) for meal in meals)
            else:
                total += self.FOOD_PER_EMPTY_DAY
        return total

    def _activities_cost(self, days: List[Dict[str, Any]]) -> float:
        total = 0.0
        for day in days:
            activities = _entries(day, "activities")
            if activities:
                total += sum(_number(activity.get("cost"), self.ACTIVITY_COST) for activity in activities)
            else:
                total += self.ACTIVITIES_PER_EMPTY_DAY
        return total

    def _transportation_cost(self, day_count: int) -> float:
        intercity = self.INTERCITY_TRAVEL if day_count > self.LONG_TRIP_DAYS else 0
        return self.DAILY_TRANSPORT * day_count + self.AIRPORT_TRANSFER * 2 + intercity
