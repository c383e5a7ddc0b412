"""Itinerary data models for trip planning."""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from config import DEFAULT_CURRENCY

ACCOMMODATION_TYPES = ("budget", "mid-range", "luxury")
TRAVEL_STYLES = ("relaxed", "moderate", "packed")


@dataclass(frozen=True)
class TravelQuery:
    """
    Trip parameters for itinerary generation.

    Attributes:
        destination: Region the trip is planned for, e.g. "부산"
        start_date: First day of the trip
        end_date: Last day of the trip (after start_date)
        budget: Target total budget; None uses the default
        currency: 3-letter currency code; None uses the default
        travelers: Party size, 1-20
        interests: Free-text interests fed to search and the prompt
        accommodation_type: One of ACCOMMODATION_TYPES
        travel_style: One of TRAVEL_STYLES
    """
    destination: str
    start_date: date
    end_date: date
    budget: Optional[float] = None
    currency: Optional[str] = None
    travelers: int = 1
    interests: List[str] = field(default_factory=list)
    accommodation_type: Optional[str] = None
    travel_style: Optional[str] = None

    @property
    def trip_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


@dataclass
class Budget:
    """Trip cost breakdown."""
    total: float
    accommodation: float
    food: float
    activities: float
    transportation: float
    miscellaneous: float
    currency: str = DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "accommodation": self.accommodation,
            "food": self.food,
            "activities": self.activities,
            "transportation": self.transportation,
            "miscellaneous": self.miscellaneous,
            "currency": self.currency,
        }


@dataclass
class Itinerary:
    """
    A generated day-by-day trip plan.

    Day plans and recommendations are kept as plain dicts in the shape the
    client renders (camelCase keys such as startTime, estimatedCost and
    pricePerNight), because LLM-generated plans carry optional fields.
    """
    id: str
    destination: str
    start_date: date
    end_date: date
    budget: Budget
    days: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def updated(self, **changes) -> "Itinerary":
        """Copy with the given fields replaced and updated_at refreshed."""
        return replace(self, updated_at=datetime.now(timezone.utc), **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the API; the "type" tag lets the answer parser recognise it."""
        return {
            "id": self.id,
            "type": "itinerary",
            "destination": self.destination,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "budget": self.budget.to_dict(),
            "days": self.days,
            "recommendations": self.recommendations,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
