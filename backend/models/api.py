"""Request and response models for the HTTP API."""
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator

from config import MAX_MESSAGE_LENGTH
from models.itinerary import TravelQuery


class ChatRequest(BaseModel):
    """Body of POST /chat."""
    model_config = ConfigDict(populate_by_name=True)

    message: StrictStr = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    session_id: Optional[StrictStr] = Field(default=None, alias="sessionId")


class ChatDebug(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_search_results: bool = Field(..., alias="hasSearchResults")
    locations_found: int = Field(..., alias="locationsFound")
    response_type: str = Field(..., alias="responseType")


class ChatResponse(BaseModel):
    """Body of a successful POST /chat."""
    success: bool = True
    data: Dict[str, Any]
    debug: ChatDebug


class SearchData(BaseModel):
    total: int
    items: List[Dict[str, Any]]
    query: str


class SearchResponse(BaseModel):
    """Body of a successful category search."""
    success: bool = True
    data: SearchData


class ItineraryRequest(BaseModel):
    """Body of POST /itinerary/generate and PUT /itinerary/{id}."""
    model_config = ConfigDict(populate_by_name=True)

    destination: StrictStr = Field(..., min_length=1)
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    budget: Optional[float] = Field(default=None, ge=0)
    currency: Optional[StrictStr] = Field(default=None, min_length=3, max_length=3)
    travelers: int = Field(default=1, ge=1, le=20)
    interests: List[StrictStr] = Field(default_factory=list)
    accommodation_type: Optional[Literal["budget", "mid-range", "luxury"]] = Field(
        default=None, alias="accommodationType"
    )
    travel_style: Optional[Literal["relaxed", "moderate", "packed"]] = Field(
        default=None, alias="travelStyle"
    )

    @model_validator(mode="after")
    def check_fields(self):
        if not self.destination.strip():
            raise ValueError("Destination is required")
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    def to_query(self) -> TravelQuery:
        return TravelQuery(
            destination=self.destination.strip(),
            start_date=self.start_date,
            end_date=self.end_date,
            budget=self.budget,
            currency=self.currency,
            travelers=self.travelers,
            interests=list(self.interests),
            accommodation_type=self.accommodation_type,
            travel_style=self.travel_style
        )


class ItineraryUpdate(ItineraryRequest):
    """Body of PUT /itinerary/{id}; day plans and recommendations replace the stored ones when given."""
    days: Optional[List[Dict[str, Any]]] = None
    recommendations: Optional[List[Dict[str, Any]]] = None


class ItineraryResponse(BaseModel):
    """Body of a successful itinerary request."""
    success: bool = True
    data: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
