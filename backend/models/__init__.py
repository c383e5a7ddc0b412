"""Data models for the Busan Travel Assistant."""
from .conversation import ChatTurn, ConversationSession
from .venue import ExtractedEntity, VerifiedVenue
from .answer import (
    SynthesizedAnswer,
    PlainTextAnswer,
    ItineraryAnswer,
    RecommendationAnswer,
)
from .itinerary import TravelQuery, Budget, Itinerary
from .api import (
    ChatRequest,
    ChatResponse,
    ChatDebug,
    SearchData,
    SearchResponse,
    ItineraryRequest,
    ItineraryUpdate,
    ItineraryResponse,
)

__all__ = [
    "ChatTurn",
    "ConversationSession",
    "ExtractedEntity",
    "VerifiedVenue",
    "SynthesizedAnswer",
    "PlainTextAnswer",
    "ItineraryAnswer",
    "RecommendationAnswer",
    "ChatRequest",
    "ChatResponse",
    "ChatDebug",
    "SearchData",
    "SearchResponse",
    "TravelQuery",
    "Budget",
    "Itinerary",
    "ItineraryRequest",
    "ItineraryUpdate",
    "ItineraryResponse",
]
