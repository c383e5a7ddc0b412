"""Answer data models produced by the synthesis pipeline."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from models.venue import ExtractedEntity, VerifiedVenue

TRAVEL = "travel"
GENERAL = "general"


@dataclass(frozen=True)
class SynthesizedAnswer:
    """
    Result of one chat turn through the synthesis pipeline.

    Attributes:
        answer: Final text (merged answer, or the draft on fallback)
        type: "travel" when entities were extracted, otherwise "general"
        entities: Extracted entities in scan order
        venues: Verified venues used for the merge phase
        draft_answer: First-pass LLM text
        merge_applied: Whether the merge phase produced the final text
        strategy: Verification strategy used for the turn
    """
    answer: str
    type: str
    entities: Tuple[ExtractedEntity, ...] = ()
    venues: Tuple[VerifiedVenue, ...] = ()
    draft_answer: str = ""
    merge_applied: bool = False
    strategy: str = "keyword"

    @property
    def locations(self) -> List[str]:
        return [entity.text for entity in self.entities]


# Answer formats recognised by the answer parser
PLAIN_TEXT = "text"
ITINERARY = "itinerary"
RECOMMENDATION = "recommendation"


@dataclass(frozen=True)
class PlainTextAnswer:
    text: str
    format: str = PLAIN_TEXT


@dataclass(frozen=True)
class ItineraryAnswer:
    text: str
    payload: Dict[str, Any] = field(default_factory=dict)
    format: str = ITINERARY


@dataclass(frozen=True)
class RecommendationAnswer:
    text: str
    recommendations: List[Dict[str, Any]] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)
    format: str = RECOMMENDATION
