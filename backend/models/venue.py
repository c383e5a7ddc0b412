"""Venue and entity data models."""
from dataclasses import dataclass
from typing import Any, Dict

# Entity kinds, one per extraction pattern class
PLACE = "place"
FOOD = "food"
LODGING = "lodging"
DISTRICT = "district"


@dataclass(frozen=True)
class ExtractedEntity:
    """A candidate place name pulled out of LLM text."""
    text: str
    kind: str  # place, food, lodging or district


@dataclass(frozen=True)
class VerifiedVenue:
    """Canonical venue record returned by the local search provider."""
    title: str
    category: str = ""
    description: str = ""
    phone: str = ""
    address: str = ""
    road_address: str = ""
    map_x: str = ""
    map_y: str = ""
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase field names the chat UI expects."""
        return {
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "phone": self.phone,
            "address": self.address,
            "roadAddress": self.road_address,
            "mapX": self.map_x,
            "mapY": self.map_y,
            "link": self.link,
        }
