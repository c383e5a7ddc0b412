"""In-memory storage of generated itineraries."""
import logging
import threading
from typing import Dict, Optional

from models.itinerary import Itinerary

logger = logging.getLogger(__name__)


class ItineraryStore:
    """Process-local itinerary store keyed by itinerary id; lost on restart."""

    def __init__(self):
        self._itineraries: Dict[str, Itinerary] = {}
        self._lock = threading.Lock()

    def save(self, itinerary: Itinerary) -> None:
        with self._lock:
            self._itineraries[itinerary.id] = itinerary
        logger.debug(f"Stored itinerary {itinerary.id}")

    def get(self, itinerary_id: str) -> Optional[Itinerary]:
        with self._lock:
            return self._itineraries.get(itinerary_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._itineraries)
