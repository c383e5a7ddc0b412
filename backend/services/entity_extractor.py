"""
Entity extractor for the Busan Travel Assistant.

Scans LLM-generated text for place-like Korean names using a fixed, ordered
set of lexical pattern classes. The result drives whether a turn is treated
as "travel" (entities found, venues get verified) or "general".
"""

import logging
import re
from typing import Dict, List, Tuple

from config import MAX_ENTITIES
from models.venue import ExtractedEntity, PLACE, FOOD, LODGING, DISTRICT

logger = logging.getLogger(__name__)


class EntityExtractor:
    """
    Heuristic extractor of travel entities from free text.

    Pattern classes are applied in order (place, food, lodging, district).
    Matches are unioned in that order, deduplicated by exact string and
    truncated to max_entities. There is no false-positive suppression beyond
    the shape of the patterns themselves.
    """

    PLACE_SUFFIXES = (
        "해수욕장", "공원", "시장", "타워", "센터", "몰", "광장", "마을", "동", "구"
    )

    FOOD_SUFFIXES = (
        "식당", "카페", "레스토랑", "집", "횟집", "국밥", "갈비", "치킨", "피자"
    )

    LODGING_SUFFIXES = (
        "호텔", "펜션", "게스트하우스", "리조트", "모텔"
    )

    # High-traffic Busan districts, matched exactly
    KNOWN_DISTRICTS = (
        "해운대", "광안리", "태종대", "감천", "자갈치", "국제시장",
        "송도", "서면", "남포동", "기장", "동래"
    )

    def __init__(self, max_entities: int = MAX_ENTITIES):
        self.max_entities = max_entities
        self._patterns: List[Tuple[str, re.Pattern]] = [
            (PLACE, self._suffix_pattern(self.PLACE_SUFFIXES)),
            (FOOD, self._suffix_pattern(self.FOOD_SUFFIXES)),
            (LODGING, self._suffix_pattern(self.LODGING_SUFFIXES)),
            (DISTRICT, re.compile("|".join(re.escape(d) for d in self.KNOWN_DISTRICTS))),
        ]

    @staticmethod
    def _suffix_pattern(suffixes) -> re.Pattern:
        """One or more Hangul syllables followed by one of the suffixes."""
        alternatives = "|".join(re.escape(s) for s in suffixes)
        return re.compile(rf"[가-힣]+(?:{alternatives})")

    def extract_entities(self, text: str) -> List[ExtractedEntity]:
        """
        Extract entities with the pattern class that matched them.

        Args:
            text: Free text, usually the draft LLM answer

        Returns:
            Deduplicated entities in scan order, at most max_entities long
        """
        if not text or not text.strip():
            return []

        found: Dict[str, ExtractedEntity] = {}
        for kind, pattern in self._patterns:
            for match in pattern.finditer(text):
                candidate = match.group(0)
                if candidate not in found:
                    found[candidate] = ExtractedEntity(text=candidate, kind=kind)

        entities = list(found.values())[:self.max_entities]

        if entities:
            logger.info(
                f"Extracted {len(entities)} entities "
                f"(of {len(found)} candidates): {[e.text for e in entities]}"
            )
        else:
            logger.debug("No travel entities found in text")

        return entities

    def extract(self, text: str) -> List[str]:
        """Extract entity strings only, in scan order."""
        return [entity.text for entity in self.extract_entities(text)]
