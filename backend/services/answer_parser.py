"""Classify a final answer as plain text or one of the structured answer shapes."""
import json
import logging
from typing import Any, Dict, Optional, Union

from models.answer import PlainTextAnswer, ItineraryAnswer, RecommendationAnswer

logger = logging.getLogger(__name__)

ParsedAnswer = Union[PlainTextAnswer, ItineraryAnswer, RecommendationAnswer]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Read the JSON object spanning the first "{" to the last "}" of a text.

    Code fences and prose around the object are ignored. Returns None when
    there is no such span, it does not parse, or it is not an object.
    """
    if not text:
        return None

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None

    try:
        payload = json.loads(text[start:end + 1])
    except ValueError:
        logger.debug("Text contains braces but is not JSON")
        return None

    return payload if isinstance(payload, dict) else None


def parse_answer(text: str) -> ParsedAnswer:
    """
    Try to read a JSON object out of the answer, then classify its shape.

    The candidate is the span from the first "{" to the last "}". An object
    with type "itinerary" and a list of days is an itinerary; an object with a
    list of recommendations is a recommendation. Anything else, including
    unparseable JSON, is plain text.

    Args:
        text: Final answer text

    Returns:
        PlainTextAnswer, ItineraryAnswer or RecommendationAnswer
    """
    if not text:
        return PlainTextAnswer(text="")

    payload = extract_json_object(text)
    if payload is None:
        return PlainTextAnswer(text=text)

    if payload.get("type") == "itinerary" and isinstance(payload.get("days"), list):
        summary = payload.get("summary") or payload.get("title") or text
        return ItineraryAnswer(text=str(summary), payload=payload)

    if isinstance(payload.get("recommendations"), list):
        answer = payload.get("answer")
        return RecommendationAnswer(
            text=answer if isinstance(answer, str) else text,
            recommendations=[r for r in payload["recommendations"] if isinstance(r, dict)],
            payload=payload
        )

    return PlainTextAnswer(text=text)
