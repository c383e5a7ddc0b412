"""
Answer synthesizer for the Busan Travel Assistant.

Drives the two-pass LLM protocol for a chat turn:

1. Draft phase: the raw user message goes to the LLM with the travel-expert
   persona. Failure here fails the turn.
2. Verification: entities are extracted from the draft and looked up against
   local search ("keyword" strategy), or the LLM requests search functions
   itself ("tool" strategy).
3. Merge phase: when venues were found, the LLM merges them into the draft.
   Failure here falls back to the draft.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from config import (
    DRAFT_MAX_TOKENS,
    DRAFT_TEMPERATURE,
    MERGE_MAX_TOKENS,
    MERGE_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    TURN_TIMEOUT_SECONDS,
    MIN_MERGE_SECONDS,
    MAX_ENTITIES,
    MAX_VENUES,
    VERIFICATION_STRATEGY,
)
from models.answer import SynthesizedAnswer, TRAVEL, GENERAL
from models.venue import ExtractedEntity, VerifiedVenue, PLACE, FOOD, LODGING
from services.entity_extractor import EntityExtractor
from services.llm_client import LLMClient, LLMClientError, ToolCall
from services.local_search_client import LocalSearchClient, LocalSearchError
from services.verification import VerificationFanOut

logger = logging.getLogger(__name__)

KEYWORD_STRATEGY = "keyword"
TOOL_STRATEGY = "tool"

DRAFT_SYSTEM_PROMPT = """당신은 부산 여행 전문가입니다.

사용자의 질문에 친근하고 도움이 되는 답변을 제공하세요.
여행 관련 답변을 할 때는 구체적인 장소명, 식당명, 숙소명을 언급하세요.

답변 스타일:
- 친근하고 자연스러운 한국어 사용
- 구체적이고 실용적인 정보 제공
- 부산 지역 전문성 활용"""

MERGE_SYSTEM_PROMPT = """사용자에게 도움이 되는 최종 답변을 만드세요.

기존 답변과 실제 검색된 정보를 자연스럽게 결합하여:
1. 기존 답변의 내용을 유지하면서
2. 실제 검색된 정보를 추가로 제공하고
3. 중복을 제거해 정리된 형태로 제시하세요.

실제 검색된 정보가 있는 장소를 우선하여 추천하세요."""

TOOL_SYSTEM_PROMPT = """당신은 부산 여행 전문가 챗봇입니다. 필요한 경우 검색 도구를 사용해 정확한 정보를 제공합니다.

도구 사용 가이드라인:
- 음식점, 맛집, 카페를 묻는다면 search_restaurants
- 호텔, 펜션 등 숙소를 묻는다면 search_accommodations
- 관광지나 기타 장소를 묻는다면 search_local
- 여러 종류의 정보가 필요하면 여러 도구를 함께 사용하세요."""

TOOL_RESPONSE_PROMPT = """검색 결과를 바탕으로 사용자에게 유용한 답변을 제공하세요.

각 장소마다 상호명, 주소(도로명주소 우선), 전화번호(있는 경우), 카테고리, 특징을 정리하세요.
검색된 실제 정보만 사용하고 추측하지 마세요. 친근하고 도움이 되는 톤으로 답변하세요."""

TOOL_FAILURE_MESSAGE = "죄송합니다. 응답을 처리하는 중 문제가 발생했습니다."

SEARCH_TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "search_restaurants",
            "description": "음식점을 검색합니다. 맛집, 카페, 레스토랑 등을 찾을 때 사용하세요.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "음식점 종류나 이름 (예: 해물탕, 카페)"},
                    "location": {"type": "string", "description": "검색할 지역 (기본값: 부산)"},
                    "count": {"type": "integer", "description": "검색할 결과 개수 (기본값: 5)"},
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_accommodations",
            "description": "숙소를 검색합니다. 호텔, 펜션, 게스트하우스 등을 찾을 때 사용하세요.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "숙소 종류나 이름 (예: 호텔, 리조트)"},
                    "location": {"type": "string", "description": "검색할 지역 (기본값: 부산)"},
                    "count": {"type": "integer", "description": "검색할 결과 개수 (기본값: 5)"},
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_local",
            "description": "관광지, 쇼핑몰 등 일반 장소를 검색합니다.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "장소나 업체 종류 (예: 관광지, 시장)"},
                    "location": {"type": "string", "description": "검색할 지역 (기본값: 부산)"},
                    "count": {"type": "integer", "description": "검색할 결과 개수 (기본값: 5)"},
                },
                "required": ["query"],
            },
        },
    },
]

TOOL_ENTITY_KINDS = {
    "search_restaurants": FOOD,
    "search_accommodations": LODGING,
    "search_local": PLACE,
}


class SynthesisError(Exception):
    """Raised when a turn cannot produce any answer (draft phase failure)."""

    def __init__(self, message: str = "AI 서비스 처리 중 오류가 발생했습니다.", code: str = "PROCESSING_ERROR"):
        self.code = code
        super().__init__(message)


def format_venue(venue: VerifiedVenue) -> str:
    """Render one venue as a short block for the merge prompt."""
    lines = [f"**{venue.title}**", f"📍 {venue.address or venue.road_address}"]
    if venue.phone:
        lines.append(f"☎ {venue.phone}")
    if venue.description:
        lines.append(f"💡 {venue.description}")
    return "\n".join(lines)


def format_venues(venues: List[VerifiedVenue]) -> str:
    return "\n\n".join(format_venue(v) for v in venues)


class AnswerSynthesizer:
    """Produce a SynthesizedAnswer for a user message."""

    def __init__(
        self,
        llm_client: LLMClient,
        search_client: LocalSearchClient,
        extractor: Optional[EntityExtractor] = None,
        fan_out: Optional[VerificationFanOut] = None,
        strategy: str = VERIFICATION_STRATEGY,
        timeout: float = LLM_TIMEOUT_SECONDS,
        turn_budget: float = TURN_TIMEOUT_SECONDS,
        min_merge_seconds: float = MIN_MERGE_SECONDS
    ):
        """
        Initialize the synthesizer.

        Args:
            llm_client: Client for draft, merge and tool follow-up calls
            search_client: Local search client (tool strategy calls it directly)
            extractor: Entity extractor (keyword strategy)
            fan_out: Verification fan-out (keyword strategy)
            strategy: "keyword" or "tool"
            timeout: Upper bound for each LLM call in seconds
            turn_budget: Seconds the whole turn may take; later phases get what is left
            min_merge_seconds: Merge is skipped when less than this remains
        """
        if strategy not in (KEYWORD_STRATEGY, TOOL_STRATEGY):
            raise ValueError(f"Unknown verification strategy: {strategy}")

        self.llm_client = llm_client
        self.search_client = search_client
        self.extractor = extractor or EntityExtractor()
        self.fan_out = fan_out or VerificationFanOut(search_client)
        self.strategy = strategy
        self.timeout = timeout
        self.turn_budget = turn_budget
        self.min_merge_seconds = min_merge_seconds
        logger.info(f"AnswerSynthesizer initialized (strategy={strategy})")

    def synthesize(self, message: str) -> SynthesizedAnswer:
        """
        Run one turn through the pipeline.

        Args:
            message: Raw user message

        Returns:
            SynthesizedAnswer with final text, type, entities and venues

        Raises:
            SynthesisError: If the draft phase fails
        """
        deadline = time.monotonic() + self.turn_budget
        if self.strategy == TOOL_STRATEGY:
            return self._synthesize_with_tools(message, deadline)
        return self._synthesize_with_keywords(message, deadline)

    def _call_timeout(self, deadline: float) -> float:
        """Per-call timeout: the configured bound, cut to what is left of the turn."""
        return max(0.0, min(self.timeout, deadline - time.monotonic()))

    def _merge_budget(self, deadline: float) -> Optional[float]:
        """Timeout for a second-pass call, or None when too little of the turn is left."""
        timeout = self._call_timeout(deadline)
        if timeout < self.min_merge_seconds:
            return None
        return timeout

    # Keyword strategy

    def _synthesize_with_keywords(self, message: str, deadline: float) -> SynthesizedAnswer:
        draft = self._draft(message, deadline)

        entities = self.extractor.extract_entities(draft)
        venues: List[VerifiedVenue] = []
        if entities:
            venues = self.fan_out.verify(entities, deadline=deadline)

        answer, merged = self._merge(draft, venues, deadline)

        return SynthesizedAnswer(
            answer=answer,
            type=TRAVEL if entities else GENERAL,
            entities=tuple(entities),
            venues=tuple(venues),
            draft_answer=draft,
            merge_applied=merged,
            strategy=KEYWORD_STRATEGY
        )

    def _draft(self, message: str, deadline: float) -> str:
        """Draft phase; any failure is fatal for the turn."""
        try:
            response = self.llm_client.generate(
                prompt=message,
                system=DRAFT_SYSTEM_PROMPT,
                max_tokens=DRAFT_MAX_TOKENS,
                temperature=DRAFT_TEMPERATURE,
                timeout=self._call_timeout(deadline)
            )
        except LLMClientError as e:
            logger.error(f"Draft phase failed ({e.error.code}): {e.error.message}")
            raise SynthesisError() from e
        return response.text

    def _merge(self, draft: str, venues: List[VerifiedVenue], deadline: float) -> Tuple[str, bool]:
        """Merge phase; returns (answer, merged) and falls back to the draft on failure."""
        if not venues:
            return draft, False

        timeout = self._merge_budget(deadline)
        if timeout is None:
            logger.warning("Turn budget nearly spent, skipping merge phase")
            return draft, False

        prompt = (
            f"기존 답변: {draft}\n\n"
            f"실제 검색 정보:\n{format_venues(venues)}\n\n"
            "위 정보들을 종합하여 사용자에게 도움이 되는 최종 답변을 작성해주세요."
        )
        try:
            response = self.llm_client.generate(
                prompt=prompt,
                system=MERGE_SYSTEM_PROMPT,
                max_tokens=MERGE_MAX_TOKENS,
                temperature=MERGE_TEMPERATURE,
                timeout=timeout
            )
        except LLMClientError as e:
            logger.warning(f"Merge phase failed ({e.error.code}), falling back to draft answer")
            return draft, False

        return response.text, True

    # Tool strategy

    def _synthesize_with_tools(self, message: str, deadline: float) -> SynthesizedAnswer:
        try:
            draft = self.llm_client.generate(
                prompt=message,
                system=TOOL_SYSTEM_PROMPT,
                max_tokens=DRAFT_MAX_TOKENS,
                temperature=DRAFT_TEMPERATURE,
                tools=SEARCH_TOOLS,
                timeout=self._call_timeout(deadline)
            )
        except LLMClientError as e:
            logger.error(f"Draft phase failed ({e.error.code}): {e.error.message}")
            raise SynthesisError() from e

        if not draft.tool_calls:
            return SynthesizedAnswer(
                answer=draft.text,
                type=GENERAL,
                draft_answer=draft.text,
                strategy=TOOL_STRATEGY
            )

        entities: Dict[str, ExtractedEntity] = {}
        venues: List[VerifiedVenue] = []
        tool_messages: List[Dict[str, Any]] = []

        for call in draft.tool_calls:
            content, found = self._run_tool(call)
            query = str(call.arguments.get("query") or "").strip()
            if query and query not in entities:
                entities[query] = ExtractedEntity(text=query, kind=TOOL_ENTITY_KINDS.get(call.name, PLACE))
            venues.extend(found)
            tool_messages.append({"role": "tool", "tool_call_id": call.id, "content": content})

        venues = venues[:MAX_VENUES]
        entity_list = list(entities.values())[:MAX_ENTITIES]

        messages = [
            {"role": "user", "content": message},
            {
                "role": "assistant",
                "content": draft.text,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.raw_arguments},
                    }
                    for call in draft.tool_calls
                ],
            },
            *tool_messages,
        ]

        answer, merged = None, False
        timeout = self._merge_budget(deadline)
        if timeout is None:
            logger.warning("Turn budget nearly spent, skipping tool follow-up")
        else:
            try:
                follow_up = self.llm_client.generate(
                    system=TOOL_RESPONSE_PROMPT,
                    messages=messages,
                    max_tokens=MERGE_MAX_TOKENS,
                    temperature=MERGE_TEMPERATURE,
                    timeout=timeout
                )
                answer, merged = follow_up.text, True
            except LLMClientError as e:
                logger.warning(f"Tool follow-up failed ({e.error.code}), falling back")

        if answer is None:
            if draft.text.strip():
                answer = draft.text
            elif venues:
                answer = format_venues(venues)
            else:
                answer = TOOL_FAILURE_MESSAGE

        return SynthesizedAnswer(
            answer=answer,
            type=TRAVEL if entity_list else GENERAL,
            entities=tuple(entity_list),
            venues=tuple(venues),
            draft_answer=draft.text,
            merge_applied=merged,
            strategy=TOOL_STRATEGY
        )

    def _run_tool(self, call: ToolCall) -> Tuple[str, List[VerifiedVenue]]:
        """Execute one requested search function; returns (tool result content, venues)."""
        logger.info(f"Tool called: {call.name} with input: {call.arguments}")

        handlers = {
            "search_restaurants": self.search_client.search_restaurants,
            "search_accommodations": self.search_client.search_accommodations,
            "search_local": self.search_client.search_local,
        }
        handler = handlers.get(call.name)
        if handler is None:
            return "Tool not found", []

        query = str(call.arguments.get("query") or "").strip()
        if not query:
            return "Error: query is required", []

        try:
            count = int(call.arguments.get("count") or 5)
        except (TypeError, ValueError):
            count = 5
        count = max(1, min(count, MAX_VENUES))

        try:
            results = handler(query, call.arguments.get("location") or None, count)
        except LocalSearchError as e:
            logger.error(f"Tool {call.name} error: {e.error.code}")
            return f"Error: {e.error.message}", []

        content = json.dumps(
            {"success": True, "results": [v.to_dict() for v in results], "total": len(results)},
            ensure_ascii=False
        )
        return content, results
