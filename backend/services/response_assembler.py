"""Map a synthesized answer onto the chat message shape the client renders."""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from models.answer import SynthesizedAnswer, PLAIN_TEXT
from models.conversation import ChatTurn, USER, ASSISTANT
from services.answer_parser import parse_answer


def new_turn_id() -> str:
    return f"msg_{uuid.uuid4().hex[:12]}"


def user_turn(message: str) -> ChatTurn:
    """Wrap an inbound user message as a ChatTurn."""
    return ChatTurn(id=new_turn_id(), role=USER, content=message, timestamp=datetime.now())


def assemble(answer: SynthesizedAnswer, session_id: Optional[str] = None) -> ChatTurn:
    """
    Build the outgoing assistant ChatTurn.

    Metadata exposes the answer type, the verified venues (searchResults),
    the entity strings (locations) and the answer format. Structured answers
    also carry their parsed payload.

    Args:
        answer: Result of the synthesis pipeline
        session_id: Session the turn belongs to, echoed in metadata when given

    Returns:
        Immutable assistant ChatTurn
    """
    parsed = parse_answer(answer.answer)

    metadata: Dict[str, Any] = {
        "type": answer.type,
        "searchResults": [venue.to_dict() for venue in answer.venues],
        "locations": answer.locations,
        "format": parsed.format,
    }
    if parsed.format != PLAIN_TEXT:
        metadata["structured"] = parsed.payload
    if session_id:
        metadata["sessionId"] = session_id

    return ChatTurn(
        id=new_turn_id(),
        role=ASSISTANT,
        content=answer.answer,
        timestamp=datetime.now(),
        metadata=metadata
    )
