"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    """Represents a single message in a conversation. Immutable once created."""
    id: str
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass
class ConversationSession:
    """Represents a multi-turn conversation keyed by session id."""
    session_id: str
    turns: List[ChatTurn] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
