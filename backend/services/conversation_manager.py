"""Conversation manager for multi-turn conversation support."""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from config import MAX_HISTORY_TURNS
from models.conversation import ChatTurn, ConversationSession, USER, ASSISTANT

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Keyed storage of per-session chat turns."""

    @abstractmethod
    def get(self, session_id: str) -> List[ChatTurn]:
        """Return the session's turns in conversation order (empty if unknown)."""

    @abstractmethod
    def append(self, session_id: str, turn: ChatTurn) -> None:
        """Append a turn, creating the session on first use."""

    @abstractmethod
    def clear(self, session_id: str) -> None:
        """Drop the session and all of its turns."""

    @abstractmethod
    def truncate(self, session_id: str, max_turns: int) -> None:
        """Evict the oldest turns so at most max_turns remain."""

    @abstractmethod
    def session_ids(self) -> List[str]:
        """Return the ids of all live sessions."""


class InMemorySessionStore(SessionStore):
    """
    Process-local session store for single-instance deployments.

    Individual operations are serialized by a lock. Two concurrent turns for
    the same session can still interleave their user/assistant pairs.
    """

    def __init__(self):
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> List[ChatTurn]:
        with self._lock:
            session = self._sessions.get(session_id)
            return list(session.turns) if session else []

    def append(self, session_id: str, turn: ChatTurn) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ConversationSession(session_id=session_id)
                self._sessions[session_id] = session
                logger.info(f"Created new session: {session_id}")
            session.turns.append(turn)

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def truncate(self, session_id: str, max_turns: int) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session and len(session.turns) > max_turns:
                del session.turns[:len(session.turns) - max_turns]

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)


class ConversationManager:
    """Manages per-session chat history on top of a SessionStore."""

    def __init__(self, store: Optional[SessionStore] = None, max_turns: int = MAX_HISTORY_TURNS):
        """
        Initialize the conversation manager.

        Args:
            store: Session store (defaults to an in-memory store)
            max_turns: Turns kept per session; older turns are evicted first
        """
        self.store = store or InMemorySessionStore()
        self.max_turns = max_turns
        logger.info(f"ConversationManager initialized (max_turns={max_turns})")

    def new_session_id(self) -> str:
        """
        Generate a unique session ID.

        Returns:
            Unique session ID string
        """
        return f"sess_{uuid.uuid4().hex[:12]}"

    def add_turn(self, session_id: str, turn: ChatTurn) -> None:
        """
        Append a turn to the session and apply the history limit.

        Args:
            session_id: ID of the session
            turn: User or assistant turn
        """
        self.store.append(session_id, turn)
        self.store.truncate(session_id, self.max_turns)
        logger.debug(f"Added {turn.role} turn to session {session_id}")

    def get_history(self, session_id: str) -> List[ChatTurn]:
        return self.store.get(session_id)

    def clear(self, session_id: str) -> None:
        self.store.clear(session_id)
        logger.info(f"Cleared history for session {session_id}")

    def get_stats(self, session_id: str) -> Dict[str, Any]:
        """
        Summarize a session's history.

        Returns:
            Message counts, first/last timestamps and average message length
        """
        history = self.store.get(session_id)
        if not history:
            return {
                "totalMessages": 0,
                "userMessages": 0,
                "assistantMessages": 0,
                "conversationStart": None,
                "lastMessage": None,
                "avgMessageLength": 0,
            }

        return {
            "totalMessages": len(history),
            "userMessages": sum(1 for t in history if t.role == USER),
            "assistantMessages": sum(1 for t in history if t.role == ASSISTANT),
            "conversationStart": history[0].timestamp.isoformat(),
            "lastMessage": history[-1].timestamp.isoformat(),
            "avgMessageLength": round(sum(len(t.content) for t in history) / len(history)),
        }

    def active_sessions(self) -> List[str]:
        return self.store.session_ids()
