"""JSON Lines audit log of processed chat turns."""
import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models.answer import SynthesizedAnswer

logger = logging.getLogger(__name__)


class TurnLogger:
    """Append one JSON object per processed chat turn to a log file."""

    def __init__(self, log_file_path: str = "logs/chat_turns.jsonl"):
        """
        Initialize the turn logger, creating the log directory if needed.

        Args:
            log_file_path: Path of the JSON Lines file
        """
        self.log_file_path = log_file_path
        directory = os.path.dirname(log_file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self._file = open(log_file_path, "a", encoding="utf-8")
        self._lock = threading.Lock()
        logger.info(f"TurnLogger writing to {log_file_path}")

    def log_turn(
        self,
        session_id: str,
        message: str,
        answer: SynthesizedAnswer,
        latency_ms: int,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Write one turn record.

        Args:
            session_id: Session the turn belongs to
            message: User message
            answer: Synthesized answer for the turn
            latency_ms: End-to-end processing time
            extra: Additional fields merged into the record

        Returns:
            The record that was written
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "session_id": session_id,
            "message": message,
            "response_type": answer.type,
            "entities": answer.locations,
            "venue_count": len(answer.venues),
            "merge_applied": answer.merge_applied,
            "strategy": answer.strategy,
            "latency_ms": latency_ms,
        }
        if extra:
            entry.update(extra)

        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            self._file.write(line + "\n")
            self._file.flush()

        return entry

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()
