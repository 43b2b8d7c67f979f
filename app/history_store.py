"""In-memory conversation history store.

Twilio calls /handle-speech once per spoken exchange, so the conversation
history has to survive between HTTP requests for the same call.

Notes:
- Entries do not survive process restarts.
- Entries are keyed by Twilio CallSid; each holds the message list plus a
  `last_updated` timestamp used for TTL eviction.
- There is no locking: Twilio delivers webhooks for one call in order and
  never overlapping, so read-modify-write per CallSid is safe.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

from app.config import config
from app.logging_config import get_logger

logger = get_logger(__name__)


class HistoryStore:
    """
    Keyed store for per-call conversation history.

    History is a list of {"role": "user" | "assistant", "content": str}
    records, one user and one assistant record per completed turn.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return int(getattr(config, "HISTORY_TTL_SECONDS", 0) or 0)

    def get(self, call_sid: str) -> List[Dict[str, str]]:
        """
        Return the history for a call.

        A miss (unknown or evicted call) returns an empty list, which is how a
        new call session starts.
        """
        if not call_sid:
            return []

        entry = self._entries.get(call_sid)
        if entry is None:
            return []

        if self._is_expired(entry):
            logger.info("history_evicted", call_sid=call_sid, reason="ttl")
            self._entries.pop(call_sid, None)
            return []

        return list(entry["history"])

    def set(self, call_sid: str, history: List[Dict[str, str]]) -> bool:
        """Replace the history for a call."""
        if not call_sid:
            return False

        self._entries[call_sid] = {
            "history": list(history),
            "last_updated": self._clock(),
        }
        self.evict_expired()
        return True

    def delete(self, call_sid: str) -> bool:
        """Delete a call's history (e.g., after the call ends)."""
        if not call_sid:
            return False

        return self._entries.pop(call_sid, None) is not None

    def last_updated(self, call_sid: str) -> Optional[float]:
        entry = self._entries.get(call_sid)
        return entry["last_updated"] if entry else None

    def evict_expired(self) -> int:
        """Drop every entry older than the TTL. Returns how many were dropped."""
        if self.ttl_seconds <= 0:
            return 0

        expired = [sid for sid, entry in self._entries.items() if self._is_expired(entry)]
        for sid in expired:
            self._entries.pop(sid, None)

        if expired:
            logger.info("history_evicted", count=len(expired), reason="ttl")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, call_sid: str) -> bool:
        return call_sid in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        ttl = self.ttl_seconds
        if ttl <= 0:
            return False
        return self._clock() - entry["last_updated"] > ttl


def turn_number(history: List[Dict[str, str]]) -> int:
    """Current turn number: each completed turn adds one user and one assistant record."""
    return len(history) // 2 + 1


history_store = HistoryStore()
