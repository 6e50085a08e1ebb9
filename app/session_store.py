"""
In-memory session store for trip-planning conversations.

Keyed by an opaque session id. Sessions expire SESSION_TTL_MINUTES after they
were created; a session whose turn produced a plan is cut down to
COMPLETED_SESSION_TTL_SECONDS so the next conversation starts fresh.

In production, use Redis or a database.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from engine.state import ConversationTurn, SlotStore

logger = logging.getLogger(__name__)

# Run a purge of expired sessions once the store grows past this size
PURGE_THRESHOLD = 1000


@dataclass
class SessionState:
    """Everything the engine needs from one conversation between turns."""
    session_id: str
    slots: SlotStore = field(default_factory=SlotStore)
    history: List[ConversationTurn] = field(default_factory=list)
    turn_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: Optional[datetime] = None
    completed: bool = False


def new_session_id() -> str:
    return f"session-{uuid.uuid4().hex}"


class SessionStore:
    """Session lookup with TTL expiry."""

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        completed_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if ttl is None:
            ttl = timedelta(minutes=int(os.getenv("SESSION_TTL_MINUTES", "60")))
        if completed_ttl is None:
            completed_ttl = timedelta(seconds=int(os.getenv("COMPLETED_SESSION_TTL_SECONDS", "60")))
        self.ttl = ttl
        self.completed_ttl = completed_ttl
        self._clock = clock
        self._sessions: Dict[str, SessionState] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _is_expired(self, state: SessionState) -> bool:
        return state.expires_at is not None and self._clock() >= state.expires_at

    def get(self, session_id: Optional[str]) -> Optional[SessionState]:
        """Return a live session, dropping it if it has expired."""
        if not session_id:
            return None
        state = self._sessions.get(session_id)
        if state is None:
            return None
        if self._is_expired(state):
            logger.info(f"Session expired: {session_id}")
            del self._sessions[session_id]
            return None
        return state

    def create(self) -> SessionState:
        now = self._clock()
        state = SessionState(
            session_id=new_session_id(),
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._sessions[state.session_id] = state
        logger.info(f"Session created: {state.session_id}")
        if len(self._sessions) > PURGE_THRESHOLD:
            self.purge_expired()
        return state

    def get_or_create(self, session_id: Optional[str]) -> SessionState:
        """Unknown or expired ids get a fresh, empty session with a new id."""
        state = self.get(session_id)
        if state is None:
            if session_id:
                logger.info(f"Session not found or expired: {session_id}, starting fresh")
            state = self.create()
        return state

    def save(self, state: SessionState) -> None:
        self._sessions[state.session_id] = state

    def mark_completed(self, state: SessionState) -> None:
        """Keep a finished conversation only for the short completed TTL."""
        state.completed = True
        state.expires_at = min(
            state.expires_at or self._clock() + self.ttl,
            self._clock() + self.completed_ttl,
        )
        self.save(state)
        logger.info(f"Session completed: {state.session_id}, expires_at={state.expires_at.isoformat()}")

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        expired = [sid for sid, state in self._sessions.items() if self._is_expired(state)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)
