"""
Per-user conversation state and the in-flight operation guard
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional

from .config import config as global_config
from .errors import OperationInProgress

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    """
    Conversation stage for one user

    Attributes:
        user_id: Chat user identifier
        stage: Current prompt stage (e.g. "awaiting_token_address"), or None
        data: Values collected so far
        updated_at: Monotonic time of the last change
    """
    user_id: str
    stage: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    updated_at: float = 0.0


class SessionRegistry:
    """
    Session store with expiry and a per-user exclusive operation guard

    At most one money-moving operation runs per user. A second one is
    rejected with OperationInProgress instead of being queued.

    Usage:
        sessions = SessionRegistry()

        with sessions.operation(user_id, "withdraw"):
            ...
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds if ttl_seconds is not None else global_config.bot.session_ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, UserSession] = {}
        self._in_flight: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _expired(self, session: UserSession) -> bool:
        return self._ttl > 0 and self._clock() - session.updated_at > self._ttl

    def get(self, user_id: str) -> Optional[UserSession]:
        """Live session for a user, or None if absent or expired"""
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None and self._expired(session):
                del self._sessions[user_id]
                return None
            return session

    def get_stage(self, user_id: str) -> Optional[str]:
        session = self.get(user_id)
        return session.stage if session else None

    def set_stage(self, user_id: str, stage: str, **data) -> UserSession:
        """Move a user to a prompt stage, merging in collected data"""
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None or self._expired(session):
                session = UserSession(user_id=user_id)
                self._sessions[user_id] = session
            session.stage = stage
            session.data.update(data)
            session.updated_at = self._clock()
            return session

    def clear(self, user_id: str):
        """Drop a user's conversation state"""
        with self._lock:
            self._sessions.pop(user_id, None)

    def expire(self) -> int:
        """Remove expired sessions, returning how many were dropped"""
        with self._lock:
            stale = [uid for uid, s in self._sessions.items() if self._expired(s)]
            for uid in stale:
                del self._sessions[uid]
        if stale:
            logger.debug(f"Expired {len(stale)} session(s)")
        return len(stale)

    def in_flight(self, user_id: str) -> Optional[str]:
        """Name of the operation running for a user, if any"""
        with self._lock:
            return self._in_flight.get(user_id)

    @contextmanager
    def operation(self, user_id: str, name: str) -> Iterator[None]:
        """
        Hold the user's exclusive operation slot

        The user's conversation state is cleared when the operation ends.

        Raises:
            OperationInProgress: Another operation holds the slot
        """
        with self._lock:
            running = self._in_flight.get(user_id)
            if running is not None:
                logger.info(f"Rejecting {name} for user {user_id}: {running} in progress")
                raise OperationInProgress(user_id, running)
            self._in_flight[user_id] = name

        try:
            yield
        finally:
            with self._lock:
                self._in_flight.pop(user_id, None)
                self._sessions.pop(user_id, None)
