"""Session store interface and per-session turn serialization"""

import asyncio
import copy
import logging
import re
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol

from settlement_gateway.domain.exceptions import SessionBusyError, SessionNotFoundError
from settlement_gateway.domain.models import ConversationState

logger = logging.getLogger(__name__)

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class SessionStore(Protocol):
    """Key-value storage for JSON-compatible session documents"""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemorySessionStore:
    """Process-local store; values are deep-copied in and out"""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not _SESSION_ID.match(session_id):
        raise ValueError("session_id must be 1-128 letters, digits, '-' or '_'")
    return session_id


class SessionManager:
    """
    Creates, loads, saves and ends conversation sessions.

    Turns for one session are serialized through an asyncio.Lock per session
    id; a turn arriving while another is in flight is rejected. Locks exist
    only for known sessions with a turn in flight.
    """

    def __init__(self, store: SessionStore, locks: Optional[Dict[str, asyncio.Lock]] = None):
        self.store = store
        self._locks = locks if locks is not None else {}

    def create_session(self, session_id: Optional[str] = None) -> ConversationState:
        """Start a session, or resume it when the supplied id already exists"""
        if session_id is None:
            session_id = uuid.uuid4().hex
        else:
            validate_session_id(session_id)
            existing = self.store.get(session_id)
            if existing is not None:
                return ConversationState.from_dict(existing)

        state = ConversationState(session_id=session_id)
        self.save(state)
        logger.info("Session created", extra={"session_id": session_id})
        return state

    def get(self, session_id: str) -> ConversationState:
        data = self.store.get(session_id)
        if data is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        return ConversationState.from_dict(data)

    def save(self, state: ConversationState) -> None:
        self.store.set(state.session_id, state.to_dict())

    def end(self, session_id: str) -> None:
        if self.store.get(session_id) is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        self.store.delete(session_id)
        self._locks.pop(session_id, None)
        logger.info("Session ended", extra={"session_id": session_id})

    @asynccontextmanager
    async def turn(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session for one turn.

        Raises:
            SessionNotFoundError: Unknown session id
            SessionBusyError: Another turn for this session is in progress
        """
        if self.store.get(session_id) is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            raise SessionBusyError(f"Session {session_id} is processing another turn")
        try:
            async with lock:
                yield
        finally:
            # Busy turns are rejected, never queued, so no task waits on a released lock
            if self._locks.get(session_id) is lock and not lock.locked():
                del self._locks[session_id]
