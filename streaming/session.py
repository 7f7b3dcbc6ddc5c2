from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from common.errors import InvalidTransitionError
from ingestion.document_models import utcnow


class StreamState(str, Enum):
    PENDING = "PENDING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.FAILED)


_ALLOWED = {
    StreamState.PENDING: {StreamState.STREAMING, StreamState.FAILED},
    StreamState.STREAMING: {StreamState.COMPLETED, StreamState.FAILED},
    StreamState.COMPLETED: set(),
    StreamState.FAILED: set(),
}


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    document_id: str
    state: StreamState
    accumulated_text: str
    fragments: int
    skipped_fragments: int
    error: Optional[str]
    created_at: datetime
    updated_at: datetime


class StreamSession:
    """
    One summary stream for one document. Only the owning worker appends;
    readers take snapshots. State only moves forward.
    """

    def __init__(self, document_id: str):
        self.session_id = uuid.uuid4().hex
        self.document_id = document_id
        self._lock = threading.Lock()
        self._state = StreamState.PENDING
        self._parts: List[str] = []
        self._skipped = 0
        self._error: Optional[str] = None
        self._created_at = utcnow()
        self._updated_at = self._created_at
        self._done = threading.Event()

    @property
    def state(self) -> StreamState:
        with self._lock:
            return self._state

    def transition(self, new_state: StreamState, error: Optional[str] = None) -> None:
        with self._lock:
            if new_state not in _ALLOWED[self._state]:
                raise InvalidTransitionError(
                    f"Session {self.session_id}: {self._state.value} -> {new_state.value}"
                )
            self._state = new_state
            self._updated_at = utcnow()
            if error is not None:
                self._error = error
            if new_state.terminal:
                self._done.set()

    def append(self, fragment: str) -> int:
        """Append a fragment; returns its 0-based position in the stream."""
        with self._lock:
            if self._state is not StreamState.STREAMING:
                raise InvalidTransitionError(
                    f"Session {self.session_id} is {self._state.value}, cannot append"
                )
            self._parts.append(fragment)
            self._updated_at = utcnow()
            return len(self._parts) - 1

    def mark_skipped(self) -> None:
        with self._lock:
            self._skipped += 1

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._parts)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                document_id=self.document_id,
                state=self._state,
                accumulated_text="".join(self._parts),
                fragments=len(self._parts),
                skipped_fragments=self._skipped,
                error=self._error,
                created_at=self._created_at,
                updated_at=self._updated_at,
            )

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class StreamTask:
    """Handle returned by a trigger call; the session's state is queryable here."""

    def __init__(self, session: StreamSession, future: Optional[Future] = None):
        self.session = session
        self.future = future

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def document_id(self) -> str:
        return self.session.document_id

    @property
    def state(self) -> StreamState:
        return self.session.state

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    def wait(self, timeout: Optional[float] = None) -> StreamState:
        """Block until the session is COMPLETED or FAILED (or timeout)."""
        self.session.wait(timeout)
        return self.session.state
