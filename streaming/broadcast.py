from __future__ import annotations

import queue
import threading
from collections import defaultdict
from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel

from common.logger import get_logger

log = get_logger(__name__)

TOPIC_PREFIX = "/topic/lectures/"

MessageType = Literal["SUMMARY_CHUNK", "SUMMARY_COMPLETED", "SUMMARY_ERROR"]


def topic_for(document_id: str) -> str:
    return f"{TOPIC_PREFIX}{document_id}"


class StreamMessage(BaseModel):
    type: MessageType
    document_id: str
    session_id: str
    sequence: Optional[int] = None  # fragment position, SUMMARY_CHUNK only
    chunk: Optional[str] = None
    full_summary: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def fragment(cls, document_id: str, session_id: str, sequence: int, chunk: str) -> "StreamMessage":
        return cls(
            type="SUMMARY_CHUNK",
            document_id=document_id,
            session_id=session_id,
            sequence=sequence,
            chunk=chunk,
        )

    @classmethod
    def completed(cls, document_id: str, session_id: str, full_summary: str) -> "StreamMessage":
        return cls(
            type="SUMMARY_COMPLETED",
            document_id=document_id,
            session_id=session_id,
            full_summary=full_summary,
        )

    @classmethod
    def failed(cls, document_id: str, session_id: str, error: str) -> "StreamMessage":
        return cls(
            type="SUMMARY_ERROR",
            document_id=document_id,
            session_id=session_id,
            error=error,
        )

    @property
    def terminal(self) -> bool:
        return self.type != "SUMMARY_CHUNK"


class Subscription:
    """Receives messages published after it was opened, in publish order."""

    def __init__(self, broadcaster: "Broadcaster", topic: str):
        self.topic = topic
        self._broadcaster = broadcaster
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self.closed = False

    def _deliver(self, message: Any) -> None:
        self._inbox.put_nowait(message)

    def get(self, timeout: Optional[float] = None) -> Optional[Any]:
        try:
            return self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def until_terminal(self, timeout: float = 30.0) -> Iterator[StreamMessage]:
        """Yield stream messages up to and including the first terminal one."""
        while True:
            msg = self.get(timeout=timeout)
            if msg is None:
                return
            yield msg
            if getattr(msg, "terminal", False):
                return

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)
        self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class Broadcaster:
    """
    In-process pub/sub. Delivery is at-most-once to the subscribers connected
    at publish time; nothing is retained for later subscribers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str) -> Subscription:
        sub = Subscription(self, topic)
        with self._lock:
            self._subs[topic].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.topic, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subs.pop(sub.topic, None)

    def publish(self, topic: str, message: Any) -> int:
        with self._lock:
            targets = list(self._subs.get(topic, ()))
        for sub in targets:
            sub._deliver(message)
        if not targets:
            log.debug("No subscribers on %s, message dropped", topic)
        return len(targets)
