"""
Streaming summary generation off the request path.

trigger() validates, creates a PENDING session and hands it to the bounded
pool; it returns at once. One worker owns the session from then on:

    PENDING -> STREAMING -> COMPLETED | FAILED

Each decoded fragment is appended and broadcast on the document's topic in
arrival order. On a clean end of stream the full text is written to the
document row, then COMPLETED is broadcast with the full summary.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import orjson
from langchain_core.language_models import BaseLanguageModel

from chains.summary import build_summary_prompt
from common.errors import (
    AssistantError,
    EmptyResultError,
    MalformedFragmentError,
    NotFoundError,
    OwnershipError,
    PoolSaturatedError,
    UpstreamError,
    ValidationError,
)
from common.logger import get_logger
from ingestion.document_models import DocumentStatus
from models.llm import stream_llm
from storage.document_store import DocumentStore
from streaming.broadcast import Broadcaster, StreamMessage, topic_for
from streaming.session import SessionSnapshot, StreamSession, StreamState, StreamTask
from streaming.worker_pool import BoundedWorkerPool

log = get_logger(__name__)


def decode_fragment(raw: Any) -> str:
    """
    Normalise one streamed unit to text. Accepts plain strings, message
    chunks with a string `.content`, and Ollama NDJSON lines (bytes or dict)
    carrying a "response" field.
    """
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise MalformedFragmentError(f"Undecodable NDJSON line: {e}") from e
    if isinstance(raw, dict):
        if raw.get("error"):
            raise MalformedFragmentError(f"Provider error fragment: {raw['error']}")
        token = raw.get("response", raw.get("content"))
        if token is None and raw.get("done"):
            return ""
        if not isinstance(token, str):
            raise MalformedFragmentError(f"Fragment without text: {raw!r}")
        return token
    content = getattr(raw, "content", None)
    if isinstance(content, str):
        return content
    raise MalformedFragmentError(f"Unsupported fragment type: {type(raw).__name__}")


class SummaryStreamOrchestrator:
    def __init__(
        self,
        store: DocumentStore,
        llm: BaseLanguageModel,
        broadcaster: Broadcaster,
        pool: Optional[BoundedWorkerPool] = None,
        provider_tag: str = "unknown",
    ):
        self.store = store
        self.llm = llm
        self.broadcaster = broadcaster
        self.pool = pool or BoundedWorkerPool()
        self.provider_tag = provider_tag
        self._lock = threading.Lock()
        self._tasks: Dict[str, StreamTask] = {}  # document_id -> latest task

    def trigger(self, document_id: str, owner_id: Optional[str] = None) -> StreamTask:
        """Acknowledge "streaming started"; never waits for generation."""
        doc = self.store.find_by_id(document_id)
        if doc is None:
            raise NotFoundError(f"Document not found: {document_id}")
        if owner_id is not None and doc.owner_id != owner_id:
            raise OwnershipError(f"Access denied to document: {document_id}")
        if not doc.raw_text or not doc.raw_text.strip():
            raise ValidationError(f"No extracted text available for document: {document_id}")

        with self._lock:
            current = self._tasks.get(document_id)
            if current is not None and not current.state.terminal:
                log.info(
                    "Stream already %s for document_id=%s, reusing session %s",
                    current.state.value,
                    document_id,
                    current.session_id,
                )
                return current

            session = StreamSession(document_id)
            task = StreamTask(session)
            try:
                task.future = self.pool.submit(self._run, session)
            except PoolSaturatedError as e:
                session.transition(StreamState.FAILED, error=str(e))
                raise
            self._tasks[document_id] = task

        log.info("Streaming summarization queued for document_id=%s session=%s", document_id, session.session_id)
        return task

    def task(self, document_id: str) -> Optional[StreamTask]:
        with self._lock:
            return self._tasks.get(document_id)

    def forget(self, document_id: str) -> Optional[StreamTask]:
        """
        Drop the document's task so its status and accumulated text are no
        longer served. A still-running worker fails on its own once the
        document row is gone.
        """
        with self._lock:
            task = self._tasks.pop(document_id, None)
        if task is not None:
            log.info("Forgot %s stream session %s for document_id=%s", task.state.value, task.session_id, document_id)
        return task

    def status(self, document_id: str) -> SessionSnapshot:
        task = self.task(document_id)
        if task is None:
            raise NotFoundError(f"No summary stream for document: {document_id}")
        return task.snapshot()

    # --- worker side ---
    def _run(self, session: StreamSession) -> StreamState:
        document_id = session.document_id
        topic = topic_for(document_id)
        log.info("Streaming summarization starting for document_id=%s", document_id)
        try:
            session.transition(StreamState.STREAMING)
            doc = self.store.find_by_id(document_id)
            if doc is None:
                raise NotFoundError(f"Document deleted before streaming: {document_id}")

            for raw in stream_llm(self.llm, build_summary_prompt(doc.raw_text)):
                try:
                    token = decode_fragment(raw)
                except MalformedFragmentError as e:
                    session.mark_skipped()
                    log.warning("Skipping malformed fragment for document_id=%s: %s", document_id, e)
                    continue
                if not token:
                    continue
                seq = session.append(token)
                self.broadcaster.publish(
                    topic, StreamMessage.fragment(document_id, session.session_id, seq, token)
                )

            full = session.text
            if not full.strip():
                raise EmptyResultError("Model returned an empty response.")

            self._persist(document_id, full)
            session.transition(StreamState.COMPLETED)
            snap = session.snapshot()
            log.info(
                "Streaming summarization complete for document_id=%s, length=%d chars, fragments=%d, skipped=%d",
                document_id,
                len(full),
                snap.fragments,
                snap.skipped_fragments,
            )
            self.broadcaster.publish(
                topic, StreamMessage.completed(document_id, session.session_id, full)
            )
        except (AssistantError, OSError) as e:
            self._fail(session, e)
        except Exception as e:
            # Unexpected: still end the session, then surface on the future.
            self._fail(session, e)
            raise
        return session.state

    def _persist(self, document_id: str, full: str) -> None:
        # Only this document's row is written.
        self.store.update(
            document_id,
            generated_artifact=full,
            provider_tag=self.provider_tag,
            status=DocumentStatus.SUMMARIZED,
        )

    def _fail(self, session: StreamSession, error: Exception) -> None:
        kind = "Streaming failed" if isinstance(error, UpstreamError) else "Summarization failed"
        message = f"{kind}: {error}"
        log.error(
            "Streaming summarization FAILED for document_id=%s: %s",
            session.document_id,
            error,
            exc_info=not isinstance(error, EmptyResultError),
        )
        if not session.state.terminal:
            session.transition(StreamState.FAILED, error=message)
        self.broadcaster.publish(
            topic_for(session.document_id),
            StreamMessage.failed(session.document_id, session.session_id, message),
        )
