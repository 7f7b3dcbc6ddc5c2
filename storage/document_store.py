from __future__ import annotations

import dataclasses
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import orjson
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from common.config import yaml_config
from common.errors import NotFoundError
from common.logger import get_logger
from ingestion.document_models import Document
from quiz.models import QuizAttempt, QuizSet

log = get_logger(__name__)


class DocumentStore(Protocol):
    def upsert(self, doc: Document) -> None: ...

    def find_by_id(self, document_id: str) -> Optional[Document]: ...

    def find_by_fingerprint(
        self, fingerprint: str, owner_id: Optional[str] = None
    ) -> Optional[Document]: ...

    def update(self, document_id: str, **changes: Any) -> Document: ...

    def delete(self, document_id: str) -> bool: ...

    def list_by_owner(self, owner_id: str) -> List[Document]: ...

    def save_quiz_set(self, quiz_set: QuizSet) -> None: ...

    def find_quiz_set(self, document_id: str) -> Optional[QuizSet]: ...

    def record_attempt(self, attempt: QuizAttempt) -> None: ...

    def list_attempts(
        self, owner_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> List[QuizAttempt]: ...


class InMemoryDocumentStore:
    """
    Lock-guarded dict store. Documents are copied on the way in and out so a
    caller holding a Document never observes another writer's changes.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._docs: Dict[str, Document] = {}
        self._quiz_sets: Dict[str, QuizSet] = {}  # document_id -> latest set
        self._attempts: Dict[str, QuizAttempt] = {}

    # --- documents ---
    def upsert(self, doc: Document) -> None:
        with self._lock:
            stored = dataclasses.replace(doc)
            self._persist_document(stored)
            self._docs[doc.id] = stored

    def find_by_id(self, document_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._docs.get(document_id)
            return dataclasses.replace(doc) if doc else None

    def find_by_fingerprint(
        self, fingerprint: str, owner_id: Optional[str] = None
    ) -> Optional[Document]:
        with self._lock:
            matches = [
                d
                for d in self._docs.values()
                if d.content_fingerprint == fingerprint
                and (owner_id is None or d.owner_id == owner_id)
            ]
            if not matches:
                return None
            first = min(matches, key=lambda d: d.processed_at)
            return dataclasses.replace(first)

    def update(self, document_id: str, **changes: Any) -> Document:
        """Atomically replace selected fields of one document row."""
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None:
                raise NotFoundError(f"Document not found: {document_id}")
            updated = dataclasses.replace(doc, **changes)
            self._persist_document(updated)
            self._docs[document_id] = updated
            return dataclasses.replace(updated)

    def delete(self, document_id: str) -> bool:
        """Delete a document together with its quiz sets and attempts."""
        with self._lock:
            if self._docs.pop(document_id, None) is None:
                return False
            self._quiz_sets.pop(document_id, None)
            dropped = [a.id for a in self._attempts.values() if a.document_id == document_id]
            for attempt_id in dropped:
                del self._attempts[attempt_id]
            self._remove_files(document_id, dropped)
            return True

    def list_by_owner(self, owner_id: str) -> List[Document]:
        with self._lock:
            docs = [dataclasses.replace(d) for d in self._docs.values() if d.owner_id == owner_id]
        return sorted(docs, key=lambda d: d.processed_at, reverse=True)

    # --- quiz sets ---
    def save_quiz_set(self, quiz_set: QuizSet) -> None:
        with self._lock:
            self._persist_quiz_set(quiz_set)
            self._quiz_sets[quiz_set.document_id] = quiz_set

    def find_quiz_set(self, document_id: str) -> Optional[QuizSet]:
        with self._lock:
            quiz_set = self._quiz_sets.get(document_id)
            if quiz_set is not None and quiz_set.is_expired():
                log.info("Quiz set %s for document %s expired", quiz_set.id, document_id)
                return None
            return quiz_set

    # --- attempts ---
    def record_attempt(self, attempt: QuizAttempt) -> None:
        with self._lock:
            self._persist_attempt(attempt)
            self._attempts[attempt.id] = attempt

    def list_attempts(
        self, owner_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> List[QuizAttempt]:
        with self._lock:
            attempts = [
                a
                for a in self._attempts.values()
                if (owner_id is None or a.owner_id == owner_id)
                and (document_id is None or a.document_id == document_id)
            ]
        return sorted(attempts, key=lambda a: a.attempted_at, reverse=True)

    # persistence hooks, no-ops in memory
    def _persist_document(self, doc: Document) -> None:
        pass

    def _persist_quiz_set(self, quiz_set: QuizSet) -> None:
        pass

    def _persist_attempt(self, attempt: QuizAttempt) -> None:
        pass

    def _remove_files(self, document_id: str, attempt_ids: List[str]) -> None:
        pass


@retry(
    retry=retry_if_exception_type(OSError),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    """Write via a temp file + rename so readers never see a partial row."""
    tmp = path.with_suffix(".tmp")
    tmp.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    os.replace(tmp, path)


class JsonFileDocumentStore(InMemoryDocumentStore):
    """
    One orjson file per row under `root`:
      documents/<id>.json, quiz_sets/<document_id>.json, attempts/<id>.json
    Rows are loaded once at start-up and written through on every change.
    """

    def __init__(self, root: Path | str | None = None):
        super().__init__()
        self.root = Path(root or yaml_config.app.store_dir)
        for sub in ("documents", "quiz_sets", "attempts"):
            (self.root / sub).mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        for p in sorted((self.root / "documents").glob("*.json")):
            doc = Document.from_dict(orjson.loads(p.read_bytes()))
            self._docs[doc.id] = doc
        for p in sorted((self.root / "quiz_sets").glob("*.json")):
            qs = QuizSet.from_dict(orjson.loads(p.read_bytes()))
            self._quiz_sets[qs.document_id] = qs
        for p in sorted((self.root / "attempts").glob("*.json")):
            a = QuizAttempt.from_dict(orjson.loads(p.read_bytes()))
            self._attempts[a.id] = a
        log.info(
            "Loaded %d documents, %d quiz sets, %d attempts from %s",
            len(self._docs),
            len(self._quiz_sets),
            len(self._attempts),
            self.root,
        )

    def _persist_document(self, doc: Document) -> None:
        _write_json(self.root / "documents" / f"{doc.id}.json", doc.to_dict())

    def _persist_quiz_set(self, quiz_set: QuizSet) -> None:
        _write_json(
            self.root / "quiz_sets" / f"{quiz_set.document_id}.json", quiz_set.to_dict()
        )

    def _persist_attempt(self, attempt: QuizAttempt) -> None:
        _write_json(self.root / "attempts" / f"{attempt.id}.json", attempt.to_dict())

    def _remove_files(self, document_id: str, attempt_ids: List[str]) -> None:
        (self.root / "documents" / f"{document_id}.json").unlink(missing_ok=True)
        (self.root / "quiz_sets" / f"{document_id}.json").unlink(missing_ok=True)
        for attempt_id in attempt_ids:
            (self.root / "attempts" / f"{attempt_id}.json").unlink(missing_ok=True)
