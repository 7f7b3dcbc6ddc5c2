from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from ingestion.document_models import Chunk, Document
from ingestion.hash_utils import fingerprint
from storage.document_store import InMemoryDocumentStore
from streaming.worker_pool import BoundedWorkerPool

LECTURE = (
    "Photosynthesis converts light energy into chemical energy. "
    "Chlorophyll absorbs mostly blue and red light.\n\n"
    "The Calvin cycle fixes carbon dioxide into sugars. "
    "It runs in the stroma of the chloroplast.\f"
    "Cellular respiration releases energy stored in glucose. "
    "Mitochondria are the site of aerobic respiration."
)


class FakeLLM:
    """
    Stands in for a LangChain LLM: invoke() returns `response`, stream()
    yields `fragments`. Every prompt is recorded.
    """

    def __init__(
        self,
        response: str = "",
        fragments: Optional[Iterable[Any]] = None,
        fail_with: Optional[Exception] = None,
        fail_after: Optional[int] = None,
        gate: Optional[threading.Event] = None,
        gate_after: Optional[int] = None,
    ):
        self.response = response
        self.fragments = list(fragments or [])
        self.fail_with = fail_with
        self.fail_after = fail_after
        self.gate = gate
        self.gate_after = gate_after
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def invoke(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        return self.response

    def stream(self, prompt: str):
        self.prompts.append(prompt)
        for i, fragment in enumerate(self.fragments):
            if self.gate is not None and i == self.gate_after:
                self.gate.wait(5)
            if self.fail_after is not None and i == self.fail_after:
                raise self.fail_with or ConnectionError("connection reset")
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise self.fail_with or ConnectionError("connection reset")


class FakeVectorIndex:
    """
    Dict-backed VectorIndex. Ranking is by naive word overlap; `leaky=True`
    ignores the scope on query to exercise the service-side filter.
    """

    def __init__(self, fail: bool = False, leaky: bool = False):
        self.fail = fail
        self.leaky = leaky
        self.scopes: Dict[str, List[Chunk]] = {}
        self.add_calls = 0
        self.query_calls = 0

    def add(self, chunks: Sequence[Chunk], scope: str) -> int:
        self.add_calls += 1
        if self.fail:
            raise ConnectionError("vector store unavailable")
        self.scopes.setdefault(scope, []).extend(chunks)
        return len(chunks)

    def query(self, text: str, scope: str, top_k: int) -> List[Chunk]:
        self.query_calls += 1
        if self.leaky:
            pool = [c for chunks in self.scopes.values() for c in chunks]
        else:
            pool = list(self.scopes.get(scope, []))
        words = set(text.lower().split())
        scored = [(len(words & set(c.text.lower().split())), c) for c in pool]
        scored = [(s, c) for s, c in scored if s > 0]
        scored.sort(key=lambda sc: (-sc[0], sc[1].sequence))
        return [c for _, c in scored[:top_k]]

    def delete_scope(self, scope: str) -> int:
        if self.fail:
            raise ConnectionError("vector store unavailable")
        return len(self.scopes.pop(scope, []))


def make_document(
    doc_id: str = "doc-1",
    owner_id: str = "alice",
    text: str = LECTURE,
    **kwargs: Any,
) -> Document:
    return Document(
        id=doc_id,
        owner_id=owner_id,
        content_fingerprint=fingerprint(text.encode("utf-8")),
        raw_text=text,
        file_name=kwargs.pop("file_name", f"{doc_id}.pdf"),
        page_count=kwargs.pop("page_count", text.count("\f") + 1),
        file_size_bytes=len(text),
        **kwargs,
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def pool():
    p = BoundedWorkerPool(min_workers=1, max_workers=2, queue_capacity=4, keep_alive=1)
    yield p
    p.shutdown(wait=True)
