from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from common.config import yaml_config
from common.errors import IndexingError, UpstreamError, ValidationError
from common.logger import get_logger
from ingestion.chunkers import chunk_document
from ingestion.document_models import Chunk, Document
from vectorstore.base import VectorIndex

log = get_logger(__name__)


@dataclass(frozen=True)
class Retrieval:
    """Ranked chunks for one scoped query. found=False means no grounding."""

    document_id: str
    question: str
    chunks: List[Chunk] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.chunks)


class RetrievalService:
    """
    Scoped indexing and similarity retrieval over an external VectorIndex.

    Indexing replaces a document's chunk set; queries never return chunks
    indexed under another document.
    """

    def __init__(self, index: VectorIndex, k: Optional[int] = None):
        self.index = index
        self.k = k or yaml_config.retrieval.k

    def index_document(self, doc: Document) -> int:
        chunks = chunk_document(doc)
        log.info("Indexing %d chunks for document_id=%s", len(chunks), doc.id)
        try:
            removed = self.index.delete_scope(doc.id)
            if removed:
                log.info("Replaced %d prior chunks for document_id=%s", removed, doc.id)
            added = self.index.add(chunks, scope=doc.id)
        except UpstreamError:
            raise
        except Exception as e:
            raise IndexingError(f"Indexing failed for document {doc.id}: {e}") from e
        log.info("Indexed %d chunks for document_id=%s", added, doc.id)
        return added

    def reindex(self, doc: Document) -> int:
        """Resubmit the stored text; prior chunks for the scope are replaced."""
        if not doc.raw_text or not doc.raw_text.strip():
            raise ValidationError(f"No stored text available for document: {doc.id}")
        log.info("Re-indexing document_id=%s", doc.id)
        return self.index_document(doc)

    def retrieve(self, document_id: str, question: str, k: Optional[int] = None) -> Retrieval:
        top_k = k or self.k
        try:
            hits = self.index.query(question, scope=document_id, top_k=top_k) or []
        except UpstreamError:
            raise
        except Exception as e:
            raise IndexingError(f"Vector query failed for document {document_id}: {e}") from e

        scoped = [c for c in hits if c.document_id == document_id]
        if len(scoped) != len(hits):
            log.warning(
                "Dropped %d out-of-scope chunks for document_id=%s",
                len(hits) - len(scoped),
                document_id,
            )
        if not scoped:
            log.warning("No relevant chunks found for document_id=%s", document_id)
        return Retrieval(document_id=document_id, question=question, chunks=scoped[:top_k])

    def drop(self, document_id: str) -> int:
        try:
            return self.index.delete_scope(document_id)
        except Exception as e:
            raise IndexingError(f"Failed to drop chunks for document {document_id}: {e}") from e
