"""
LectureAssistant: the operations exposed to callers.

    ingest -> trigger_stream_summary / stream_status -> ask
           -> generate_quiz -> submit_quiz

plus reindex, history, delete and per-owner stats. Long generation only runs
on the streaming pool; everything else is a synchronous call.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from langchain_core.language_models import BaseLanguageModel

from chains.qa_chain import Answer, QuestionAnswerer
from chains.summary import StructuredSummary, Summarizer, parse_summary
from common.errors import (
    NotFoundError,
    OwnershipError,
    UpstreamError,
    ValidationError,
)
from common.logger import get_logger
from ingestion.document_models import Document, DocumentStatus, IndexStatus
from ingestion.extractors import TextExtractor, default_extractor
from ingestion.fingerprint_cache import FingerprintCache
from models.llm import load_local_llm, provider_tag
from quiz.generator import QuizGenerator
from quiz.grader import grade_submission
from quiz.models import GradeReport, QuizAttempt, QuizView
from retrieval.retrieval_service import RetrievalService
from storage.document_store import DocumentStore, JsonFileDocumentStore
from streaming.broadcast import Broadcaster, Subscription, topic_for
from streaming.orchestrator import SummaryStreamOrchestrator
from streaming.session import SessionSnapshot
from streaming.worker_pool import BoundedWorkerPool
from vectorstore.base import VectorIndex
from vectorstore.chroma_store import ChromaStore

log = get_logger(__name__)


@dataclass(frozen=True)
class IngestResult:
    document_id: str
    from_cache: bool
    page_count: int
    file_name: str
    summary: Optional[str]
    chunks_indexed: int
    index_status: IndexStatus

    @property
    def structured_summary(self) -> Optional[StructuredSummary]:
        return parse_summary(self.summary) if self.summary else None


@dataclass(frozen=True)
class StreamAck:
    accepted: bool
    document_id: str
    session_id: str
    topic: str


@dataclass(frozen=True)
class ReindexResult:
    document_id: str
    chunks_indexed: int
    index_status: IndexStatus


@dataclass(frozen=True)
class OwnerStats:
    owner_id: str
    documents: int
    summarized: int
    total_pages: int
    quizzes_taken: int
    average_percentage: Optional[float]


class LectureAssistant:
    def __init__(
        self,
        store: DocumentStore,
        index: VectorIndex,
        summary_llm: BaseLanguageModel,
        qa_llm: Optional[BaseLanguageModel] = None,
        quiz_llm: Optional[BaseLanguageModel] = None,
        extractor: Optional[TextExtractor] = None,
        broadcaster: Optional[Broadcaster] = None,
        pool: Optional[BoundedWorkerPool] = None,
        summary_provider: str = "unknown",
    ):
        self.store = store
        self.extractor = extractor or default_extractor()
        self.cache = FingerprintCache(store)
        self.retrieval = RetrievalService(index)
        self.summarizer = Summarizer(summary_llm)
        self.summary_provider = summary_provider
        self.answerer = QuestionAnswerer(self.retrieval, qa_llm or summary_llm)
        self.quizzes = QuizGenerator(quiz_llm or summary_llm, store)
        self.broadcaster = broadcaster or Broadcaster()
        self.streams = SummaryStreamOrchestrator(
            store,
            summary_llm,
            self.broadcaster,
            pool=pool,
            provider_tag=summary_provider,
        )

    # --- documents ---
    def ingest(
        self,
        data: bytes,
        owner_id: str,
        file_name: str = "lecture.pdf",
        summarize: bool = True,
    ) -> IngestResult:
        """
        Extract, optionally summarize, store and index an upload.

        Identical bytes from the same owner short-circuit to the stored
        document; only the reported file name reflects the new upload.
        Indexing failure does not fail the ingest: it is recorded on the
        document as index_status=FAILED until reindex() succeeds.
        """
        if not data:
            raise ValidationError("Empty file provided")
        if not owner_id:
            raise ValidationError("owner_id is required")

        hit = self.cache.lookup(data, owner_id)
        if hit is not None:
            doc = hit.document
            log.info("Returning cached result for '%s' (document_id=%s)", file_name, doc.id)
            return IngestResult(
                document_id=doc.id,
                from_cache=True,
                page_count=doc.page_count,
                file_name=file_name,
                summary=doc.generated_artifact,
                chunks_indexed=0,
                index_status=doc.index_status,
            )

        extracted = self.extractor.extract(data)
        log.info("Processing new document '%s' (%d pages)", file_name, extracted.page_count)

        summary = self.summarizer.summarize(extracted.text) if summarize else None
        doc = Document(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            content_fingerprint=self.cache.key(data),
            raw_text=extracted.text,
            file_name=file_name,
            page_count=extracted.page_count,
            file_size_bytes=len(data),
            generated_artifact=summary,
            provider_tag=self.summary_provider if summary else None,
            status=DocumentStatus.SUMMARIZED if summary else DocumentStatus.EXTRACTED,
        )
        self.store.upsert(doc)

        chunks, status = self._index(doc)
        log.info(
            "Ingest complete for document_id=%s, chunks=%d, index_status=%s",
            doc.id,
            chunks,
            status.value,
        )
        return IngestResult(
            document_id=doc.id,
            from_cache=False,
            page_count=doc.page_count,
            file_name=file_name,
            summary=summary,
            chunks_indexed=chunks,
            index_status=status,
        )

    def _index(self, doc: Document) -> tuple[int, IndexStatus]:
        try:
            chunks = self.retrieval.index_document(doc)
        except UpstreamError as e:
            log.error("Indexing failed for document_id=%s (non-fatal): %s", doc.id, e, exc_info=True)
            self.store.update(doc.id, index_status=IndexStatus.FAILED)
            return 0, IndexStatus.FAILED
        self.store.update(doc.id, index_status=IndexStatus.INDEXED)
        return chunks, IndexStatus.INDEXED

    def reindex(self, document_id: str, owner_id: Optional[str] = None) -> ReindexResult:
        doc = self.get_document(document_id, owner_id)
        try:
            chunks = self.retrieval.reindex(doc)
        except UpstreamError:
            self.store.update(doc.id, index_status=IndexStatus.FAILED)
            raise
        self.store.update(doc.id, index_status=IndexStatus.INDEXED)
        log.info("Re-indexed document_id=%s with %d chunks", doc.id, chunks)
        return ReindexResult(document_id=doc.id, chunks_indexed=chunks, index_status=IndexStatus.INDEXED)

    def get_document(self, document_id: str, owner_id: Optional[str] = None) -> Document:
        doc = self.store.find_by_id(document_id)
        if doc is None:
            raise NotFoundError(f"Document not found: {document_id}")
        if owner_id is not None and doc.owner_id != owner_id:
            raise OwnershipError(f"Access denied to document: {document_id}")
        return doc

    def summary(self, document_id: str, owner_id: Optional[str] = None) -> Optional[StructuredSummary]:
        doc = self.get_document(document_id, owner_id)
        return parse_summary(doc.generated_artifact) if doc.generated_artifact else None

    def history(self, owner_id: str) -> List[Document]:
        return self.store.list_by_owner(owner_id)

    def delete_document(self, document_id: str, owner_id: Optional[str] = None) -> None:
        """Remove the document with its chunks, quiz data and stream session."""
        doc = self.get_document(document_id, owner_id)
        removed = self.retrieval.drop(doc.id)
        self.store.delete(doc.id)
        self.streams.forget(doc.id)
        log.info("Deleted document_id=%s (%d chunks)", doc.id, removed)

    # --- streaming summary ---
    def trigger_stream_summary(self, document_id: str, owner_id: Optional[str] = None) -> StreamAck:
        task = self.streams.trigger(document_id, owner_id=owner_id)
        return StreamAck(
            accepted=True,
            document_id=document_id,
            session_id=task.session_id,
            topic=topic_for(document_id),
        )

    def stream_status(self, document_id: str) -> SessionSnapshot:
        return self.streams.status(document_id)

    def subscribe(self, document_id: str) -> Subscription:
        """Live stream messages for a document, from this point onward."""
        return self.broadcaster.subscribe(topic_for(document_id))

    # --- Q&A ---
    def ask(self, document_id: str, question: str, owner_id: Optional[str] = None) -> Answer:
        if not question or not question.strip():
            raise ValidationError("Question must not be empty")
        doc = self.get_document(document_id, owner_id)
        if doc.index_status is IndexStatus.FAILED:
            log.warning("document_id=%s is not indexed; reindex before asking", doc.id)
        return self.answerer.ask(doc.id, question.strip())

    # --- quizzes ---
    def generate_quiz(
        self, document_id: str, n: Optional[int] = None, owner_id: Optional[str] = None
    ) -> QuizView:
        doc = self.get_document(document_id, owner_id)
        quiz_set = self.quizzes.generate(doc, n)
        parsed = self.summary(doc.id)
        title = parsed.title if parsed and parsed.title else doc.file_name
        return QuizView.from_quiz_set(quiz_set, title=f"Quiz: {title}")

    def submit_quiz(
        self,
        document_id: str,
        answers: Sequence[Optional[str]],
        owner_id: Optional[str] = None,
    ) -> GradeReport:
        if answers is None:
            raise ValidationError("answers are required")
        doc = self.get_document(document_id, owner_id)
        quiz_set = self.store.find_quiz_set(doc.id)
        if quiz_set is None:
            raise NotFoundError(f"No active quiz for document: {document_id}. Generate a quiz first.")

        report = grade_submission(quiz_set, answers)
        self.store.record_attempt(
            QuizAttempt(
                id=uuid.uuid4().hex,
                quiz_set_id=quiz_set.id,
                document_id=doc.id,
                owner_id=owner_id or doc.owner_id,
                answers=tuple(answers),
                score=report.score,
                total_questions=report.total_questions,
                percentage=report.percentage,
                grade=report.grade,
            )
        )
        log.info(
            "Quiz submitted for document_id=%s: %d/%d (%d%%)",
            doc.id,
            report.score,
            report.total_questions,
            report.percentage,
        )
        return report

    def attempts(self, owner_id: str, document_id: Optional[str] = None) -> List[QuizAttempt]:
        return self.store.list_attempts(owner_id=owner_id, document_id=document_id)

    def owner_stats(self, owner_id: str) -> OwnerStats:
        docs = self.history(owner_id)
        attempts = self.attempts(owner_id)
        avg = (
            round(sum(a.percentage for a in attempts) / len(attempts), 1) if attempts else None
        )
        return OwnerStats(
            owner_id=owner_id,
            documents=len(docs),
            summarized=sum(1 for d in docs if d.status is DocumentStatus.SUMMARIZED),
            total_pages=sum(d.page_count for d in docs),
            quizzes_taken=len(attempts),
            average_percentage=avg,
        )

    def close(self) -> None:
        self.streams.pool.shutdown(wait=True)


def build_assistant() -> LectureAssistant:
    """Wire the default stack: Ollama models, Chroma index, JSON file store."""
    return LectureAssistant(
        store=JsonFileDocumentStore(),
        index=ChromaStore(),
        summary_llm=load_local_llm("llm_summary"),
        qa_llm=load_local_llm("llm_qa"),
        quiz_llm=load_local_llm("llm_quiz"),
        extractor=default_extractor(),
        summary_provider=provider_tag("llm_summary"),
    )
