"""Grounded question answering over one document's retrieved chunks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from langchain_core.language_models import BaseLanguageModel

from chains.prompts import NO_GROUNDING_ANSWER, QA_TEMPLATE
from common.config import yaml_config
from common.logger import get_logger
from ingestion.document_models import Chunk
from models.llm import invoke_llm
from retrieval.retrieval_service import RetrievalService

log = get_logger(__name__)


@dataclass(frozen=True)
class Answer:
    document_id: str
    question: str
    answer: str
    source_chunks: List[str]
    grounded: bool = True

    @property
    def chunks_used(self) -> int:
        return len(self.source_chunks)


def _trim_context(chunks: Sequence[Chunk], max_chars: int) -> Tuple[str, List[Chunk]]:
    """
    Concatenate chunk texts up to a character budget, preserving rank order.
    Returns (context_string, chunks_used).
    """
    used: List[Chunk] = []
    buff: List[str] = []
    remaining = max_chars
    for c in chunks:
        text = c.text.strip()
        if not text:
            continue
        take = text[:remaining]
        if not take:
            break
        buff.append(take)
        used.append(c)
        remaining -= len(take)
        if remaining <= 0:
            break
    return "\n\n---\n\n".join(buff), used


class QuestionAnswerer:
    """
    1) Retrieves the top-k chunks scoped to the document
    2) Builds a context-grounded prompt
    3) Asks the QA LLM

    With no grounding the LLM is not called; a fixed "not found" answer is returned.
    """

    def __init__(
        self,
        retrieval: RetrievalService,
        qa_llm: BaseLanguageModel,
        max_context_chars: Optional[int] = None,
    ):
        self.retrieval = retrieval
        self.qa_llm = qa_llm
        self.max_context_chars = max_context_chars or yaml_config.retrieval.max_context_chars

    def ask(self, document_id: str, question: str, k: Optional[int] = None) -> Answer:
        log.info("RAG Q&A: document_id=%s, question=%r", document_id, question)
        found = self.retrieval.retrieve(document_id, question, k=k)
        if not found.found:
            return Answer(
                document_id=document_id,
                question=question,
                answer=NO_GROUNDING_ANSWER,
                source_chunks=[],
                grounded=False,
            )

        context, used = _trim_context(found.chunks, self.max_context_chars)
        prompt = QA_TEMPLATE.format(context=context, question=question)
        answer = invoke_llm(self.qa_llm, prompt)
        log.info("RAG answer generated for document_id=%s, chunksUsed=%d", document_id, len(used))
        return Answer(
            document_id=document_id,
            question=question,
            answer=answer.strip(),
            source_chunks=[c.text for c in used],
        )
