from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

from langchain_core.language_models import BaseLanguageModel

from chains.prompts import QUIZ_TEMPLATE
from common.config import yaml_config
from common.errors import EmptyResultError, ValidationError
from common.logger import get_logger
from ingestion.cleaners import truncate_for_prompt
from ingestion.document_models import Document, utcnow
from models.llm import invoke_llm
from quiz.models import QuizQuestion, QuizSet
from quiz.parser import accepted, parse_quiz, rejected
from storage.document_store import DocumentStore

log = get_logger(__name__)


class QuizGenerator:
    """
    Generate a multiple-choice quiz for one document and keep its answer key
    server-side as a persisted QuizSet.
    """

    def __init__(
        self,
        llm: BaseLanguageModel,
        store: DocumentStore,
        max_questions: Optional[int] = None,
        max_input_chars: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
    ):
        cfg = yaml_config.quiz
        self.llm = llm
        self.store = store
        self.max_questions = max_questions or cfg.max_questions
        self.max_input_chars = max_input_chars or cfg.max_input_chars
        self.ttl_minutes = ttl_minutes if ttl_minutes is not None else cfg.ttl_minutes

    def build_prompt(self, text: str, n: int) -> str:
        content, truncated = truncate_for_prompt(text, self.max_input_chars)
        if truncated:
            log.warning("Quiz input truncated from %d to %d characters.", len(text), self.max_input_chars)
        return QUIZ_TEMPLATE.format(num_questions=n, content=content)

    def generate(self, doc: Document, n: Optional[int] = None) -> QuizSet:
        n = yaml_config.quiz.default_questions if n is None else n
        if not 1 <= n <= self.max_questions:
            raise ValidationError(f"Number of questions must be between 1 and {self.max_questions}")
        if not doc.raw_text or not doc.raw_text.strip():
            raise ValidationError(f"No lecture text available for document: {doc.id}")

        log.info("Generating %d quiz questions for document_id=%s", n, doc.id)
        raw = invoke_llm(self.llm, self.build_prompt(doc.raw_text, n))
        if not raw.strip():
            raise EmptyResultError("AI model returned an empty quiz.")

        outcomes = parse_quiz(raw)
        for block in rejected(outcomes):
            log.warning("Skipping quiz block %s: %s", block.number, block.reason)
        parsed = accepted(outcomes)
        if not parsed:
            raise EmptyResultError("Failed to parse quiz questions from the AI response.")
        if len(parsed) < n:
            log.warning("Requested %d questions, parsed %d", n, len(parsed))

        questions = tuple(
            QuizQuestion(
                index=i,
                question=p.question,
                options=p.options,
                correct_answer=p.correct_answer,
                explanation=p.explanation,
            )
            for i, p in enumerate(parsed[:n])
        )
        now = utcnow()
        quiz_set = QuizSet(
            id=uuid.uuid4().hex,
            document_id=doc.id,
            questions=questions,
            generated_at=now,
            expires_at=now + timedelta(minutes=self.ttl_minutes) if self.ttl_minutes else None,
        )
        self.store.save_quiz_set(quiz_set)
        log.info("Generated %d quiz questions for document_id=%s", len(questions), doc.id)
        return quiz_set
