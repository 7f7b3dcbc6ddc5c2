from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ingestion.document_models import utcnow

OPTION_LETTERS = ("A", "B", "C", "D")


class GradeTier(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    NEEDS_IMPROVEMENT = "Needs Improvement"


@dataclass(frozen=True)
class QuizQuestion:
    index: int
    question: str
    options: Tuple[str, str, str, str]
    correct_answer: str  # one of OPTION_LETTERS
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QuizQuestion":
        return cls(
            index=d["index"],
            question=d["question"],
            options=tuple(d["options"]),
            correct_answer=d["correct_answer"],
            explanation=d.get("explanation", ""),
        )


@dataclass(frozen=True)
class QuizSet:
    """Server-held question set; the answer key never leaves the server before grading."""

    id: str
    document_id: str
    questions: Tuple[QuizQuestion, ...]
    generated_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "questions": [q.to_dict() for q in self.questions],
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QuizSet":
        expires = d.get("expires_at")
        return cls(
            id=d["id"],
            document_id=d["document_id"],
            questions=tuple(QuizQuestion.from_dict(q) for q in d["questions"]),
            generated_at=datetime.fromisoformat(d["generated_at"]),
            expires_at=datetime.fromisoformat(expires) if expires else None,
        )


@dataclass(frozen=True)
class PublicQuestion:
    index: int
    question: str
    options: Tuple[str, str, str, str]


@dataclass(frozen=True)
class QuizView:
    """Client-facing quiz: questions and options only."""

    document_id: str
    quiz_set_id: str
    title: str
    questions: List[PublicQuestion]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @classmethod
    def from_quiz_set(cls, quiz_set: QuizSet, title: str) -> "QuizView":
        return cls(
            document_id=quiz_set.document_id,
            quiz_set_id=quiz_set.id,
            title=title,
            questions=[
                PublicQuestion(index=q.index, question=q.question, options=q.options)
                for q in quiz_set.questions
            ],
        )


@dataclass(frozen=True)
class QuestionResult:
    index: int
    question: str
    selected_answer: Optional[str]
    correct_answer: str
    correct: bool
    explanation: str


@dataclass(frozen=True)
class GradeReport:
    score: int
    total_questions: int
    percentage: int
    grade: GradeTier
    results: List[QuestionResult]


@dataclass(frozen=True)
class QuizAttempt:
    id: str
    quiz_set_id: str
    document_id: str
    owner_id: Optional[str]
    answers: Tuple[Optional[str], ...]
    score: int
    total_questions: int
    percentage: int
    grade: GradeTier
    attempted_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "quiz_set_id": self.quiz_set_id,
            "document_id": self.document_id,
            "owner_id": self.owner_id,
            "answers": list(self.answers),
            "score": self.score,
            "total_questions": self.total_questions,
            "percentage": self.percentage,
            "grade": self.grade.value,
            "attempted_at": self.attempted_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QuizAttempt":
        return cls(
            id=d["id"],
            quiz_set_id=d["quiz_set_id"],
            document_id=d["document_id"],
            owner_id=d.get("owner_id"),
            answers=tuple(d["answers"]),
            score=d["score"],
            total_questions=d["total_questions"],
            percentage=d["percentage"],
            grade=GradeTier(d["grade"]),
            attempted_at=datetime.fromisoformat(d["attempted_at"]),
        )
