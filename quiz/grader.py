from __future__ import annotations

from typing import List, Optional, Sequence

from quiz.models import GradeReport, GradeTier, QuestionResult, QuizSet


def grade_tier(percentage: int) -> GradeTier:
    if percentage >= 90:
        return GradeTier.EXCELLENT
    if percentage >= 75:
        return GradeTier.GOOD
    if percentage >= 50:
        return GradeTier.AVERAGE
    return GradeTier.NEEDS_IMPROVEMENT


def _normalize(answer: Optional[str]) -> Optional[str]:
    if answer is None:
        return None
    answer = str(answer).strip().upper()
    return answer or None


def grade_submission(quiz_set: QuizSet, answers: Sequence[Optional[str]]) -> GradeReport:
    """
    Compare answers against the stored key by index. Missing entries count as
    wrong; entries beyond the last question are ignored. The QuizSet is only read.
    """
    results: List[QuestionResult] = []
    score = 0
    for q in quiz_set.questions:
        selected = _normalize(answers[q.index]) if q.index < len(answers) else None
        correct = selected is not None and selected == q.correct_answer.upper()
        if correct:
            score += 1
        results.append(
            QuestionResult(
                index=q.index,
                question=q.question,
                selected_answer=selected,
                correct_answer=q.correct_answer,
                correct=correct,
                explanation=q.explanation,
            )
        )

    total = len(quiz_set.questions)
    percentage = score * 100 // total if total else 0
    return GradeReport(
        score=score,
        total_questions=total,
        percentage=percentage,
        grade=grade_tier(percentage),
        results=results,
    )
