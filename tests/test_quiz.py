import dataclasses

import pytest

from common.errors import EmptyResultError, ProviderError, ValidationError
from quiz.generator import QuizGenerator
from quiz.grader import grade_submission, grade_tier
from quiz.models import GradeTier, QuizQuestion, QuizSet
from quiz.parser import ParsedQuestion, RejectedBlock, accepted, parse_quiz, rejected
from conftest import FakeLLM, make_document

KEY = ["A", "C", "B", "A", "D", "A", "B", "C", "A", "D"]


def _block(n, correct="A", options="ABCD", question=None):
    lines = [f"QUESTION {n}", question if question is not None else f"What is concept {n}?"]
    lines += [f"{letter}) Option {letter}{n}" for letter in options]
    lines += [f"CORRECT: {correct}", f"EXPLANATION: Because of reason {n}.", ""]
    return "\n".join(lines)


def _quiz_text(key=KEY):
    return "Here is your quiz.\n\n" + "\n".join(_block(i + 1, c) for i, c in enumerate(key))


def _quiz_set(key=KEY):
    questions = tuple(
        QuizQuestion(i, f"Q{i}", ("a", "b", "c", "d"), letter, "") for i, letter in enumerate(key)
    )
    return QuizSet(id="qs", document_id="doc-1", questions=questions)


def test_well_formed_ten_blocks_parse():
    outcomes = parse_quiz(_quiz_text())
    parsed = accepted(outcomes)
    assert len(parsed) == 10
    assert rejected(outcomes) == []
    assert [p.correct_answer for p in parsed] == KEY
    assert parsed[0].options == ("Option A1", "Option B1", "Option C1", "Option D1")
    assert parsed[0].explanation == "Because of reason 1."


def test_tolerant_markers():
    raw = (
        "**Question 1:**\n"
        "Which organelle fixes carbon?\n"
        "a. Mitochondria\n"
        "(B) Chloroplast\n"
        "**C)** Nucleus\n"
        "d) Ribosome\n"
        "Correct answer: b\n"
        "Explanation: The Calvin cycle runs\n"
        "in the chloroplast stroma.\n"
    )
    [q] = parse_quiz(raw)
    assert isinstance(q, ParsedQuestion)
    assert q.question == "Which organelle fixes carbon?"
    assert q.options == ("Mitochondria", "Chloroplast", "Nucleus", "Ribosome")
    assert q.correct_answer == "B"
    assert q.explanation == "The Calvin cycle runs in the chloroplast stroma."


def test_question_text_on_header_line():
    [q] = parse_quiz("Question 4. What is ATP?\nA) x\nB) y\nC) z\nD) w\nCORRECT: D\n")
    assert q.question == "What is ATP?"
    assert q.number == 4


@pytest.mark.parametrize("delimiter", [")", ".", ") ", ". "])
def test_options_without_space_after_delimiter(delimiter):
    raw = "QUESTION 1\nWhat is the capital of France?\n" + "".join(
        f"{letter}{delimiter}{city}\n" for letter, city in zip("ABCD", ["Paris", "Rome", "Madrid", "Berlin"])
    )
    [q] = parse_quiz(raw + "CORRECT: A\n")
    assert isinstance(q, ParsedQuestion)
    assert q.options == ("Paris", "Rome", "Madrid", "Berlin")
    assert q.correct_answer == "A"


@pytest.mark.parametrize(
    "block,reason",
    [
        (_block(1, options="ABC"), "missing option(s) D"),
        (_block(1, correct="E"), "invalid correct answer 'E'"),
        (_block(1, question=""), "missing question text"),
        (_block(1).replace("CORRECT: A\n", ""), "missing correct answer"),
        (_block(1).replace("B) Option B1", "A) Option again"), "duplicate option A"),
    ],
)
def test_malformed_blocks_are_rejected(block, reason):
    [outcome] = parse_quiz(block)
    assert isinstance(outcome, RejectedBlock)
    assert outcome.reason.startswith(reason)


def test_blank_text_parses_to_nothing():
    assert parse_quiz("") == []
    assert parse_quiz("No questions here, sorry.") == []


def test_generator_indexes_and_persists(store):
    doc = make_document()
    raw = _block(1, options="AB") + "\n" + _quiz_text(KEY[:5])
    gen = QuizGenerator(FakeLLM(response=raw), store)

    quiz_set = gen.generate(doc, 3)
    assert [q.index for q in quiz_set.questions] == [0, 1, 2]
    assert [q.correct_answer for q in quiz_set.questions] == KEY[:3]
    assert store.find_quiz_set(doc.id) == quiz_set
    assert quiz_set.expires_at is None


def test_generator_applies_ttl(store):
    gen = QuizGenerator(FakeLLM(response=_quiz_text(KEY[:2])), store, ttl_minutes=30)
    quiz_set = gen.generate(make_document(), 2)
    assert (quiz_set.expires_at - quiz_set.generated_at).total_seconds() == 30 * 60


def test_generator_prompt_requests_exact_count(store):
    llm = FakeLLM(response=_quiz_text())
    QuizGenerator(llm, store).generate(make_document(), 10)
    assert "generate exactly 10 quiz questions" in llm.prompts[0]


@pytest.mark.parametrize("response", ["", "   ", "I cannot make a quiz.", _block(1, options="AB")])
def test_generator_with_nothing_usable_fails(store, response):
    gen = QuizGenerator(FakeLLM(response=response), store)
    with pytest.raises(EmptyResultError):
        gen.generate(make_document(), 5)
    assert store.find_quiz_set("doc-1") is None


@pytest.mark.parametrize("n", [0, -1, 21])
def test_generator_rejects_out_of_range_counts(store, n):
    with pytest.raises(ValidationError):
        QuizGenerator(FakeLLM(response=_quiz_text()), store, max_questions=20).generate(make_document(), n)


def test_generator_provider_failure(store):
    gen = QuizGenerator(FakeLLM(fail_with=ConnectionError("refused")), store)
    with pytest.raises(ProviderError):
        gen.generate(make_document(), 5)


def test_all_a_submission_scores_key_matches():
    report = grade_submission(_quiz_set(), ["A"] * 10)
    assert report.score == KEY.count("A") == 4
    assert report.percentage == 40
    assert report.grade is GradeTier.NEEDS_IMPROVEMENT
    assert [r.correct for r in report.results] == [k == "A" for k in KEY]


def test_grading_is_case_insensitive_and_tolerates_short_lists():
    quiz_set = _quiz_set()
    before = dataclasses.replace(quiz_set)
    report = grade_submission(quiz_set, [" a ", "c", None])
    assert report.score == 2
    assert report.total_questions == 10
    assert report.results[2].selected_answer is None
    assert not any(r.correct for r in report.results[3:])
    assert quiz_set == before


def test_percentage_is_floored():
    report = grade_submission(_quiz_set(["A", "B", "C"]), ["A", "B", "D"])
    assert report.percentage == 66


@pytest.mark.parametrize(
    "pct,tier",
    [
        (100, GradeTier.EXCELLENT),
        (90, GradeTier.EXCELLENT),
        (89, GradeTier.GOOD),
        (75, GradeTier.GOOD),
        (74, GradeTier.AVERAGE),
        (50, GradeTier.AVERAGE),
        (49, GradeTier.NEEDS_IMPROVEMENT),
        (0, GradeTier.NEEDS_IMPROVEMENT),
    ],
)
def test_grade_boundaries(pct, tier):
    assert grade_tier(pct) is tier
