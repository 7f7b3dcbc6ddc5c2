"""
Line-oriented parser for generated quiz text.

Expected block shape (markers are matched case-insensitively):

    QUESTION 1
    What is ...?
    A) ...
    B) ...
    C) ...
    D) ...
    CORRECT: B
    EXPLANATION: ...

Every block comes back tagged, either as a ParsedQuestion or a RejectedBlock
with a reason, so the caller decides what to keep.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from quiz.models import OPTION_LETTERS

# "QUESTION 3", "**Question 3:**", "### Question 3."
_QUESTION_RE = re.compile(r"^\s*(?:#+\s*)?\**\s*question\s*(\d+)\s*[:.)]?\s*\**\s*(.*)$", re.IGNORECASE)
# "A) text", "a. text", "(A) text", "**B)** text", "A)text"
_OPTION_RE = re.compile(r"^\s*\**\s*\(?([A-Da-d])[).]\**\s*(.*\S)\s*$")
_CORRECT_RE = re.compile(
    r"^\s*\**\s*correct(?:\s+answer)?\s*\**\s*[:\-]\s*\**\s*\(?([A-Za-z])?\b.*$", re.IGNORECASE
)
_EXPLANATION_RE = re.compile(r"^\s*\**\s*explanation\s*\**\s*[:\-]\s*\**\s*(.*)$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedQuestion:
    number: int  # as written by the model
    question: str
    options: Tuple[str, str, str, str]
    correct_answer: str
    explanation: str = ""


@dataclass(frozen=True)
class RejectedBlock:
    number: Optional[int]
    reason: str
    raw: str = ""


ParseOutcome = Union[ParsedQuestion, RejectedBlock]


@dataclass
class _Block:
    number: int
    lines: List[str] = field(default_factory=list)
    question_parts: List[str] = field(default_factory=list)
    options: Dict[str, str] = field(default_factory=dict)
    duplicate: Optional[str] = None
    correct: Optional[str] = None
    explanation_parts: List[str] = field(default_factory=list)
    in_explanation: bool = False


def _split_blocks(raw: str) -> List[_Block]:
    blocks: List[_Block] = []
    current: Optional[_Block] = None
    for line in raw.splitlines():
        m = _QUESTION_RE.match(line)
        if m:
            current = _Block(number=int(m.group(1)))
            blocks.append(current)
            # Some models put the question on the header line.
            if m.group(2).strip():
                current.question_parts.append(m.group(2).strip())
            current.lines.append(line)
            continue
        if current is None:
            continue  # preamble before the first header
        current.lines.append(line)
        _feed(current, line)
    return blocks


def _feed(block: _Block, line: str) -> None:
    if not line.strip():
        return

    m = _OPTION_RE.match(line)
    if m and block.correct is None:
        letter = m.group(1).upper()
        if letter in block.options:
            block.duplicate = letter
        else:
            block.options[letter] = m.group(2).strip()
        block.in_explanation = False
        return

    m = _CORRECT_RE.match(line)
    if m:
        block.correct = (m.group(1) or "").upper()
        block.in_explanation = False
        return

    m = _EXPLANATION_RE.match(line)
    if m:
        block.in_explanation = True
        if m.group(1).strip():
            block.explanation_parts.append(m.group(1).strip())
        return

    if block.in_explanation:
        block.explanation_parts.append(line.strip())
    elif not block.options:
        block.question_parts.append(line.strip())


def _close(block: _Block) -> ParseOutcome:
    raw = "\n".join(block.lines)
    question = " ".join(block.question_parts).strip()
    if not question:
        return RejectedBlock(block.number, "missing question text", raw)
    if block.duplicate:
        return RejectedBlock(block.number, f"duplicate option {block.duplicate}", raw)
    missing = [letter for letter in OPTION_LETTERS if letter not in block.options]
    if missing:
        return RejectedBlock(block.number, f"missing option(s) {', '.join(missing)}", raw)
    if block.correct is None:
        return RejectedBlock(block.number, "missing correct answer", raw)
    if block.correct not in OPTION_LETTERS:
        return RejectedBlock(block.number, f"invalid correct answer {block.correct!r}", raw)
    return ParsedQuestion(
        number=block.number,
        question=question,
        options=tuple(block.options[letter] for letter in OPTION_LETTERS),
        correct_answer=block.correct,
        explanation=" ".join(block.explanation_parts).strip(),
    )


def parse_quiz(raw: str) -> List[ParseOutcome]:
    """Parse every QUESTION block in `raw`, in order of appearance."""
    if not raw or not raw.strip():
        return []
    return [_close(b) for b in _split_blocks(raw)]


def accepted(outcomes: List[ParseOutcome]) -> List[ParsedQuestion]:
    return [o for o in outcomes if isinstance(o, ParsedQuestion)]


def rejected(outcomes: List[ParseOutcome]) -> List[RejectedBlock]:
    return [o for o in outcomes if isinstance(o, RejectedBlock)]
