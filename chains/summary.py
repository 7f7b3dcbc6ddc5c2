from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from langchain_core.language_models import BaseLanguageModel

from chains.prompts import SUMMARY_SECTIONS, SUMMARY_TEMPLATE
from common.config import yaml_config
from common.errors import EmptyResultError
from common.logger import get_logger
from ingestion.cleaners import truncate_for_prompt
from models.llm import invoke_llm

log = get_logger(__name__)

# "[TITLE]", "**[Title]**", "## KEY_CONCEPTS:", "Key Concepts:" ...
_HEADER_RE = re.compile(
    r"^\s*(?:#+\s*)?(?:\*\*)?\s*\[?\s*([A-Za-z][A-Za-z _]+?)\s*\]?\s*(?:\*\*)?\s*:?\s*$"
)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*)$")


@dataclass(frozen=True)
class StructuredSummary:
    kind: Literal["parsed", "fallback"]
    title: str = ""
    overview: str = ""
    key_concepts: List[str] = field(default_factory=list)
    definitions: List[str] = field(default_factory=list)
    detailed_explanation: str = ""
    exam_points: List[str] = field(default_factory=list)
    further_reading: List[str] = field(default_factory=list)
    markdown: str = ""


def _section_name(line: str) -> Optional[str]:
    m = _HEADER_RE.match(line)
    if not m:
        return None
    name = re.sub(r"[ _]+", "_", m.group(1).strip()).upper()
    return name if name in SUMMARY_SECTIONS else None


def _bullets(lines: List[str]) -> List[str]:
    out = []
    for line in lines:
        m = _BULLET_RE.match(line)
        if m and m.group(1).strip():
            out.append(m.group(1).strip())
    return out


def _paragraphs(lines: List[str]) -> str:
    return "\n".join(lines).strip()


def parse_summary(raw: str) -> StructuredSummary:
    """
    Split generated text into the known sections, line by line. Text without
    any recognised header comes back as a fallback carrying the raw markdown.
    """
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in raw.splitlines():
        name = _section_name(line)
        if name is not None:
            current = name
            sections.setdefault(current, [])
            continue
        if current is not None:
            sections[current].append(line.rstrip())

    if not sections:
        return StructuredSummary(kind="fallback", markdown=raw.strip())

    title_lines = [s.strip() for s in sections.get("TITLE", []) if s.strip()]
    return StructuredSummary(
        kind="parsed",
        title=title_lines[0] if title_lines else "",
        overview=_paragraphs(sections.get("OVERVIEW", [])),
        key_concepts=_bullets(sections.get("KEY_CONCEPTS", [])),
        definitions=_bullets(sections.get("DEFINITIONS", [])),
        detailed_explanation=_paragraphs(sections.get("DETAILED_EXPLANATION", [])),
        exam_points=_bullets(sections.get("EXAM_POINTS", [])),
        further_reading=_bullets(sections.get("FURTHER_READING", [])),
        markdown=raw.strip(),
    )


def build_summary_prompt(text: str, max_chars: Optional[int] = None) -> str:
    max_chars = max_chars or yaml_config.streaming.max_input_chars
    content, truncated = truncate_for_prompt(text, max_chars)
    if truncated:
        log.warning("Lecture text truncated from %d to %d characters.", len(text), max_chars)
    return SUMMARY_TEMPLATE.format(content=content)


class Summarizer:
    """Blocking (non-streaming) summary generation used at ingest time."""

    def __init__(self, llm: BaseLanguageModel):
        self.llm = llm

    def summarize(self, text: str) -> str:
        raw = invoke_llm(self.llm, build_summary_prompt(text))
        if not raw.strip():
            raise EmptyResultError("AI model returned an empty summary.")
        return raw.strip()
