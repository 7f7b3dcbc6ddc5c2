from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Protocol

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from common.config import yaml_config
from common.errors import ExtractionError
from common.logger import get_logger
from ingestion.cleaners import normalize_pages, normalize_text

log = get_logger(__name__)


@dataclass(frozen=True)
class ExtractedText:
    text: str
    page_count: int


class TextExtractor(Protocol):
    def extract(self, data: bytes) -> ExtractedText: ...


class PdfTextExtractor:
    """Extract page text from PDF bytes with pypdf."""

    def __init__(self, max_pages: int | None = None):
        self.max_pages = max_pages

    def extract(self, data: bytes) -> ExtractedText:
        if not data:
            raise ExtractionError("Empty file provided")
        try:
            reader = PdfReader(BytesIO(data))
        except (PdfReadError, ValueError, OSError) as e:
            raise ExtractionError(f"Unreadable PDF: {e}") from e

        if reader.is_encrypted:
            raise ExtractionError("Encrypted PDFs are not supported")

        pages = reader.pages
        max_pages = self.max_pages or len(pages)
        texts = []
        for i, page in enumerate(pages[:max_pages]):
            try:
                texts.append(page.extract_text() or "")
            except Exception as e:
                raise ExtractionError(f"Failed to read page {i + 1}: {e}") from e

        text = normalize_pages(texts)
        if not text.replace("\f", "").strip():
            raise ExtractionError("PDF contains no extractable text")

        log.info("Extracted %d chars from %d pages", len(text), len(texts))
        return ExtractedText(text=text, page_count=len(texts))


class PlainTextExtractor:
    """Decode .txt / .md uploads; form feeds are treated as page breaks."""

    def extract(self, data: bytes) -> ExtractedText:
        txt = normalize_text(data.decode("utf-8", errors="ignore"))
        if not txt:
            raise ExtractionError("Text file is empty")
        return ExtractedText(text=txt, page_count=txt.count("\f") + 1)


def default_extractor() -> PdfTextExtractor:
    return PdfTextExtractor(max_pages=yaml_config.app.max_pdf_pages)
