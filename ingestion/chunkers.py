from __future__ import annotations

from typing import Iterator, List, Tuple

from langchain_text_splitters import RecursiveCharacterTextSplitter

from common.config import yaml_config
from common.errors import ValidationError
from common.logger import get_logger
from ingestion.document_models import Chunk, Document
from ingestion.hash_utils import sha1_text

log = get_logger(__name__)


def _check_window(size: int, overlap: int) -> None:
    if size <= 0:
        raise ValidationError(f"chunk_size must be positive, got {size}")
    if overlap < 0 or overlap >= size:
        raise ValidationError(
            f"chunk_overlap must be in [0, chunk_size), got {overlap} (size={size})"
        )


def window_spans(length: int, size: int, overlap: int) -> Iterator[Tuple[int, int]]:
    """
    Yield (start, end) offsets of fixed windows advancing by size - overlap.
    Stops after the first window that reaches the end of the text.
    """
    _check_window(size, overlap)
    step = size - overlap
    start = 0
    while start < length:
        end = min(start + size, length)
        yield start, end
        if end == length:
            break
        start += step


def chunk_text(text: str, size: int | None = None, overlap: int | None = None) -> List[str]:
    """
    Split text into overlapping character windows, trimming each window and
    dropping the ones that are empty after trimming.
    """
    size = yaml_config.chunking.chunk_size if size is None else size
    overlap = yaml_config.chunking.chunk_overlap if overlap is None else overlap

    pieces: List[str] = []
    for start, end in window_spans(len(text), size, overlap):
        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)

    log.debug(
        "Chunked text (%d chars) into %d chunks (size=%d, overlap=%d)",
        len(text),
        len(pieces),
        size,
        overlap,
    )
    return pieces


def _recursive_pieces(text: str, size: int, overlap: int) -> List[str]:
    """
    LangChain's RecursiveCharacterTextSplitter: prefers paragraph and line
    boundaries, still overlapping by up to `overlap` characters.
    """
    _check_window(size, overlap)
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=size,
        chunk_overlap=overlap,
        separators=["\n\n", "\n", "\f", " ", ""],
    )
    return [p.strip() for p in splitter.split_text(text) if p.strip()]


def chunk_document(
    doc: Document,
    size: int | None = None,
    overlap: int | None = None,
    mode: str | None = None,
) -> List[Chunk]:
    """
    Split a document's stored text into scoped chunks according to the
    configured chunking mode. Sequence numbers are contiguous from 0.
    """
    size = yaml_config.chunking.chunk_size if size is None else size
    overlap = yaml_config.chunking.chunk_overlap if overlap is None else overlap
    mode = mode or yaml_config.chunking.mode

    if mode == "recursive":
        pieces = _recursive_pieces(doc.raw_text, size, overlap)
    else:
        pieces = chunk_text(doc.raw_text, size, overlap)

    out: List[Chunk] = []
    for i, piece in enumerate(pieces):
        out.append(
            Chunk(
                document_id=doc.id,
                sequence=i,
                text=piece,
                embedding_ref=sha1_text(f"{doc.id}::{i}::{piece[:64]}"),
                content_sha1=sha1_text(piece),
            )
        )
    return out
