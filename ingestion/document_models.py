from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class DocumentStatus(str, Enum):
    EXTRACTED = "EXTRACTED"  # text stored, no summary yet
    SUMMARIZED = "SUMMARIZED"


class IndexStatus(str, Enum):
    PENDING = "PENDING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"  # Q&A unusable until a reindex succeeds


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    id: str
    owner_id: str
    content_fingerprint: str  # md5 of the raw upload bytes
    raw_text: str
    file_name: str
    page_count: int
    file_size_bytes: int
    generated_artifact: Optional[str] = None  # raw generated summary text
    provider_tag: Optional[str] = None
    status: DocumentStatus = DocumentStatus.EXTRACTED
    index_status: IndexStatus = IndexStatus.PENDING
    processed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "content_fingerprint": self.content_fingerprint,
            "raw_text": self.raw_text,
            "file_name": self.file_name,
            "page_count": self.page_count,
            "file_size_bytes": self.file_size_bytes,
            "generated_artifact": self.generated_artifact,
            "provider_tag": self.provider_tag,
            "status": self.status.value,
            "index_status": self.index_status.value,
            "processed_at": self.processed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Document":
        return cls(
            id=d["id"],
            owner_id=d["owner_id"],
            content_fingerprint=d["content_fingerprint"],
            raw_text=d["raw_text"],
            file_name=d["file_name"],
            page_count=d["page_count"],
            file_size_bytes=d["file_size_bytes"],
            generated_artifact=d.get("generated_artifact"),
            provider_tag=d.get("provider_tag"),
            status=DocumentStatus(d.get("status", DocumentStatus.EXTRACTED.value)),
            index_status=IndexStatus(d.get("index_status", IndexStatus.PENDING.value)),
            processed_at=datetime.fromisoformat(d["processed_at"]),
        )


@dataclass(frozen=True)
class Chunk:
    document_id: str  # scope
    sequence: int  # contiguous from 0 within the document
    text: str
    embedding_ref: str  # stable id in the vector index
    content_sha1: str

    def metadata(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "sequence": self.sequence,
            "content_sha1": self.content_sha1,
        }
