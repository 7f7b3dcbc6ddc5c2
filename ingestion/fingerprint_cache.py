from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from common.logger import get_logger
from ingestion.document_models import Document
from ingestion.hash_utils import fingerprint
from storage.document_store import DocumentStore

log = get_logger(__name__)


@dataclass(frozen=True)
class CacheHit:
    fingerprint: str
    document: Document


class FingerprintCache:
    """
    Maps raw upload bytes to a previously processed Document.

    The key is derived from the bytes only, so a renamed copy of the same file
    still hits. Lookups are scoped to the uploading owner.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def key(data: bytes) -> str:
        return fingerprint(data)

    def lookup(self, data: bytes, owner_id: str) -> Optional[CacheHit]:
        fp = self.key(data)
        doc = self.store.find_by_fingerprint(fp, owner_id=owner_id)
        if doc is None:
            log.info("Cache MISS for fingerprint=%s", fp)
            return None
        log.info("Cache HIT for fingerprint=%s -> document_id=%s", fp, doc.id)
        return CacheHit(fingerprint=fp, document=doc)
