from __future__ import annotations

from typing import Dict


def build_scope_filter(document_id: str) -> Dict:
    """
    Chroma 'where' filter restricting a query or delete to one document's
    chunks (metadata.document_id, written during indexing).
    """
    if not document_id:
        raise ValueError("scope filter requires a document_id")
    return {"document_id": {"$eq": document_id}}
