from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence

from langchain_chroma.vectorstores import Chroma
from langchain_core.documents import Document as LCDocument
from langchain_huggingface.embeddings import HuggingFaceEmbeddings

from common.config import yaml_config
from common.logger import get_logger
from ingestion.document_models import Chunk
from retrieval.filters import build_scope_filter

log = get_logger(__name__)


class ChromaStore:
    def __init__(
        self,
        persist_dir: Path | str | None = None,
        collection_name: str | None = None,
        embeddings: Any = None,
    ):
        """
        Chroma-backed VectorIndex with HuggingFace embeddings.
        Uses config/config.yaml for defaults.
        """
        self.persist_dir = str(persist_dir or yaml_config.vectorstore.persist_dir)
        self.collection_name = collection_name or yaml_config.vectorstore.collection
        self.embeddings = embeddings or HuggingFaceEmbeddings(
            model_name=yaml_config.vectorstore.embedding_model
        )
        self._db = Chroma(
            collection_name=self.collection_name,
            embedding_function=self.embeddings,
            persist_directory=self.persist_dir,
        )

    def add(self, chunks: Sequence[Chunk], scope: str) -> int:
        """
        Embed and store chunks under the given scope. Callers replace a scope
        by calling delete_scope first.
        """
        texts: List[str] = []
        metadatas: List[Dict[str, Any]] = []
        ids: List[str] = []

        for c in chunks:
            ids.append(c.embedding_ref)
            texts.append(c.text)
            metadatas.append(c.metadata() | {"document_id": scope})

        if not ids:
            return 0

        self._db.add_texts(texts=texts, metadatas=metadatas, ids=ids)
        log.info(
            "Added %d chunks for scope '%s' into collection '%s'",
            len(ids),
            scope,
            self.collection_name,
        )
        return len(ids)

    def query(self, text: str, scope: str, top_k: int) -> List[Chunk]:
        docs: List[LCDocument] = self._db.similarity_search(
            text, k=top_k, filter=build_scope_filter(scope)
        )
        return [_to_chunk(d) for d in docs]

    def delete_scope(self, scope: str) -> int:
        """
        Delete all chunks whose metadata.document_id matches the scope.
        """
        res = self._db.get(where=build_scope_filter(scope))
        ids = res.get("ids", [])
        if ids:
            self._db.delete(ids=ids)
        log.info("Deleted %d chunks for scope '%s'", len(ids), scope)
        return len(ids)


def _to_chunk(d: LCDocument) -> Chunk:
    md = d.metadata or {}
    return Chunk(
        document_id=md.get("document_id", ""),
        sequence=int(md.get("sequence", 0)),
        text=d.page_content,
        embedding_ref=str(d.id or ""),
        content_sha1=md.get("content_sha1", ""),
    )
