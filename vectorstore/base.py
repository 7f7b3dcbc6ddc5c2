from __future__ import annotations

from typing import List, Protocol, Sequence

from ingestion.document_models import Chunk


class VectorIndex(Protocol):
    """
    Scoped similarity index. Each call stands alone; there is no transaction
    spanning add/delete_scope.
    """

    def add(self, chunks: Sequence[Chunk], scope: str) -> int: ...

    def query(self, text: str, scope: str, top_k: int) -> List[Chunk]: ...

    def delete_scope(self, scope: str) -> int: ...
