from langchain_core.embeddings import DeterministicFakeEmbedding

from ingestion.chunkers import chunk_document
from retrieval.retrieval_service import RetrievalService
from vectorstore.chroma_store import ChromaStore
from conftest import LECTURE, make_document


def _store(tmp_path):
    return ChromaStore(
        persist_dir=tmp_path / "chroma",
        collection_name="test_lectures",
        embeddings=DeterministicFakeEmbedding(size=32),
    )


def test_chroma_scoped_add_query_delete(tmp_path):
    store = _store(tmp_path)
    a = make_document("a", text=LECTURE)
    b = make_document("b", text="Plate tectonics moves continents. " * 40)
    a_chunks = chunk_document(a, size=120, overlap=30)
    b_chunks = chunk_document(b, size=120, overlap=30)

    assert store.add(a_chunks, scope="a") == len(a_chunks)
    assert store.add(b_chunks, scope="b") == len(b_chunks)

    hits = store.query("What is the Calvin cycle?", scope="a", top_k=50)
    assert hits
    assert {c.document_id for c in hits} == {"a"}
    assert {c.text for c in hits} <= {c.text for c in a_chunks}

    assert store.delete_scope("a") == len(a_chunks)
    assert store.query("What is the Calvin cycle?", scope="a", top_k=5) == []
    assert store.query("continents", scope="b", top_k=5)


def test_chroma_reindex_does_not_duplicate(tmp_path):
    store = _store(tmp_path)
    svc = RetrievalService(store, k=50)
    doc = make_document()
    first = svc.index_document(doc)
    svc.reindex(doc)

    found = svc.retrieve(doc.id, "photosynthesis")
    assert len(found.chunks) == first
    assert len({c.sequence for c in found.chunks}) == first
