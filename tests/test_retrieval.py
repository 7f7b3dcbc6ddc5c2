import pytest

from chains.prompts import NO_GROUNDING_ANSWER
from chains.qa_chain import QuestionAnswerer
from common.errors import IndexingError, ValidationError
from ingestion.chunkers import chunk_document
from retrieval.filters import build_scope_filter
from retrieval.retrieval_service import RetrievalService
from conftest import FakeLLM, FakeVectorIndex, make_document


def test_scope_filter_shape():
    assert build_scope_filter("doc-1") == {"document_id": {"$eq": "doc-1"}}
    with pytest.raises(ValueError):
        build_scope_filter("")


def test_query_never_crosses_scopes():
    index = FakeVectorIndex(leaky=True)
    svc = RetrievalService(index, k=5)
    svc.index_document(make_document("a", text="photosynthesis happens in chloroplasts"))
    svc.index_document(make_document("b", text="photosynthesis is also covered in lecture b"))

    found = svc.retrieve("a", "where does photosynthesis happen")
    assert found.found
    assert {c.document_id for c in found.chunks} == {"a"}


def test_reindex_replaces_prior_chunks(index):
    svc = RetrievalService(index)
    doc = make_document()
    first = svc.index_document(doc)
    svc.reindex(doc)
    svc.reindex(doc)
    assert len(index.scopes[doc.id]) == first == len(chunk_document(doc))


def test_reindex_requires_stored_text(index):
    with pytest.raises(ValidationError):
        RetrievalService(index).reindex(make_document(text="   "))


def test_zero_hits_is_no_grounding_not_error(index):
    svc = RetrievalService(index)
    svc.index_document(make_document())
    found = svc.retrieve("doc-1", "quantum chromodynamics")
    assert not found.found
    assert found.chunks == []


def test_index_failure_is_indexing_error():
    svc = RetrievalService(FakeVectorIndex(fail=True))
    with pytest.raises(IndexingError):
        svc.index_document(make_document())


def test_ask_without_grounding_skips_the_llm(index):
    llm = FakeLLM(response="made up")
    svc = RetrievalService(index)
    svc.index_document(make_document())
    answer = QuestionAnswerer(svc, llm).ask("doc-1", "quantum chromodynamics")
    assert answer.answer == NO_GROUNDING_ANSWER
    assert answer.grounded is False
    assert answer.chunks_used == 0
    assert llm.calls == 0


def test_ask_grounds_prompt_in_retrieved_chunks(index):
    llm = FakeLLM(response="  In the stroma.  ")
    svc = RetrievalService(index)
    svc.index_document(make_document())
    answer = QuestionAnswerer(svc, llm).ask("doc-1", "where does the calvin cycle run")
    assert answer.answer == "In the stroma."
    assert answer.chunks_used == len(answer.source_chunks) > 0
    assert "stroma" in llm.prompts[0]
    assert "where does the calvin cycle run" in llm.prompts[0]
