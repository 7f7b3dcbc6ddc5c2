from datetime import timedelta

import pytest

from common.errors import NotFoundError
from ingestion.document_models import DocumentStatus, IndexStatus, utcnow
from ingestion.fingerprint_cache import FingerprintCache
from quiz.models import GradeTier, QuizAttempt, QuizQuestion, QuizSet
from storage.document_store import JsonFileDocumentStore
from conftest import LECTURE, make_document


def _quiz_set(document_id="doc-1", expires_at=None):
    q = QuizQuestion(0, "What fixes carbon?", ("Calvin cycle", "Krebs", "ETC", "Glycolysis"), "A", "It does.")
    return QuizSet(id="qs-1", document_id=document_id, questions=(q,), expires_at=expires_at)


def _attempt(document_id="doc-1", owner_id="alice"):
    return QuizAttempt(
        id="at-1",
        quiz_set_id="qs-1",
        document_id=document_id,
        owner_id=owner_id,
        answers=("A",),
        score=1,
        total_questions=1,
        percentage=100,
        grade=GradeTier.EXCELLENT,
    )


def test_fingerprint_cache_hits_on_same_bytes_only(store):
    cache = FingerprintCache(store)
    data = LECTURE.encode("utf-8")
    assert cache.lookup(data, "alice") is None

    store.upsert(make_document())
    hit = cache.lookup(data, "alice")
    assert hit is not None
    assert hit.document.id == "doc-1"
    assert cache.lookup(data + b"!", "alice") is None


def test_fingerprint_cache_is_scoped_to_owner(store):
    store.upsert(make_document(owner_id="alice"))
    assert FingerprintCache(store).lookup(LECTURE.encode("utf-8"), "bob") is None


def test_returned_documents_are_copies(store):
    store.upsert(make_document())
    doc = store.find_by_id("doc-1")
    doc.raw_text = "mutated"
    assert store.find_by_id("doc-1").raw_text == LECTURE


def test_update_changes_only_named_fields(store):
    store.upsert(make_document())
    updated = store.update("doc-1", generated_artifact="summary", status=DocumentStatus.SUMMARIZED)
    assert updated.generated_artifact == "summary"
    assert updated.raw_text == LECTURE
    with pytest.raises(NotFoundError):
        store.update("missing", generated_artifact="x")


def test_json_store_round_trip(tmp_path):
    s = JsonFileDocumentStore(tmp_path)
    s.upsert(make_document(index_status=IndexStatus.INDEXED))
    s.save_quiz_set(_quiz_set())
    s.record_attempt(_attempt())

    reopened = JsonFileDocumentStore(tmp_path)
    doc = reopened.find_by_id("doc-1")
    assert doc.raw_text == LECTURE
    assert doc.index_status is IndexStatus.INDEXED
    assert reopened.find_quiz_set("doc-1").questions[0].correct_answer == "A"
    assert reopened.list_attempts(owner_id="alice")[0].grade is GradeTier.EXCELLENT


def test_delete_cascades_quiz_sets_and_attempts(tmp_path):
    s = JsonFileDocumentStore(tmp_path)
    s.upsert(make_document())
    s.save_quiz_set(_quiz_set())
    s.record_attempt(_attempt())

    assert s.delete("doc-1") is True
    assert s.find_by_id("doc-1") is None
    assert s.find_quiz_set("doc-1") is None
    assert s.list_attempts(owner_id="alice") == []
    assert list((tmp_path / "documents").glob("*.json")) == []
    assert s.delete("doc-1") is False


def test_expired_quiz_set_is_not_found(store):
    store.save_quiz_set(_quiz_set(expires_at=utcnow() - timedelta(minutes=1)))
    assert store.find_quiz_set("doc-1") is None


def test_list_by_owner_newest_first(store):
    older = make_document("a", processed_at=utcnow() - timedelta(hours=1))
    newer = make_document("b", text="other text")
    store.upsert(older)
    store.upsert(newer)
    store.upsert(make_document("c", owner_id="bob", text="bob's"))
    assert [d.id for d in store.list_by_owner("alice")] == ["b", "a"]
