import io
import json

import pytest

from trustvault.core.errors import ExtractionError, ModelLoadError, RegistryError
from trustvault.core.storage import InMemoryStorage, VectorStore
from trustvault.core.utils import calculate_bytes_hash
from trustvault.services import embedding
from trustvault.services.embedding import EmbeddingEngine
from trustvault.services.fingerprint import (
    PLACEHOLDER_VECTOR_HASH, check_for_duplicates, generate_fingerprint, list_creator_proofs, preload,
    record_fingerprint, register_document, verify_document
)
from trustvault.services.vector_hash import hash_embedding

FOX = "The quick brown fox jumps over the lazy dog"
PARAGRAPH = (
    "Proof of originality starts with a fingerprint: the text is embedded, the embedding "
    "is hashed, and similar documents are searched before anything is registered."
)


class ReadOnlyStorage(InMemoryStorage):
    def set(self, key, value):
        raise OSError("quota exceeded")


def test_generate_fingerprint(fake_engine):
    result = generate_fingerprint(io.BytesIO(FOX.encode("utf-8")))

    assert result.text == FOX
    assert len(result.embedding) == 384
    assert result.vector_hash == hash_embedding(result.embedding)


def test_generate_fingerprint_rejects_empty_file(fake_engine):
    with pytest.raises(ExtractionError):
        generate_fingerprint(b"   \n")


def test_identical_short_text_matches_text_based(fake_engine, store):
    first = generate_fingerprint(FOX.encode("utf-8"))
    record_fingerprint(first.vector_hash, first.embedding, "0xalice", calculate_bytes_hash(FOX.encode()),
                       text=first.text, store=store)

    again = generate_fingerprint(FOX.encode("utf-8"))
    matches = check_for_duplicates(again.text, again.embedding, store=store)

    assert len(matches) == 1
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[0].method == "text-based"
    assert matches[0].creator == "0xalice"


def test_identical_short_text_without_retained_text_matches_semantic(fake_engine, store):
    first = generate_fingerprint(FOX.encode("utf-8"))
    stored = record_fingerprint(first.vector_hash, first.embedding, "0xalice", "0x" + "aa" * 32,
                                text=None, store=store)
    assert stored.text is None

    matches = check_for_duplicates(FOX, first.embedding, store=store)

    assert len(matches) == 1
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[0].method == "semantic"


def test_identical_long_text_matches_semantic(fake_engine, store):
    assert len(PARAGRAPH) >= 100
    first = generate_fingerprint(PARAGRAPH.encode("utf-8"))
    stored = record_fingerprint(first.vector_hash, first.embedding, "0xbob", "0x" + "bb" * 32,
                                text=first.text, store=store)
    assert stored.text is None

    again = generate_fingerprint(PARAGRAPH.encode("utf-8"))
    matches = check_for_duplicates(again.text, again.embedding, store=store)

    assert len(matches) == 1
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[0].method == "semantic"


def test_short_near_duplicate_scenario(fake_engine, store):
    original = generate_fingerprint(b"Hello World Test")
    record_fingerprint(original.vector_hash, original.embedding, "0xcarol", "0x" + "cc" * 32,
                       text=original.text, store=store)

    candidate = generate_fingerprint(b"hello   world, test!!")
    matches = check_for_duplicates(candidate.text, candidate.embedding, store=store)

    assert len(matches) == 1
    assert matches[0].similarity == 1.0
    assert matches[0].method == "text-based"


def test_check_for_duplicates_accepts_injected_records(fake_engine, store):
    fp = generate_fingerprint(PARAGRAPH.encode("utf-8"))
    stored = record_fingerprint(fp.vector_hash, fp.embedding, "0xdan", "0x" + "dd" * 32, store=store)

    empty_store = VectorStore(InMemoryStorage(), key="other")
    matches = check_for_duplicates(fp.text, fp.embedding, records=[stored], store=empty_store)

    assert len(matches) == 1


def test_unrelated_text_does_not_match(fake_engine, store):
    fp = generate_fingerprint(PARAGRAPH.encode("utf-8"))
    record_fingerprint(fp.vector_hash, fp.embedding, "0xerin", "0x" + "ee" * 32, store=store)

    other = generate_fingerprint(("Completely different vocabulary about gardening tomatoes and "
                                  "watering schedules during a particularly dry and windy summer").encode())
    assert check_for_duplicates(other.text, other.embedding, store=store) == []


def test_register_then_duplicate_is_refused(fake_engine, store, registry):
    data = PARAGRAPH.encode("utf-8")

    first = register_document(data, "0xalice", registry, store=store)
    assert first.status == "registered"
    assert first.plagiarism_checked
    assert first.recorded
    assert first.proof_id == 1
    assert first.metadata_uri.startswith("ipfs://trustvault/")
    assert registry.get_proof(first.content_hash).vector_hash == first.vector_hash

    second = register_document(data + b" ", "0xmallory", registry, store=store)
    assert second.status == "duplicate"
    assert len(second.matches) == 1
    assert second.matches[0].creator == "0xalice"
    assert second.proof_id is None
    assert registry.proof_count() == 1
    assert len(store.list_records()) == 1


def test_register_without_model_proceeds_with_warning(store, registry):
    broken = EmbeddingEngine(backends=[], dimension=384)

    result = register_document(FOX.encode("utf-8"), "0xalice", registry, store=store,
                               engine=broken, require_check=False)

    assert result.status == "registered"
    assert not result.plagiarism_checked
    assert not result.recorded
    assert result.vector_hash is None
    assert result.warnings
    assert registry.get_proof(result.content_hash).vector_hash == PLACEHOLDER_VECTOR_HASH
    assert store.list_records() == []


def test_register_without_model_blocks_when_check_required(store, registry):
    broken = EmbeddingEngine(backends=[], dimension=384)

    with pytest.raises(ModelLoadError):
        register_document(FOX.encode("utf-8"), "0xalice", registry, store=store,
                          engine=broken, require_check=True)
    assert registry.proof_count() == 0


def test_register_file_without_text_proceeds_unchecked(fake_engine, store, registry):
    result = register_document(b"\n\n  ", "0xalice", registry, store=store, require_check=False)
    assert result.status == "registered"
    assert not result.plagiarism_checked


def test_register_reports_local_store_failure(fake_engine, registry):
    store = VectorStore(ReadOnlyStorage(), key="vectors")

    result = register_document(PARAGRAPH.encode("utf-8"), "0xalice", registry, store=store)

    assert result.status == "registered"
    assert not result.recorded
    assert any("not saved" in w for w in result.warnings)


def test_register_same_content_twice_is_rejected_by_registry(store, registry):
    broken = EmbeddingEngine(backends=[], dimension=384)
    register_document(FOX.encode(), "0xalice", registry, store=store, engine=broken, require_check=False)

    with pytest.raises(RegistryError):
        register_document(FOX.encode(), "0xbob", registry, store=store, engine=broken, require_check=False)


def test_verify_document(fake_engine, store, registry):
    data = PARAGRAPH.encode("utf-8")

    missing = verify_document(data, registry)
    assert not missing.found
    assert missing.creator is None

    register_document(data, "0xalice", registry, store=store)
    found = verify_document(data, registry)

    assert found.found
    assert found.creator == "0xalice"
    assert found.content_hash == calculate_bytes_hash(data)


def test_record_fingerprint_retains_only_short_text(fake_engine, store):
    fp = generate_fingerprint(FOX.encode("utf-8"))
    short = record_fingerprint(fp.vector_hash, fp.embedding, "0xa", "0x" + "01" * 32, text=FOX, store=store)
    long = record_fingerprint(fp.vector_hash, fp.embedding, "0xa", "0x" + "02" * 32, text="z" * 100, store=store)

    assert short.text == FOX
    assert long.text is None


def test_preload_swallows_errors(fake_backend):
    embedding.set_engine(EmbeddingEngine(backends=[fake_backend(fail=True)], dimension=384))
    try:
        preload()
    finally:
        embedding.set_engine(None)


def test_legacy_vectors_of_other_dimension_do_not_break_registration(fake_engine, registry):
    legacy = [{
        "hash": "0x" + "aa" * 32,
        "embedding": [0.1, 0.2],
        "creator": "0xold",
        "timestamp": 1700000000000,
        "contentHash": "0x" + "bb" * 32,
    }]
    store = VectorStore(InMemoryStorage({"vectors": json.dumps(legacy)}), key="vectors", dimension=384)
    fp = generate_fingerprint(PARAGRAPH.encode("utf-8"))

    assert check_for_duplicates(fp.text, fp.embedding, store=store) == []

    result = register_document(PARAGRAPH.encode("utf-8"), "0xalice", registry, store=store,
                               require_check=False)

    assert result.status == "registered"
    assert result.plagiarism_checked
    assert result.recorded
    assert registry.proof_count() == 1
    assert [r.creator for r in store.list_records()] == ["0xalice"]


def test_list_creator_proofs(store, registry):
    broken = EmbeddingEngine(backends=[], dimension=384)
    for i, creator in enumerate(["0xAlice", "0xbob", "0xalice", "0xalice"]):
        register_document(f"document {i}".encode(), creator, registry, store=store,
                          engine=broken, require_check=False)
    registry.revoke_proof(3, "0xalice")

    proofs = list_creator_proofs(registry, "0xALICE")

    assert [p.proof_id for p in proofs] == [4, 1]
    assert proofs[1].creator == "0xAlice"
    assert proofs[1].content_hash == calculate_bytes_hash(b"document 0")
    assert proofs[0].timestamp == registry.get_proof_by_id(4).timestamp * 1000
    assert list_creator_proofs(registry, "0xcarol") == []
