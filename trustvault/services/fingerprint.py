"""
End-to-end fingerprinting flows: fingerprint a file, check it against known
fingerprints, record it, and register or verify it with the proof registry.
"""

import threading
import structlog
from typing import List, Optional, Sequence

from trustvault import config
from trustvault.core.errors import (
    EmbeddingError, ExtractionError, ModelLoadError, RegistryError, StoreWriteError
)
from trustvault.core.registry import RegistryClient, generate_metadata_uri
from trustvault.core.storage import VectorStore
from trustvault.core.utils import calculate_bytes_hash
from trustvault.models.fingerprint import DocumentRecord, FingerprintResult, NewDocumentRecord
from trustvault.models.similarity import (
    ProofSummary, RegistrationResult, RegistrationStatus, SimilarityMatch, VerificationResult
)
from trustvault.services import embedding
from trustvault.services.similarity import find_similar
from trustvault.services.text_extraction import TextSource, extract_text, require_text
from trustvault.services.vector_hash import hash_embedding

logger = structlog.get_logger()

# Submitted as the vector hash when no AI fingerprint could be computed
PLACEHOLDER_VECTOR_HASH = "0x" + "00" * 32

# Failures of the AI fingerprint step that registration may proceed past
FINGERPRINT_ERRORS = (ExtractionError, ModelLoadError, EmbeddingError)

_default_store = None
_default_store_lock = threading.Lock()


def get_default_store() -> VectorStore:
    global _default_store
    if _default_store is None:
        with _default_store_lock:
            if _default_store is None:
                _default_store = VectorStore(dimension=config.EMBEDDING_DIMENSION)
    return _default_store


def generate_fingerprint(source: TextSource,
                         engine: Optional[embedding.EmbeddingEngine] = None) -> FingerprintResult:
    """
    Extract text from a file, embed it and hash the embedding.

    Raises:
        ExtractionError: unreadable file or no text content
        ModelLoadError: no embedding backend available
        EmbeddingError: inference failed
        HashComputeError: digest primitive unavailable
    """
    text = require_text(extract_text(source))
    vector = engine.embed(text) if engine is not None else embedding.text_embedding(text)
    vector_hash = hash_embedding(vector)

    logger.info("AI fingerprint generated", text_length=len(text), hash=vector_hash)
    return FingerprintResult(vector_hash=vector_hash, embedding=vector, text=text)


def check_for_duplicates(text: str,
                         vector: Sequence[float],
                         threshold: Optional[float] = None,
                         records: Optional[Sequence[DocumentRecord]] = None,
                         store: Optional[VectorStore] = None) -> List[SimilarityMatch]:
    """Rank known documents similar to the candidate; reads the store unless records are given."""
    if records is None:
        records = (store or get_default_store()).list_records()

    matches = find_similar(text, vector, records, threshold=threshold)
    if matches:
        top = matches[0]
        logger.warning("Similar content detected",
                       matches=len(matches), top_similarity=round(top.similarity, 4), method=top.method)
    return matches


def record_fingerprint(vector_hash: str,
                       vector: Sequence[float],
                       creator: str,
                       content_hash: str,
                       text: Optional[str] = None,
                       store: Optional[VectorStore] = None) -> DocumentRecord:
    """Store a fingerprint for future checks, keeping the text only for short documents."""
    retained = text if text is not None and len(text) < config.SHORT_TEXT_LENGTH else None
    record = NewDocumentRecord(
        vector_hash=vector_hash,
        embedding=list(vector),
        creator=creator,
        content_hash=content_hash,
        text=retained,
    )
    return (store or get_default_store()).append(record)


def preload() -> None:
    """Best-effort model warm-up; errors are logged, never raised."""
    embedding.preload_model()


def register_document(data: bytes,
                      creator: str,
                      registry: RegistryClient,
                      store: Optional[VectorStore] = None,
                      threshold: Optional[float] = None,
                      require_check: Optional[bool] = None,
                      engine: Optional[embedding.EmbeddingEngine] = None) -> RegistrationResult:
    """
    Fingerprint a document, refuse near-duplicates, and register originals.

    When the AI fingerprint step fails and ``require_check`` is false, the
    document is registered with a placeholder vector hash and the result
    carries ``plagiarism_checked=False`` plus a warning. With
    ``require_check`` true the fingerprint error is raised instead.

    Raises:
        RegistryError: the registry rejected the proof
    """
    store = store or get_default_store()
    require_check = config.REQUIRE_PLAGIARISM_CHECK if require_check is None else require_check
    content_hash = calculate_bytes_hash(data)
    warnings = []

    fingerprint = None
    try:
        fingerprint = generate_fingerprint(data, engine=engine)
    except FINGERPRINT_ERRORS as e:
        if require_check:
            raise
        logger.warning("AI fingerprint failed, registering without duplicate check",
                       content_hash=content_hash, error=str(e))
        warnings.append(f"AI fingerprint failed, no duplicate check was performed: {e}")

    if fingerprint is not None:
        matches = check_for_duplicates(fingerprint.text, fingerprint.embedding,
                                       threshold=threshold, store=store)
        if matches:
            return RegistrationResult(
                status=RegistrationStatus.DUPLICATE,
                content_hash=content_hash,
                vector_hash=fingerprint.vector_hash,
                matches=matches,
                plagiarism_checked=True,
            )

    vector_hash = fingerprint.vector_hash if fingerprint else PLACEHOLDER_VECTOR_HASH
    metadata_uri = generate_metadata_uri()
    proof_id = registry.register_proof(content_hash, vector_hash, metadata_uri, creator=creator)

    recorded = False
    if fingerprint is not None:
        try:
            record_fingerprint(fingerprint.vector_hash, fingerprint.embedding, creator,
                               content_hash, text=fingerprint.text, store=store)
            recorded = True
        except StoreWriteError as e:
            logger.error("Registered proof but failed to store fingerprint locally",
                         content_hash=content_hash, error=str(e))
            warnings.append(f"Fingerprint was not saved locally: {e}")

    return RegistrationResult(
        status=RegistrationStatus.REGISTERED,
        content_hash=content_hash,
        vector_hash=fingerprint.vector_hash if fingerprint else None,
        proof_id=proof_id,
        metadata_uri=metadata_uri,
        plagiarism_checked=fingerprint is not None,
        recorded=recorded,
        warnings=warnings,
    )


def verify_document(data: bytes, registry: RegistryClient) -> VerificationResult:
    """Look up a document's content hash in the registry."""
    content_hash = calculate_bytes_hash(data)
    status = registry.verify_hash(content_hash)
    logger.info("Verified document", content_hash=content_hash, found=status.found)
    return VerificationResult(
        content_hash=content_hash,
        found=status.found,
        creator=status.creator if status.found else None,
        timestamp=status.timestamp if status.found else None,
    )


def list_creator_proofs(registry: RegistryClient, creator: str) -> List[ProofSummary]:
    """A creator's live proofs, newest first. Revoked proofs and missing ids are skipped."""
    creator = creator.lower()
    proofs = []
    for proof_id in range(1, registry.proof_count() + 1):
        try:
            proof = registry.get_proof_by_id(proof_id)
        except RegistryError as e:
            logger.debug("Skipping unreadable proof", proof_id=proof_id, error=str(e))
            continue
        if proof.revoked or proof.creator.lower() != creator:
            continue
        proofs.append(ProofSummary(
            proof_id=proof_id,
            content_hash=proof.content_hash,
            creator=proof.creator,
            timestamp=proof.timestamp * 1000,
        ))

    proofs.reverse()
    logger.info("Listed creator proofs", creator=creator, count=len(proofs))
    return proofs
