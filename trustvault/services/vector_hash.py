"""
Deterministic hashing of embedding vectors.

The vector hash is the exact-identity "AI fingerprint" submitted on-chain.
Near-duplicate embeddings intentionally hash to different digests; fuzzy
matching happens in the similarity matcher before a hash is ever submitted.
"""

import hashlib
import structlog
from typing import Sequence

from trustvault import config
from trustvault.core.errors import HashComputeError

logger = structlog.get_logger()

DECIMAL_PLACES = 8
DELIMITER = ","


def canonicalize_embedding(embedding: Sequence[float]) -> str:
    """Format each component to 8 decimal places and join with commas."""
    # Adding 0.0 turns -0.0 into 0.0 so both zeros share one representation
    return DELIMITER.join(f"{float(x) + 0.0:.{DECIMAL_PLACES}f}" for x in embedding)


def hash_embedding(embedding: Sequence[float], algorithm: str = None) -> str:
    """
    Hash an embedding vector into a 0x-prefixed hex digest.

    Args:
        embedding: Embedding vector
        algorithm: hashlib algorithm name (defaults to HASH_ALGORITHM)

    Returns:
        ``0x`` followed by the hex digest (64 hex chars for SHA-256)
    """
    algorithm = algorithm or config.HASH_ALGORITHM
    try:
        hash_obj = hashlib.new(algorithm)
    except ValueError as e:
        logger.error("Digest algorithm unavailable", algorithm=algorithm, error=str(e))
        raise HashComputeError(f"Digest algorithm unavailable: {algorithm}") from e

    hash_obj.update(canonicalize_embedding(embedding).encode("utf-8"))
    vector_hash = f"0x{hash_obj.hexdigest()}"
    logger.debug("Computed vector hash", dimension=len(embedding), hash=vector_hash)
    return vector_hash
