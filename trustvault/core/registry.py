"""
On-chain proof registry collaborator.

The registry is append-only and keyed by content hash. It stores the vector
hash opaquely as provenance metadata and knows nothing about embeddings.
"""

import re
import threading
import time
import structlog
from typing import Dict, List, NamedTuple, Optional

from trustvault.core.errors import RegistryError

logger = structlog.get_logger()

ZERO_ADDRESS = "0x" + "00" * 20
_BYTES32 = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


class ProofStatus(NamedTuple):
    found: bool
    creator: str
    timestamp: int


class Proof(NamedTuple):
    """A registered proof as stored by the registry."""
    proof_id: int
    content_hash: str
    vector_hash: str
    creator: str
    timestamp: int
    metadata_uri: str
    revoked: bool = False


def to_bytes32(value: str) -> str:
    """Validate a 32-byte hex identifier and return it lowercased with 0x prefix."""
    if not isinstance(value, str) or not _BYTES32.match(value):
        raise ValueError(f"Not a 32-byte hex value: {value!r}")
    value = value.lower()
    return value if value.startswith("0x") else f"0x{value}"


def generate_metadata_uri() -> str:
    return f"ipfs://trustvault/{int(time.time() * 1000)}"


class RegistryClient:
    """Interface of the proof registry contract."""

    def register_proof(self, content_hash: str, vector_hash: str, metadata_uri: str,
                       creator: str = "") -> int:
        """Register a proof and return its proof id."""
        raise NotImplementedError

    def verify_hash(self, content_hash: str) -> ProofStatus:
        """Look up a proof by content hash."""
        raise NotImplementedError

    def proof_count(self) -> int:
        """Number of proofs ever registered; ids run from 1 to this value."""
        raise NotImplementedError

    def get_proof_by_id(self, proof_id: int) -> Proof:
        """Fetch a proof by id, raising RegistryError for ids that do not exist."""
        raise NotImplementedError


class InMemoryRegistry(RegistryClient):
    """Development registry with the contract's semantics, held in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._proofs: List[Proof] = []
        self._ids: Dict[str, int] = {}

    def register_proof(self, content_hash: str, vector_hash: str, metadata_uri: str,
                       creator: str = "") -> int:
        content_hash = to_bytes32(content_hash)
        vector_hash = to_bytes32(vector_hash)

        with self._lock:
            if content_hash in self._ids:
                raise RegistryError(f"Proof already registered for {content_hash}")
            proof_id = len(self._proofs) + 1
            self._proofs.append(Proof(
                proof_id=proof_id,
                content_hash=content_hash,
                vector_hash=vector_hash,
                creator=creator or ZERO_ADDRESS,
                timestamp=int(time.time()),
                metadata_uri=metadata_uri,
            ))
            self._ids[content_hash] = proof_id

        logger.info("Proof registered", proof_id=proof_id, content_hash=content_hash)
        return proof_id

    def verify_hash(self, content_hash: str) -> ProofStatus:
        proof = self.get_proof(content_hash)
        if proof is None:
            return ProofStatus(False, ZERO_ADDRESS, 0)
        return ProofStatus(True, proof.creator, proof.timestamp)

    def proof_count(self) -> int:
        return len(self._proofs)

    def get_proof_by_id(self, proof_id: int) -> Proof:
        if not 1 <= proof_id <= len(self._proofs):
            raise RegistryError(f"No proof with id {proof_id}")
        return self._proofs[proof_id - 1]

    def get_proof(self, content_hash: str) -> Optional[Proof]:
        proof_id = self._ids.get(to_bytes32(content_hash))
        return self._proofs[proof_id - 1] if proof_id else None

    def revoke_proof(self, proof_id: int, creator: str) -> Proof:
        """Mark a proof revoked; only its creator may do so."""
        with self._lock:
            proof = self.get_proof_by_id(proof_id)
            if proof.creator.lower() != creator.lower():
                raise RegistryError(f"Only the creator may revoke proof {proof_id}")
            proof = proof._replace(revoked=True)
            self._proofs[proof_id - 1] = proof

        logger.info("Proof revoked", proof_id=proof_id)
        return proof
