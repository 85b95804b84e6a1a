"""
Error taxonomy for fingerprinting, similarity checking and persistence.
"""


class TrustVaultError(Exception):
    """Base exception for all TrustVault errors."""
    pass


class ExtractionError(TrustVaultError):
    """File could not be read as text, or yielded no text."""
    pass


class ModelLoadError(TrustVaultError):
    """No embedding backend could be initialized."""
    pass


class EmbeddingError(TrustVaultError):
    """Embedding inference failed or produced an unexpected shape."""
    pass


class HashComputeError(TrustVaultError):
    """Digest primitive unavailable."""
    pass


class StoreReadError(TrustVaultError):
    """Local vector store unreadable or corrupt."""
    pass


class StoreWriteError(TrustVaultError):
    """Local vector store write failed; the record was not saved."""
    pass


class RegistryError(TrustVaultError):
    """Registry call failed or was rejected."""
    pass
