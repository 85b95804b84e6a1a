"""
Pydantic models for fingerprints and locally stored document records.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class DocumentRecord(BaseModel):
    """A previously seen document, persisted for future similarity checks.

    Serialized with the same keys the browser client used in local storage
    (``hash``, ``contentHash``) so existing blobs stay readable.
    """
    model_config = ConfigDict(populate_by_name=True)

    vector_hash: str = Field(..., alias="hash", description="Deterministic digest of the embedding")
    embedding: List[float] = Field(..., description="L2-normalized embedding vector")
    creator: str = Field(default="", description="Wallet address attributed to the record")
    content_hash: str = Field(..., alias="contentHash", description="SHA-256 of the raw file bytes")
    timestamp: int = Field(..., ge=0, description="Insertion time in milliseconds since epoch")
    text: Optional[str] = Field(default=None, description="Original text, retained only for short documents")

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class NewDocumentRecord(BaseModel):
    """A document record before the store assigns its timestamp."""
    model_config = ConfigDict(populate_by_name=True)

    vector_hash: str = Field(..., alias="hash")
    embedding: List[float]
    creator: str = ""
    content_hash: str = Field(..., alias="contentHash")
    text: Optional[str] = None


class FingerprintResult(BaseModel):
    """Output of the fingerprint pipeline for one file."""
    vector_hash: str = Field(..., description="AI fingerprint submitted on-chain")
    embedding: List[float] = Field(..., description="Semantic embedding of the extracted text")
    text: str = Field(..., description="Extracted text sample")
