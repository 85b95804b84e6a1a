"""
Pydantic models for similarity matching and response data structures.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class MatchMethod(str, Enum):
    """Enumeration of scoring methods."""
    TEXT_BASED = "text-based"
    SEMANTIC = "semantic"


class RegistrationStatus(str, Enum):
    """Outcome of a registration attempt."""
    REGISTERED = "registered"
    DUPLICATE = "duplicate"


class SimilarityMatch(BaseModel):
    """A stored record whose similarity to the candidate met the threshold."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    vector_hash: str = Field(..., alias="hash", description="Vector hash of the matched record")
    similarity: float = Field(..., description="Similarity score")
    creator: str = Field(..., description="Creator of the matched record")
    method: MatchMethod = Field(..., description="Scoring method used")
    content_hash: Optional[str] = Field(default=None, description="Content hash of the matched record")
    timestamp: Optional[int] = Field(default=None, description="When the matched record was stored")


class FingerprintResponse(BaseModel):
    """Response model for fingerprinting an upload without registering it."""
    filename: str = Field(..., description="Original filename")
    content_hash: str = Field(..., description="SHA-256 hash of file content")
    vector_hash: Optional[str] = Field(default=None, description="AI fingerprint")
    text_length: int = Field(default=0, description="Length of the extracted text sample")
    matches: List[SimilarityMatch] = Field(default=[], description="Similar documents found")
    plagiarism_checked: bool = Field(..., description="Whether a duplicate check ran")
    warnings: List[str] = Field(default=[], description="Degraded-mode warnings")
    message: str = Field(..., description="Human-readable message")


class RegistrationResult(BaseModel):
    """Outcome of registering a document with the registry."""
    model_config = ConfigDict(use_enum_values=True)

    status: RegistrationStatus = Field(..., description="Registration outcome")
    content_hash: str = Field(..., description="SHA-256 hash of file content")
    vector_hash: Optional[str] = Field(default=None, description="AI fingerprint, if one was computed")
    proof_id: Optional[int] = Field(default=None, description="Registry proof identifier")
    metadata_uri: Optional[str] = Field(default=None, description="Metadata URI submitted with the proof")
    matches: List[SimilarityMatch] = Field(default=[], description="Similar documents that blocked registration")
    plagiarism_checked: bool = Field(..., description="Whether a duplicate check ran")
    recorded: bool = Field(default=False, description="Whether the fingerprint was saved locally")
    warnings: List[str] = Field(default=[], description="Degraded-mode warnings")


class VerificationResult(BaseModel):
    """Registry lookup for a file's content hash."""
    content_hash: str = Field(..., description="SHA-256 hash of file content")
    found: bool = Field(..., description="Whether a proof exists")
    creator: Optional[str] = Field(default=None, description="Registrant address")
    timestamp: Optional[int] = Field(default=None, description="Registration time in seconds")


class ProofSummary(BaseModel):
    """A creator's registered proof, as listed on their dashboard."""
    proof_id: int = Field(..., description="Registry proof id")
    content_hash: str = Field(..., description="SHA-256 hash of file content")
    creator: str = Field(..., description="Registrant address")
    timestamp: int = Field(..., description="Registration time in milliseconds")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Overall service status")
    version: str = Field(..., description="API version")
    components: Dict[str, Any] = Field(..., description="Component health status")
