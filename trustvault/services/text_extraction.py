"""
Best-effort plain-text extraction from uploaded files.
"""

import os
import structlog
from typing import BinaryIO, Optional, Union

from trustvault import config
from trustvault.core.errors import ExtractionError

logger = structlog.get_logger()

TextSource = Union[str, os.PathLike, bytes, bytearray, BinaryIO]


def _read_source(source: TextSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source).decode("utf-8", errors="replace")

    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            return f.read().decode("utf-8", errors="replace")

    data = source.read()
    # Leave the stream where the caller can read it again (upload handlers hash it too)
    if hasattr(source, "seek"):
        source.seek(0)
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def extract_text(source: TextSource, max_chars: Optional[int] = None) -> str:
    """
    Read a file as text and return a bounded sample.

    Args:
        source: Path, raw bytes, or binary file-like object
        max_chars: Maximum characters to keep (defaults to MAX_TEXT_CHARS)

    Returns:
        The first ``max_chars`` characters of the decoded content. Non-text
        files decode with replacement characters; the result may be empty.
    """
    max_chars = config.MAX_TEXT_CHARS if max_chars is None else max_chars
    try:
        text = _read_source(source)
    except (OSError, ValueError, AttributeError) as e:
        logger.error("Failed to read file as text", error=str(e))
        raise ExtractionError(f"Failed to read file as text: {e}") from e

    sample = text[:max_chars]
    logger.debug("Extracted text sample", total_length=len(text), sample_length=len(sample))
    return sample


def require_text(text: str) -> str:
    """Reject empty or whitespace-only extraction results."""
    if not text or not text.strip():
        raise ExtractionError("No text content found in file")
    return text
