"""
Near-duplicate detection over stored document records.

Short texts are compared lexically (edit distance over normalized text),
because sentence embeddings are unreliable for a handful of words; everything
else is compared semantically with cosine similarity of embeddings.
"""

import re
import numpy as np
import structlog
from typing import List, Optional, Sequence

from trustvault import config
from trustvault.models.fingerprint import DocumentRecord
from trustvault.models.similarity import MatchMethod, SimilarityMatch

logger = structlog.get_logger()

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = _NON_WORD.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def edit_distance(s1: str, s2: str) -> int:
    """Levenshtein distance with unit insertion, deletion and substitution costs."""
    if len(s1) < len(s2):
        return edit_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = range(len(s2) + 1)

    for i, c1 in enumerate(s1):
        current_row = [i + 1]

        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)

            current_row.append(min(insertions, deletions, substitutions))

        previous_row = current_row

    return previous_row[-1]


def lexical_similarity(text1: str, text2: str) -> float:
    """Edit-distance similarity in [0, 1]; two empty texts score 1.0."""
    norm1 = normalize_text(text1)
    norm2 = normalize_text(text2)

    longest = max(len(norm1), len(norm2))
    if longest == 0:
        return 1.0

    return 1.0 - edit_distance(norm1, norm2) / longest


def cosine_similarity(embedding1: Sequence[float], embedding2: Sequence[float]) -> float:
    """Calculate cosine similarity between two embeddings."""
    vec1 = np.asarray(embedding1, dtype=np.float64)
    vec2 = np.asarray(embedding2, dtype=np.float64)

    if vec1.shape != vec2.shape:
        raise ValueError(f"Embedding dimensions differ: {vec1.shape} vs {vec2.shape}")

    norm1 = np.linalg.norm(vec1)
    norm2 = np.linalg.norm(vec2)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(vec1, vec2) / (norm1 * norm2))


def select_method(text: str, record: DocumentRecord, short_text_length: int) -> MatchMethod:
    if (len(text) < short_text_length
            and record.text is not None
            and len(record.text) < short_text_length):
        return MatchMethod.TEXT_BASED
    return MatchMethod.SEMANTIC


def validate_threshold(threshold: float) -> float:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError('Similarity threshold must be between 0.0 and 1.0')
    return threshold


def find_similar(text: str,
                 embedding: Sequence[float],
                 records: Sequence[DocumentRecord],
                 threshold: Optional[float] = None,
                 short_text_length: Optional[int] = None) -> List[SimilarityMatch]:
    """
    Rank stored records that are near-duplicates of a candidate document.

    Args:
        text: Candidate's extracted text
        embedding: Candidate's embedding
        records: Stored records, in store order
        threshold: Minimum score to report (defaults to SIMILARITY_THRESHOLD)
        short_text_length: Lexical comparison applies below this length
            (defaults to SHORT_TEXT_LENGTH)

    Returns:
        Matches with score >= threshold, best first; ties keep store order.
    """
    threshold = validate_threshold(config.SIMILARITY_THRESHOLD if threshold is None else threshold)
    short_text_length = config.SHORT_TEXT_LENGTH if short_text_length is None else short_text_length

    matches = []
    for record in records:
        method = select_method(text, record, short_text_length)
        if method == MatchMethod.TEXT_BASED:
            score = lexical_similarity(text, record.text)
        elif len(record.embedding) != len(embedding):
            logger.warning("Skipping stored vector with mismatched dimension",
                           hash=record.vector_hash, dimension=len(record.embedding),
                           expected=len(embedding))
            continue
        else:
            score = cosine_similarity(embedding, record.embedding)

        if score >= threshold:
            matches.append(SimilarityMatch(
                vector_hash=record.vector_hash,
                similarity=score,
                creator=record.creator,
                method=method,
                content_hash=record.content_hash,
                timestamp=record.timestamp,
            ))

    # sorted() is stable, so equal scores stay in store order
    matches = sorted(matches, key=lambda m: m.similarity, reverse=True)
    logger.debug("Similarity check completed",
                 candidates=len(records), matches=len(matches), threshold=threshold)
    return matches
