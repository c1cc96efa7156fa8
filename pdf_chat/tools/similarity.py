"""
Similarity scoring: how closely an answer matches any chunk of the source PDF.
"""

from typing import List, Sequence

import numpy as np

from pdf_chat.tools.chunking import DocumentChunk


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0 for empty, mismatched or zero vectors."""
    if vec_a is None or vec_b is None or len(vec_a) == 0 or len(vec_a) != len(vec_b):
        return 0.0
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    magnitude = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def max_similarity(query: Sequence[float], chunks: List[DocumentChunk]) -> float:
    """Best cosine similarity between ``query`` and any chunk; never below 0."""
    if query is None or len(query) == 0 or not chunks:
        return 0.0
    best = 0.0
    for chunk in chunks:
        score = cosine_similarity(query, chunk.embedding)
        if score > best:
            best = score
    return min(best, 1.0)
