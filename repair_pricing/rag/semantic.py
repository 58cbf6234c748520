"""Cosine-similarity ranking of catalog items against a query vector."""
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from repair_pricing.catalog.models import CatalogItem, MatchResult
from repair_pricing.rag.index import EmbeddingIndex


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| |b|), defined as 0 when either norm is 0 or lengths differ."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        return 0.0
    na, nb = np.linalg.norm(a), np.linalg.norm(b)
    if na == 0 or nb == 0:
        return 0.0
    return float(np.dot(a, b) / (na * nb))


def cosine_similarities(query_vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Row-wise cosine similarity; rows with zero norm score 0."""
    if matrix.size == 0:
        return np.zeros(matrix.shape[0])
    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
    dots = matrix @ query_vector
    return np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)


def semantic_search(
    items: Sequence[CatalogItem],
    index: Optional[EmbeddingIndex],
    query: str,
    top_n: int,
    threshold: float,
) -> List[MatchResult]:
    """Rank items above ``threshold`` by similarity to the query.

    Returns [] when the query cannot be embedded or nothing passes the
    threshold; ties keep catalog order.
    """
    if index is None or top_n <= 0 or not query or not query.strip():
        return []
    query_vector = index.query_vector(query)
    if query_vector is None:
        return []

    present, matrix = index.vector_matrix(items)
    if not present:
        return []
    sims = cosine_similarities(query_vector, matrix)
    keep = np.flatnonzero(sims > threshold)
    order = keep[np.argsort(-sims[keep], kind="stable")]

    logger.debug(f"Found {len(order)} semantic matches above {threshold}")
    if len(order):
        logger.debug(f"Top similarity: {sims[order[0]] * 100:.1f}%")
    return [
        MatchResult(item=present[i], score=float(sims[i]), strategy="semantic")
        for i in order[:top_n]
    ]
