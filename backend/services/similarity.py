"""Cosine similarity between sparse term vectors."""

import logging
import math
from typing import Sequence

import numpy as np
from sklearn.feature_extraction import DictVectorizer
from sklearn.metrics.pairwise import cosine_similarity as sklearn_cosine

from models.schemas.vocabulary import SparseVector

logger = logging.getLogger(__name__)


def l2_norm(vector: SparseVector) -> float:
    return math.sqrt(sum(w * w for w in vector.values()))


def cosine_similarity(a: SparseVector, b: SparseVector) -> float:
    """Cosine similarity of two non-negative sparse vectors, in [0, 1].

    Returns 0.0 (never NaN) when either vector has zero norm.
    """
    norm_a = l2_norm(a)
    norm_b = l2_norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    # Iterate over the smaller mapping; absent keys weigh 0.
    small, large = (a, b) if len(a) <= len(b) else (b, a)
    dot = sum(w * large[term] for term, w in small.items() if term in large)
    return min(1.0, max(0.0, dot / (norm_a * norm_b)))


def similarity_matrix(
    rows: Sequence[SparseVector],
    cols: Sequence[SparseVector],
) -> np.ndarray:
    """Pairwise cosine similarities, shape (len(rows), len(cols)).

    Same values as cosine_similarity() applied to every pair; zero-norm
    vectors yield zero rows/columns.
    """
    shape = (len(rows), len(cols))
    if not rows or not cols:
        return np.zeros(shape)

    vectorizer = DictVectorizer(sparse=True)
    try:
        matrix = vectorizer.fit_transform(list(rows) + list(cols))
        scores = sklearn_cosine(matrix[: len(rows)], matrix[len(rows):])
    except ValueError:
        # no features at all: every vector is empty
        return np.zeros(shape)
    return np.clip(scores, 0.0, 1.0)
