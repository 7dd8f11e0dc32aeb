"""Tokenization and TF-IDF vectorization of short skill phrases.

Pipeline:
    text -> normalize() -> tokenize() (unigrams + bigrams)
         -> term_frequency() -> vectorize(tokens, vocabulary) -> SparseVector

Vectors are stored as JSON objects; vector_to_json/vector_from_json are the
persisted representation and must round-trip exactly.
"""

import json
import logging
import re
from collections import Counter
from typing import Sequence

from models.schemas.vocabulary import SparseVector, Vocabulary

logger = logging.getLogger(__name__)

# Everything outside [a-z0-9+#.- ] becomes a separator, so "c++", "c#",
# "node.js" and "ci-cd" survive as single tokens.
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9+#.\- ]")
_WHITESPACE = re.compile(r" +")

BIGRAM_JOINER = "_"


def normalize(text: str) -> str:
    """Lower-case, replace disallowed characters with spaces, collapse whitespace."""
    if not text:
        return ""
    lowered = text.lower()
    spaced = _DISALLOWED_CHARS.sub(" ", lowered)
    return _WHITESPACE.sub(" ", spaced).strip()


def tokenize(text: str) -> list[str]:
    """Split text into unigrams followed by adjacent-pair bigrams.

    >>> tokenize("AI/ML Engineer")
    ['ai', 'ml', 'engineer', 'ai_ml', 'ml_engineer']
    """
    unigrams = [t for t in normalize(text).split(" ") if t]
    bigrams = [
        unigrams[i] + BIGRAM_JOINER + unigrams[i + 1]
        for i in range(len(unigrams) - 1)
    ]
    return unigrams + bigrams


def term_frequency(tokens: Sequence[str]) -> dict[str, float]:
    """Relative term frequency; weights sum to 1 over a non-empty sequence."""
    total = max(1, len(tokens))
    return {term: count / total for term, count in Counter(tokens).items()}


def vectorize(tokens: Sequence[str], vocabulary: Vocabulary) -> SparseVector:
    """Weight each term by tf * idf. Out-of-vocabulary terms are dropped."""
    vector: SparseVector = {}
    for term, tf in term_frequency(tokens).items():
        idf = vocabulary.idf(term)
        if idf:
            vector[term] = tf * idf
    return vector


def vectorize_text(text: str, vocabulary: Vocabulary) -> SparseVector:
    return vectorize(tokenize(text), vocabulary)


def vector_to_json(vector: SparseVector) -> str:
    return json.dumps(vector)


def vector_from_json(raw: str | None) -> SparseVector:
    """Decode a stored vector. Empty or malformed payloads mean "no signal"."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Discarding malformed stored vector: %s", e)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): float(v) for k, v in data.items()}
