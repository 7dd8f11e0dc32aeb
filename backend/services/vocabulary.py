"""Vocabulary builder: document frequency and smoothed IDF over a phrase corpus."""

import logging
import math
from collections import Counter
from typing import Iterable

from models.schemas.vocabulary import Vocabulary, VocabularyEntry
from services.text import tokenize

logger = logging.getLogger(__name__)


def smoothed_idf(document_count: int, document_frequency: int) -> float:
    """idf = ln((N + 1) / (df + 1)) + 1, always > 0 for df <= N."""
    return math.log((document_count + 1) / (document_frequency + 1)) + 1


def build_vocabulary(corpus: Iterable[str], generation: int = 0) -> Vocabulary:
    """Build a vocabulary from short phrases (e.g. one per catalog skill).

    A term repeated inside one phrase counts once toward its document
    frequency. An empty corpus still uses N = 1.
    """
    phrases = list(corpus)
    document_frequency: Counter[str] = Counter()
    for phrase in phrases:
        document_frequency.update(set(tokenize(phrase)))

    n_docs = max(1, len(phrases))
    entries = {
        term: VocabularyEntry(
            term=term,
            document_frequency=df,
            inverse_document_frequency=smoothed_idf(n_docs, df),
        )
        for term, df in document_frequency.items()
    }
    logger.info(
        "Built vocabulary generation %d: %d terms from %d phrases",
        generation, len(entries), len(phrases),
    )
    return Vocabulary(generation=generation, document_count=n_docs, entries=entries)
