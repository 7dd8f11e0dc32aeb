"""Rank catalog items against a subject's aggregated skills.

For every catalog skill the best subject skill is chosen by cosine
similarity (ties go to the earlier subject skill) and weighted by the
subject's own score. An item's score is the mean over its catalog skills
that found a match; items with no match at all are left out.

Pure read: recomputed on every call from the currently stored skills.
"""

import logging
from collections import defaultdict
from typing import Sequence

import numpy as np

from models.schemas.matching import CatalogItem, CatalogSkillVector, MatchResult, SkillPair
from models.schemas.skills import AggregatedSkill
from models.schemas.vocabulary import SparseVector, Vocabulary
from services.similarity import similarity_matrix
from services.storage.repository import Store
from services.text import vectorize_text

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5
DEFAULT_MAX_EXPLANATIONS = 8


def subject_vectors(skills: Sequence[AggregatedSkill], vocabulary: Vocabulary) -> list[SparseVector]:
    """Stored vectors, re-derived from the skill name when computed under an older vocabulary."""
    vectors: list[SparseVector] = []
    stale = 0
    for skill in skills:
        if skill.vocabulary_generation == vocabulary.generation:
            vectors.append(skill.vector)
        else:
            stale += 1
            vectors.append(vectorize_text(skill.skill, vocabulary))
    if stale:
        logger.debug(
            "Re-vectorized %d subject skills under vocabulary generation %d",
            stale, vocabulary.generation,
        )
    return vectors


def rank_matches(
    skills: Sequence[AggregatedSkill],
    items: Sequence[CatalogItem],
    catalog_vectors: Sequence[CatalogSkillVector],
    vocabulary: Vocabulary,
    top_n: int = DEFAULT_TOP_N,
    max_explanations: int = DEFAULT_MAX_EXPLANATIONS,
) -> list[MatchResult]:
    if not skills or not catalog_vectors:
        return []

    subject_vecs = subject_vectors(skills, vocabulary)
    sims = similarity_matrix([cv.vector for cv in catalog_vectors], subject_vecs)

    rows_by_item: dict[int, list[int]] = defaultdict(list)
    for row_idx, cv in enumerate(catalog_vectors):
        rows_by_item[cv.catalog_item_id].append(row_idx)

    results: list[tuple[float, MatchResult]] = []
    for item in items:
        row_indices = rows_by_item.get(item.id)
        if not row_indices:
            continue

        contributions: list[float] = []
        pairs: list[tuple[float, SkillPair]] = []
        for row_idx in row_indices:
            best_idx = int(np.argmax(sims[row_idx]))  # first maximum wins ties
            best_sim = float(sims[row_idx, best_idx])
            if best_sim <= 0:
                continue
            chosen = skills[best_idx]
            weighted = best_sim * chosen.score
            contributions.append(weighted)
            pairs.append((
                weighted,
                SkillPair(
                    catalog_skill=catalog_vectors[row_idx].skill,
                    subject_skill=chosen.skill,
                    similarity=round(best_sim, 4),
                    subject_score=chosen.score,
                ),
            ))

        if not contributions:
            continue

        score = sum(contributions) / len(contributions)
        pairs.sort(key=lambda p: p[0], reverse=True)
        results.append((
            score,
            MatchResult(
                catalog_item_id=item.id,
                title=item.title,
                company=item.company,
                url=item.url,
                score=round(score, 4),
                top_skill_pairs=[pair for _, pair in pairs[:max_explanations]],
            ),
        ))

    results.sort(key=lambda r: r[0], reverse=True)
    logger.debug("Ranked %d of %d catalog items", len(results), len(items))
    return [match for _, match in results[:top_n]]


def match_subject(
    store: Store,
    handle: str,
    top_n: int = DEFAULT_TOP_N,
    max_explanations: int = DEFAULT_MAX_EXPLANATIONS,
) -> list[MatchResult]:
    """Rank the catalog for a stored subject (raises SubjectNotFoundError)."""
    subject = store.get_subject(handle)
    skills, items, vectors, vocabulary = store.load_match_snapshot(subject.id)
    return rank_matches(skills, items, vectors, vocabulary, top_n, max_explanations)
