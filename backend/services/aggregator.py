"""Skill aggregation: merge per-unit derived skills into one score per skill.

Each source unit is weighted by how recently and how often it was committed to:

    recency   = exp(-ln(2) * age_days / half_life_days)     (half-life 30 days)
    frequency = min(1, commits / saturation_commits)         (saturates at 100)
    weight    = recency * frequency

Contributions add up and are capped at 1.0, so a skill attested by many
active units saturates instead of regressing to the mean. The result depends
only on the inputs and the injected `now_ms`; repeated runs are bit-identical.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from models.schemas.skills import AggregatedSkill, DerivedSkill, UnitSkills

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000


@dataclass(frozen=True)
class AggregationWeights:
    half_life_days: float = 30.0
    saturation_commits: int = 100  # also the number of timestamps consumed
    stale_age_days: float = 365.0
    fallback_weight: float = 0.2
    max_reasonings: int = 2
    reasoning_max_chars: int = 240

    @classmethod
    def from_settings(cls, settings) -> "AggregationWeights":
        return cls(
            half_life_days=settings.recency_half_life_days,
            saturation_commits=settings.frequency_saturation_commits,
            stale_age_days=settings.stale_age_days,
            fallback_weight=settings.fallback_unit_weight,
            reasoning_max_chars=settings.reasoning_max_chars,
        )


DEFAULT_WEIGHTS = AggregationWeights()


def recency_weight(age_days: float, half_life_days: float = 30.0) -> float:
    """Exponential decay: 1.0 today, 0.5 after one half-life, never exactly 0."""
    return math.exp(-math.log(2) * max(0.0, age_days) / half_life_days)


def frequency_weight(commits_count: int, saturation_commits: int = 100) -> float:
    return min(1.0, commits_count / saturation_commits)


def unit_age_days(
    commit_timestamps_ms: Sequence[int],
    now_ms: int,
    stale_age_days: float = 365.0,
) -> float:
    if not commit_timestamps_ms:
        return stale_age_days
    return (now_ms - max(commit_timestamps_ms)) / MS_PER_DAY


def unit_weight(
    commit_timestamps_ms: Sequence[int] | None,
    now_ms: int,
    weights: AggregationWeights = DEFAULT_WEIGHTS,
) -> float:
    """Weight of one source unit from its commit timestamps (most recent first).

    `None` means no weighting information exists for the unit; the fallback
    weight applies so the unit's evidence still counts a little. An empty
    list is a unit with no commits: stale and with zero frequency.
    """
    if commit_timestamps_ms is None:
        return weights.fallback_weight

    consumed = list(commit_timestamps_ms)[: weights.saturation_commits]
    age = unit_age_days(consumed, now_ms, weights.stale_age_days)
    return recency_weight(age, weights.half_life_days) * frequency_weight(
        len(consumed), weights.saturation_commits
    )


def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)].rstrip() + "…"


def merge_weighted_skills(
    contributions: Iterable[tuple[DerivedSkill, float]],
    weights: AggregationWeights = DEFAULT_WEIGHTS,
) -> list[AggregatedSkill]:
    """Sum `score * unit_weight` per skill name, capped at 1.0.

    Skill names match case-insensitively; the first spelling seen is kept.
    Skills whose total contribution is zero are omitted. Output is sorted by
    score descending, then by name.
    """
    totals: dict[str, float] = {}
    names: dict[str, str] = {}
    reasonings: dict[str, list[str]] = {}

    for derived, weight in contributions:
        name = derived.skill.strip()
        if not name:
            continue
        key = name.casefold()
        names.setdefault(key, name)
        totals[key] = totals.get(key, 0.0) + derived.score * weight

        picked = reasonings.setdefault(key, [])
        reason = _truncate(derived.reasoning, weights.reasoning_max_chars)
        if reason and reason not in picked and len(picked) < weights.max_reasonings:
            picked.append(reason)

    aggregated = [
        AggregatedSkill(
            skill=names[key],
            score=min(1.0, total),
            reasoning=" ".join(reasonings[key]),
        )
        for key, total in totals.items()
        if total > 0
    ]
    aggregated.sort(key=lambda s: (-s.score, s.skill.casefold()))
    return aggregated


def aggregate_skills(
    units: Sequence[UnitSkills],
    now_ms: int,
    weights: AggregationWeights = DEFAULT_WEIGHTS,
) -> list[AggregatedSkill]:
    """Aggregate derived skills across all source units of one subject."""
    contributions: list[tuple[DerivedSkill, float]] = []
    for unit in units:
        w = unit_weight(unit.commit_timestamps_ms, now_ms, weights)
        logger.debug("Unit %s weight %.4f (%d skills)", unit.unit_id, w, len(unit.skills))
        contributions.extend((skill, w) for skill in unit.skills)

    aggregated = merge_weighted_skills(contributions, weights)
    logger.info(
        "Aggregated %d derived skills from %d units into %d skills",
        len(contributions), len(units), len(aggregated),
    )
    return aggregated
