"""Per-unit derived skills and per-subject aggregated skills."""

from pydantic import BaseModel, Field

from models.schemas.vocabulary import SparseVector


class DerivedSkill(BaseModel):
    """A skill inferred for a single source unit.

    Recomputed on every evaluation run and never patched in place.
    """
    skill: str
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    evidence: list[str] = []


class UnitSkills(BaseModel):
    """Derived skills of one source unit plus the commit timestamps used to weight them."""
    unit_id: str
    unit_name: str = ""
    skills: list[DerivedSkill] = []
    commit_timestamps_ms: list[int] | None = None  # most recent first; None when unknown


class AggregatedSkill(BaseModel):
    """Subject-level skill merged across all source units."""
    skill: str
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    vector: SparseVector = {}
    vocabulary_generation: int = 0
