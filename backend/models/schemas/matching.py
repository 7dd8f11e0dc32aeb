"""Catalog items and ranked match results."""

from pydantic import BaseModel

from models.schemas.vocabulary import SparseVector


class CatalogLocation(BaseModel):
    city: str | None = None
    state: str | None = None
    country: str | None = None


class CatalogItem(BaseModel):
    """A job posting in the catalog the subject is ranked against."""
    id: int = 0  # assigned by storage
    title: str
    company: str | None = None
    location: CatalogLocation = CatalogLocation()
    experience_level: str | None = None
    employment_type: str | None = None
    url: str | None = None
    apply_url: str | None = None
    skills: list[str] = []


class CatalogSkillVector(BaseModel):
    catalog_item_id: int
    skill: str
    vector: SparseVector = {}


class SkillPair(BaseModel):
    """Explains one catalog skill by its best matching subject skill."""
    catalog_skill: str
    subject_skill: str
    similarity: float = 0.0
    subject_score: float = 0.0


class MatchResult(BaseModel):
    catalog_item_id: int
    title: str = ""
    company: str | None = None
    url: str | None = None
    score: float = 0.0  # 0.0-1.0 mean weighted similarity
    top_skill_pairs: list[SkillPair] = []
