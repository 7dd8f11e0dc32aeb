"""SQLAlchemy models for subjects, evaluation jobs, skills, catalog and vocabulary."""

from typing import Optional

from sqlalchemy import JSON, BigInteger, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class SubjectRow(Base):
    """A person being evaluated, identified by their source-control handle."""

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    evaluation_status: Mapped[str] = mapped_column(String(20), default="idle", nullable=False)
    evaluation_error: Mapped[Optional[str]] = mapped_column(Text)
    connected_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    last_evaluated_at: Mapped[Optional[int]] = mapped_column(BigInteger)

    def __repr__(self) -> str:
        return f"<SubjectRow(id={self.id!r}, handle={self.handle!r})>"


class EvaluationJobRow(Base):
    __tablename__ = "evaluation_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    started_at: Mapped[Optional[int]] = mapped_column(BigInteger)
    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger)
    error: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<EvaluationJobRow(id={self.id!r}, status={self.status!r}, progress={self.progress!r})>"


class DerivedSkillRow(Base):
    """Skill inferred for one source unit during the latest successful evaluation."""

    __tablename__ = "derived_skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_name: Mapped[str] = mapped_column(String(300), default="", nullable=False)
    skill: Mapped[str] = mapped_column(String(120), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[Optional[str]] = mapped_column(Text)
    evidence: Mapped[Optional[list]] = mapped_column(JSON)


class AggregatedSkillRow(Base):
    __tablename__ = "aggregated_skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # preserves ranking order
    skill: Mapped[str] = mapped_column(String(120), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[Optional[str]] = mapped_column(Text)
    vector: Mapped[str] = mapped_column(Text, nullable=False)  # JSON sparse vector
    vocabulary_generation: Mapped[int] = mapped_column(Integer, nullable=False)


class CatalogItemRow(Base):
    """A job posting."""

    __tablename__ = "catalog_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    company: Mapped[Optional[str]] = mapped_column(String(300))
    location_city: Mapped[Optional[str]] = mapped_column(String(100))
    location_state: Mapped[Optional[str]] = mapped_column(String(100))
    location_country: Mapped[Optional[str]] = mapped_column(String(100))
    experience_level: Mapped[Optional[str]] = mapped_column(String(100))
    employment_type: Mapped[Optional[str]] = mapped_column(String(100))
    url: Mapped[Optional[str]] = mapped_column(Text)
    apply_url: Mapped[Optional[str]] = mapped_column(Text)
    skills: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class CatalogSkillVectorRow(Base):
    __tablename__ = "catalog_skill_vectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    catalog_item_id: Mapped[int] = mapped_column(
        ForeignKey("catalog_items.id"), nullable=False, index=True
    )
    skill: Mapped[str] = mapped_column(String(300), nullable=False)
    vector: Mapped[str] = mapped_column(Text, nullable=False)
    vocabulary_generation: Mapped[int] = mapped_column(Integer, nullable=False)


class VocabularyGenerationRow(Base):
    """One row per vocabulary rebuild; the highest generation is current."""

    __tablename__ = "vocabulary_generations"

    generation: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    document_count: Mapped[int] = mapped_column(Integer, nullable=False)
    built_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class VocabularyTermRow(Base):
    __tablename__ = "vocabulary_terms"

    generation: Mapped[int] = mapped_column(
        ForeignKey("vocabulary_generations.generation"), primary_key=True
    )
    term: Mapped[str] = mapped_column(String(300), primary_key=True)
    document_frequency: Mapped[int] = mapped_column(Integer, nullable=False)
    idf: Mapped[float] = mapped_column(Float, nullable=False)
