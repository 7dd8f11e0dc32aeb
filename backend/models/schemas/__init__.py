"""Pydantic contracts exchanged between the core services."""

from models.schemas.jobs import EvaluationJob, JobStatus, Subject, SubjectStatus
from models.schemas.matching import CatalogItem, CatalogSkillVector, MatchResult, SkillPair
from models.schemas.signals import (
    CommitRecord,
    DependencyRecord,
    FileEntry,
    SignalBundle,
    SourceUnit,
)
from models.schemas.skills import AggregatedSkill, DerivedSkill, UnitSkills
from models.schemas.vocabulary import SparseVector, Vocabulary, VocabularyEntry

__all__ = [
    "AggregatedSkill",
    "CatalogItem",
    "CatalogSkillVector",
    "CommitRecord",
    "DependencyRecord",
    "DerivedSkill",
    "EvaluationJob",
    "FileEntry",
    "JobStatus",
    "MatchResult",
    "SignalBundle",
    "SkillPair",
    "SourceUnit",
    "SparseVector",
    "Subject",
    "SubjectStatus",
    "UnitSkills",
    "Vocabulary",
    "VocabularyEntry",
]
