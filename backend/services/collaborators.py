"""Contracts for the external collaborators the evaluation pipeline depends on.

Implementations (source-control API clients, LLM clients) live outside this
package. They are expected to enforce their own timeouts and to raise the
errors from services.errors:

    SignalSource   -> UpstreamFetchError when the upstream is unavailable
    SkillInference -> InferenceError, or [] for malformed upstream output

Shared parsing for implementations lives in services.manifests
(`collect_dependencies`) and services.skill_payload (`parse_skill_payload`).
"""

from typing import Protocol, runtime_checkable

from models.schemas.signals import (
    CommitRecord,
    DependencyRecord,
    FileEntry,
    SignalBundle,
    SourceUnit,
)
from models.schemas.skills import DerivedSkill


@runtime_checkable
class SignalSource(Protocol):
    async def list_source_units(self, handle: str, limit: int) -> list[SourceUnit]:
        """Source units of a subject, most recently pushed first."""
        ...

    async def fetch_commit_history(self, unit: SourceUnit, limit: int) -> list[CommitRecord]:
        """Recent commits, most recent first."""
        ...

    async def fetch_file_tree(self, unit: SourceUnit, max_entries: int) -> list[FileEntry]:
        ...

    async def fetch_dependency_manifests(
        self, unit: SourceUnit, tree: list[FileEntry]
    ) -> list[DependencyRecord]:
        ...


@runtime_checkable
class SkillInference(Protocol):
    async def infer_skills(self, bundle: SignalBundle) -> list[DerivedSkill]:
        ...
