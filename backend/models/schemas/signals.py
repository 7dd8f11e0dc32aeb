"""Signals supplied by a signal source for one source unit (e.g. a repository)."""

from pydantic import BaseModel


class SourceUnit(BaseModel):
    """A repository (or equivalent) owned by the evaluated subject."""
    unit_id: str
    name: str
    owner: str = ""
    default_ref: str = "main"
    stars: int = 0
    forks: int = 0
    language: str | None = None
    pushed_at_ms: int = 0


class CommitRecord(BaseModel):
    sha: str
    message: str = ""
    timestamp_ms: int = 0
    author_name: str | None = None
    author_login: str | None = None


class FileEntry(BaseModel):
    path: str
    extension: str | None = None


class DependencyRecord(BaseModel):
    manager: str  # npm, pip, go
    name: str
    version: str | None = None


class SignalBundle(BaseModel):
    """Bounded evidence handed to the skill inference collaborator.

    Commit messages, dependencies and the extension histogram are already
    capped by the orchestrator before the bundle is built.
    """
    unit: SourceUnit
    dependencies: list[DependencyRecord] = []
    commits: list[CommitRecord] = []
    extension_histogram: dict[str, int] = {}
