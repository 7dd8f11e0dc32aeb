"""Build the bounded signal bundle handed to skill inference."""

from typing import Sequence

from models.schemas.signals import (
    CommitRecord,
    DependencyRecord,
    FileEntry,
    SignalBundle,
    SourceUnit,
)
from services.manifests import extension_histogram

MAX_COMMIT_MESSAGE_CHARS = 180


def _squash_message(message: str) -> str:
    return " ".join(message.split())[:MAX_COMMIT_MESSAGE_CHARS]


def top_extensions(histogram: dict[str, int], limit: int) -> dict[str, int]:
    """Keep the `limit` most frequent extensions (ties by name)."""
    ranked = sorted(histogram.items(), key=lambda kv: (-kv[1], kv[0]))
    return dict(ranked[:limit])


def build_signal_bundle(
    unit: SourceUnit,
    commits: Sequence[CommitRecord],
    tree: Sequence[FileEntry],
    dependencies: Sequence[DependencyRecord],
    commit_cap: int = 30,
    dependency_cap: int = 40,
    extension_cap: int = 20,
) -> SignalBundle:
    """Cap every signal list so inference cost stays bounded per unit."""
    bounded_commits = [
        c.model_copy(update={"message": _squash_message(c.message)})
        for c in commits[:commit_cap]
    ]
    return SignalBundle(
        unit=unit,
        dependencies=list(dependencies[:dependency_cap]),
        commits=bounded_commits,
        extension_histogram=top_extensions(extension_histogram(tree), extension_cap),
    )
