"""Shared test configuration, pytest markers and fake collaborators."""

import asyncio

import pytest

from config import Settings
from models.schemas.signals import CommitRecord, DependencyRecord, FileEntry, SourceUnit
from models.schemas.skills import DerivedSkill
from services.errors import InferenceError, UpstreamFetchError
from services.manifests import collect_dependencies
from services.skill_payload import parse_skill_payload
from services.storage import Store, create_db_engine, init_db

DAY_MS = 86_400_000
NOW_MS = 1_760_000_000_000


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: drives the HTTP app and background jobs end to end"
    )


def make_unit(unit_id: str, name: str | None = None) -> SourceUnit:
    return SourceUnit(unit_id=unit_id, name=name or unit_id, owner="octocat")


def make_commits(count: int, newest_ms: int = NOW_MS, step_ms: int = 3_600_000) -> list[CommitRecord]:
    """`count` commits, most recent first, one every `step_ms`."""
    return [
        CommitRecord(sha=f"{i:040x}", message=f"commit {i}", timestamp_ms=newest_ms - i * step_ms)
        for i in range(count)
    ]


class FakeSignalSource:
    """In-memory signal source keyed by unit id."""

    def __init__(
        self,
        units=(),
        commits=None,
        trees=None,
        dependencies=None,
        failing_units=(),
        list_error: Exception | None = None,
        delay_s: float = 0.0,
        files=None,
    ):
        self.units = list(units)
        self.commits = commits or {}
        self.trees = trees or {}
        self.dependencies = dependencies or {}
        self.files = files or {}
        self.failing_units = set(failing_units)
        self.list_error = list_error
        self.delay_s = delay_s
        self.listed: list[str] = []

    async def list_source_units(self, handle, limit):
        self.listed.append(handle)
        if self.list_error is not None:
            raise self.list_error
        return self.units[:limit]

    async def fetch_commit_history(self, unit, limit):
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if unit.unit_id in self.failing_units:
            raise UpstreamFetchError(f"commits of {unit.name}: 502 Bad Gateway")
        return self.commits.get(unit.unit_id, [])[:limit]

    async def fetch_file_tree(self, unit, max_entries):
        return self.trees.get(unit.unit_id, [FileEntry(path="README.md")])[:max_entries]

    async def fetch_dependency_manifests(self, unit, tree):
        if unit.unit_id in self.files:
            contents = self.files[unit.unit_id]

            async def read_file(path):
                return contents.get(path)

            return await collect_dependencies(tree, read_file)
        return self.dependencies.get(unit.unit_id, [])


class FakeSkillInference:
    """Returns canned skills per unit id and records every bundle it saw.

    `raw_payloads` holds model-style text per unit, parsed the way a real
    inference client would.
    """

    def __init__(self, skills_by_unit=None, failing_units=(), raw_payloads=None):
        self.skills_by_unit = skills_by_unit or {}
        self.failing_units = set(failing_units)
        self.raw_payloads = raw_payloads or {}
        self.bundles = []

    async def infer_skills(self, bundle):
        self.bundles.append(bundle)
        if bundle.unit.unit_id in self.failing_units:
            raise InferenceError("model returned 500")
        if bundle.unit.unit_id in self.raw_payloads:
            return parse_skill_payload(self.raw_payloads[bundle.unit.unit_id])
        return list(self.skills_by_unit.get(bundle.unit.unit_id, []))


@pytest.fixture
def store():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield Store(engine)
    engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(evaluation_concurrency=2, collaborator_timeout_s=2.0)


@pytest.fixture
def clock():
    return lambda: NOW_MS


@pytest.fixture
def two_unit_source():
    """api: active and fresh; scripts: stale, few commits."""
    return FakeSignalSource(
        units=[make_unit("u1", "api"), make_unit("u2", "scripts")],
        commits={
            "u1": make_commits(100),
            "u2": make_commits(10, newest_ms=NOW_MS - 30 * DAY_MS),
        },
        trees={
            "u1": [FileEntry(path="app/main.py"), FileEntry(path="Dockerfile")],
            "u2": [FileEntry(path="run.sh")],
        },
        dependencies={
            "u1": [DependencyRecord(manager="pip", name="fastapi", version=">=0.110")],
        },
    )


@pytest.fixture
def two_unit_inference():
    return FakeSkillInference({
        "u1": [
            DerivedSkill(skill="Python", score=0.9, reasoning="FastAPI service"),
            DerivedSkill(skill="Docker", score=0.6, reasoning="Dockerfile present"),
        ],
        "u2": [
            DerivedSkill(skill="python", score=0.5, reasoning="automation scripts"),
            DerivedSkill(skill="Bash", score=0.8, reasoning="shell tooling"),
        ],
    })
