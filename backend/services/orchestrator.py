"""Evaluation job orchestrator: signals -> derived skills -> aggregated skills.

Flow, per job:
    submit(handle)                              -> job queued (returned at once)
    run(job_id)
      ├─ job running, progress 1
      ├─ SignalSource.list_source_units()       -> failure is job-fatal
      │     └─ no units: clear subject skills   -> success
      ├─ per unit (bounded parallel):
      │     commits + file tree + manifests     -> SignalBundle
      │     SkillInference.infer_skills()       -> DerivedSkill[]
      │     (a failing unit is skipped; progress 5..95)
      ├─ aggregate_skills()                     -> AggregatedSkill[]
      ├─ vectorize under current vocabulary
      ├─ Store.replace_subject_skills()         -> atomic delete-then-insert
      └─ job success, progress 100

A failure outside the per-unit step marks both the job and the subject as
error. Jobs never retry themselves; callers resubmit.
"""

import asyncio
import logging
import math
import re
import time
from typing import Awaitable, Callable, TypeVar
from urllib.parse import urlparse

from models.schemas.jobs import EvaluationJob, SubjectStatus
from models.schemas.signals import SignalBundle, SourceUnit
from models.schemas.skills import AggregatedSkill, DerivedSkill, UnitSkills
from services.aggregator import AggregationWeights, aggregate_skills
from services.collaborators import SignalSource, SkillInference
from services.errors import (
    InferenceError,
    JobStateError,
    UpstreamFetchError,
    ValidationError,
    short_message,
)
from services.signal_bundle import build_signal_bundle
from services.storage.repository import Store
from services.text import vectorize_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

PROGRESS_UNITS_FLOOR = 5
PROGRESS_UNITS_CEILING = 95


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_handle(raw: str | None) -> str:
    """Extract a subject handle from a login, "@login" or profile URL.

    Raises ValidationError when nothing usable is found.
    """
    cleaned = (raw or "").strip()
    if cleaned.startswith("@"):
        cleaned = cleaned[1:]
    if cleaned.startswith(("http://", "https://")):
        parts = [p for p in urlparse(cleaned).path.split("/") if p]
        cleaned = parts[0] if parts else ""
    if not cleaned or not _HANDLE_PATTERN.match(cleaned):
        raise ValidationError("invalid handle: expected a username or profile URL")
    return cleaned.lower()


def unit_progress(completed: int, total: int) -> int:
    """Progress after `completed` of `total` units, clamped to 5..95."""
    raw = math.floor(completed / max(1, total) * 90 + 0.5) + PROGRESS_UNITS_FLOOR
    return max(PROGRESS_UNITS_FLOOR, min(PROGRESS_UNITS_CEILING, raw))


class EvaluationOrchestrator:
    def __init__(
        self,
        store: Store,
        signal_source: SignalSource,
        skill_inference: SkillInference,
        settings=None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if settings is None:
            from config import settings
        self._store = store
        self._source = signal_source
        self._inference = skill_inference
        self._settings = settings
        self._clock = clock
        self._weights = AggregationWeights.from_settings(settings)

    # --- Submission ---------------------------------------------------------

    def submit(self, raw_handle: str) -> EvaluationJob:
        """Validate the handle and queue a job. Returns without running it.

        With duplicate coalescing on, an already queued or running job for
        the same subject is returned instead of creating a second one.
        """
        handle = parse_handle(raw_handle)
        subject = self._store.get_or_create_subject(handle, self._clock())

        if self._settings.coalesce_duplicate_evaluations:
            live = self._store.find_live_job(subject.id)
            if live is not None:
                logger.info("Subject %s already has live job %d; reusing it", handle, live.id)
                return live

        job = self._store.create_job(subject.id, self._clock())
        logger.info("Queued evaluation job %d for subject %s", job.id, handle)
        return job

    async def evaluate(self, raw_handle: str) -> EvaluationJob:
        """Submit and run to completion in the current task."""
        job = self.submit(raw_handle)
        return await self.run(job.id)

    # --- Execution ----------------------------------------------------------

    async def run(self, job_id: int) -> EvaluationJob:
        job = self._store.get_job(job_id)
        subject = self._store.get_subject_by_id(job.subject_id)

        try:
            self._store.start_job(job_id, self._clock())
        except JobStateError as e:
            logger.warning("Not starting job %d: %s", job_id, e)
            return self._store.get_job(job_id)

        try:
            self._store.set_subject_status(subject.id, SubjectStatus.RUNNING)
            logger.info("Evaluation job %d started for %s", job_id, subject.handle)

            units = await self._list_units(subject.handle)
            if not units:
                logger.info("No source units for %s; clearing skills", subject.handle)
                self._store.clear_subject_skills(subject.id)
                return self._succeed(job_id, subject.id)

            outcomes = await self._evaluate_units(job_id, units)
            aggregated = aggregate_skills(outcomes, self._clock(), self._weights)
            vectorized = self._vectorize(aggregated)
            self._store.replace_subject_skills(subject.id, outcomes, vectorized)
            return self._succeed(job_id, subject.id)
        except Exception as e:
            logger.exception("Evaluation job %d failed", job_id)
            return self._fail(job_id, subject.id, e)

    def _succeed(self, job_id: int, subject_id: int) -> EvaluationJob:
        finished = self._clock()
        job = self._store.complete_job(job_id, finished)
        self._store.set_subject_status(subject_id, SubjectStatus.SUCCESS, evaluated_at=finished)
        logger.info("Evaluation job %d succeeded", job_id)
        return job

    def _fail(self, job_id: int, subject_id: int, exc: BaseException) -> EvaluationJob:
        message = short_message(exc)
        job = self._store.fail_job(job_id, message, self._clock())
        self._store.set_subject_status(subject_id, SubjectStatus.ERROR, error=message)
        return job

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        """Await a collaborator call under the configured timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._settings.collaborator_timeout_s)
        except asyncio.TimeoutError as e:
            raise UpstreamFetchError(f"{what} timed out") from e

    async def _list_units(self, handle: str) -> list[SourceUnit]:
        limit = self._settings.max_source_units
        units = await self._call(
            self._source.list_source_units(handle, limit), "listing source units"
        )
        return list(units)[:limit]

    async def _evaluate_units(self, job_id: int, units: list[SourceUnit]) -> list[UnitSkills]:
        """Fetch and infer every unit with bounded concurrency.

        Results keep the input order regardless of completion order, so
        aggregation sees the same sequence on every run.
        """
        total = len(units)
        completed = 0
        semaphore = asyncio.Semaphore(max(1, self._settings.evaluation_concurrency))

        async def worker(unit: SourceUnit) -> UnitSkills | None:
            nonlocal completed
            async with semaphore:
                outcome = await self._evaluate_unit(unit)
            completed += 1
            try:
                self._store.update_progress(job_id, unit_progress(completed, total))
            except Exception as e:
                logger.warning("Progress update for job %d failed: %s", job_id, e)
            return outcome

        results = await asyncio.gather(*(worker(unit) for unit in units), return_exceptions=True)
        outcomes = []
        for unit, result in zip(units, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Skipping unit %s after unexpected error: %s", unit.name, result)
            elif result is not None:
                outcomes.append(result)
        logger.info("Job %d: %d of %d source units evaluated", job_id, len(outcomes), total)
        return outcomes

    async def _evaluate_unit(self, unit: SourceUnit) -> UnitSkills | None:
        """Collect signals for one unit and infer its skills; None if the unit is skipped."""
        try:
            return await self._collect_unit(unit)
        except UpstreamFetchError as e:
            logger.warning("Skipping unit %s: %s", unit.name, e)
        except Exception as e:
            logger.warning("Skipping unit %s after unexpected error: %s", unit.name, e)
        return None

    async def _collect_unit(self, unit: SourceUnit) -> UnitSkills:
        cfg = self._settings
        commits = await self._call(
            self._source.fetch_commit_history(unit, cfg.commit_history_limit),
            f"commit history of {unit.name}",
        )
        tree = await self._call(
            self._source.fetch_file_tree(unit, cfg.file_tree_max_entries),
            f"file tree of {unit.name}",
        )
        dependencies = await self._call(
            self._source.fetch_dependency_manifests(unit, tree),
            f"manifests of {unit.name}",
        )

        bundle = build_signal_bundle(
            unit,
            commits,
            tree,
            dependencies,
            commit_cap=cfg.bundle_commit_cap,
            dependency_cap=cfg.bundle_dependency_cap,
            extension_cap=cfg.bundle_extension_cap,
        )
        skills = await self._infer(unit, bundle)
        return UnitSkills(
            unit_id=unit.unit_id,
            unit_name=unit.name,
            skills=skills,
            commit_timestamps_ms=[c.timestamp_ms for c in commits],
        )

    async def _infer(self, unit: SourceUnit, bundle: SignalBundle) -> list[DerivedSkill]:
        try:
            skills = await self._call(
                self._inference.infer_skills(bundle), f"skill inference for {unit.name}"
            )
        except (InferenceError, UpstreamFetchError) as e:
            logger.warning("No skills inferred for %s: %s", unit.name, e)
            return []
        except Exception as e:
            logger.warning("Skill inference for %s raised unexpectedly: %s", unit.name, e)
            return []
        logger.debug("Unit %s: %d skills inferred", unit.name, len(skills))
        return list(skills)

    def _vectorize(self, aggregated: list[AggregatedSkill]) -> list[AggregatedSkill]:
        vocabulary = self._store.load_vocabulary()
        if not vocabulary.entries:
            logger.warning("Vocabulary is empty; skill vectors will carry no terms")
        return [
            skill.model_copy(update={
                "vector": vectorize_text(skill.skill, vocabulary),
                "vocabulary_generation": vocabulary.generation,
            })
            for skill in aggregated
        ]
