"""Keyed reads and atomic replaces over the evaluation database.

Every multi-row replace (subject skills, catalog + vocabulary) runs inside a
single unit of work: readers see either the previous complete set or the new
one, never a mix.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from models.schemas.jobs import EvaluationJob, JobStatus, Subject, SubjectStatus
from models.schemas.matching import CatalogItem, CatalogLocation, CatalogSkillVector
from models.schemas.skills import AggregatedSkill, DerivedSkill, UnitSkills
from models.schemas.vocabulary import SparseVector, Vocabulary, VocabularyEntry
from services.errors import (
    CatalogItemNotFoundError,
    JobNotFoundError,
    JobStateError,
    PersistenceError,
    SubjectNotFoundError,
)
from services.storage.models import (
    AggregatedSkillRow,
    CatalogItemRow,
    CatalogSkillVectorRow,
    DerivedSkillRow,
    EvaluationJobRow,
    SubjectRow,
    VocabularyGenerationRow,
    VocabularyTermRow,
)
from services.text import vector_from_json, vector_to_json

logger = logging.getLogger(__name__)

# Allowed job status transitions; terminal states have no outgoing edges.
_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.ERROR},
    JobStatus.RUNNING: {JobStatus.RUNNING, JobStatus.SUCCESS, JobStatus.ERROR},
    JobStatus.SUCCESS: set(),
    JobStatus.ERROR: set(),
}


def _to_subject(row: SubjectRow) -> Subject:
    return Subject(
        id=row.id,
        handle=row.handle,
        evaluation_status=SubjectStatus(row.evaluation_status),
        evaluation_error=row.evaluation_error,
        connected_at=row.connected_at,
        last_evaluated_at=row.last_evaluated_at,
    )


def _to_job(row: EvaluationJobRow) -> EvaluationJob:
    return EvaluationJob(
        id=row.id,
        subject_id=row.subject_id,
        status=JobStatus(row.status),
        progress=row.progress,
        created_at=row.created_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        error=row.error,
    )


def _to_catalog_item(row: CatalogItemRow) -> CatalogItem:
    return CatalogItem(
        id=row.id,
        title=row.title,
        company=row.company,
        location=CatalogLocation(
            city=row.location_city, state=row.location_state, country=row.location_country
        ),
        experience_level=row.experience_level,
        employment_type=row.employment_type,
        url=row.url,
        apply_url=row.apply_url,
        skills=list(row.skills or []),
    )


class Store:
    """Persistence collaborator backed by SQLAlchemy."""

    def __init__(self, engine: Engine) -> None:
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """All-or-nothing session: commits on success, rolls back on any error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database unit of work failed: %s", e)
            raise PersistenceError(f"database error: {type(e).__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # --- Subjects -----------------------------------------------------------

    def get_or_create_subject(self, handle: str, now_ms: int) -> Subject:
        with self.unit_of_work() as session:
            row = session.scalar(select(SubjectRow).where(SubjectRow.handle == handle))
            if row is None:
                row = SubjectRow(handle=handle, evaluation_status="idle", connected_at=now_ms)
                session.add(row)
                session.flush()
                logger.info("Registered subject %s (id=%d)", handle, row.id)
            return _to_subject(row)

    def get_subject(self, handle: str) -> Subject:
        with self.unit_of_work() as session:
            row = session.scalar(select(SubjectRow).where(SubjectRow.handle == handle))
            if row is None:
                raise SubjectNotFoundError(handle)
            return _to_subject(row)

    def get_subject_by_id(self, subject_id: int) -> Subject:
        with self.unit_of_work() as session:
            row = session.get(SubjectRow, subject_id)
            if row is None:
                raise SubjectNotFoundError(str(subject_id))
            return _to_subject(row)

    def set_subject_status(
        self,
        subject_id: int,
        status: SubjectStatus,
        error: str | None = None,
        evaluated_at: int | None = None,
    ) -> None:
        with self.unit_of_work() as session:
            row = session.get(SubjectRow, subject_id)
            if row is None:
                raise SubjectNotFoundError(str(subject_id))
            row.evaluation_status = status.value
            row.evaluation_error = error
            if evaluated_at is not None:
                row.last_evaluated_at = evaluated_at

    # --- Evaluation jobs ----------------------------------------------------

    def create_job(self, subject_id: int, now_ms: int) -> EvaluationJob:
        with self.unit_of_work() as session:
            row = EvaluationJobRow(
                subject_id=subject_id,
                status=JobStatus.QUEUED.value,
                progress=0,
                created_at=now_ms,
            )
            session.add(row)
            session.flush()
            return _to_job(row)

    def get_job(self, job_id: int) -> EvaluationJob:
        with self.unit_of_work() as session:
            row = session.get(EvaluationJobRow, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            return _to_job(row)

    def find_live_job(self, subject_id: int) -> EvaluationJob | None:
        """Most recent queued or running job of a subject, if any."""
        with self.unit_of_work() as session:
            row = session.scalar(
                select(EvaluationJobRow)
                .where(
                    EvaluationJobRow.subject_id == subject_id,
                    EvaluationJobRow.status.in_([JobStatus.QUEUED.value, JobStatus.RUNNING.value]),
                )
                .order_by(EvaluationJobRow.id.desc())
                .limit(1)
            )
            return _to_job(row) if row is not None else None

    def _transition(
        self,
        job_id: int,
        status: JobStatus,
        progress: int | None = None,
        from_states: set[JobStatus] | None = None,
        **fields,
    ) -> EvaluationJob:
        with self.unit_of_work() as session:
            row = session.get(EvaluationJobRow, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            current = JobStatus(row.status)
            if status not in _TRANSITIONS[current] or (
                from_states is not None and current not in from_states
            ):
                raise JobStateError(
                    f"job {job_id}: illegal transition {current.value} -> {status.value}"
                )
            row.status = status.value
            if progress is not None:
                # pollers must never observe progress going backwards
                row.progress = max(row.progress, min(100, progress))
            for name, value in fields.items():
                setattr(row, name, value)
            return _to_job(row)

    def start_job(self, job_id: int, now_ms: int) -> EvaluationJob:
        """Queued -> running. A job is started at most once."""
        return self._transition(
            job_id,
            JobStatus.RUNNING,
            progress=1,
            from_states={JobStatus.QUEUED},
            started_at=now_ms,
        )

    def update_progress(self, job_id: int, progress: int) -> EvaluationJob:
        return self._transition(
            job_id, JobStatus.RUNNING, progress=progress, from_states={JobStatus.RUNNING}
        )

    def complete_job(self, job_id: int, now_ms: int) -> EvaluationJob:
        return self._transition(job_id, JobStatus.SUCCESS, progress=100, completed_at=now_ms)

    def fail_job(self, job_id: int, message: str, now_ms: int) -> EvaluationJob:
        return self._transition(job_id, JobStatus.ERROR, error=message, completed_at=now_ms)

    # --- Skills -------------------------------------------------------------

    def replace_subject_skills(
        self,
        subject_id: int,
        units: Sequence[UnitSkills],
        aggregated: Sequence[AggregatedSkill],
    ) -> None:
        """Delete-then-insert the subject's derived and aggregated skills atomically."""
        with self.unit_of_work() as session:
            session.execute(delete(DerivedSkillRow).where(DerivedSkillRow.subject_id == subject_id))
            session.execute(
                delete(AggregatedSkillRow).where(AggregatedSkillRow.subject_id == subject_id)
            )
            for unit in units:
                for derived in unit.skills:
                    session.add(
                        DerivedSkillRow(
                            subject_id=subject_id,
                            unit_id=unit.unit_id,
                            unit_name=unit.unit_name,
                            skill=derived.skill,
                            score=derived.score,
                            reasoning=derived.reasoning,
                            evidence=list(derived.evidence),
                        )
                    )
            for position, skill in enumerate(aggregated):
                session.add(
                    AggregatedSkillRow(
                        subject_id=subject_id,
                        position=position,
                        skill=skill.skill,
                        score=skill.score,
                        reasoning=skill.reasoning,
                        vector=vector_to_json(skill.vector),
                        vocabulary_generation=skill.vocabulary_generation,
                    )
                )
        logger.info(
            "Replaced skills for subject %d: %d aggregated, %d units",
            subject_id, len(aggregated), len(units),
        )

    def clear_subject_skills(self, subject_id: int) -> None:
        self.replace_subject_skills(subject_id, [], [])

    def list_aggregated_skills(self, subject_id: int) -> list[AggregatedSkill]:
        with self.unit_of_work() as session:
            return self._aggregated_skills(session, subject_id)

    @staticmethod
    def _aggregated_skills(session: Session, subject_id: int) -> list[AggregatedSkill]:
        rows = session.scalars(
            select(AggregatedSkillRow)
            .where(AggregatedSkillRow.subject_id == subject_id)
            .order_by(AggregatedSkillRow.position)
        )
        return [
            AggregatedSkill(
                skill=row.skill,
                score=row.score,
                reasoning=row.reasoning or "",
                vector=vector_from_json(row.vector),
                vocabulary_generation=row.vocabulary_generation,
            )
            for row in rows
        ]

    def list_derived_skills(self, subject_id: int) -> list[UnitSkills]:
        with self.unit_of_work() as session:
            rows = session.scalars(
                select(DerivedSkillRow)
                .where(DerivedSkillRow.subject_id == subject_id)
                .order_by(DerivedSkillRow.id)
            )
            units: dict[str, UnitSkills] = {}
            for row in rows:
                unit = units.setdefault(
                    row.unit_id, UnitSkills(unit_id=row.unit_id, unit_name=row.unit_name)
                )
                unit.skills.append(
                    DerivedSkill(
                        skill=row.skill,
                        score=row.score,
                        reasoning=row.reasoning or "",
                        evidence=list(row.evidence or []),
                    )
                )
            return list(units.values())

    # --- Vocabulary and catalog ---------------------------------------------

    def current_generation(self) -> int:
        with self.unit_of_work() as session:
            return session.scalar(select(func.max(VocabularyGenerationRow.generation))) or 0

    def load_vocabulary(self) -> Vocabulary:
        with self.unit_of_work() as session:
            return self._vocabulary(session)

    @staticmethod
    def _vocabulary(session: Session) -> Vocabulary:
        gen_row = session.scalar(
            select(VocabularyGenerationRow)
            .order_by(VocabularyGenerationRow.generation.desc())
            .limit(1)
        )
        if gen_row is None:
            return Vocabulary()
        terms = session.scalars(
            select(VocabularyTermRow).where(VocabularyTermRow.generation == gen_row.generation)
        )
        return Vocabulary(
            generation=gen_row.generation,
            document_count=gen_row.document_count,
            entries={
                t.term: VocabularyEntry(
                    term=t.term,
                    document_frequency=t.document_frequency,
                    inverse_document_frequency=t.idf,
                )
                for t in terms
            },
        )

    def replace_catalog(
        self,
        items: Sequence[CatalogItem],
        vocabulary: Vocabulary,
        skill_vectors: Sequence[Sequence[SparseVector]],
        now_ms: int,
    ) -> list[CatalogItem]:
        """Swap in a new catalog and the vocabulary generation its vectors use.

        `skill_vectors[i][j]` is the vector of `items[i].skills[j]`. Older
        vocabulary terms are dropped in the same transaction.
        """
        with self.unit_of_work() as session:
            session.execute(delete(CatalogSkillVectorRow))
            session.execute(delete(CatalogItemRow))
            session.execute(delete(VocabularyTermRow))

            session.add(
                VocabularyGenerationRow(
                    generation=vocabulary.generation,
                    document_count=vocabulary.document_count,
                    built_at=now_ms,
                )
            )
            session.flush()
            session.add_all(
                VocabularyTermRow(
                    generation=vocabulary.generation,
                    term=entry.term,
                    document_frequency=entry.document_frequency,
                    idf=entry.inverse_document_frequency,
                )
                for entry in vocabulary.entries.values()
            )

            stored: list[CatalogItem] = []
            for item, vectors in zip(items, skill_vectors):
                row = CatalogItemRow(
                    title=item.title,
                    company=item.company,
                    location_city=item.location.city,
                    location_state=item.location.state,
                    location_country=item.location.country,
                    experience_level=item.experience_level,
                    employment_type=item.employment_type,
                    url=item.url,
                    apply_url=item.apply_url,
                    skills=list(item.skills),
                )
                session.add(row)
                session.flush()
                for skill, vector in zip(item.skills, vectors):
                    session.add(
                        CatalogSkillVectorRow(
                            catalog_item_id=row.id,
                            skill=skill,
                            vector=vector_to_json(vector),
                            vocabulary_generation=vocabulary.generation,
                        )
                    )
                stored.append(_to_catalog_item(row))
        logger.info(
            "Catalog replaced: %d items, vocabulary generation %d (%d terms)",
            len(stored), vocabulary.generation, len(vocabulary),
        )
        return stored

    def get_catalog_item(self, item_id: int) -> CatalogItem:
        with self.unit_of_work() as session:
            row = session.get(CatalogItemRow, item_id)
            if row is None:
                raise CatalogItemNotFoundError(item_id)
            return _to_catalog_item(row)

    def list_catalog_items(self) -> list[CatalogItem]:
        with self.unit_of_work() as session:
            rows = session.scalars(select(CatalogItemRow).order_by(CatalogItemRow.id.desc()))
            return [_to_catalog_item(row) for row in rows]

    def load_match_snapshot(
        self, subject_id: int
    ) -> tuple[list[AggregatedSkill], list[CatalogItem], list[CatalogSkillVector], Vocabulary]:
        """Everything the ranker needs, read in one session."""
        with self.unit_of_work() as session:
            skills = self._aggregated_skills(session, subject_id)
            items = [
                _to_catalog_item(row)
                for row in session.scalars(select(CatalogItemRow).order_by(CatalogItemRow.id))
            ]
            vectors = [
                CatalogSkillVector(
                    catalog_item_id=row.catalog_item_id,
                    skill=row.skill,
                    vector=vector_from_json(row.vector),
                )
                for row in session.scalars(
                    select(CatalogSkillVectorRow).order_by(CatalogSkillVectorRow.id)
                )
            ]
            vocabulary = self._vocabulary(session)
            return skills, items, vectors, vocabulary
