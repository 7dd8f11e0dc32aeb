"""Evaluation job and subject records."""

from enum import Enum

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.ERROR)


class SubjectStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class EvaluationJob(BaseModel):
    """One run of the evaluation pipeline for a subject.

    The stored job row is the only channel between the dispatcher that
    starts the run and the pollers that watch it.
    """
    id: int
    subject_id: int
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    created_at: int  # epoch ms
    started_at: int | None = None
    completed_at: int | None = None
    error: str | None = None


class Subject(BaseModel):
    id: int
    handle: str
    evaluation_status: SubjectStatus = SubjectStatus.IDLE
    evaluation_error: str | None = None
    connected_at: int = 0
    last_evaluated_at: int | None = None
