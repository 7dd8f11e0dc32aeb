from pydantic import BaseModel

from models.schemas.jobs import JobStatus, SubjectStatus
from models.schemas.matching import MatchResult


class EvaluateAccepted(BaseModel):
    job_id: int
    status: JobStatus


class JobStatusResponse(BaseModel):
    status: JobStatus
    progress: int = 0
    error: str | None = None


class SkillView(BaseModel):
    skill: str
    score: float
    reasoning: str = ""


class SkillsResponse(BaseModel):
    handle: str
    evaluation_status: SubjectStatus = SubjectStatus.IDLE
    last_evaluated_at: int | None = None
    skills: list[SkillView] = []


class MatchResponse(BaseModel):
    handle: str
    top: list[MatchResult] = []


class CatalogLoadResponse(BaseModel):
    inserted: int = 0
    vocabulary_size: int = 0
    generation: int = 0


class SubjectResponse(BaseModel):
    id: int
    handle: str
    evaluation_status: SubjectStatus = SubjectStatus.IDLE
    connected_at: int = 0
    last_evaluated_at: int | None = None
