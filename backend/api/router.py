import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_orchestrator, get_runner, get_store
from config import settings
from models.requests import CatalogLoadRequest, EvaluateRequest, SubjectConnectRequest
from models.responses import (
    CatalogLoadResponse,
    EvaluateAccepted,
    JobStatusResponse,
    MatchResponse,
    SkillsResponse,
    SkillView,
    SubjectResponse,
)
from models.schemas.matching import CatalogItem
from services import catalog, ranker
from services.errors import (
    CatalogItemNotFoundError,
    JobNotFoundError,
    PersistenceError,
    SubjectNotFoundError,
    ValidationError,
)
from services.job_runner import JobRunner
from services.orchestrator import EvaluationOrchestrator, now_ms, parse_handle
from services.storage.repository import Store

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "collaborators_configured": bool(
            getattr(state, "signal_source", None) and getattr(state, "skill_inference", None)
        ),
    }


@router.post("/subjects/evaluate", response_model=EvaluateAccepted, status_code=202)
@limiter.limit("10/minute")
async def evaluate_subject(
    request: Request,
    body: EvaluateRequest,
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
    runner: JobRunner = Depends(get_runner),
):
    try:
        job = orchestrator.submit(body.handle)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError:
        logger.exception("Could not queue evaluation for %r", body.handle)
        raise HTTPException(status_code=500, detail="Could not queue evaluation")

    if not job.status.is_terminal:
        runner.dispatch(orchestrator, job.id)
    return EvaluateAccepted(job_id=job.id, status=job.status)


@router.post("/subjects", response_model=SubjectResponse)
async def connect_subject(body: SubjectConnectRequest, store: Store = Depends(get_store)):
    """Register a subject, or return the existing one for the same handle."""
    try:
        subject = store.get_or_create_subject(parse_handle(body.handle), now_ms())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SubjectResponse(
        id=subject.id,
        handle=subject.handle,
        evaluation_status=subject.evaluation_status,
        connected_at=subject.connected_at,
        last_evaluated_at=subject.last_evaluated_at,
    )


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def job_status(job_id: int, store: Store = Depends(get_store)):
    try:
        job = store.get_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobStatusResponse(status=job.status, progress=job.progress, error=job.error)


def _lookup_subject(store: Store, raw_handle: str):
    try:
        return store.get_subject(parse_handle(raw_handle))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SubjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/subjects/{handle}/skills", response_model=SkillsResponse)
async def subject_skills(handle: str, store: Store = Depends(get_store)):
    subject = _lookup_subject(store, handle)
    skills = store.list_aggregated_skills(subject.id)
    return SkillsResponse(
        handle=subject.handle,
        evaluation_status=subject.evaluation_status,
        last_evaluated_at=subject.last_evaluated_at,
        skills=[SkillView(skill=s.skill, score=s.score, reasoning=s.reasoning) for s in skills],
    )


@router.get("/subjects/{handle}/matches", response_model=MatchResponse)
async def subject_matches(handle: str, store: Store = Depends(get_store)):
    subject = _lookup_subject(store, handle)
    top = ranker.match_subject(
        store,
        subject.handle,
        top_n=settings.match_top_n,
        max_explanations=settings.match_max_explanations,
    )
    return MatchResponse(handle=subject.handle, top=top)


@router.post("/catalog", response_model=CatalogLoadResponse)
async def load_catalog(body: CatalogLoadRequest, store: Store = Depends(get_store)):
    stored, vocabulary = catalog.load_catalog(store, body.items, now_ms())
    logger.info(
        "Catalog replaced: %d items, %d terms (generation %d)",
        len(stored), len(vocabulary), vocabulary.generation,
    )
    return CatalogLoadResponse(
        inserted=len(stored),
        vocabulary_size=len(vocabulary),
        generation=vocabulary.generation,
    )


@router.get("/catalog", response_model=list[CatalogItem])
async def list_catalog(store: Store = Depends(get_store)):
    return store.list_catalog_items()


@router.get("/catalog/{item_id}", response_model=CatalogItem)
async def get_catalog_item(item_id: int, store: Store = Depends(get_store)):
    try:
        return store.get_catalog_item(item_id)
    except CatalogItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
