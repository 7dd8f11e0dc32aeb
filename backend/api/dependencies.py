"""Shared dependencies for API routes.

The store, the job runner and the external collaborators live on
`app.state`; main.py sets up the first two, deployments register the
collaborators with register_collaborators().
"""

from fastapi import FastAPI, HTTPException, Request

from config import settings
from services.collaborators import SignalSource, SkillInference
from services.job_runner import JobRunner
from services.orchestrator import EvaluationOrchestrator
from services.storage.repository import Store


def register_collaborators(
    app: FastAPI,
    signal_source: SignalSource,
    skill_inference: SkillInference,
) -> None:
    app.state.signal_source = signal_source
    app.state.skill_inference = skill_inference


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_runner(request: Request) -> JobRunner:
    return request.app.state.runner


def get_orchestrator(request: Request) -> EvaluationOrchestrator:
    state = request.app.state
    signal_source = getattr(state, "signal_source", None)
    skill_inference = getattr(state, "skill_inference", None)
    if signal_source is None or skill_inference is None:
        raise HTTPException(status_code=503, detail="Signal source or skill inference not configured")
    return EvaluationOrchestrator(state.store, signal_source, skill_inference, settings=settings)
