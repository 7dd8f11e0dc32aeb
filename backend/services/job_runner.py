"""Background dispatch of evaluation jobs onto the running event loop.

The dispatcher and pollers share nothing but the stored job row: dispatch()
starts the run and returns immediately, pollers read the job via Store.get_job.
"""

import asyncio
import logging

from services.orchestrator import EvaluationOrchestrator

logger = logging.getLogger(__name__)


class JobRunner:
    def __init__(self) -> None:
        # job id -> task; strong references keep running tasks alive
        self._tasks: dict[int, asyncio.Task] = {}

    @property
    def active(self) -> int:
        return len(self._tasks)

    def dispatch(self, orchestrator: EvaluationOrchestrator, job_id: int) -> asyncio.Task:
        """Start running a job in the background. A job is only ever started once."""
        existing = self._tasks.get(job_id)
        if existing is not None:
            return existing
        task = asyncio.create_task(orchestrator.run(job_id), name=f"evaluation-job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._on_done(job_id, t))
        logger.debug("Dispatched evaluation job %d", job_id)
        return task

    def _on_done(self, job_id: int, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            logger.warning("Evaluation job %d task was cancelled", job_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Evaluation job %d task crashed: %s", job_id, exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every dispatched job to reach a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
