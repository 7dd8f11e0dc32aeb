"""Error taxonomy for the evaluation pipeline.

ValidationError      caller-fixable input problem; no job is created.
UpstreamFetchError   signal source failed; fatal only when listing units.
InferenceError       skill inference failed; the unit contributes no skills.
PersistenceError     an atomic replace failed; the job is marked error.
"""

# Messages stored on failed jobs are cut to this length.
MAX_ERROR_MESSAGE_CHARS = 500


class EvaluationError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(EvaluationError):
    pass


class UpstreamFetchError(EvaluationError):
    pass


class InferenceError(EvaluationError):
    pass


class PersistenceError(EvaluationError):
    pass


class JobNotFoundError(EvaluationError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"Evaluation job {job_id} not found")
        self.job_id = job_id


class SubjectNotFoundError(EvaluationError):
    def __init__(self, handle: str) -> None:
        super().__init__(f"Subject {handle!r} not found")
        self.handle = handle


class CatalogItemNotFoundError(EvaluationError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Catalog item {item_id} not found")
        self.item_id = item_id


class JobStateError(EvaluationError):
    """Raised on an illegal job status transition (e.g. leaving a terminal state)."""


def short_message(exc: BaseException) -> str:
    """User-facing one-line description of an exception, without traceback."""
    text = str(exc).strip() or type(exc).__name__
    text = " ".join(text.split())
    return text[:MAX_ERROR_MESSAGE_CHARS]
