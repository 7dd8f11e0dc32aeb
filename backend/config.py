import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    database_url: str = "sqlite:///data/talent_match.db"
    catalog_path: str = "data/jobs.ndjson"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    debug: bool = False

    # Signal collection bounds
    max_source_units: int = 25
    commit_history_limit: int = 100
    file_tree_max_entries: int = 2000
    collaborator_timeout_s: float = 30.0
    evaluation_concurrency: int = 4  # source units processed in parallel

    # Signal bundle caps handed to skill inference
    bundle_commit_cap: int = 30
    bundle_dependency_cap: int = 40
    bundle_extension_cap: int = 20

    # Skill aggregation weights
    recency_half_life_days: float = 30.0
    frequency_saturation_commits: int = 100
    stale_age_days: float = 365.0
    fallback_unit_weight: float = 0.2
    reasoning_max_chars: int = 240

    # Match ranking
    match_top_n: int = 5
    match_max_explanations: int = 8

    # Return the live job instead of starting a second one for the same subject
    coalesce_duplicate_evaluations: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
