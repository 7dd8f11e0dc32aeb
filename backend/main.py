import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from api.router import limiter, router
from config import settings
from services.catalog import load_catalog, read_catalog_file
from services.job_runner import JobRunner
from services.orchestrator import now_ms
from services.storage import Store, get_engine, init_db

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _seed_catalog(store: Store) -> None:
    if store.current_generation() > 0:
        return
    items = read_catalog_file(settings.catalog_path)
    if items:
        stored, _ = load_catalog(store, items, now_ms())
        logger.info("Seeded catalog with %d items from %s", len(stored), settings.catalog_path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own store before startup
    if getattr(app.state, "store", None) is None:
        engine = get_engine()
        init_db(engine)
        app.state.store = Store(engine)
        _seed_catalog(app.state.store)
    app.state.runner = JobRunner()
    yield
    await app.state.runner.shutdown()


app = FastAPI(
    title="Talent Match API",
    description="Skill evaluation from source signals and vector matching against a job catalog",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
