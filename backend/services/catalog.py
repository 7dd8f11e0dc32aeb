"""Catalog loading: job postings -> vocabulary -> per-skill vectors.

Loading a catalog rebuilds the vocabulary from every catalog skill phrase,
bumps the vocabulary generation, vectorizes each catalog skill under it and
swaps catalog, vocabulary and vectors in one transaction.
"""

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError as PydanticValidationError

from models.schemas.matching import CatalogItem, CatalogLocation
from models.schemas.vocabulary import Vocabulary
from services.storage.repository import Store
from services.text import vectorize_text
from services.vocabulary import build_vocabulary

logger = logging.getLogger(__name__)


def _opt_str(value) -> str | None:
    return str(value) if value else None


def catalog_item_from_record(record: dict) -> CatalogItem | None:
    """Map a raw job-posting record to a CatalogItem; None if it has no title."""
    title = record.get("job_title") or record.get("title")
    if not title:
        return None
    location = record.get("location") or {}
    if not isinstance(location, dict):
        location = {}
    skills = record.get("skills_tech_stack") or record.get("skills") or []
    if not isinstance(skills, list):
        skills = []
    try:
        return CatalogItem(
            title=str(title),
            company=_opt_str(record.get("company")),
            location=CatalogLocation(
                city=_opt_str(location.get("city")),
                state=_opt_str(location.get("state")),
                country=_opt_str(location.get("country")),
            ),
            experience_level=_opt_str(record.get("experience_level")),
            employment_type=_opt_str(record.get("employment_type")),
            url=_opt_str(record.get("job_url") or record.get("url")),
            apply_url=_opt_str(record.get("apply_url")),
            skills=[str(s) for s in skills if str(s).strip()],
        )
    except PydanticValidationError as e:
        logger.warning("Skipping invalid catalog record %r: %s", title, e)
        return None


def parse_catalog_ndjson(text: str) -> list[CatalogItem]:
    """Parse newline-delimited JSON job postings, skipping unreadable lines."""
    items: list[CatalogItem] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON catalog line %d", lineno)
            continue
        if not isinstance(record, dict):
            continue
        item = catalog_item_from_record(record)
        if item is not None:
            items.append(item)
    return items


def read_catalog_file(path: str | Path) -> list[CatalogItem]:
    path = Path(path)
    if not path.exists():
        logger.warning("Catalog file %s not found", path)
        return []
    return parse_catalog_ndjson(path.read_text(encoding="utf-8"))


def load_catalog(
    store: Store,
    items: Iterable[CatalogItem],
    now_ms: int,
) -> tuple[list[CatalogItem], Vocabulary]:
    """Replace the catalog and rebuild the vocabulary it is matched under."""
    items = list(items)
    corpus = [skill for item in items for skill in item.skills]
    vocabulary = build_vocabulary(corpus, generation=store.current_generation() + 1)
    skill_vectors = [
        [vectorize_text(skill, vocabulary) for skill in item.skills]
        for item in items
    ]
    stored = store.replace_catalog(items, vocabulary, skill_vectors, now_ms)
    return stored, vocabulary
