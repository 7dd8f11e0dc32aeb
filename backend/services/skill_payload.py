"""Coerce raw skill-inference output into DerivedSkill records.

Inference collaborators typically wrap an LLM that is asked for
`{"skills": [{"skill", "score", "reasoning", "evidence"}]}`. Real responses
arrive fenced in markdown, embedded in prose, or half-broken; anything that
cannot be read yields an empty list instead of an error.

The backend itself never calls these helpers: concrete `SkillInference`
implementations (see `services.collaborators`) use `parse_skill_payload`
to turn their model response into the list they return.
"""

import json
import logging
import re
from typing import Any

from models.schemas.skills import DerivedSkill

logger = logging.getLogger(__name__)

MAX_SKILL_CHARS = 120
MAX_REASONING_CHARS = 500
MAX_EVIDENCE_ITEMS = 6

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def _load_json(text: str) -> Any:
    cleaned = _strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    match = _JSON_OBJECT.search(cleaned)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass
    return None


def _coerce_score(raw: Any) -> float:
    try:
        score = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(1.0, score))


def _coerce_skill(item: Any) -> DerivedSkill | None:
    if not isinstance(item, dict):
        return None
    name = str(item.get("skill") or "").strip()[:MAX_SKILL_CHARS]
    if not name:
        return None
    evidence = item.get("evidence")
    return DerivedSkill(
        skill=name,
        score=_coerce_score(item.get("score")),
        reasoning=str(item.get("reasoning") or "")[:MAX_REASONING_CHARS],
        evidence=[str(e) for e in evidence[:MAX_EVIDENCE_ITEMS]] if isinstance(evidence, list) else [],
    )


def parse_skill_payload(payload: str | dict | None) -> list[DerivedSkill]:
    """Parse an inference response (raw text or decoded JSON) into skills."""
    data = _load_json(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict) or not isinstance(data.get("skills"), list):
        logger.warning("Skill inference returned no usable skills payload")
        return []

    skills = [s for s in (_coerce_skill(item) for item in data["skills"]) if s is not None]
    logger.debug("Parsed %d skills from inference payload", len(skills))
    return skills
