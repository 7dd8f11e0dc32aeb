import json

import pytest

from services.skill_payload import MAX_EVIDENCE_ITEMS, parse_skill_payload

PAYLOAD = {
    "skills": [
        {"skill": "Python", "score": 0.82, "reasoning": "FastAPI service", "evidence": ["requirements.txt"]},
        {"skill": "Docker", "score": "0.5", "reasoning": "Dockerfile"},
    ]
}


def test_parse_plain_json_text():
    skills = parse_skill_payload(json.dumps(PAYLOAD))
    assert [(s.skill, s.score) for s in skills] == [("Python", 0.82), ("Docker", 0.5)]
    assert skills[0].evidence == ["requirements.txt"]


def test_parse_fenced_json():
    text = "```json\n" + json.dumps(PAYLOAD) + "\n```"
    assert [s.skill for s in parse_skill_payload(text)] == ["Python", "Docker"]


def test_parse_json_embedded_in_prose():
    text = "Sure! Here is the analysis:\n" + json.dumps(PAYLOAD) + "\nLet me know."
    assert len(parse_skill_payload(text)) == 2


def test_parse_already_decoded_dict():
    assert len(parse_skill_payload(PAYLOAD)) == 2


@pytest.mark.parametrize("payload", [None, "", "not json at all", "[1, 2]", {"skills": "Python"}, {"other": []}])
def test_malformed_payload_yields_no_skills(payload):
    assert parse_skill_payload(payload) == []


def test_scores_are_clamped_and_coerced():
    skills = parse_skill_payload({
        "skills": [
            {"skill": "Go", "score": 1.7},
            {"skill": "Rust", "score": -0.3},
            {"skill": "Zig", "score": "high"},
            {"skill": "Nim", "score": float("nan")},
        ]
    })
    assert [s.score for s in skills] == [1.0, 0.0, 0.0, 0.0]


def test_items_without_a_name_are_dropped():
    skills = parse_skill_payload({"skills": [{"score": 0.9}, "Python", {"skill": "  "}, {"skill": "SQL"}]})
    assert [s.skill for s in skills] == ["SQL"]


def test_evidence_is_capped():
    skills = parse_skill_payload({"skills": [{"skill": "CI", "evidence": [f"f{i}" for i in range(20)]}]})
    assert len(skills[0].evidence) == MAX_EVIDENCE_ITEMS
