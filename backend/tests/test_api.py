import time

import pytest
from fastapi.testclient import TestClient

from api.dependencies import register_collaborators
from api.router import limiter
from conftest import FakeSignalSource, make_commits, make_unit
from main import app

CATALOG = {
    "items": [
        {"title": "Backend Engineer", "company": "Acme", "skills": ["Python", "Docker"]},
        {"title": "Shell Wizard", "skills": ["Bash"]},
        {"title": "iOS Engineer", "skills": ["Swift"]},
    ]
}


@pytest.fixture
def client(store):
    app.state.store = store
    limiter.reset()
    with TestClient(app) as c:
        yield c
    for name in ("store", "signal_source", "skill_inference"):
        if getattr(app.state, name, None) is not None:
            delattr(app.state, name)


@pytest.fixture
def wired_client(client, two_unit_source, two_unit_inference):
    register_collaborators(app, two_unit_source, two_unit_inference)
    return client


def _wait_for_job(client, job_id, timeout_s=5.0):
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        body = client.get(f"/jobs/{job_id}").json()
        if body["status"] in ("success", "error"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish within {timeout_s}s")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["collaborators_configured"] is False


def test_evaluate_without_collaborators_is_unavailable(client):
    response = client.post("/subjects/evaluate", json={"handle": "octocat"})
    assert response.status_code == 503


def test_evaluate_rejects_invalid_handle(wired_client):
    response = wired_client.post("/subjects/evaluate", json={"handle": "not a handle!"})
    assert response.status_code == 400


def test_unknown_job_is_404(client):
    assert client.get("/jobs/12345").status_code == 404


def test_unknown_subject_is_404(client):
    assert client.get("/subjects/nobody/skills").status_code == 404
    assert client.get("/subjects/nobody/matches").status_code == 404


def test_catalog_load_and_list(client):
    response = client.post("/catalog", json=CATALOG)
    assert response.status_code == 200
    data = response.json()
    assert data["inserted"] == 3
    assert data["generation"] == 1
    assert data["vocabulary_size"] == 4

    items = client.get("/catalog").json()
    assert [i["title"] for i in items] == ["iOS Engineer", "Shell Wizard", "Backend Engineer"]


@pytest.mark.integration
def test_evaluate_then_match(wired_client):
    assert wired_client.post("/catalog", json=CATALOG).status_code == 200

    response = wired_client.post("/subjects/evaluate", json={"handle": "https://github.com/OctoCat"})
    assert response.status_code == 202
    accepted = response.json()
    assert accepted["status"] in ("queued", "running")

    job = _wait_for_job(wired_client, accepted["job_id"])
    assert job["status"] == "success"
    assert job["progress"] == 100
    assert job["error"] is None

    skills = wired_client.get("/subjects/octocat/skills").json()
    assert skills["evaluation_status"] == "success"
    assert [s["skill"] for s in skills["skills"]] == ["Python", "Docker", "Bash"]

    matches = wired_client.get("/subjects/@octocat/matches").json()
    titles = [m["title"] for m in matches["top"]]
    assert titles == ["Backend Engineer", "Shell Wizard"]
    scores = [m["score"] for m in matches["top"]]
    assert scores == sorted(scores, reverse=True)
    assert matches["top"][0]["top_skill_pairs"][0]["catalog_skill"] == "Python"


@pytest.mark.integration
def test_duplicate_evaluations_share_a_job(client, two_unit_inference):
    slow = FakeSignalSource(units=[make_unit("u1")], commits={"u1": make_commits(5)}, delay_s=0.5)
    register_collaborators(app, slow, two_unit_inference)

    first = client.post("/subjects/evaluate", json={"handle": "octocat"}).json()
    second = client.post("/subjects/evaluate", json={"handle": "@OctoCat"}).json()
    assert second["job_id"] == first["job_id"]

    assert _wait_for_job(client, first["job_id"])["status"] == "success"
    assert slow.listed == ["octocat"]


def test_connect_subject_registers_once(client):
    first = client.post("/subjects", json={"handle": "https://github.com/OctoCat"})
    assert first.status_code == 200
    data = first.json()
    assert data["handle"] == "octocat"
    assert data["evaluation_status"] == "idle"
    assert data["last_evaluated_at"] is None

    second = client.post("/subjects", json={"handle": "@octocat"}).json()
    assert second["id"] == data["id"]
    assert second["connected_at"] == data["connected_at"]

    skills = client.get("/subjects/octocat/skills").json()
    assert skills["skills"] == []


def test_connect_subject_rejects_invalid_handle(client):
    assert client.post("/subjects", json={"handle": "not a handle!"}).status_code == 400
    assert client.get("/subjects/not-a-handle/skills").status_code == 404


def test_get_catalog_item(client):
    assert client.post("/catalog", json=CATALOG).status_code == 200
    listed = {i["title"]: i for i in client.get("/catalog").json()}

    item_id = listed["Backend Engineer"]["id"]
    response = client.get(f"/catalog/{item_id}")
    assert response.status_code == 200
    item = response.json()
    assert item["company"] == "Acme"
    assert item["skills"] == ["Python", "Docker"]

    assert client.get("/catalog/99999").status_code == 404
