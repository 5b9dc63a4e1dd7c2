import time

import pytest
from fastapi.testclient import TestClient

from code_reader.api.deps import reset_deps


@pytest.fixture
def client(monkeypatch, tmp_data_dir):
    monkeypatch.setenv("CODE_READER_STORE", "memory")
    monkeypatch.setenv("CODE_READER_EMBEDDING_MODEL", "")
    monkeypatch.setenv("CODE_READER_VECTOR_STORE", "numpy")
    reset_deps()
    from code_reader.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
    reset_deps()


def wait_for(client, run_id, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/v1/flows/{run_id}").json()
        if predicate(body):
            return body
        time.sleep(0.02)
    raise AssertionError(f"flow {run_id} did not reach the expected state: {body}")


def test_health(client):
    resp = client.get("/v1/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Trace-Id"]


def test_flow_lifecycle_over_http(client):
    resp = client.post(
        "/v1/flows",
        json={"run_id": "r1", "basic": {"repo_name": "demo", "main_goal": "routing", "file_structure": ["app.py"]}},
        headers={"X-Trace-Id": "trace-1"},
    )
    assert resp.status_code == 201
    assert resp.json()["trace_id"] == "trace-1"
    assert resp.headers["X-Trace-Id"] == "trace-1"

    body = wait_for(client, "r1", lambda b: b["call_to_action"] == "user_feedback")
    assert body["shared"]["current_file"]["name"] == "app.py"

    resp = client.post("/v1/flows/r1/input", json={"input_kind": "user_feedback", "payload": {"action": "accept"}})
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    body = wait_for(client, "r1", lambda b: b["completed"])
    assert body["call_to_action"] == "finish"
    assert body["shared"]["all_summaries"][0]["filename"] == "app.py"

    listing = client.get("/v1/flows").json()["flows"]
    assert [item["run_id"] for item in listing] == ["r1"]
    assert listing[0]["completed"] is True

    assert client.delete("/v1/flows/r1").json() == {"run_id": "r1", "deleted": True}
    assert client.get("/v1/flows/r1").status_code == 404


def test_duplicate_run_id_conflicts(client):
    payload = {"run_id": "dup", "basic": {"repo_name": "demo"}}

    assert client.post("/v1/flows", json=payload).status_code == 201
    resp = client.post("/v1/flows", json=payload)

    assert resp.status_code == 409
    assert resp.json()["error"] == "flow_exists"


def test_rejected_input_and_unknown_run(client):
    client.post("/v1/flows", json={"run_id": "r2", "basic": {"repo_name": "demo"}})
    wait_for(client, "r2", lambda b: b["call_to_action"] == "improve_basic_input")

    wrong = client.post("/v1/flows/r2/input", json={"input_kind": "user_feedback", "payload": {"action": "accept"}})
    missing = client.post("/v1/flows/nope/input", json={"input_kind": "finish"})
    invalid = client.post("/v1/flows/r2/input", json={"input_kind": "dance"})

    assert wrong.status_code == 409
    assert wrong.json()["error"] == "input_rejected"
    assert missing.status_code == 404
    assert invalid.status_code == 422
    assert client.delete("/v1/flows/nope").status_code == 404
