import time

import pytest
from fastapi.testclient import TestClient

from diagram_backend import main
from diagram_backend.changes import DeleteShapeChange

LINEAR = {
    "type": "createLinearDiagram",
    "description": "flow",
    "steps": [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}],
    "startPosition": {"x": 0, "y": 0},
}


@pytest.fixture(autouse=True)
def clean_state():
    main.buffer.clear_diagrams()
    main.canvas.clear()
    yield
    main.buffer.clear_diagrams()
    main.canvas.clear()


@pytest.fixture
def client():
    return TestClient(main.app)


def _seed(client, changes=None, emitted_at=1):
    body = {"callId": "call", "content": "draw the release flow", "emittedAt": emitted_at}
    if changes is not None:
        body["changes"] = changes
    r = client.post("/diagrams", json=body)
    assert r.status_code == 200
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_session_roundtrip(client):
    before = client.get("/session").json()
    after = client.post("/session", json={"name": "Ana"}).json()
    assert after["name"] == "Ana"
    assert after["id"] != before["id"]
    assert client.get("/session").json() == after
    assert main.queue.identity.id == after["id"]


def test_add_list_patch_delete(client):
    added = _seed(client)
    assert added["id"] == "call-1"
    assert added["status"] == "pending"

    listing = client.get("/diagrams").json()["diagrams"]
    assert [d["id"] for d in listing] == ["call-1"]

    patched = client.patch("/diagrams/call-1", json={"error": "looked odd"}).json()
    assert patched["error"] == "looked odd"

    assert client.delete("/diagrams/call-1").status_code == 200
    assert client.delete("/diagrams/call-1").status_code == 404


def test_clear(client):
    _seed(client, emitted_at=1)
    _seed(client, emitted_at=2)
    assert client.delete("/diagrams").json() == {"cleared": 2}
    assert client.get("/diagrams").json() == {"diagrams": []}


def test_apply_generated_diagram(client):
    added = _seed(client, changes=[LINEAR])
    assert added["status"] == "generated"

    r = client.post(f"/diagrams/{added['id']}/apply")
    assert r.status_code == 200
    assert r.json()["failed"] == []

    shapes = client.get("/canvas/shapes").json()
    assert len(shapes["shapes"]) == 3
    assert len(shapes["bindings"]) == 2
    assert client.get("/diagrams").json()["diagrams"] == []


def test_apply_pending_conflicts(client):
    added = _seed(client)
    assert client.post(f"/diagrams/{added['id']}/apply").status_code == 409
    assert client.post("/diagrams/missing/apply").status_code == 404


def test_invalid_changes_rejected(client):
    r = client.post("/diagrams", json={"callId": "c", "content": "x", "changes": [{"type": "nope"}]})
    assert r.status_code == 422


def test_cancel_and_retry_status_codes(client):
    added = _seed(client)
    assert client.post("/diagrams/missing/cancel").status_code == 404
    assert client.post(f"/diagrams/{added['id']}/retry").status_code == 409


def test_utterance_is_generated(monkeypatch):
    async def fake_provider(prompt):
        yield DeleteShapeChange(shape_id="shape:nothing")

    monkeypatch.setattr(main.queue, "provider", fake_provider)
    with TestClient(main.app) as client:
        short = client.post("/utterances", json={"call_id": "c", "content": "hi", "emitted_at": 1}).json()
        assert short == {"id": None, "accepted": False}

        r = client.post("/utterances", json={"call_id": "c", "content": "let us map the plan", "emitted_at": 2})
        assert r.json() == {"id": "c-2", "accepted": True}

        status = None
        for _ in range(50):
            status = client.get("/diagrams").json()["diagrams"][0]["status"]
            if status != "pending":
                break
            time.sleep(0.05)
        assert status == "generated"


def test_patch_cannot_promote_empty_diagram(client):
    added = _seed(client)
    r = client.patch(f"/diagrams/{added['id']}", json={"status": "generated"})
    assert r.status_code == 409
    assert client.get("/diagrams").json()["diagrams"][0]["status"] == "pending"


def test_patch_status_follows_transitions(client):
    added = _seed(client)
    r = client.patch(f"/diagrams/{added['id']}", json={"status": "generated", "changes": [LINEAR]})
    assert r.status_code == 200
    assert r.json()["status"] == "generated"
    assert len(r.json()["changes"]) == 1

    assert client.patch(f"/diagrams/{added['id']}", json={"status": "pending"}).status_code == 409
    assert client.patch(f"/diagrams/{added['id']}", json={"changes": []}).status_code == 409


def test_negative_timestamp_rejected(client):
    r = client.post("/utterances", json={"call_id": "c", "content": "map the release plan", "emitted_at": -1})
    assert r.status_code == 422
