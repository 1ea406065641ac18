from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router
from services.runtime import get_runtime


app = FastAPI()
app.include_router(router)
client = TestClient(app)


def test_pool_status_and_resize():
    status = client.get("/api/sessions/pool-status").json()
    assert status == {"active": 0, "available": 100, "total": 100, "avg_latency_ms": 0}

    resp = client.post("/api/sessions/pool-status", json={"action": "expand", "count": 20})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["previous_metrics"]["total"] == 100
    assert body["new_metrics"]["total"] == 120

    resp = client.post("/api/sessions/pool-status", json={"action": "explode"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["new_metrics"]["total"] == 120


def test_shrink_below_active_rejected_over_http():
    for _ in range(50):
        assert client.post("/api/sessions", json={}).status_code == 200

    resp = client.post("/api/sessions/pool-status", json={"action": "shrink", "count": 60})
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["status"] == "rejected"
    assert detail["previous_metrics"] == detail["new_metrics"]
    assert client.get("/api/sessions/pool-status").json()["total"] == 100


def test_session_lifecycle():
    created = client.post("/api/sessions", json={"user_id": "u1", "metadata": {"device_type": "tablet"}})
    assert created.status_code == 200
    session_id = created.json()["session"]["id"]
    assert created.json()["pool_metrics"]["active"] == 1

    active = client.get("/api/sessions/active", params={"user_id": "u1"}).json()
    assert [doc["id"] for doc in active["documents"]] == [session_id]

    ended = client.delete(f"/api/sessions/{session_id}")
    assert ended.status_code == 200
    assert ended.json()["session"]["status"] == "ended"
    assert ended.json()["pool_metrics"]["active"] == 0

    assert client.delete(f"/api/sessions/{session_id}").status_code == 404


def test_exhausted_pool_returns_503():
    get_runtime().pool.resize("shrink", 50)
    for _ in range(50):
        client.post("/api/sessions", json={})
    resp = client.post("/api/sessions", json={})
    assert resp.status_code == 503
