"""
HTTP tests against the FastAPI app with in-memory storage.
"""

import pytest
from fastapi.testclient import TestClient

from appealdesk.config import Settings
from appealdesk.main import create_app
from tests.conftest import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(tmp_path, clock):
    config = Settings(
        environment="test",
        storage_backend="memory",
        policy_config_path=tmp_path / "assignment_policy.yaml",
        escalation_enabled=False,
        watch_policy_config=False,
    )
    with TestClient(create_app(config, clock=clock)) as test_client:
        yield test_client


def _ticket_payload(**overrides):
    payload = {
        "requester_id": 100,
        "category": "billing",
        "priority": "normal",
        "subject": "Need help",
        "body": "Please assist me",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["storage_backend"] == "memory"
    assert body["checks"]["scheduler"] == "running"
    assert body["checks"]["scheduled_jobs"] == ["rate_limit_cleanup"]


def test_rate_limit_cleanup_job_is_scheduled(client, clock):
    assert client.post("/tickets", json=_ticket_payload()).status_code == 201
    job = client.app.state.scheduler._scheduler.get_job("rate_limit_cleanup")

    assert job.trigger.interval.total_seconds() == 3600
    assert job.func() == 0

    clock.advance(hours=25)
    assert job.func() == 1


def test_escalation_job_scheduled_when_enabled(tmp_path, clock):
    config = Settings(
        environment="test",
        storage_backend="memory",
        policy_config_path=tmp_path / "assignment_policy.yaml",
        escalation_enabled=True,
        watch_policy_config=False,
    )
    with TestClient(create_app(config, clock=clock)) as test_client:
        checks = test_client.get("/health").json()["checks"]

    assert checks["scheduled_jobs"] == ["rate_limit_cleanup", "ticket_escalation"]


def test_create_ticket_auto_assigns(client):
    assert client.put("/operators/7/availability", json={"is_available": True}).status_code == 200

    response = client.post("/tickets", json=_ticket_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "in_progress"
    assert body["assigned_operator_id"] == 7
    assert body["messages"][0]["text"] == "Please assist me"
    assert client.get("/operators/7").json()["active_ticket_count"] == 1


def test_create_ticket_without_operators_stays_new(client):
    response = client.post("/tickets", json=_ticket_payload())

    assert response.status_code == 201
    assert response.json()["status"] == "new"
    assert response.json()["assigned_operator_id"] is None


def test_create_ticket_rejects_short_subject(client):
    response = client.post("/tickets", json=_ticket_payload(subject="Hi"))

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationException"


def test_create_ticket_rejects_unknown_category(client):
    response = client.post("/tickets", json=_ticket_payload(category="parking"))

    assert response.status_code == 422


def test_sixth_ticket_is_rate_limited(client):
    for _ in range(5):
        assert client.post("/tickets", json=_ticket_payload(auto_assign=False)).status_code == 201

    response = client.post("/tickets", json=_ticket_payload(auto_assign=False))

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) >= 1
    assert client.post("/tickets", json=_ticket_payload(requester_id=101)).status_code == 201


def test_get_missing_ticket(client):
    response = client.get("/tickets/999")

    assert response.status_code == 404
    assert response.json()["error_type"] == "ResourceNotFoundException"


def test_conversation_and_close(client):
    ticket_id = client.post("/tickets", json=_ticket_payload(auto_assign=False)).json()["id"]

    response = client.post(
        f"/tickets/{ticket_id}/messages",
        json={"sender_id": 5, "is_from_operator": True, "text": "Taking this one"},
    )
    assert response.status_code == 201

    ticket = client.get(f"/tickets/{ticket_id}").json()
    assert ticket["assigned_operator_id"] == 5
    assert ticket["first_response_at"] is not None

    read = client.post(f"/tickets/{ticket_id}/read").json()
    assert read["marked_read"] == 1

    close = {"closed_by": 5, "is_operator": True, "reason": "Refund issued"}
    assert client.post(f"/tickets/{ticket_id}/close", json=close).status_code == 200

    second = client.post(f"/tickets/{ticket_id}/close", json=close)
    assert second.status_code == 409
    assert client.get("/operators/5").json()["active_ticket_count"] == 0


def test_assign_and_reassign(client):
    client.put("/operators/1/availability", json={"is_available": True})
    client.put("/operators/2/expertise", json={"category": "billing", "experience_level": 5})
    ticket_id = client.post("/tickets", json=_ticket_payload(auto_assign=False)).json()["id"]

    assigned = client.post(
        f"/tickets/{ticket_id}/assign",
        json={"operator_id": 1, "acting_user_id": 900, "note": "first line"},
    )
    assert assigned.status_code == 200
    assert assigned.json()["assigned_operator_id"] == 1

    reassigned = client.post(f"/tickets/{ticket_id}/reassign", json={"reason": "manual"})
    assert reassigned.status_code == 200
    assert reassigned.json() == {"ticket_id": ticket_id, "operator_id": 2}


def test_update_priority(client):
    ticket_id = client.post("/tickets", json=_ticket_payload(auto_assign=False)).json()["id"]

    response = client.put(f"/tickets/{ticket_id}/priority", json={"priority": "urgent"})

    assert response.status_code == 200
    assert response.json()["priority"] == "urgent"


def test_best_operator_without_candidates(client):
    response = client.get("/operators/best", params={"category": "billing"})

    assert response.status_code == 503
    assert response.json()["error_type"] == "NoEligibleOperatorException"


def test_ranking_and_stats(client):
    client.put("/operators/1/availability", json={"is_available": True})
    client.put("/operators/2/expertise", json={"category": "technical", "experience_level": 4})

    ranking = client.get("/operators/ranking", params={"category": "technical", "priority": "high"}).json()
    assert [c["operator_id"] for c in ranking["candidates"]] == [2, 1]
    assert ranking["candidates"][0]["affinity_bonus"] == 50

    stats = client.get("/operators/stats").json()
    assert stats["total_operators"] == 2
    assert stats["available_operators"] == 2


def test_invalid_expertise_level(client):
    response = client.put("/operators/1/expertise", json={"category": "billing", "experience_level": 6})

    assert response.status_code == 422


def test_run_escalation(client, clock):
    ticket_id = client.post("/tickets", json=_ticket_payload()).json()["id"]
    client.put("/operators/3/availability", json={"is_available": True})
    clock.advance(hours=25)

    response = client.post("/escalations/run")

    assert response.status_code == 200
    assert response.json() == {"escalated": 1, "overdue_after_hours": 24.0}
    assert client.get(f"/tickets/{ticket_id}").json()["assigned_operator_id"] == 3
