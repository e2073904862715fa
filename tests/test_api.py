"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from helpers import FixedRandom
from moderation.api.routes import get_dashboard
from moderation.core.dashboard import ModerationDashboard
from moderation.core.strategies import ModelBackedStrategy, RuleBasedStrategy
from moderation.main import app
from py_common.schemas import ModerationConfiguration, StrategyKind


@pytest.fixture
def dashboard():
    return ModerationDashboard(
        configuration=ModerationConfiguration(sensitivity_level="medium", auto_moderation=True),
        strategies={StrategyKind.RULE_BASED: RuleBasedStrategy(rng=FixedRandom(0.9))},
    )


@pytest.fixture
def client(dashboard):
    app.dependency_overrides[get_dashboard] = lambda: dashboard
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- Classification ---


def test_classify_with_explicit_dashboard_config(client):
    response = client.post(
        "/v1/classify",
        json={
            "text": "This product is terrible and the company is a scam.",
            "config": {"sensitivityLevel": "high", "autoModeration": False, "aiModel": "basic"},
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "flagged"
    assert body["categories"] == ["negative", "accusation"]
    assert body["confidence"] == pytest.approx(0.87)


def test_classify_defaults_to_current_settings(client, dashboard):
    response = client.post("/v1/classify", json={"text": ""})
    assert response.status_code == 200
    assert response.json() == {"status": "approved", "confidence": pytest.approx(0.77), "categories": ["neutral"]}
    assert dashboard.list_content() == []


def test_classify_failure_is_not_reported_as_pending(client):
    response = client.post(
        "/v1/classify",
        json={"text": "hello", "config": {"strategy": "model_backed"}},
    )
    assert response.status_code == 502
    assert "Classification failed" in response.json()["detail"]


def test_classify_rejects_invalid_config(client):
    response = client.post("/v1/classify", json={"text": "hello", "config": {"sensitivityLevel": "extreme"}})
    assert response.status_code == 422


# --- Content ---


def test_submit_and_fetch_content(client):
    response = client.post("/v1/content", json={"text": "I love it", "source": "Forum"})
    assert response.status_code == 201
    item = response.json()
    assert item["status"] == "approved"
    assert item["categories"] == ["positive"]
    assert item["source"] == "Forum"
    assert item["moderated_by"] == "AI System"

    fetched = client.get(f"/v1/content/{item['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == item

    activity = client.get("/v1/activity").json()
    assert activity[0]["action"] == "New content approved (Forum)"


def test_submit_uses_default_source(client):
    item = client.post("/v1/content", json={"text": "hello"}).json()
    assert item["source"] == "Website"


def test_submit_rejects_blank_text(client):
    response = client.post("/v1/content", json={"text": "   "})
    assert response.status_code == 422
    assert client.get("/v1/content").json() == []


def test_list_content_filters(client):
    client.post("/v1/content", json={"text": "Awful support"})
    client.post("/v1/content", json={"text": "Great support"})

    flagged = client.get("/v1/content", params={"status": "flagged"}).json()
    assert [item["content"] for item in flagged] == ["Awful support"]

    searched = client.get("/v1/content", params={"search": "GREAT"}).json()
    assert [item["content"] for item in searched] == ["Great support"]

    every = client.get("/v1/content").json()
    assert client.get("/v1/content", params={"status": "all"}).json() == every
    assert client.get("/v1/content?status=").json() == every
    assert len(every) == 2

    rejected = client.get("/v1/content", params={"status": "bogus"})
    assert rejected.status_code == 422
    assert "bogus" in rejected.json()["detail"]


def test_export_downloads_filtered_content(client):
    client.post("/v1/content", json={"text": "Awful support"})
    client.post("/v1/content", json={"text": "Great support"})

    response = client.get("/v1/content/export", params={"status": "flagged"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.headers["content-disposition"] == 'attachment; filename="moderated-content.json"'
    assert [item["content"] for item in response.json()] == ["Awful support"]

    everything = client.get("/v1/content/export", params={"status": "all"}).json()
    assert everything == client.get("/v1/content").json()

    assert client.get("/v1/content/export", params={"status": "bogus"}).status_code == 422


def test_manual_status_update(client):
    item = client.post("/v1/content", json={"text": "Awful support"}).json()

    response = client.post(
        f"/v1/content/{item['id']}/status",
        json={"status": "approved", "moderator": "Moderator 1"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["moderated_by"] == "Moderator 1"

    assert client.post(f"/v1/content/{item['id']}/status", json={"status": "pending"}).status_code == 422
    assert client.post("/v1/content/missing/status", json={"status": "flagged"}).status_code == 404
    assert client.get("/v1/content/missing").status_code == 404


# --- Settings ---


def test_settings_round_trip(client):
    current = client.get("/v1/settings").json()
    assert current["sensitivity_level"] == "medium"
    assert current["auto_moderation"] is True

    response = client.put(
        "/v1/settings",
        json={"sensitivityLevel": "low", "autoModeration": False, "categories": {"hate": False}},
    )
    assert response.status_code == 200
    updated = client.get("/v1/settings").json()
    assert updated["sensitivity_level"] == "low"
    assert updated["auto_moderation"] is False
    assert updated["categories"] == {"hate": False}

    item = client.post("/v1/content", json={"text": "Awful support"}).json()
    assert item["status"] == "pending"
    assert item["moderated_by"] is None


# --- Users ---


def test_user_endpoints(client):
    created = client.post("/v1/users", json={"name": "Dana", "role": "moderator"})
    assert created.status_code == 201
    user = created.json()
    assert user["avatar"].startswith("/placeholder.svg")

    assert client.get("/v1/users").json() == [user]

    patched = client.patch(f"/v1/users/{user['id']}", json={"role": "admin"})
    assert patched.status_code == 200
    assert patched.json()["role"] == "admin"
    assert patched.json()["name"] == "Dana"

    assert client.delete(f"/v1/users/{user['id']}").status_code == 204
    assert client.get("/v1/users").json() == []

    assert client.patch("/v1/users/missing", json={"name": "x"}).status_code == 404
    assert client.delete("/v1/users/missing").status_code == 404
    assert client.post("/v1/users", json={"name": "Eve", "role": "owner"}).status_code == 422


# --- Reporting ---


def test_stats_and_analytics(client):
    client.post("/v1/content", json={"text": "Awful support"})
    client.post("/v1/content", json={"text": "Great support"})

    stats = client.get("/v1/stats").json()
    assert stats["total"] == 2
    assert stats["flagged"] == 1
    assert stats["approved"] == 1
    assert stats["flagged_pct"] == 50

    analytics = client.get("/v1/analytics").json()
    assert {entry["name"] for entry in analytics["categories"]} == {"negative", "positive"}
    assert sum(entry["value"] for entry in analytics["confidence"]) == 2


# --- Operations ---


def test_health_and_ready(client):
    assert client.get("/v1/health").json() == {"status": "healthy"}
    ready = client.get("/v1/ready")
    assert ready.status_code == 200
    assert ready.json() == {"status": "ready", "classifier_circuit": None}


def test_metrics_endpoint(client):
    client.post("/v1/classify", json={"text": "good"})
    client.get("/v1/content/does-not-exist")

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "moderation_classifications_total" in response.text
    assert 'route="/v1/content/{content_id}"' in response.text
    assert "does-not-exist" not in response.text


def test_classifier_circuit_debug_endpoints(client, dashboard):
    assert client.get("/debug/classifier-circuit").status_code == 404

    dashboard._strategies[StrategyKind.MODEL_BACKED] = ModelBackedStrategy(base_url="http://classifier:8000")

    opened = client.post("/debug/classifier-circuit/open")
    assert opened.status_code == 200
    assert opened.json()["state"] == "open"
    assert client.get("/debug/classifier-circuit").json()["classifier_url"] == "http://classifier:8000"
    assert client.get("/v1/ready").json()["classifier_circuit"] == "open"

    refused = client.post(
        "/v1/classify",
        json={"text": "hello", "config": {"strategy": "model_backed"}},
    )
    assert refused.status_code == 502
    assert "circuit open" in refused.json()["detail"]

    closed = client.post("/debug/classifier-circuit/close")
    assert closed.json()["state"] == "closed"
    assert client.get("/v1/ready").json()["classifier_circuit"] == "closed"


def test_lifespan_seeds_demo_dashboard():
    with TestClient(app) as test_client:
        assert len(test_client.get("/v1/content").json()) == 5
        assert len(test_client.get("/v1/users").json()) == 3
