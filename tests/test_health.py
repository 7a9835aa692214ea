"""Tests for the health, root and questionnaire endpoints."""

from app.core.structured_logging import APP_VERSION, SERVICE_NAME


def test_health_check(client, feedback_store):
    feedback_store.ensure_storage()
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == APP_VERSION
    assert data["service"] == SERVICE_NAME
    assert data["uptime_s"] >= 0
    assert data["storage"] == {"feedback_file": True, "records": 0, "voice_clips": 0, "voice_bytes": 0}


def test_health_degraded_without_data_file(client):
    data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["storage"]["feedback_file"] is False


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "running"
    assert data["health"] == "/api/health"


def test_questionnaire(client):
    response = client.get("/api/questionnaire")
    assert response.status_code == 200
    sections = response.json()["data"]
    assert [s["id"] for s in sections] == [
        "product_perception",
        "pricing_value",
        "brand_image",
        "customer_experience",
        "communication",
        "shopping_behavior",
        "competitor_comparison",
    ]
    assert sum(len(s["questions"]) for s in sections) == 11
    assert sections[2]["title"] == "Brand Image & Awareness"
