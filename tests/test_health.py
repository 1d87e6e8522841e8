from fastapi.testclient import TestClient

from helpdesk_ai.main import app
from helpdesk_ai.settings import settings


def test_health_endpoint(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "enable_agent_chat", True)

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200

    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["app"] == settings.app_name
    assert isinstance(payload["version"], str)
    assert isinstance(payload["uptime_seconds"], (int, float))
    assert payload["ai_configured"] is False
    assert payload["features"]["agent_chat"] is True
    assert payload["features"]["solution_recommender"] is settings.enable_solution_recommender
