from fastapi.testclient import TestClient

from app.config import Config
from app.main import app


client = TestClient(app)


def test_health_check():
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"


def test_health_ready_requires_twilio():
    resp = client.get("/health/ready")
    assert resp.status_code == 503

    checks = resp.json()
    assert checks["ready"] is False
    assert checks["twilio"] is False
    assert checks["openai"] is True
    assert checks["deepgram"] == "not_configured"


def test_health_ready_when_configured(monkeypatch):
    monkeypatch.setattr(Config, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(Config, "TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setattr(Config, "TWILIO_PHONE_NUMBER_TOLL_FREE", "+18005550000")

    resp = client.get("/health/ready")
    assert resp.status_code == 200
    assert resp.json()["ready"] is True


def test_health_info():
    resp = client.get("/health/info")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service"] == "medication-reminder"
    assert "configuration" in data
    assert "features" in data
    assert data["active_conversations"] == 0


def test_metrics_endpoint():
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "text/plain" in resp.headers.get("content-type", "")
    assert "api_requests_total" in resp.text
    assert "conversation_turns_total" in resp.text


def test_audio_files_are_served():
    import os

    os.makedirs(Config.AUDIO_DIR, exist_ok=True)
    with open(os.path.join(Config.AUDIO_DIR, "beep.mpeg"), "wb") as f:
        f.write(b"ID3beep")

    resp = client.get("/audio/beep.mpeg")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.content == b"ID3beep"

    assert client.get("/audio/missing.mpeg").status_code == 404
