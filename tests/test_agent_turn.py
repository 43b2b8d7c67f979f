"""Tests for the JSON turn endpoint used by scripts/text_chat.py."""

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_agent_turn_continue():
    resp = client.post("/agent/turn", json={"call_sid": "chat-1", "speech_text": "How much Aspirin?", "retry_count": 0})

    assert resp.status_code == 200
    data = resp.json()
    assert data["action"] == "continue"
    assert data["speak"]["text"] == "Great, thank you!"
    assert data["speak"]["audio_url"].startswith("https://example.test/audio/tts-chat-1-")
    assert data["next_retry_count"] == 0
    assert data["turn"] == 1


def test_agent_turn_silence_then_goodbye():
    first = client.post("/agent/turn", json={"call_sid": "chat-2"}).json()
    assert first["action"] == "retry"
    assert first["next_retry_count"] == 1

    second = client.post("/agent/turn", json={"call_sid": "chat-2", "speech_text": "bye", "retry_count": 1}).json()
    assert second["action"] == "terminate"
    assert "HANGUPNOW" not in second["speak"]["text"]


def test_agent_turn_validates_request():
    assert client.post("/agent/turn", json={"call_sid": ""}).status_code == 422
    assert client.post("/agent/turn", json={"call_sid": "x", "retry_count": -1}).status_code == 422
