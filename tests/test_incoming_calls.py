from fastapi.testclient import TestClient

from app.call_log import call_log_store
from app.errors import SynthesisError
from app.main import app
from app.routers import incoming

client = TestClient(app)


def test_incoming_call_plays_reminder_and_gathers():
    resp = client.post("/incoming-call", data={"CallSid": "CA_IN", "From": "+15550001111", "To": "+18005550000"})

    assert resp.status_code == 200
    assert "application/xml" in resp.headers["content-type"]
    body = resp.text
    assert '<Stream url="wss://testserver/live">' in body
    assert "<Play>https://example.test/audio/incoming-reminder-CA_IN-" in body
    assert "handle-speech?retry=0" in body
    assert "<Say>If you need assistance, please call back. Goodbye.</Say>" in body
    assert body.rstrip().endswith("<Hangup/>\n</Response>")

    record = call_log_store.read("logs", "CA_IN")[0]
    assert record["event"] == "call_incoming_received"
    assert record["from"] == "+15550001111"
    assert record["ttsAudioUrl"].startswith("https://example.test/audio/incoming-reminder-CA_IN-")


def test_incoming_call_without_audio_says_reminder(monkeypatch):
    async def _fail(text, filename):
        raise SynthesisError("Missing required ElevenLabs configuration (API key, voice ID, or base URL).")

    monkeypatch.setattr("app.tts_service.synthesize", _fail)

    resp = client.post("/incoming-call", data={"CallSid": "CA_IN2", "From": "+1", "To": "+2"})

    assert resp.status_code == 200
    assert "<Say>Hello, this is a reminder" in resp.text
    assert "<Gather" in resp.text


def test_incoming_call_error_returns_apology_twiml(monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("template exploded")

    monkeypatch.setattr(incoming, "build_reminder_twiml", _broken)

    resp = client.post("/incoming-call", data={"CallSid": "CA_IN3", "From": "+1", "To": "+2"})

    assert resp.status_code == 200
    assert "We encountered an error processing your call" in resp.text
    assert "<Hangup/>" in resp.text
    errors = call_log_store.read("errors", "CA_IN3")
    assert errors[0]["name"] == "InternalServerError"
    assert "template exploded" in errors[0]["message"]
