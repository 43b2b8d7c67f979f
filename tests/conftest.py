import pytest


class RecordingSink:
    """In-memory stand-in for the call log sink."""

    def __init__(self):
        self.events = []
        self.errors = []

    async def event(self, call_sid, record):
        self.events.append((call_sid, record))
        return True

    async def error(self, call_sid, error):
        self.errors.append((call_sid, error))
        return True


class FakeTranscriptionSession:
    """Transcription session double driven directly by tests."""

    def __init__(self, listener, open_on_start=True):
        self.listener = listener
        self.open_on_start = open_on_start
        self.is_open = False
        self.sent = []
        self.finalized = False
        self.close_count = 0

    async def start(self):
        if self.open_on_start:
            self.is_open = True
            await self.listener.on_open()

    async def send(self, audio):
        if not self.is_open:
            return False
        self.sent.append(audio)
        return True

    async def finalize(self):
        self.finalized = True

    async def emit_transcript(self, text, is_final=True):
        await self.listener.on_transcript(text, is_final)

    async def emit_close(self):
        if self.close_count:
            return
        self.close_count += 1
        self.is_open = False
        await self.listener.on_close()

    async def aclose(self):
        self.finalized = True
        await self.emit_close()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def fake_session_cls():
    return FakeTranscriptionSession


@pytest.fixture
def fake_session_factory():
    """Returns (factory, sessions): the factory builds FakeTranscriptionSession and records it."""
    sessions = []

    def _factory(listener, **kwargs):
        session = FakeTranscriptionSession(listener, **kwargs)
        sessions.append(session)
        return session

    return _factory, sessions


@pytest.fixture(autouse=True)
def _safe_test_config(monkeypatch, tmp_path, request):
    """Force deterministic, offline-safe config for tests.

    The repo loads .env on import; these overrides prevent real network calls
    (OpenAI/ElevenLabs/Twilio/Deepgram) and keep every file the app writes
    under tmp_path.
    """
    from app.config import Config, config

    # Config values are class attributes and the has_* checks read the class,
    # so patch the class; the instance falls through to it.
    monkeypatch.setattr(Config, "BASE_URL", "https://example.test")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "test")
    monkeypatch.setattr(Config, "OPENAI_MODEL", "gpt-4o-mini")

    # Twilio "not configured" unless a test opts in.
    monkeypatch.setattr(Config, "TWILIO_ACCOUNT_SID", "")
    monkeypatch.setattr(Config, "TWILIO_AUTH_TOKEN", "")
    monkeypatch.setattr(Config, "TWILIO_PHONE_NUMBER_TOLL_FREE", "")
    monkeypatch.setattr(Config, "TWILIO_PHONE_NUMBER_PAID", "")
    monkeypatch.setattr(Config, "TWILIO_SYNC_INCOMING_WEBHOOKS", False)

    monkeypatch.setattr(Config, "ELEVENLABS_API_KEY", "")
    monkeypatch.setattr(Config, "ELEVENLABS_VOICE_ID", "")
    monkeypatch.setattr(Config, "DEEPGRAM_API_KEY", "")

    monkeypatch.setattr(Config, "AUDIO_DIR", str(tmp_path / "public"))
    monkeypatch.setattr(Config, "CALL_LOG_DIR", str(tmp_path / "call_logs"))
    monkeypatch.setattr(Config, "HISTORY_TTL_SECONDS", 3600)

    from app.history_store import history_store

    history_store.clear()

    # Offline deterministic LLM behavior for endpoint/integration tests.
    # IMPORTANT: do not patch `app.llm_agent` for `tests/test_llm_agent.py`, which
    # unit-tests the real implementation by mocking the OpenAI client.
    if "test_llm_agent.py" not in request.node.nodeid:
        from app import llm_agent as llm_agent_module

        async def _fake_generate_response(speech_text, history):
            text = (speech_text or "").strip()
            if "bye" in text.lower():
                reply = f"Take care, goodbye. {llm_agent_module.HANGUP_SENTINEL}"
            elif not text:
                reply = "Sorry, I didn't quite catch that."
            else:
                reply = "Great, thank you!"
            user_text = text or llm_agent_module.NO_SPEECH_PLACEHOLDER
            return reply, [
                *history,
                {"role": "user", "content": user_text},
                {"role": "assistant", "content": reply},
            ]

        monkeypatch.setattr(llm_agent_module, "generate_response", _fake_generate_response)

    # Offline TTS: pretend every synthesis succeeded.
    from app import tts_service as tts_module

    async def _fake_synthesize(text, filename):
        return tts_module.public_audio_url(filename)

    monkeypatch.setattr(tts_module, "synthesize", _fake_synthesize)

    yield config

    history_store.clear()
