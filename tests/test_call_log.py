import asyncio
import os

import pytest

from app.call_log import UNKNOWN_CALL_SID, CallLogger, CallLogStore
from app.errors import LogStoreError, SynthesisError


def test_log_event_appends_jsonl(tmp_path):
    store = CallLogStore(base_dir=str(tmp_path))

    asyncio.run(store.log_event("CA1", {"event": "call_initiated", "phoneNumber": "+1555"}))
    asyncio.run(store.log_event("CA1", {"event": "call_answered"}))

    assert os.path.exists(tmp_path / "logs" / "CA1.jsonl")
    records = store.read("logs", "CA1")
    assert [r["event"] for r in records] == ["call_initiated", "call_answered"]
    assert isinstance(records[0]["timestamp"], int)
    assert store.read("logs", "CA1", limit=1)[0]["event"] == "call_answered"


def test_log_event_rejects_missing_call_sid(tmp_path):
    store = CallLogStore(base_dir=str(tmp_path))

    with pytest.raises(LogStoreError):
        asyncio.run(store.log_event("", {"event": "x"}))
    with pytest.raises(LogStoreError):
        asyncio.run(store.log_event("CA1", "not a dict"))


def test_log_error_uses_placeholder_key(tmp_path):
    store = CallLogStore(base_dir=str(tmp_path))

    asyncio.run(store.log_error(None, {"name": "BadRequestError", "message": "bad"}))

    assert store.read("errors", UNKNOWN_CALL_SID)[0]["message"] == "bad"


def test_write_failure_raises_log_store_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = CallLogStore(base_dir=str(blocker))

    with pytest.raises(LogStoreError):
        asyncio.run(store.log_event("CA1", {"event": "x"}))


def test_sink_serializes_exceptions(tmp_path):
    store = CallLogStore(base_dir=str(tmp_path))
    sink = CallLogger(store)

    ok = asyncio.run(sink.error("CA1", SynthesisError("ElevenLabs TTS failed (401): unauthorized", status_code=401)))

    assert ok is True
    record = store.read("errors", "CA1")[0]
    assert record["name"] == "SynthesisError"
    assert record["status_code"] == 401
    assert record["is_operational"] is True
    assert "stack" in record


class BrokenStore:
    async def log_event(self, call_sid, record):
        raise LogStoreError("store offline")

    async def log_error(self, call_sid, record):
        raise OSError("disk gone")


def test_sink_never_raises():
    sink = CallLogger(BrokenStore())

    assert asyncio.run(sink.event("CA1", {"event": "call_answered"})) is False
    assert asyncio.run(sink.error("CA1", RuntimeError("boom"))) is False
