"""Structured per-call log store and the best-effort sink in front of it.

Records are appended as JSON lines, one file per CallSid:

    <CALL_LOG_DIR>/logs/<CallSid>.jsonl     events (turns, transcripts, call lifecycle)
    <CALL_LOG_DIR>/errors/<CallSid>.jsonl   error reports

Webhook handlers never talk to the store directly. They go through
`CallLogger`, which swallows and reports store failures so a broken log
store can never fail a call.
"""

from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, List, Optional, Union

from starlette.concurrency import run_in_threadpool

from app.config import config
from app.errors import LogStoreError, error_record
from app.logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_CALL_SID = "unknown_sid_error"


def _safe_name(call_sid: str) -> str:
    return "".join(ch for ch in (call_sid or "") if ch.isalnum() or ch in "-_")


class CallLogStore:
    """Append-only JSONL store keyed by CallSid."""

    def __init__(self, base_dir: Optional[str] = None):
        self._base_dir = base_dir

    @property
    def base_dir(self) -> str:
        return self._base_dir or config.CALL_LOG_DIR

    def _path(self, kind: str, call_sid: str) -> str:
        return os.path.join(self.base_dir, kind, f"{_safe_name(call_sid)}.jsonl")

    def _append(self, path: str, record: Dict[str, Any]) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

    async def log_event(self, call_sid: str, record: Dict[str, Any]) -> None:
        """
        Persist one structured event for a call.

        Raises:
            LogStoreError: invalid arguments or the write failed.
        """
        if not call_sid or not isinstance(call_sid, str):
            raise LogStoreError("log_event requires a valid call_sid string")
        if not isinstance(record, dict):
            raise LogStoreError(f"log_event for {call_sid} requires a dict record")

        entry = {"timestamp": int(time.time() * 1000), **record}
        try:
            await run_in_threadpool(self._append, self._path("logs", call_sid), entry)
        except OSError as e:
            raise LogStoreError(f"Error writing log for {call_sid}: {e}") from e

    async def log_error(self, call_sid: str, record: Dict[str, Any]) -> None:
        """Persist one error report for a call (or the placeholder key)."""
        if not call_sid or not isinstance(call_sid, str):
            call_sid = UNKNOWN_CALL_SID

        entry = {"timestamp": int(time.time() * 1000), **record}
        try:
            await run_in_threadpool(self._append, self._path("errors", call_sid), entry)
        except OSError as e:
            raise LogStoreError(f"Failed to write error log for {call_sid}: {e}") from e

    def read(self, kind: str, call_sid: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Read back records of `kind` ("logs" or "errors") for a call."""
        path = self._path(kind, call_sid)
        if not os.path.exists(path):
            return []
        with open(path, "r", encoding="utf-8") as f:
            lines = [line.strip() for line in f if line.strip()]
        if isinstance(limit, int) and limit > 0:
            lines = lines[-limit:]
        records: List[Dict[str, Any]] = []
        for line in lines:
            try:
                records.append(json.loads(line))
            except ValueError:
                continue
        return records


class CallLogger:
    """Best-effort sink: every method returns True/False and never raises."""

    def __init__(self, store: CallLogStore):
        self.store = store

    async def event(self, call_sid: str, record: Dict[str, Any]) -> bool:
        try:
            await self.store.log_event(call_sid, record)
            return True
        except Exception as e:
            logger.warning("call_log_write_failed", call_sid=call_sid, record_event=record.get("event"), error=str(e))
            return False

    async def error(self, call_sid: Optional[str], error: Union[BaseException, Dict[str, Any]]) -> bool:
        record = error_record(error) if isinstance(error, BaseException) else dict(error)
        logger.error(
            "call_error",
            call_sid=call_sid or UNKNOWN_CALL_SID,
            error_name=record.get("name"),
            error=record.get("message"),
        )
        try:
            await self.store.log_error(call_sid or UNKNOWN_CALL_SID, record)
            return True
        except Exception as e:
            logger.critical("call_error_log_write_failed", call_sid=call_sid, error=str(e), original=record.get("message"))
            return False


call_log_store = CallLogStore()
call_logger = CallLogger(call_log_store)
