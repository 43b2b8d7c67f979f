"""Bridge between a Twilio media stream and a live transcription session.

Twilio sends JSON envelopes over the /live websocket:

    {"event": "connected", ...}
    {"event": "start", "start": {"callSid": "...", "streamSid": "...", "customParameters": {...}}}
    {"event": "media", "media": {"payload": "<base64 mu-law>"}}
    {"event": "stop", "stop": {...}}

(`type`, `callId` and `streamId` are accepted as aliases.)

Decoded audio is forwarded to the transcription session while it is open.
Final transcript fragments accumulate in memory and are written to the call
log once, when the transcription session closes.
"""

from __future__ import annotations

import base64
import binascii
import json
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from prometheus_client import Counter

from app.call_log import CallLogger, call_logger
from app.errors import BadRequestError, InternalServerError
from app.logging_config import bind_call_context, get_logger
from app.transcription.deepgram_session import DeepgramLiveSession

logger = get_logger(__name__)

UNKNOWN_CALL_SID = "unknown"
UNKNOWN_STREAM_SID = "unknown_streamsid"

transcripts_flushed = Counter("transcripts_flushed_total", "Final stream transcripts written to the call log")


class BridgeState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    RECEIVING = "receiving"
    CLOSING = "closing"
    CLOSED = "closed"
    ERRORED = "errored"


class TranscriptAccumulator:
    """Append-only buffer of final transcript fragments."""

    def __init__(self):
        self._text = ""

    def add(self, fragment: str) -> None:
        if fragment:
            self._text += fragment + " "

    @property
    def transcript(self) -> str:
        return self._text.strip()


class TranscriptionBridge:
    """One instance per media-stream websocket connection."""

    def __init__(
        self,
        sink: Optional[CallLogger] = None,
        session_factory: Optional[Callable[["TranscriptionBridge"], Any]] = None,
    ):
        self.sink = sink if sink is not None else call_logger
        self.call_sid = UNKNOWN_CALL_SID
        self.stream_sid = UNKNOWN_STREAM_SID
        self.state = BridgeState.CONNECTING
        self.accumulator = TranscriptAccumulator()
        self.frames_forwarded = 0
        self.frames_dropped = 0
        self._flushed = False
        self.session = (session_factory or DeepgramLiveSession)(self)

    async def start(self) -> None:
        """Open the transcription session."""
        await self.session.start()

    # --- transcription session events ---

    async def on_open(self) -> None:
        if self.state == BridgeState.CONNECTING:
            self.state = BridgeState.OPEN
        logger.info("transcription_session_opened", call_sid=self.call_sid)

    async def on_transcript(self, text: str, is_final: bool) -> None:
        if not is_final:
            logger.debug("transcript_interim", call_sid=self.call_sid, text=text)
            return
        if text:
            self.accumulator.add(text)
            logger.info("transcript_fragment", call_sid=self.call_sid, text=text)

    async def on_error(self, error: BaseException) -> None:
        if self.state in (BridgeState.OPEN, BridgeState.RECEIVING, BridgeState.CONNECTING):
            self.state = BridgeState.ERRORED
        await self.sink.error(
            self.call_sid,
            InternalServerError(f"Transcription session error: {error or type(error).__name__}"),
        )

    async def on_close(self) -> None:
        self.state = BridgeState.CLOSED
        logger.info("transcription_session_closed", call_sid=self.call_sid)
        await self._flush()

    async def _flush(self) -> None:
        if self._flushed:
            return
        self._flushed = True

        transcript = self.accumulator.transcript
        await self.sink.event(
            self.call_sid,
            {
                "event": "transcript_final",
                "streamId": self.stream_sid,
                "status": "Transcription complete.",
                "transcript": transcript,
            },
        )
        transcripts_flushed.inc()
        logger.info(
            "call_transcript_final",
            call_sid=self.call_sid,
            stream_sid=self.stream_sid,
            transcript=transcript,
        )

    # --- media stream messages ---

    async def handle_message(self, raw: Union[str, bytes]) -> None:
        """Process one websocket message. Bad messages are reported, never raised."""
        try:
            text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
            message = json.loads(text)
            if not isinstance(message, dict):
                raise ValueError("media stream message is not a JSON object")
        except (ValueError, UnicodeDecodeError) as e:
            logger.error("media_stream_message_invalid", call_sid=self.call_sid, error=str(e))
            await self.sink.error(self.call_sid, BadRequestError(f"Error processing media stream message: {e}"))
            return

        try:
            await self._dispatch(message)
        except (TypeError, AttributeError, KeyError, ValueError) as e:
            logger.error("media_stream_message_malformed", call_sid=self.call_sid, error=str(e))
            await self.sink.error(self.call_sid, BadRequestError(f"Malformed media stream message: {e}"))

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        event = message.get("event") or message.get("type")

        if event == "connected":
            logger.debug("media_stream_connected")
        elif event == "start":
            self._handle_start(message.get("start"))
        elif event == "media":
            await self._handle_media(message.get("media"))
        elif event == "stop":
            logger.info("media_stream_stopped", call_sid=self.call_sid, stream_sid=self.stream_sid)
            await self._finalize_session()
        else:
            logger.info("media_stream_event_unhandled", call_sid=self.call_sid, event_type=event)

    def _handle_start(self, start: Optional[Dict[str, Any]]) -> None:
        start = start if isinstance(start, dict) else {}
        params = start.get("customParameters") if isinstance(start.get("customParameters"), dict) else {}
        call_sid = start.get("callSid") or start.get("callId") or params.get("CallSid")
        stream_sid = start.get("streamSid") or start.get("streamId")

        if not call_sid or not stream_sid:
            logger.error("media_stream_start_missing_ids", start=start)
            return

        self.call_sid = call_sid
        self.stream_sid = stream_sid
        bind_call_context(call_sid, stream_sid=stream_sid)
        logger.info("media_stream_started", call_sid=call_sid, stream_sid=stream_sid)

    async def _handle_media(self, media: Optional[Dict[str, Any]]) -> None:
        payload = media.get("payload") if isinstance(media, dict) else None
        if not payload:
            logger.warning("media_without_payload", call_sid=self.call_sid)
            return

        try:
            audio = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("media_payload_invalid", call_sid=self.call_sid, error=str(e))
            return

        if not self.session.is_open:
            self.frames_dropped += 1
            logger.warning("media_dropped_session_not_open", call_sid=self.call_sid, state=self.state.value)
            return

        if await self.session.send(audio):
            if self.state == BridgeState.OPEN:
                self.state = BridgeState.RECEIVING
            self.frames_forwarded += 1
        else:
            self.frames_dropped += 1

    async def _finalize_session(self) -> None:
        if self.session.is_open:
            self.state = BridgeState.CLOSING
            await self.session.finalize()

    async def close(self) -> None:
        """Media stream connection went away: make sure the transcription session ends with it."""
        logger.info("media_stream_connection_closed", call_sid=self.call_sid)
        if self.state != BridgeState.CLOSED:
            if self.session.is_open:
                self.state = BridgeState.CLOSING
            await self.session.aclose()
