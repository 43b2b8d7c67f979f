"""Deepgram live transcription over a websocket.

One session per Twilio media stream. Audio goes up as raw mu-law 8 kHz
frames; Deepgram answers with JSON `Results` messages. Lifecycle events are
reported to a listener (the TranscriptionBridge):

    on_open()                     connected, ready for audio
    on_transcript(text, is_final) a transcript fragment
    on_error(error)               connection or protocol failure
    on_close()                    session over; emitted exactly once
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional, Protocol
from urllib.parse import urlencode

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from app.config import config
from app.logging_config import get_logger

logger = get_logger(__name__)

CLOSE_TIMEOUT_SECONDS = 5.0


class SessionListener(Protocol):
    async def on_open(self) -> None: ...
    async def on_transcript(self, text: str, is_final: bool) -> None: ...
    async def on_error(self, error: BaseException) -> None: ...
    async def on_close(self) -> None: ...


def build_listen_url() -> str:
    params = {
        "model": config.DEEPGRAM_MODEL,
        "encoding": "mulaw",
        "sample_rate": 8000,
        "channels": 1,
        "endpointing": config.DEEPGRAM_ENDPOINTING_MS,
        "interim_results": "true",
        "smart_format": "true",
    }
    return f"{config.DEEPGRAM_LISTEN_URL}?{urlencode(params)}"


class DeepgramLiveSession:
    """Streaming transcription session backed by Deepgram's /v1/listen websocket."""

    def __init__(self, listener: SessionListener, api_key: Optional[str] = None, connector=connect):
        self.listener = listener
        self._api_key = api_key
        self._connect = connector
        self._ws: Any = None
        self._receiver: Optional[asyncio.Task] = None
        self._open = False
        self._finalizing = False
        self._close_emitted = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def start(self) -> None:
        api_key = self._api_key or config.DEEPGRAM_API_KEY
        if not api_key:
            await self.listener.on_error(RuntimeError("DEEPGRAM_API_KEY is not set"))
            await self._emit_close()
            return

        logger.info("deepgram_connecting", model=config.DEEPGRAM_MODEL)
        try:
            self._ws = await self._connect(
                build_listen_url(),
                additional_headers={"Authorization": f"Token {api_key}"},
            )
        except Exception as e:
            await self.listener.on_error(e)
            await self._emit_close()
            return

        self._open = True
        await self.listener.on_open()
        self._receiver = asyncio.create_task(self._receive())

    async def send(self, audio: bytes) -> bool:
        """Forward one audio frame. Returns False if the session can no longer take audio."""
        if not self._open or self._finalizing:
            return False
        try:
            await self._ws.send(audio)
            return True
        except ConnectionClosed as e:
            logger.warning("deepgram_send_after_close", code=e.rcvd.code if e.rcvd else None)
            return False

    async def finalize(self) -> None:
        """Ask Deepgram to flush pending audio and close the stream."""
        if not self._open or self._finalizing:
            return
        self._finalizing = True
        try:
            await self._ws.send(json.dumps({"type": "Finalize"}))
            await self._ws.send(json.dumps({"type": "CloseStream"}))
        except ConnectionClosed:
            logger.info("deepgram_already_closed")

    async def aclose(self, timeout: float = CLOSE_TIMEOUT_SECONDS) -> None:
        """Finalize, wait for Deepgram to close, and force-close if it does not."""
        await self.finalize()
        if self._receiver is not None and not self._receiver.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._receiver), timeout)
            except asyncio.TimeoutError:
                logger.warning("deepgram_close_timeout", timeout=timeout)
                if self._ws is not None:
                    await self._ws.close()
                self._receiver.cancel()
                try:
                    await self._receiver
                except asyncio.CancelledError:
                    pass
        await self._emit_close()

    async def _receive(self) -> None:
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    continue
                await self._dispatch(message)
        except ConnectionClosedOK:
            pass
        except Exception as e:
            await self.listener.on_error(e)
        finally:
            self._open = False
            await self._emit_close()

    async def _dispatch(self, message: str) -> None:
        try:
            data = json.loads(message)
        except ValueError:
            logger.warning("deepgram_unparseable_message", preview=message[:100])
            return

        msg_type = data.get("type")
        if msg_type == "Results":
            alternatives = (data.get("channel") or {}).get("alternatives") or [{}]
            text = alternatives[0].get("transcript") or ""
            await self.listener.on_transcript(text, bool(data.get("is_final")))
        elif msg_type == "Error":
            await self.listener.on_error(RuntimeError(data.get("description") or data.get("message") or "Deepgram error"))
        else:
            logger.debug("deepgram_message", type=msg_type)

    async def _emit_close(self) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        self._open = False
        await self.listener.on_close()
