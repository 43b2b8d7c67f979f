"""ElevenLabs text-to-speech.

Flow:
- POST the text to ElevenLabs and stream back MPEG audio
- Write it under AUDIO_DIR with the caller-supplied filename
- Return the public URL Twilio can <Play> (served by the /audio mount)
"""

from __future__ import annotations

import os
import uuid
from typing import Optional

import httpx
from starlette.concurrency import run_in_threadpool

from app.config import config
from app.errors import AudioStorageError, SynthesisError
from app.logging_config import get_logger

logger = get_logger(__name__)

AUDIO_ROUTE = "/audio"


def unique_audio_filename(prefix: str, call_sid: str = "") -> str:
    """e.g. tts-CA123-<uuid4>.mpeg"""
    parts = [prefix]
    if call_sid:
        parts.append(call_sid)
    parts.append(str(uuid.uuid4()))
    return "-".join(parts) + ".mpeg"


def public_audio_url(filename: str) -> str:
    return f"{config.BASE_URL.rstrip('/')}{AUDIO_ROUTE}/{filename}"


def _write_audio(path: str, audio: bytes) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(audio)


class ElevenLabsTTS:
    """Thin async client for the ElevenLabs text-to-speech endpoint."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def synthesize(self, text: str, filename: str, voice_id: Optional[str] = None) -> str:
        """
        Convert text to speech and save it as an MPEG file.

        Args:
            text: Text to speak (must be non-empty)
            filename: Output filename, e.g. from unique_audio_filename()
            voice_id: ElevenLabs voice; defaults to ELEVENLABS_VOICE_ID

        Returns:
            Public URL of the generated audio file

        Raises:
            SynthesisError: missing configuration or the ElevenLabs request failed
            AudioStorageError: the audio could not be written to disk
        """
        voice_id = voice_id or config.ELEVENLABS_VOICE_ID
        if not (config.ELEVENLABS_API_KEY and voice_id and config.BASE_URL):
            raise SynthesisError("Missing required ElevenLabs configuration (API key, voice ID, or base URL).")
        if not text or not text.strip():
            raise SynthesisError("text cannot be empty.")
        if not filename or not filename.strip():
            raise SynthesisError("filename cannot be empty.")

        url = f"{config.ELEVENLABS_BASE_URL.rstrip('/')}/v1/text-to-speech/{voice_id}/stream"
        headers = {"xi-api-key": config.ELEVENLABS_API_KEY, "Content-Type": "application/json", "Accept": "audio/mpeg"}
        payload = {"text": text, "model_id": config.ELEVENLABS_MODEL_ID}

        logger.info("tts_requested", voice_id=voice_id, filename=filename, text_preview=text[:50])

        try:
            async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS, transport=self._transport) as client:
                async with client.stream("POST", url, json=payload, headers=headers) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        raise SynthesisError(
                            f"ElevenLabs TTS failed ({response.status_code}): "
                            f"{body.decode('utf-8', errors='replace').strip()[:200]}",
                            status_code=response.status_code,
                        )
                    chunks = [chunk async for chunk in response.aiter_bytes()]
        except httpx.HTTPError as e:
            raise SynthesisError(f"Error generating TTS audio: {e}") from e

        audio = b"".join(chunks)
        if not audio:
            raise SynthesisError("ElevenLabs returned no audio.")

        path = os.path.join(config.AUDIO_DIR, filename)
        try:
            await run_in_threadpool(_write_audio, path, audio)
        except OSError as e:
            raise AudioStorageError(f"Error writing TTS audio file: {e}") from e

        logger.info("tts_saved", filename=filename, bytes=len(audio))
        return public_audio_url(filename)


tts_client = ElevenLabsTTS()


async def synthesize(text: str, filename: str) -> str:
    """Module-level entry point used by the call handlers."""
    return await tts_client.synthesize(text, filename)
