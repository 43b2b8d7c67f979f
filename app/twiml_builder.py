"""TwiML generation utilities.

Handles:
- XML escaping for all dynamic content
- Proper URL escaping for action attributes
- Consistent <Gather> settings for speech collection
- Rendering Turn Engine directives into <Play>/<Say> + <Gather>/<Hangup>
"""

import re
import unicodedata
import xml.sax.saxutils as saxutils
from typing import Optional

from app.config import config
from app.models import SpokenOutput, TurnAction, TurnDirective
from app.prompts import get_caller_text

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'


def sanitize_say_text(text: str, fallback: Optional[str] = None) -> str:
    """
    Sanitize text for Twilio <Say> tags.

    - Normalizes Unicode (NFKC)
    - Removes control characters (keeps basic whitespace)
    - Collapses whitespace
    - Escapes for XML
    - Returns fallback if empty
    """
    if not text:
        text = fallback or get_caller_text("empty_issue")

    t = unicodedata.normalize("NFKC", text)
    t = "".join(ch for ch in t if ch in ["\n", "\t"] or ord(ch) >= 32)
    t = re.sub(r"\s+", " ", t).strip()

    if not t:
        t = fallback or get_caller_text("empty_issue")

    return saxutils.escape(t)


def _attr(value: str) -> str:
    return saxutils.escape(value, {'"': "&quot;"})


def _url(path: str) -> str:
    return f"{config.BASE_URL.rstrip('/')}{path}"


def beep_url() -> str:
    return _url("/audio/beep.mpeg")


def handle_speech_url(retry: int) -> str:
    return _url(f"/handle-speech?retry={retry}")


def media_stream_url(host: str) -> str:
    """wss:// URL of the /live media-stream endpoint on the host Twilio reached us at."""
    return f"wss://{host}/live"


def _speak_xml(speak: SpokenOutput) -> str:
    if speak.audio_url:
        return f"<Play>{_attr(speak.audio_url)}</Play>"
    return f"<Say>{sanitize_say_text(speak.text)}</Say>"


def _gather_xml(retry: int, speech_timeout: Optional[int] = None) -> str:
    timeout = speech_timeout if speech_timeout is not None else config.GATHER_SPEECH_TIMEOUT
    action = _attr(handle_speech_url(retry))
    return (
        f'<Gather input="speech" speechTimeout="{timeout}" maxSpeechTime="{config.GATHER_MAX_SPEECH_TIME}" '
        f'action="{action}" method="POST" actionOnEmptyResult="true">'
        f"<Play>{_attr(beep_url())}</Play>"
        "</Gather>"
    )


def _stream_xml(stream_url: str, call_sid: str) -> str:
    return (
        "<Start>"
        f'<Stream url="{_attr(stream_url)}">'
        f'<Parameter name="CallSid" value="{_attr(call_sid)}"/>'
        "</Stream>"
        "</Start>"
    )


def _response(*parts: str) -> str:
    body = "\n    ".join(p for p in parts if p)
    if not body:
        return f"{XML_HEADER}\n<Response/>"
    return f"{XML_HEADER}\n<Response>\n    {body}\n</Response>"


def build_retry_twiml(next_retry: int, prompt: Optional[str] = None) -> str:
    """Ask the caller to repeat; if they stay silent the call ends."""
    return _response(
        f"<Say>{sanitize_say_text(prompt or get_caller_text('retry_prompt'))}</Say>",
        _gather_xml(next_retry, speech_timeout=1),
        f"<Say>{sanitize_say_text(get_caller_text('retry_fallback'))}</Say>",
        "<Hangup/>",
    )


def build_continue_twiml(speak: SpokenOutput) -> str:
    """Speak the reply, then collect the next utterance with the retry count reset."""
    return _response(
        _speak_xml(speak),
        _gather_xml(0),
        f"<Say>{sanitize_say_text(get_caller_text('continue_fallback'))}</Say>",
        "<Hangup/>",
    )


def build_hangup_twiml(speak: SpokenOutput) -> str:
    """Speak (or play) a final message and hang up."""
    return _response(_speak_xml(speak), "<Hangup/>")


def build_error_twiml(message: Optional[str] = None) -> str:
    return _response(f"<Say>{sanitize_say_text(message or get_caller_text('turn_error'))}</Say>", "<Hangup/>")


def build_directive_twiml(directive: TurnDirective) -> str:
    """Render a Turn Engine directive."""
    if directive.action == TurnAction.RETRY:
        return build_retry_twiml(directive.next_retry_count or 1, prompt=directive.speak.text)
    if directive.action == TurnAction.CONTINUE:
        return build_continue_twiml(directive.speak)
    return build_hangup_twiml(directive.speak)


def build_reminder_twiml(
    call_sid: str,
    stream_url: str,
    speak: SpokenOutput,
    fallback: Optional[str] = None,
) -> str:
    """
    Open a call: start the media stream, play the reminder, collect the first answer.

    Args:
        call_sid: Twilio CallSid, passed to the stream as a custom parameter
        stream_url: wss:// URL of the /live media-stream endpoint
        speak: Reminder audio (or text when synthesis failed)
        fallback: Said before hanging up if the first <Gather> times out
    """
    parts = [
        _stream_xml(stream_url, call_sid),
        _speak_xml(speak),
        _gather_xml(0),
    ]
    if fallback:
        parts.append(f"<Say>{sanitize_say_text(fallback)}</Say>")
        parts.append("<Hangup/>")
    return _response(*parts)


def build_voicemail_twiml(speak: SpokenOutput) -> str:
    return _response(_speak_xml(speak))


def build_empty_twiml() -> str:
    return _response()


def build_bare_hangup_twiml() -> str:
    return _response("<Hangup/>")
