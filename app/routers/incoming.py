from fastapi import APIRouter, Request
from fastapi.responses import Response

from app import tts_service
from app.call_log import UNKNOWN_CALL_SID, call_logger
from app.errors import AudioStorageError, InternalServerError, SynthesisError
from app.logging_config import bind_call_context, logger
from app.models import SpokenOutput
from app.prompts import get_caller_text
from app.twiml_builder import build_error_twiml, build_reminder_twiml, media_stream_url

router = APIRouter(tags=["Incoming"])


# POST /incoming-call
# Gets: Twilio form fields (CallSid, From, To, ...)
# Returns: TwiML (application/xml), always HTTP 200
# Example:
#   curl -X POST http://localhost:8000/incoming-call -d 'CallSid=CAxxx&From=%2B1555&To=%2B1666'
@router.post("/incoming-call")
async def incoming_call(request: Request):
    """A patient called one of our numbers: play the reminder and start the conversation."""

    form_data = await request.form()
    call_sid = form_data.get("CallSid", "")
    bind_call_context(call_sid)
    from_number = form_data.get("From", "")
    to_number = form_data.get("To", "")

    logger.info("incoming_call", call_sid=call_sid, from_number=from_number, to_number=to_number)

    try:
        text = get_caller_text("reminder")
        try:
            audio_url = await tts_service.synthesize(
                text, tts_service.unique_audio_filename("incoming-reminder", call_sid)
            )
        except (SynthesisError, AudioStorageError) as e:
            logger.warning("tts_failed_using_say", call_sid=call_sid, error=str(e))
            await call_logger.error(call_sid or UNKNOWN_CALL_SID, e)
            audio_url = None

        await call_logger.event(
            call_sid or UNKNOWN_CALL_SID,
            {
                "event": "call_incoming_received",
                "status": "Incoming call received and processing.",
                "from": from_number,
                "to": to_number,
                "ttsAudioUrl": audio_url,
            },
        )

        twiml = build_reminder_twiml(
            call_sid,
            media_stream_url(request.headers.get("host", "")),
            SpokenOutput(text=text, audio_url=audio_url),
            fallback=get_caller_text("incoming_fallback"),
        )
        return Response(content=twiml, media_type="application/xml")

    except Exception as e:
        logger.exception("incoming_call_failed", call_sid=call_sid, from_number=from_number)
        await call_logger.error(
            call_sid or UNKNOWN_CALL_SID,
            InternalServerError(f"Error processing incoming call webhook for {call_sid}: {e}"),
        )
        return Response(
            content=build_error_twiml(get_caller_text("incoming_error")),
            media_type="application/xml",
            status_code=200,
        )
