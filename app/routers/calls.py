"""Outbound reminder call lifecycle: place the call, answer it, converse, wrap up."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter

from app import telephony, tts_service
from app.answer_classification import AnsweredBy
from app.call_log import UNKNOWN_CALL_SID, call_logger
from app.conversation_engine import conversation_engine, parse_retry_count
from app.errors import AudioStorageError, BadRequestError, InternalServerError, SynthesisError, TelephonyError
from app.history_store import history_store
from app.logging_config import bind_call_context, logger
from app.models import CallRequest, SpokenOutput
from app.prompts import get_caller_text, voicemail_text
from app.twiml_builder import (
    build_bare_hangup_twiml,
    build_directive_twiml,
    build_empty_twiml,
    build_error_twiml,
    build_reminder_twiml,
    build_voicemail_twiml,
    media_stream_url,
)

router = APIRouter(tags=["Calls"])

calls_initiated = Counter("calls_initiated_total", "Total reminder calls initiated")
sms_fallbacks = Counter("sms_fallbacks_total", "Unanswered-call SMS messages sent")


def _twiml(xml: str) -> Response:
    return Response(content=xml, media_type="application/xml")


async def _speak(text: str, filename: str, call_sid: str) -> SpokenOutput:
    """Synthesize `text`; on failure report it and fall back to <Say>."""
    try:
        audio_url = await tts_service.synthesize(text, filename)
        return SpokenOutput(text=text, audio_url=audio_url)
    except (SynthesisError, AudioStorageError) as e:
        logger.warning("tts_failed_using_say", call_sid=call_sid, error=str(e))
        await call_logger.error(call_sid, e)
        return SpokenOutput(text=text)


# POST /call
# Gets: JSON body {phoneNumber: str}
# Returns: {CallSid, message} or 500 {message}
# Example:
#   curl -X POST http://localhost:8000/call -H 'Content-Type: application/json' -d '{"phoneNumber": "+15551234567"}'
@router.post("/call")
async def initiate_call(request: CallRequest):
    """Place an outbound medication reminder call."""

    try:
        call_sid = await telephony.place_reminder_call(request.phoneNumber)
    except TelephonyError as e:
        logger.error("call_initiation_failed", phone_number=request.phoneNumber, error=e.message)
        await call_logger.error(UNKNOWN_CALL_SID, e)
        return JSONResponse(status_code=500, content={"message": "Failed to initiate call."})

    calls_initiated.inc()
    bind_call_context(call_sid)
    logger.info("call_initiated", call_sid=call_sid, phone_number=request.phoneNumber)
    await call_logger.event(
        call_sid,
        {"event": "call_initiated", "status": "Call Initiated.", "phoneNumber": request.phoneNumber},
    )

    return {"CallSid": call_sid, "message": "Call initiated."}


# POST /answered
# Gets: Twilio form fields (CallSid, AnsweredBy, ...)
# Returns: TwiML (application/xml)
# Example:
#   curl -X POST http://localhost:8000/answered -d 'CallSid=CAxxx&AnsweredBy=human'
@router.post("/answered")
async def call_answered(request: Request):
    """Route the answered call by who (or what) picked up."""

    form_data = await request.form()
    call_sid = form_data.get("CallSid", "")
    bind_call_context(call_sid)
    answered_by = AnsweredBy.decode(form_data.get("AnsweredBy"))

    logger.info("call_answered_webhook", call_sid=call_sid, answered_by=str(answered_by))

    try:
        if answered_by.is_human:
            speak = await _speak(
                get_caller_text("reminder"),
                tts_service.unique_audio_filename("reminder", call_sid),
                call_sid,
            )
            twiml = build_reminder_twiml(call_sid, media_stream_url(request.headers.get("host", "")), speak)
        elif answered_by.is_machine:
            speak = await _speak(
                voicemail_text(),
                tts_service.unique_audio_filename("voicemail", call_sid),
                call_sid,
            )
            twiml = build_voicemail_twiml(speak)
        elif answered_by.is_unknown:
            # /call-status sends the SMS once the call completes.
            logger.info("answered_by_unknown_deferred", call_sid=call_sid)
            twiml = build_empty_twiml()
        else:
            await call_logger.error(call_sid, InternalServerError(f"Unhandled AnsweredBy: {answered_by}"))
            return _twiml(build_bare_hangup_twiml())

        await call_logger.event(
            call_sid,
            {"event": "call_answered", "status": f"Call answered by: {answered_by}", "twiml": twiml},
        )
        return _twiml(twiml)

    except Exception as e:
        logger.exception("call_answered_failed", call_sid=call_sid)
        await call_logger.error(call_sid, InternalServerError(f"Error processing answered call: {e}"))
        return _twiml(build_error_twiml())


# POST /handle-speech?retry=0
# Gets: Twilio <Gather> form fields (CallSid, SpeechResult, ...) and query param retry (non-numeric counts as 0)
# Returns: TwiML (application/xml)
# Example:
#   curl -X POST 'http://localhost:8000/handle-speech?retry=0' -d 'CallSid=CAxxx&SpeechResult=yes'
@router.post("/handle-speech")
async def handle_speech(request: Request, retry: str = "0"):
    """One conversation turn."""

    form_data = await request.form()
    call_sid = form_data.get("CallSid", "")
    bind_call_context(call_sid)
    speech_result = form_data.get("SpeechResult", "")

    if not call_sid:
        await call_logger.error(UNKNOWN_CALL_SID, BadRequestError("/handle-speech called without CallSid"))
        return _twiml(build_error_twiml())

    outcome = await conversation_engine.handle_turn(call_sid, speech_result, parse_retry_count(retry))
    return _twiml(build_directive_twiml(outcome.directive))


# POST /call-status
# Gets: Twilio status callback form fields (CallSid, CallStatus, AnsweredBy, To, ...)
# Returns: JSON status
# Example:
#   curl -X POST http://localhost:8000/call-status -d 'CallSid=CAxxx&CallStatus=completed&AnsweredBy=unknown&To=%2B1555'
@router.post("/call-status")
async def call_status(request: Request):
    """Track call status; text the patient if the call was never really answered."""

    form_data = await request.form()
    call_sid = form_data.get("CallSid", "")
    bind_call_context(call_sid)
    status = form_data.get("CallStatus", "")
    answered_by = AnsweredBy.decode(form_data.get("AnsweredBy"))
    to_number = form_data.get("To", "")

    logger.info("call_status", call_sid=call_sid, call_status=status, answered_by=str(answered_by))

    if status == "completed" and history_store.delete(call_sid):
        logger.info("history_deleted_on_completion", call_sid=call_sid)

    if status != "completed" or not answered_by.is_unknown:
        return {"CallSid": call_sid, "status": status, "message": "Status received."}

    try:
        sms_sid = await telephony.send_sms(to_number, get_caller_text("unanswered"))
    except TelephonyError as e:
        logger.error("sms_fallback_failed", call_sid=call_sid, error=e.message)
        await call_logger.error(call_sid or UNKNOWN_CALL_SID, e)
        return JSONResponse(status_code=500, content={"error": "Failed to send SMS."})

    sms_fallbacks.inc()
    logger.info("sms_fallback_sent", call_sid=call_sid, sms_sid=sms_sid)
    await call_logger.event(
        call_sid,
        {"event": "call_status_update", "status": f"Call status: {status}", "answeredBy": str(answered_by), "to": to_number},
    )
    return {"CallSid": call_sid, "smsSid": sms_sid, "message": "SMS text sent."}


# POST /handle-recording
# Gets: Twilio recording callback form fields (CallSid, RecordingSid, RecordingUrl, RecordingDuration)
# Returns: JSON acknowledgement, or 400 when the recording fields are missing
# Example:
#   curl -X POST http://localhost:8000/handle-recording -d 'CallSid=CAxxx&RecordingSid=RExxx&RecordingUrl=https://...'
@router.post("/handle-recording")
async def handle_recording(request: Request):
    """Record where Twilio stored the call recording."""

    form_data = await request.form()
    call_sid = form_data.get("CallSid", "")
    bind_call_context(call_sid)
    recording_sid = form_data.get("RecordingSid", "")
    recording_url = form_data.get("RecordingUrl", "")
    duration = form_data.get("RecordingDuration", "")

    if not (recording_sid and recording_url):
        error = BadRequestError("Error processing recording.")
        logger.warning("recording_fields_missing", call_sid=call_sid, recording_sid=recording_sid)
        await call_logger.error(call_sid or UNKNOWN_CALL_SID, error)
        return JSONResponse(status_code=error.status_code, content={"message": error.message})

    status = "Recording processed."
    logger.info("recording_handled", call_sid=call_sid, recording_sid=recording_sid, duration=duration)
    await call_logger.event(
        call_sid or UNKNOWN_CALL_SID,
        {
            "event": "recording_handled",
            "callSid": call_sid,
            "recordingUrl": recording_url,
            "recordingSid": recording_sid,
            "duration": duration,
            "status": status,
        },
    )
    return {"CallSid": call_sid, "RecordingSid": recording_sid, "message": status}
