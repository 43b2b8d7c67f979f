"""Twilio REST operations: place reminder calls, send SMS, point numbers at our webhooks.

The Twilio helper library is synchronous and sends through `requests`, so
each request runs in the threadpool to keep the event loop free. Transport
failures from `requests` are not wrapped by Twilio and are mapped here too.
"""

from __future__ import annotations

from typing import List, Optional

from requests import RequestException
from starlette.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from app.config import config
from app.errors import TelephonyError
from app.logging_config import get_logger

logger = get_logger(__name__)

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


def _client() -> Client:
    if not config.has_twilio_auth():
        raise TelephonyError("Twilio not configured. Set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN in .env")
    return Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)


def _webhook(path: str) -> str:
    return f"{config.BASE_URL.rstrip('/')}{path}"


async def place_reminder_call(phone_number: str) -> str:
    """
    Place an outbound reminder call with answering-machine detection and recording.

    Returns:
        The new call's CallSid

    Raises:
        TelephonyError: Twilio not configured or the request failed
    """
    if not config.has_twilio_config():
        raise TelephonyError(
            "Twilio not configured. Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, and TWILIO_PHONE_NUMBER_TOLL_FREE in .env"
        )

    def _create() -> str:
        call = _client().calls.create(
            to=phone_number,
            from_=config.TWILIO_PHONE_NUMBER_TOLL_FREE,
            url=_webhook("/answered"),
            method="POST",
            status_callback=_webhook("/call-status"),
            status_callback_method="POST",
            status_callback_event=STATUS_CALLBACK_EVENTS,
            machine_detection="DetectMessageEnd",
            record=True,
            recording_status_callback=_webhook("/handle-recording"),
        )
        return call.sid

    try:
        return await run_in_threadpool(_create)
    except (TwilioException, RequestException) as e:
        raise TelephonyError(f"Error initiating call: {e}") from e


async def send_sms(to: str, body: str) -> str:
    """Send an SMS from the paid number. Returns the message SID."""
    if not config.TWILIO_PHONE_NUMBER_PAID:
        raise TelephonyError("TWILIO_PHONE_NUMBER_PAID is not set")

    def _send() -> str:
        message = _client().messages.create(body=body, to=to, from_=config.TWILIO_PHONE_NUMBER_PAID)
        return message.sid

    try:
        return await run_in_threadpool(_send)
    except (TwilioException, RequestException) as e:
        raise TelephonyError(f"Error sending SMS: {e}") from e


async def sync_incoming_webhook_urls(voice_url: Optional[str] = None) -> List[str]:
    """Point the voice URL of every owned number at /incoming-call. Returns the updated numbers."""
    voice_url = voice_url or _webhook("/incoming-call")

    def _update() -> List[str]:
        updated: List[str] = []
        for number in _client().incoming_phone_numbers.list():
            number.update(voice_url=voice_url)
            updated.append(number.friendly_name or number.phone_number)
        return updated

    try:
        updated = await run_in_threadpool(_update)
    except (TwilioException, RequestException) as e:
        raise TelephonyError(f"Error updating Twilio webhook URLs: {e}") from e

    logger.info("incoming_webhooks_updated", numbers=updated, voice_url=voice_url)
    return updated
