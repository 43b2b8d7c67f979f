from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.call_log import call_logger
from app.errors import InternalServerError
from app.logging_config import logger
from app.transcription import TranscriptionBridge

router = APIRouter(tags=["Media Stream"])


def create_bridge() -> TranscriptionBridge:
    return TranscriptionBridge()


# WS /live
# Gets: Twilio media stream messages (connected, start, media, stop)
# Returns: nothing; final transcript is written to the call log when transcription ends
# Example (TwiML that opens it):
#   <Start><Stream url="wss://example.ngrok.app/live"><Parameter name="CallSid" value="CAxxx"/></Stream></Start>
@router.websocket("/live")
async def media_stream(websocket: WebSocket):
    """One Twilio media stream, bridged to one live transcription session."""

    await websocket.accept()
    bridge = create_bridge()
    logger.info("media_stream_connection_opened")

    try:
        await bridge.start()
        while True:
            message = await websocket.receive_text()
            await bridge.handle_message(message)
    except WebSocketDisconnect as e:
        logger.info("media_stream_disconnected", call_sid=bridge.call_sid, code=e.code)
    except Exception as e:
        logger.exception("media_stream_failed", call_sid=bridge.call_sid)
        await call_logger.error(bridge.call_sid, InternalServerError(f"Media stream handler failed: {e}"))
    finally:
        await bridge.close()
