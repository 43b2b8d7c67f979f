"""
Health check and monitoring endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import config
from app.history_store import history_store
from app.logging_config import logger

router = APIRouter(tags=["Health & Monitoring"])


# GET /health
# Gets: nothing
# Returns: {status, service, version}
# Example:
#   curl http://localhost:8000/health
@router.get("/health")
async def health_check():
    """
    Basic health check - returns 200 if service is running.
    Use this for basic liveness probes.
    """
    return {
        "status": "healthy",
        "service": "medication-reminder",
        "version": "1.0.0"
    }


# GET /health/ready
# Gets: nothing
# Returns: collaborator configuration checks; 503 when calls cannot be placed
# Example:
#   curl http://localhost:8000/health/ready
@router.get("/health/ready")
async def readiness_check():
    """
    Readiness check - reports which collaborators are configured.

    Twilio and OpenAI are required to hold a conversation. Missing ElevenLabs
    or Deepgram only degrades the call (spoken text instead of audio, no
    live transcript).
    """
    checks = {
        "twilio": config.has_twilio_config(),
        "openai": config.has_openai_key(),
        "elevenlabs": config.has_elevenlabs_config() or "not_configured",
        "deepgram": config.has_deepgram_key() or "not_configured",
        "ready": False,
    }

    checks["ready"] = bool(checks["twilio"] and checks["openai"])
    if not checks["ready"]:
        logger.warning("readiness_check_failed", twilio=checks["twilio"], openai=checks["openai"])

    return JSONResponse(status_code=200 if checks["ready"] else 503, content=checks)


# GET /health/info
# Gets: nothing
# Returns: service configuration summary
# Example:
#   curl http://localhost:8000/health/info
@router.get("/health/info")
async def system_info():
    """
    System information and configuration status.
    """
    return {
        "service": "medication-reminder",
        "version": "1.0.0",
        "configuration": {
            "openai_configured": config.has_openai_key(),
            "openai_model": config.OPENAI_MODEL if config.has_openai_key() else None,
            "deepgram_model": config.DEEPGRAM_MODEL if config.has_deepgram_key() else None,
            "history_ttl_seconds": config.HISTORY_TTL_SECONDS,
            "debug_mode": config.DEBUG
        },
        "features": {
            "llm_conversations": config.has_openai_key(),
            "speech_synthesis": config.has_elevenlabs_config(),
            "live_transcription": config.has_deepgram_key(),
            "twilio_integration": config.has_twilio_config(),
            "sms_fallback": bool(config.TWILIO_PHONE_NUMBER_PAID),
        },
        "active_conversations": len(history_store),
    }
