"""Main FastAPI application."""

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from app import telephony
from app.config import config
from app.errors import TelephonyError
from app.health import router as health_router
from app.logging_config import logger
from app.routers.agent import router as agent_router
from app.routers.calls import router as calls_router
from app.routers.incoming import router as incoming_router
from app.routers.media_stream import router as media_stream_router
from app.tts_service import AUDIO_ROUTE

# Prometheus metrics
api_requests_total = Counter("api_requests_total", "Total API requests", ["method", "endpoint", "status"])
api_request_duration = Histogram("api_request_duration_seconds", "API request duration")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    # Startup
    logger.info("application_starting", version="1.0.0")
    os.makedirs(config.AUDIO_DIR, exist_ok=True)
    logger.info("openai_configured", configured=config.has_openai_key())
    logger.info("elevenlabs_configured", configured=config.has_elevenlabs_config())
    logger.info("deepgram_configured", configured=config.has_deepgram_key())
    logger.info("twilio_configured", configured=config.has_twilio_config())

    if config.TWILIO_SYNC_INCOMING_WEBHOOKS:
        try:
            await telephony.sync_incoming_webhook_urls()
        except TelephonyError as e:
            logger.error("incoming_webhook_sync_failed", error=e.message)

    yield

    # Shutdown
    logger.info("application_shutting_down")


app = FastAPI(
    title="Medication Reminder Call Agent",
    description="Outbound voice reminders with a conversational medication assistant",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    api_requests_total.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
    api_request_duration.observe(time.perf_counter() - start)
    return response


app.include_router(health_router)
app.include_router(calls_router)
app.include_router(incoming_router)
app.include_router(media_stream_router)
app.include_router(agent_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Medication Reminder Call Agent",
        "version": "1.0.0",
        "endpoints": {
            "call": "/call",
            "answered": "/answered",
            "handle_speech": "/handle-speech",
            "call_status": "/call-status",
            "handle_recording": "/handle-recording",
            "incoming_call": "/incoming-call",
            "media_stream": "/live",
            "agent_turn": "/agent/turn",
            "audio": AUDIO_ROUTE,
            "metrics": "/metrics",
        },
    }


# GET /audio/{filename}
# Gets: path param filename (generated TTS file or beep.mpeg)
# Returns: audio/mpeg file
# Example:
#   curl -o beep.mpeg http://localhost:8000/audio/beep.mpeg
@app.get(AUDIO_ROUTE + "/{filename}")
async def serve_audio(filename: str):
    """Serve generated speech so Twilio can <Play> it."""
    safe_name = os.path.basename(filename)
    path = os.path.join(config.AUDIO_DIR, safe_name)
    if safe_name != filename or not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Audio file not found")
    return FileResponse(path, media_type="audio/mpeg")


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
