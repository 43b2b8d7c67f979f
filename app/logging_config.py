"""
Structured logging configuration.

structlog on top of stdlib logging: JSON lines in production, pretty console
output when DEBUG is set. Webhook and stream handlers bind the CallSid into
the context once (`bind_call_context`) so every line logged while handling
that call carries it.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.config import config

SERVICE_NAME = "medication-reminder"

# HTTP/websocket client libraries log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "twilio", "websockets", "urllib3")


def _add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging():
    """
    Configure structured logging for the application.

    In production: JSON formatted logs
    In development: Pretty printed colored logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if config.DEBUG else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_call_context(call_sid: Optional[str], **extra: Any) -> None:
    """Start a fresh log context for one webhook or stream connection."""
    clear_contextvars()
    if call_sid:
        bind_contextvars(call_sid=call_sid, **extra)
    elif extra:
        bind_contextvars(**extra)


def get_logger(name: str = None) -> Any:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("turn_processed", turn=2)
        logger.error("tts_failed", error="timeout")
    """
    return structlog.get_logger(name)


# Configure on module import
configure_logging()

logger = get_logger("medication_reminder")
