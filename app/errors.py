"""Error taxonomy.

Operational errors (upstream integrations, malformed input) are expected and
are converted into degraded responses close to where they happen.
Non-operational errors indicate a defect and are reported with full detail.
"""

from __future__ import annotations

import traceback
from typing import Any, Dict, Optional


class CallAgentError(Exception):
    """Base class for errors raised by this service."""

    status_code: int = 500
    is_operational: bool = True

    def __init__(self, message: str, status_code: Optional[int] = None, is_operational: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if is_operational is not None:
            self.is_operational = is_operational

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the error-log store."""
        return error_record(self)


class BadRequestError(CallAgentError):
    """A webhook arrived without a field we require."""

    status_code = 400


class TelephonyError(CallAgentError):
    """Twilio REST call failed."""

    status_code = 502


class SynthesisError(CallAgentError):
    """Text-to-speech upstream failed."""

    status_code = 502


class AudioStorageError(CallAgentError):
    """Generated audio could not be written to disk."""

    status_code = 500


class LogStoreError(CallAgentError):
    """Structured log record could not be persisted."""

    status_code = 500


class InternalServerError(CallAgentError):
    """Unexpected failure. Indicates a defect."""

    status_code = 500
    is_operational = False


def error_record(error: BaseException) -> Dict[str, Any]:
    """Build the structured record stored for an error, for any exception type."""
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return {
        "name": type(error).__name__,
        "message": str(error) or "Unknown error message",
        "status_code": getattr(error, "status_code", 500),
        "is_operational": getattr(error, "is_operational", False),
        "stack": stack or "Stack trace not available",
    }
