"""Data models for the medication reminder call agent."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class TurnAction(str, Enum):
    """What Twilio should do after speaking."""
    RETRY = "retry"          # re-collect speech, same turn
    CONTINUE = "continue"    # speak reply, then collect the next utterance
    TERMINATE = "terminate"  # speak reply, then hang up


class SpokenOutput(BaseModel):
    """Text to speak, plus the synthesized audio URL when synthesis succeeded."""
    text: str
    audio_url: Optional[str] = None


class TurnDirective(BaseModel):
    """Result of one Turn Engine invocation."""
    action: TurnAction
    speak: SpokenOutput
    next_retry_count: Optional[int] = None  # set for retry (n+1) and continue (0)
    turn: Optional[int] = None


class AgentTurnRequest(BaseModel):
    """Request model for /agent/turn endpoint."""
    call_sid: str = Field(min_length=1)
    speech_text: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)


class CallRequest(BaseModel):
    """Request model for POST /call."""
    phoneNumber: str = Field(min_length=1)
