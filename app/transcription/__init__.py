"""Live transcription of Twilio media streams."""

from .bridge import BridgeState, TranscriptAccumulator, TranscriptionBridge
from .deepgram_session import DeepgramLiveSession

__all__ = ["BridgeState", "TranscriptAccumulator", "TranscriptionBridge", "DeepgramLiveSession"]
