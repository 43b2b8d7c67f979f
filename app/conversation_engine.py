"""Conversation Turn Engine.

Invoked once per spoken exchange (Twilio <Gather> callback). Decides whether
to ask again on silence, calls the LLM, enforces the turn limit and the
hangup sentinel, synthesizes the reply and returns a directive that the
webhook renders into TwiML.

The retry counter travels through the webhook URL (?retry=N); inside one
invocation the turn's progress is tracked by TurnState:

    Collecting(attempt) -> Generating -> Synthesizing -> Collecting(0) | Terminated
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from prometheus_client import Counter

from app import llm_agent, tts_service
from app.call_log import CallLogger, call_logger
from app.config import config
from app.errors import AudioStorageError, InternalServerError, SynthesisError
from app.history_store import HistoryStore, history_store, turn_number
from app.logging_config import get_logger
from app.models import SpokenOutput, TurnAction, TurnDirective
from app.prompts import get_caller_text

logger = get_logger(__name__)

MAX_RETRIES = 2  # retries after the initial attempt (3 tries per turn)
MAX_TURNS = 10
HANGUP_SENTINEL = llm_agent.HANGUP_SENTINEL
FINAL_CLOSING_MESSAGE = get_caller_text("final_closing")

conversation_turns = Counter("conversation_turns_total", "Turn Engine directives issued", ["action"])

History = List[Dict[str, str]]
GenerateFn = Callable[[str, History], Awaitable[Tuple[str, History]]]
SynthesizeFn = Callable[[str, str], Awaitable[str]]


class TurnPhase(str, Enum):
    COLLECTING = "collecting"
    GENERATING = "generating"
    SYNTHESIZING = "synthesizing"
    TERMINATED = "terminated"


@dataclass
class TurnState:
    """Phase of the current turn; `attempt` is only meaningful while collecting."""

    call_sid: str
    phase: TurnPhase = TurnPhase.COLLECTING
    attempt: int = 0
    transitions: List[TurnPhase] = field(default_factory=list)

    def __post_init__(self):
        self.transitions.append(self.phase)

    def advance(self, phase: TurnPhase, attempt: int = 0) -> None:
        self.phase = phase
        self.attempt = attempt if phase == TurnPhase.COLLECTING else 0
        self.transitions.append(phase)


@dataclass
class TurnOutcome:
    directive: TurnDirective
    state: TurnState


def parse_retry_count(value: Union[int, str, None]) -> int:
    """Read the retry query value; anything missing, negative or non-numeric counts as the first attempt."""
    try:
        return max(int(str(value).strip()), 0)
    except (TypeError, ValueError):
        return 0


def strip_sentinel(text: str) -> str:
    """Remove every hangup sentinel and tidy the whitespace left behind."""
    return " ".join((text or "").replace(HANGUP_SENTINEL, " ").split())


class ConversationEngine:
    """
    Per-call turn handler.

    Collaborators default to the module-level LLM, TTS, history store and log
    sink; tests pass their own.
    """

    def __init__(
        self,
        history: Optional[HistoryStore] = None,
        generate: Optional[GenerateFn] = None,
        synthesize: Optional[SynthesizeFn] = None,
        sink: Optional[CallLogger] = None,
    ):
        self.history = history if history is not None else history_store
        self.sink = sink if sink is not None else call_logger
        self._generate = generate
        self._synthesize = synthesize

    async def generate(self, speech_text: str, history: History) -> Tuple[str, History]:
        fn = self._generate or llm_agent.generate_response
        return await fn(speech_text, history)

    async def synthesize(self, text: str, filename: str) -> str:
        fn = self._synthesize or tts_service.synthesize
        return await fn(text, filename)

    async def handle_turn(self, call_sid: str, speech_text: Optional[str], retry_count: int = 0) -> TurnOutcome:
        """
        Process one <Gather> result.

        Never raises: any unexpected failure becomes an apology-and-hangup
        directive and an error report keyed by call_sid.
        """
        retry_count = parse_retry_count(retry_count)
        speech = (speech_text or "").strip()
        state = TurnState(call_sid=call_sid, attempt=retry_count)

        try:
            return await self._handle_turn(call_sid, speech, retry_count, state)
        except Exception as e:
            logger.exception("handle_speech_failed", call_sid=call_sid, phase=state.phase.value)
            await self.sink.error(
                call_sid or "unknown_sid",
                InternalServerError(f"Error in /handle-speech processing: {e}"),
            )
            state.advance(TurnPhase.TERMINATED)
            directive = TurnDirective(
                action=TurnAction.TERMINATE,
                speak=SpokenOutput(text=get_caller_text("turn_error")),
            )
            conversation_turns.labels(action=directive.action.value).inc()
            return TurnOutcome(directive=directive, state=state)

    async def _handle_turn(self, call_sid: str, speech: str, retry_count: int, state: TurnState) -> TurnOutcome:
        history = self.history.get(call_sid)
        turn = turn_number(history)

        logger.info("handle_speech_turn", call_sid=call_sid, turn=turn, retry_attempt=retry_count + 1)

        # Silence: ask again without spending a model call.
        if not speech and retry_count < MAX_RETRIES:
            next_retry = retry_count + 1
            state.advance(TurnPhase.COLLECTING, attempt=next_retry)
            logger.info("no_speech_retry", call_sid=call_sid, turn=turn, next_retry=next_retry)
            directive = TurnDirective(
                action=TurnAction.RETRY,
                speak=SpokenOutput(text=get_caller_text("retry_prompt")),
                next_retry_count=next_retry,
                turn=turn,
            )
            conversation_turns.labels(action=directive.action.value).inc()
            return TurnOutcome(directive=directive, state=state)

        log_data = {
            "event": "handle_speech_turn",
            "turn": turn,
            "retry_attempt": retry_count + 1,
            "speech_result": speech or llm_agent.NO_SPEECH_PLACEHOLDER,
        }

        state.advance(TurnPhase.GENERATING)
        llm_text, updated_history = await self.generate(speech, history)
        # Always keep what the LLM layer says was exchanged, fallbacks included.
        self.history.set(call_sid, updated_history)

        log_data["llm_model"] = config.OPENAI_MODEL
        log_data["llm_response_text"] = llm_text

        hangup = False
        spoken_text = llm_text or ""
        if turn >= MAX_TURNS:
            logger.info("max_turns_reached", call_sid=call_sid, turn=turn, max_turns=MAX_TURNS)
            spoken_text = FINAL_CLOSING_MESSAGE
            hangup = True
        elif llm_text and HANGUP_SENTINEL in llm_text:
            logger.info("hangup_sentinel_detected", call_sid=call_sid, turn=turn)
            spoken_text = strip_sentinel(llm_text)
            hangup = True

        if not spoken_text:
            logger.warning("spoken_text_empty", call_sid=call_sid, turn=turn, hangup=hangup)
            spoken_text = get_caller_text("empty_goodbye") if hangup else get_caller_text("empty_issue")

        log_data["llm_spoken_text"] = spoken_text
        log_data["will_hangup"] = hangup

        state.advance(TurnPhase.SYNTHESIZING)
        audio_url = None
        try:
            audio_url = await self.synthesize(spoken_text, tts_service.unique_audio_filename("tts", call_sid))
            log_data["tts_audio_url"] = audio_url
        except (SynthesisError, AudioStorageError) as e:
            # Degrade to <Say> rather than failing the turn.
            logger.warning("tts_failed_using_say", call_sid=call_sid, error=str(e))
            log_data["tts_error"] = str(e)
            await self.sink.error(call_sid, e)

        speak = SpokenOutput(text=spoken_text, audio_url=audio_url)
        if hangup:
            self.history.delete(call_sid)
            state.advance(TurnPhase.TERMINATED)
            directive = TurnDirective(action=TurnAction.TERMINATE, speak=speak, turn=turn)
            log_data["final_twiml_action"] = "Play + Hangup" if audio_url else "Say + Hangup"
        else:
            state.advance(TurnPhase.COLLECTING, attempt=0)
            directive = TurnDirective(action=TurnAction.CONTINUE, speak=speak, next_retry_count=0, turn=turn)
            log_data["final_twiml_action"] = "Play + Gather" if audio_url else "Say + Gather"

        log_data["event"] = "handle_speech_processed"
        await self.sink.event(call_sid, log_data)

        conversation_turns.labels(action=directive.action.value).inc()
        logger.info(
            "handle_speech_processed",
            call_sid=call_sid,
            turn=turn,
            action=directive.action.value,
            has_audio=bool(audio_url),
        )
        return TurnOutcome(directive=directive, state=state)


conversation_engine = ConversationEngine()
