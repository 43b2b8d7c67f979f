from fastapi import APIRouter

from app.conversation_engine import conversation_engine
from app.models import AgentTurnRequest, TurnDirective

router = APIRouter(tags=["Agent"])


# POST /agent/turn
# Gets: JSON body {call_sid: str, speech_text?: str, retry_count?: int}
# Returns: TurnDirective {action, speak: {text, audio_url?}, next_retry_count?, turn?}
# Example:
#   curl -X POST http://localhost:8000/agent/turn \
#     -H 'Content-Type: application/json' \
#     -d '{"call_sid": "text-chat-1", "speech_text": "How much Aspirin do I take?", "retry_count": 0}'
@router.post("/agent/turn", response_model=TurnDirective)
async def agent_turn(request: AgentTurnRequest):
    """Run one conversation turn without telephony (same engine as /handle-speech)."""

    outcome = await conversation_engine.handle_turn(request.call_sid, request.speech_text, request.retry_count)
    return outcome.directive
