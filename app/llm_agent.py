"""
LLM-backed medication assistant using the OpenAI API.

Answers short questions about the patient's three medications from a fixed
fact sheet and refuses everything else. The reply may end with the
HANGUPNOW sentinel to ask the call flow to hang up.
"""

from typing import Dict, List, Tuple

from openai import AsyncOpenAI

from app.config import config
from app.logging_config import get_logger

logger = get_logger(__name__)

# Initialize OpenAI client (will be None if API key not configured)
client = AsyncOpenAI(api_key=config.OPENAI_API_KEY) if config.OPENAI_API_KEY else None

HANGUP_SENTINEL = "HANGUPNOW"
NO_SPEECH_PLACEHOLDER = "[No speech detected]"

FACTUAL_DATA = {
    "ASPIRIN_DOSAGE": "81 milligrams",
    "ASPIRIN_FREQUENCY": "once daily",
    "ASPIRIN_FOOD": "with food or milk to minimize potential stomach upset",
    "ASPIRIN_FORM": "tablet",

    "CARDIVOL_DOSAGE": "12.5 milligrams",
    "CARDIVOL_FREQUENCY": "twice daily",
    "CARDIVOL_FOOD": "with or without food, but recommended consistency",
    "CARDIVOL_FORM": "tablet",

    "METFORMIN_DOSAGE": "500 milligrams",
    "METFORMIN_FREQUENCY": "twice daily with meals",
    "METFORMIN_FOOD": "with meals to reduce stomach upset",
    "METFORMIN_FORM": "tablet",

    "STORAGE_INFO": "Cool, dry place. Away from heat, moisture, and direct sunlight. Keep out of reach of children.",
    "REFILL_INFO": "Contact pharmacy a few days before you run out. They may need to contact your doctor for auth.",

    "REFUSAL_MSG": (
        "I can only provide basic information about your Aspirin, Cardivol, and Metformin dosage, frequency, "
        "form, storage, refills, or the nearest pharmacy location, hours, and phone number. For any other medical "
        "questions or advice, please consult your doctor or pharmacist."
    ),
}

CONFIG_ERROR_TEXT = f"An internal configuration error occurred. {HANGUP_SENTINEL}"
UNREADABLE_RESPONSE_TEXT = f"I encountered an issue interpreting the response. {HANGUP_SENTINEL}"
REFUSAL_HANGUP_TEXT = f"{FACTUAL_DATA['REFUSAL_MSG']} {HANGUP_SENTINEL}"

# System prompt defining the assistant's scope
SYSTEM_PROMPT = f"""You are a helpful, conversational, and concise voice assistant for a medication reminder system. Your role is to answer simple questions conversationally about dosage, frequency, taking with food, medication form, storage, refills, or a specific pharmacy location/hours/phone related ONLY to Aspirin, Cardivol, and Metformin, using ONLY the factual data provided below.

Your PRIMARY GOAL is to relay the SPECIFIC Factual Data for allowed questions below. When answering an allowed question, provide ONLY the information derived DIRECTLY from the Factual Data. DO NOT add external information, general advice, or medical disclaimers when answering an allowed question.

You MUST refuse all other questions or requests for medical advice using the exact refusal message.

Factual Data (Use ONLY this data for answers):
* Aspirin Dosage: {FACTUAL_DATA['ASPIRIN_DOSAGE']} | Frequency: {FACTUAL_DATA['ASPIRIN_FREQUENCY']} | Food: {FACTUAL_DATA['ASPIRIN_FOOD']} | Form: {FACTUAL_DATA['ASPIRIN_FORM']}
* Cardivol Dosage: {FACTUAL_DATA['CARDIVOL_DOSAGE']} | Frequency: {FACTUAL_DATA['CARDIVOL_FREQUENCY']} | Food: {FACTUAL_DATA['CARDIVOL_FOOD']} | Form: {FACTUAL_DATA['CARDIVOL_FORM']}
* Metformin Dosage: {FACTUAL_DATA['METFORMIN_DOSAGE']} | Frequency: {FACTUAL_DATA['METFORMIN_FREQUENCY']} | Food: {FACTUAL_DATA['METFORMIN_FOOD']} | Form: {FACTUAL_DATA['METFORMIN_FORM']}
* Storage: {FACTUAL_DATA['STORAGE_INFO']}
* Refills: {FACTUAL_DATA['REFILL_INFO']}
* Refusal Message: "{FACTUAL_DATA['REFUSAL_MSG']}"

Instructions:
1. Analyze the user's latest input considering the conversation history.
2. If asking about dosage, frequency, form, storage, refills, or food interaction for Aspirin, Cardivol, or Metformin: formulate a conversational, concise sentence using the corresponding Factual Data for the specified drug(s). DO NOT add disclaimers.
3. If asking about those topics without naming a medication: give the answer for all 3.
4. If asking about the nearest pharmacy address, hours, or phone number: ask for their current address or zip code, and give them ONLY 2 of the closest options.
5. If it's a simple acknowledgement, greeting, or confirmation that they took their medication: respond with a brief, polite acknowledgement.
6. If the input is "{NO_SPEECH_PLACEHOLDER}": respond conversationally (e.g., "Sorry, I didn't quite catch that.").
7. For ABSOLUTELY ANYTHING ELSE (different drugs, side effects, interactions, advice, complex questions, unrelated topics): respond ONLY with the exact Refusal Message.
8. Keep responses concise (1-2 sentences), conversational, adding a word or two here and there to sound human.
9. When the caller says they are done or says goodbye, end your reply with the word {HANGUP_SENTINEL}. Never use {HANGUP_SENTINEL} otherwise.
"""


def _with_exchange(history: List[Dict[str, str]], user_text: str, reply: str) -> List[Dict[str, str]]:
    return [
        *history,
        {"role": "user", "content": user_text},
        {"role": "assistant", "content": reply},
    ]


async def generate_response(
    speech_text: str,
    history: List[Dict[str, str]],
) -> Tuple[str, List[Dict[str, str]]]:
    """
    Generate the assistant's next reply.

    Never raises: on any failure the reply is a fixed fallback ending with the
    hangup sentinel, and the returned history still records the exchange.

    Args:
        speech_text: What the caller said (empty if nothing was heard)
        history: Prior turns [{"role": "user"|"assistant", "content": "..."}]

    Returns:
        Tuple of (reply_text, updated_history)
    """
    user_text = (speech_text or "").strip() or NO_SPEECH_PLACEHOLDER
    history = list(history or [])

    if client is None or not config.has_openai_key():
        logger.error("llm_not_configured")
        return CONFIG_ERROR_TEXT, _with_exchange(history, user_text, CONFIG_ERROR_TEXT)

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in history:
        if "role" in turn and "content" in turn:
            messages.append({"role": turn["role"], "content": turn["content"]})
    messages.append({"role": "user", "content": user_text})

    try:
        response = await client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=messages,
            temperature=config.LLM_TEMPERATURE,
            max_tokens=config.LLM_MAX_TOKENS,
        )

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        finish_reason = getattr(choice, "finish_reason", None) if choice else None

        if finish_reason == "content_filter":
            logger.warning("llm_response_blocked", finish_reason=finish_reason)
            reply = REFUSAL_HANGUP_TEXT
        elif not content:
            logger.warning("llm_response_empty", finish_reason=finish_reason)
            reply = UNREADABLE_RESPONSE_TEXT
        else:
            reply = content

        logger.debug("llm_reply", model=config.OPENAI_MODEL, reply=reply)
        return reply, _with_exchange(history, user_text, reply)

    except Exception as e:
        logger.error("llm_request_failed", model=config.OPENAI_MODEL, error=str(e))
        return REFUSAL_HANGUP_TEXT, _with_exchange(history, user_text, REFUSAL_HANGUP_TEXT)
