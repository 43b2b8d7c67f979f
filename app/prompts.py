"""
Caller-facing phrases.

All fixed text spoken or sent to patients lives here so wording changes
happen in one place.
"""

from datetime import datetime
from typing import Dict, Optional

CALLER_MESSAGES: Dict[str, str] = {
    # Opening prompts
    "reminder": (
        "Hello, this is a reminder from your healthcare provider to confirm your medications for the day. "
        "Please confirm if you have taken your Aspirin, Cardivol, and Metformin today. "
        "After you've confirmed, you can ask me questions regarding your medication. I'm here to help."
    ),
    "unanswered": (
        "We called to check on your medication but couldn't reach you. "
        "Please call us back or take your medications if you haven't done so."
    ),

    # Silence handling
    "retry_prompt": "Sorry, I didn't hear anything. Could you please repeat that?",
    "retry_fallback": "If you're finished, you can hang up. Goodbye.",
    "continue_fallback": "Is there anything else? If not, you can hang up now. Goodbye.",
    "incoming_fallback": "If you need assistance, please call back. Goodbye.",

    # Closings
    "final_closing": "If you have any further questions, please consult your doctor or pharmacist. Goodbye.",
    "empty_goodbye": "Okay, goodbye.",
    "empty_issue": "Sorry, I encountered an issue.",

    # Errors
    "turn_error": "An error occurred. Apologies. Goodbye.",
    "incoming_error": "We encountered an error processing your call. Please try again later. Goodbye.",
}


def get_caller_text(key: str) -> str:
    """Return a caller-facing phrase by key."""
    return CALLER_MESSAGES[key]


def voicemail_text(now: Optional[datetime] = None) -> str:
    """Voicemail left for answering machines, prefixed with the time of the call."""
    now = now or datetime.now()
    return f"{now.strftime('%m/%d/%Y, %I:%M:%S %p')}. {CALLER_MESSAGES['unanswered']}"
