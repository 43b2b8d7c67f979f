"""Configuration management for the medication reminder call agent."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # Application Settings
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")  # For webhooks - use ngrok URL in development
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Twilio Configuration
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    # Outbound reminder calls are placed from the toll-free number; SMS goes out from the paid one.
    TWILIO_PHONE_NUMBER_TOLL_FREE: str = os.getenv("TWILIO_PHONE_NUMBER_TOLL_FREE", "")
    TWILIO_PHONE_NUMBER_PAID: str = os.getenv("TWILIO_PHONE_NUMBER_PAID", "")
    # On startup, point every owned number's voice URL at {BASE_URL}/incoming-call.
    TWILIO_SYNC_INCOMING_WEBHOOKS: bool = os.getenv("TWILIO_SYNC_INCOMING_WEBHOOKS", "False").lower() == "true"

    # <Gather> tuning
    GATHER_SPEECH_TIMEOUT: int = int(os.getenv("GATHER_SPEECH_TIMEOUT", "2"))
    GATHER_MAX_SPEECH_TIME: int = int(os.getenv("GATHER_MAX_SPEECH_TIME", "12"))

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "150"))

    # ElevenLabs (text-to-speech)
    ELEVENLABS_API_KEY: str = os.getenv("ELEVENLABS_API_KEY", "")
    ELEVENLABS_VOICE_ID: str = os.getenv("ELEVENLABS_VOICE_ID", "")
    ELEVENLABS_MODEL_ID: str = os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2")
    ELEVENLABS_BASE_URL: str = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))

    # Generated audio is written here and served under /audio.
    AUDIO_DIR: str = os.getenv("AUDIO_DIR", os.path.join(os.getcwd(), "public"))

    # Deepgram (real-time transcription of the media stream)
    DEEPGRAM_API_KEY: str = os.getenv("DEEPGRAM_API_KEY", "")
    DEEPGRAM_MODEL: str = os.getenv("DEEPGRAM_MODEL", "nova-3")
    DEEPGRAM_ENDPOINTING_MS: int = int(os.getenv("DEEPGRAM_ENDPOINTING_MS", "1000"))
    DEEPGRAM_LISTEN_URL: str = os.getenv("DEEPGRAM_LISTEN_URL", "wss://api.deepgram.com/v1/listen")

    # Structured call log store (one JSONL file per call).
    CALL_LOG_DIR: str = os.getenv("CALL_LOG_DIR", os.path.join(os.getcwd(), "call_logs"))

    # Conversation history eviction. 0 disables eviction.
    HISTORY_TTL_SECONDS: int = int(os.getenv("HISTORY_TTL_SECONDS", "3600"))

    @classmethod
    def has_openai_key(cls) -> bool:
        """Check if OpenAI API key is configured."""
        return bool(cls.OPENAI_API_KEY)

    @classmethod
    def has_twilio_config(cls) -> bool:
        """Check if Twilio configuration is complete for placing calls."""
        return all([
            cls.TWILIO_ACCOUNT_SID,
            cls.TWILIO_AUTH_TOKEN,
            cls.TWILIO_PHONE_NUMBER_TOLL_FREE,
        ])

    @classmethod
    def has_twilio_auth(cls) -> bool:
        """Check if Twilio auth is available."""
        return bool(cls.TWILIO_ACCOUNT_SID and cls.TWILIO_AUTH_TOKEN)

    @classmethod
    def has_elevenlabs_config(cls) -> bool:
        return bool(cls.ELEVENLABS_API_KEY and cls.ELEVENLABS_VOICE_ID and cls.BASE_URL)

    @classmethod
    def has_deepgram_key(cls) -> bool:
        return bool(cls.DEEPGRAM_API_KEY)


# Create a global config instance
config = Config()
