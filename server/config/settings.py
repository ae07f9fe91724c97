"""Application configuration settings."""
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import List, Optional

# Get the server directory path
SERVER_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase (resource directory + chat transcripts)
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # LLM Configuration
    USE_CLOUD_LLM: bool = False
    OLLAMA_ENDPOINT: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"
    LLM_API_KEY: Optional[str] = None
    LLM_RESPONSE_TIMEOUT: int = 30
    LLM_MAX_TOKENS: int = 256
    LLM_TEMPERATURE: float = 0.7

    # Chat limits
    CHAT_MAX_MESSAGE_LENGTH: int = 5000
    CHAT_MAX_HISTORY_MESSAGES: int = 10
    CHAT_MAX_CONVERSATIONS: int = 100
    CHAT_MAX_TITLE_LENGTH: int = 200
    # Store partial LLM output (plus the fallback) when a stream breaks mid-reply
    PERSIST_PARTIAL_REPLIES: bool = False

    SHELTER_DASHBOARD_URL: str = (
        "https://www.kelowna.ca/our-community/social-wellness/outdoor-overnight-sheltering"
    )

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # CORS: explicit list of allowed origins
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
    ]

    # Rate limiting (per client IP, per minute)
    RATE_LIMIT_PER_MINUTE: int = 100
    # Search and chat are heavier; they get a stricter bucket
    STRICT_RATE_LIMIT_PER_MINUTE: int = 20

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.CHAT_MAX_HISTORY_MESSAGES < 1:
            raise ValueError("CHAT_MAX_HISTORY_MESSAGES must be at least 1")
        if self.STRICT_RATE_LIMIT_PER_MINUTE > self.RATE_LIMIT_PER_MINUTE:
            raise ValueError(
                "STRICT_RATE_LIMIT_PER_MINUTE cannot exceed RATE_LIMIT_PER_MINUTE"
            )
        return self

    class Config:
        env_file = str(SERVER_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
