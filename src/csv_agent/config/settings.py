from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads variables from environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # --- Application Meta ---
    APP_NAME: str = "CSV Agent Editor"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # --- AI/LLM Configuration ---
    # Optional so the API can start without a key; commands then come back as error steps.
    GROQ_API_KEY: Optional[str] = Field(None, description="API Key for Groq Cloud")

    DEFAULT_MODEL: str = "openai/gpt-oss-120b"
    TEMPERATURE: float = 0.1
    MAX_TOKENS: int = 1024
    TRANSLATOR_MAX_RETRIES: int = 2

    # --- Server Configuration ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Data Ingestion Limits ---
    MAX_UPLOAD_SIZE_MB: int = 10

    @field_validator("GROQ_API_KEY")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Blank keys are treated the same as a missing key."""
        if not v:
            return None
        return v


settings = Settings()
