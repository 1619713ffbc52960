from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "ReceiptScan"
    DEBUG: bool = False

    # Primary provider (Google Cloud Vision text detection, or local Tesseract)
    PRIMARY_PROVIDER: Literal["vision", "tesseract"] = "vision"
    GOOGLE_VISION_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_VISION_API_KEY", "VISION_API_KEY"),
    )
    TESSERACT_CMD: str = "/usr/local/bin/tesseract"  # macOS default

    # Fallback provider (Gemini vision)
    GEMINI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Chain behaviour
    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    FALLBACK_ON_TRANSIENT: bool = False

    # Extraction
    DATE_ORDER: Literal["DMY", "MDY"] = "DMY"
    MAX_UPLOAD_MB: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
