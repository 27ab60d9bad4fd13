"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Locations
    source_root: str = Field(
        default="./data/inbox",
        description="Directory scanned for newly dropped documents",
    )
    destination_root: str = Field(
        default="./data/claims",
        description="Directory holding one sub-directory per claim",
    )

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = Field(default=60.0, gt=0)
    openai_max_tokens: int = 1000

    # Matching
    match_strategy: Literal["identity_window", "candidate_label"] = "identity_window"
    match_window_days: int = Field(default=14, ge=0)
    tie_break: Literal["first", "closest"] = "first"
    candidate_label_count: int = Field(default=5, ge=1)

    # Registry
    registry_strategy: Literal["metadata_scan", "recent_window"] = "metadata_scan"

    # Text handling
    max_text_chars: int = Field(default=2500, gt=0)
    min_text_chars: int = Field(default=20, ge=0)

    # OCR
    ocr_enabled: bool = True
    tesseract_cmd: str | None = None

    # Reports
    report_filename: str = "claim_report.xlsx"

    @model_validator(mode="after")
    def check_text_bounds(self) -> "Settings":
        """Ensure the text cap leaves room above the minimum length."""
        if self.max_text_chars <= self.min_text_chars:
            raise ValueError("max_text_chars must be greater than min_text_chars")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
