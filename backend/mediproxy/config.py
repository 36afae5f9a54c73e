from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[1] / ".env"


class Settings(BaseSettings):
    # GEMINI_API_KEY is the single credential; everything else has a default
    gemini_api_key: Optional[str] = None
    model_name: str = "gemini-2.0-flash"
    temperature: float = Field(0.15, validation_alias=AliasChoices("temperature", "LLM_TEMPERATURE"))
    max_output_tokens: int = Field(2048, validation_alias=AliasChoices("max_output_tokens", "LLM_MAX_OUTPUT_TOKENS"))
    timeout_seconds: float = Field(60.0, validation_alias=AliasChoices("timeout_seconds", "LLM_TIMEOUT_SECONDS"))
    log_level: str = "INFO"
    list_models_on_startup: bool = False

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )

    @field_validator("gemini_api_key")
    @classmethod
    def _blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


def load_settings() -> Settings:
    """Read process configuration once; callers pass the result around explicitly."""
    return Settings()
