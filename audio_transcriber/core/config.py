from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application configuration loaded from environment or .env."""

    app_name: str = Field(default="Audio Transcriber", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=3000, alias="PORT")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS"
    )

    openrouter_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    http_referer: str = Field(default="http://localhost:3000", alias="OPENROUTER_HTTP_REFERER")
    app_title: str = Field(default="Audio Transcriber", alias="OPENROUTER_APP_TITLE")
    transcription_model: str = Field(
        default="google/gemini-2.5-pro", alias="TRANSCRIPTION_MODEL"
    )
    translation_model: str = Field(
        default="google/gemini-2.5-pro", alias="TRANSLATION_MODEL"
    )
    source_language_label: str = Field(default="Twi (Akan)", alias="SOURCE_LANGUAGE_LABEL")

    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    upload_tmp_dir: Optional[str] = Field(default=None, alias="UPLOAD_TMP_DIR")
    request_timeout_seconds: float = Field(default=120.0, alias="REQUEST_TIMEOUT_SECONDS")
    transcription_deadline_seconds: float = Field(
        default=600.0, alias="TRANSCRIPTION_DEADLINE_SECONDS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    @property
    def is_api_key_configured(self) -> bool:
        if self.openrouter_api_key is None:
            return False
        return bool(self.openrouter_api_key.get_secret_value().strip())

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"prod", "production"}


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings."""
    return AppSettings()  # type: ignore[call-arg]
