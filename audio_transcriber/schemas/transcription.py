from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TranscriptionResponse(BaseModel):
    """Response payload for a transcribed upload."""

    transcription: str = Field(..., description="Full transcript of the uploaded audio.")
    language: str | None = Field(
        default=None, description="Language label reported for the transcript."
    )
    translation: str | None = Field(
        default=None,
        description="English translation, or null when the transcript is already English.",
    )


class ErrorResponse(BaseModel):
    error: str
    details: Any = None
    stack: str | None = None


class TranscriptionErrorResponse(ErrorResponse):
    model_config = ConfigDict(populate_by_name=True)

    all_formats_failed: bool = Field(default=True, alias="allFormatsFailed")
    attempts: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "OK"
    timestamp: str
    api_key_configured: bool = Field(..., alias="apiKeyConfigured")


class ApiTestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    total_models: int = Field(..., alias="totalModels")
    audio_models_found: int = Field(..., alias="audioModelsFound")
    target_model: str = Field(..., alias="targetModel")
    target_model_available: bool = Field(..., alias="targetModelAvailable")
