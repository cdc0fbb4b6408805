from fastapi import Depends, Request

from audio_transcriber.core.config import AppSettings
from audio_transcriber.integrations.openrouter import OpenRouterClient
from audio_transcriber.services.transcription import TranscriptionService
from audio_transcriber.services.translation import TranslationService


def get_app_settings(request: Request) -> AppSettings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_completion_client(request: Request) -> OpenRouterClient:
    """Return the shared completion API client."""
    return request.app.state.completion_client


async def get_transcription_service(
    settings: AppSettings = Depends(get_app_settings),
    client: OpenRouterClient = Depends(get_completion_client),
) -> TranscriptionService:
    """Provide a TranscriptionService bound to the shared client."""
    return TranscriptionService(
        client,
        model=settings.transcription_model,
        deadline_seconds=settings.transcription_deadline_seconds,
    )


async def get_translation_service(
    settings: AppSettings = Depends(get_app_settings),
    client: OpenRouterClient = Depends(get_completion_client),
) -> TranslationService:
    """Provide a TranslationService bound to the shared client."""
    return TranslationService(
        client,
        model=settings.translation_model,
        source_language_label=settings.source_language_label,
    )
