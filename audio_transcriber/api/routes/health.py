import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from audio_transcriber.api.deps import get_app_settings, get_completion_client
from audio_transcriber.core.config import AppSettings
from audio_transcriber.integrations.openrouter import CompletionRequestError, OpenRouterClient
from audio_transcriber.schemas.transcription import ApiTestResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def healthcheck(settings: AppSettings = Depends(get_app_settings)) -> HealthResponse:
    """Lightweight health endpoint for liveness probes."""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        api_key_configured=settings.is_api_key_configured,
    )


def _is_audio_model(model_id: str) -> bool:
    return "audio" in model_id or "gpt-4o" in model_id


@router.get("/test-api", response_model=ApiTestResponse)
async def test_api_connection(
    settings: AppSettings = Depends(get_app_settings),
    client: OpenRouterClient = Depends(get_completion_client),
) -> ApiTestResponse | JSONResponse:
    """Check that the completion API answers and exposes the transcription model."""
    logger.info("Testing completion API connection")
    try:
        model_ids = await client.list_model_ids()
    except CompletionRequestError as exc:
        if exc.status_code is None:
            logger.warning("API test error: %s", exc.detail)
            return JSONResponse(
                status_code=500,
                content={"status": "API test failed", "error": exc.detail},
            )
        logger.warning("API connection failed status=%d: %s", exc.status_code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "API connection failed", "error": exc.detail},
        )

    audio_models = [model_id for model_id in model_ids if _is_audio_model(model_id)]
    logger.info(
        "API connection successful total_models=%d audio_models=%d",
        len(model_ids),
        len(audio_models),
    )
    return ApiTestResponse(
        status="API connection successful",
        total_models=len(model_ids),
        audio_models_found=len(audio_models),
        target_model=settings.transcription_model,
        target_model_available=settings.transcription_model in model_ids,
    )
