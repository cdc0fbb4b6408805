from __future__ import annotations

import logging
import traceback

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from audio_transcriber.api.deps import (
    get_app_settings,
    get_transcription_service,
    get_translation_service,
)
from audio_transcriber.core.config import AppSettings
from audio_transcriber.schemas.transcription import (
    ErrorResponse,
    TranscriptionErrorResponse,
    TranscriptionResponse,
)
from audio_transcriber.services.transcription import (
    TranscriptionFailedError,
    TranscriptionService,
)
from audio_transcriber.services.translation import UNKNOWN_RESULT, TranslationService
from audio_transcriber.services.uploads import UploadRejectedError, stage_upload

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_response(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(by_alias=True, exclude_none=True),
    )


@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    summary="Transcribe uploaded audio and translate it to English when needed.",
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        500: {"model": TranscriptionErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def transcribe_audio(
    audio: UploadFile | None = File(default=None),
    settings: AppSettings = Depends(get_app_settings),
    transcriber: TranscriptionService = Depends(get_transcription_service),
    translator: TranslationService = Depends(get_translation_service),
) -> TranscriptionResponse | JSONResponse:
    logger.info("Transcription request received")
    if audio is None:
        logger.info("No audio file found in request")
        return _error_response(
            status.HTTP_400_BAD_REQUEST, ErrorResponse(error="No audio file provided")
        )

    try:
        async with stage_upload(
            audio,
            max_bytes=settings.max_upload_bytes,
            tmp_dir=settings.upload_tmp_dir,
        ) as staged:
            if not settings.is_api_key_configured:
                return _error_response(
                    status.HTTP_503_SERVICE_UNAVAILABLE,
                    ErrorResponse(error="Transcription API key is not configured."),
                )
            result = await transcriber.transcribe(staged.read_bytes(), staged.mime_type)
    except UploadRejectedError as exc:
        logger.info("Upload rejected status=%d: %s", exc.status_code, exc.message)
        return _error_response(exc.status_code, ErrorResponse(error=exc.message))
    except TranscriptionFailedError as exc:
        return _error_response(
            exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            TranscriptionErrorResponse(
                error=str(exc),
                details=exc.last_failure.as_dict() if exc.last_failure else None,
                all_formats_failed=exc.all_formats_failed,
                attempts=[attempt.as_dict() for attempt in exc.attempts],
            ),
        )
    except Exception as exc:
        logger.exception("Transcription processing error")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(
                error="Error processing audio",
                details=str(exc),
                stack=None if settings.is_production else traceback.format_exc(),
            ),
        )
    finally:
        await audio.close()

    try:
        translation = await translator.resolve(result.text)
    except Exception:
        logger.exception("Translation enrichment failed; returning transcript only")
        translation = UNKNOWN_RESULT
    return TranscriptionResponse(
        transcription=result.text,
        language=translation.language,
        translation=translation.translation,
    )
