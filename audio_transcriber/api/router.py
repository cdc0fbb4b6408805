from fastapi import APIRouter

from audio_transcriber.api.routes import health, transcription

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(transcription.router, tags=["transcription"])
