import uvicorn

from audio_transcriber.core.app import create_app
from audio_transcriber.core.config import get_settings

app = create_app()


def run() -> None:
    """Entrypoint for `audio-transcriber` script."""
    settings = get_settings()
    uvicorn.run(
        "audio_transcriber.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        factory=False,
    )


if __name__ == "__main__":
    run()
