from contextlib import asynccontextmanager
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from audio_transcriber.api.router import api_router
from audio_transcriber.core.config import AppSettings, get_settings
from audio_transcriber.integrations.openrouter import OpenRouterClient

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    """Ensure application logs propagate with the requested verbosity."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
    root_logger.setLevel(level)


def create_app(
    settings: AppSettings | None = None,
    *,
    completion_client: OpenRouterClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.log_level)
    client = completion_client or OpenRouterClient(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info(
            "Server starting on http://%s:%d api_key_configured=%s api_key_length=%d",
            settings.api_host,
            settings.api_port,
            settings.is_api_key_configured,
            len(settings.openrouter_api_key.get_secret_value())
            if settings.openrouter_api_key
            else 0,
        )
        yield
        await client.aclose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.completion_client = client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    return app
