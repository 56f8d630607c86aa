"""FastAPI application for the voiceid server."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from voiceid import __version__
from voiceid.database import create_repository
from voiceid.domain.protocols.transcriber import TranscriberProtocol
from voiceid.domain_service import SpeakerIndex, SpeakerRecognitionService
from voiceid.engine import VoiceprintExtractor
from voiceid.ingestion import AudioStorage
from voiceid.ingestion.settings import settings as ingestion_settings

from .settings import settings

logger = logging.getLogger(__name__)


def build_recognition_service() -> SpeakerRecognitionService:
    """Build the recognition service from settings."""
    return SpeakerRecognitionService(
        repository=create_repository(),
        extractor=VoiceprintExtractor(),
        index=SpeakerIndex(),
    )


def create_app(
    service: SpeakerRecognitionService | None = None,
    transcriber: TranscriberProtocol | None = None,
    audio_storage: AudioStorage | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Recognition service. Built from settings at startup if None.
        transcriber: Speech-to-text provider for the transcription consumer.
        audio_storage: Storage for assembled audio. Built from settings at
            startup if None and storing is enabled.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler.

        Loads enrolled speakers and calibrates on startup.
        """
        recognition_service = service or build_recognition_service()
        recognition_service.initialize()

        storage = audio_storage
        if storage is None and ingestion_settings.store_audio:
            storage = AudioStorage()

        app.state.recognition_service = recognition_service
        app.state.transcriber = transcriber
        app.state.audio_storage = storage
        logger.info(f"voiceid {__version__} ready")

        yield

        if storage is not None:
            storage.cleanup()

    app = FastAPI(
        title="voiceid",
        description="Speaker recognition and audio stream ingestion server",
        version=__version__,
        lifespan=lifespan,
    )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check server health status."""
        return {"status": "healthy", "version": __version__}

    from .routes.speakers import router as speakers_router
    from .websocket.stream import router as stream_router

    app.include_router(speakers_router)
    app.include_router(stream_router)

    return app


def run_server() -> None:
    """Run the server using uvicorn."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
