"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from voiceid.app.handlers.speaker import SpeakerRequestHandler
from voiceid.app.settings import settings
from voiceid.domain.protocols.transcriber import TranscriberProtocol
from voiceid.domain_service import SpeakerRecognitionService
from voiceid.ingestion import (
    AudioStorage,
    StreamConsumer,
    TranscriptionConsumer,
    VoiceprintConsumer,
)


def get_recognition_service(connection: HTTPConnection) -> SpeakerRecognitionService:
    """Get the service built during application startup."""
    return connection.app.state.recognition_service


RecognitionServiceDep = Annotated[SpeakerRecognitionService, Depends(get_recognition_service)]


def get_speaker_handler(service: RecognitionServiceDep) -> SpeakerRequestHandler:
    """Get speaker request handler with injected service."""
    return SpeakerRequestHandler(service)


def get_audio_storage(connection: HTTPConnection) -> AudioStorage | None:
    """Get temporary audio storage, None when disabled."""
    return connection.app.state.audio_storage


def get_stream_consumer(
    connection: HTTPConnection,
    service: RecognitionServiceDep,
) -> StreamConsumer | None:
    """Get the consumer of completed streams selected in settings."""
    if settings.stream_consumer == "voiceprint":
        return VoiceprintConsumer(service)

    if settings.stream_consumer == "transcription":
        transcriber: TranscriberProtocol | None = connection.app.state.transcriber
        if transcriber is not None:
            return TranscriptionConsumer(transcriber)

    return None


# Type aliases for dependency injection
SpeakerHandlerDep = Annotated[SpeakerRequestHandler, Depends(get_speaker_handler)]
AudioStorageDep = Annotated[AudioStorage | None, Depends(get_audio_storage)]
StreamConsumerDep = Annotated[StreamConsumer | None, Depends(get_stream_consumer)]
