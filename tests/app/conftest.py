"""Fixtures for API tests."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from voiceid.app.main import create_app
from voiceid.domain_service import SpeakerRecognitionService
from voiceid.ingestion import AudioStorage


@pytest.fixture(name="audio_storage")
def audio_storage_fixture(tmp_path: Path) -> AudioStorage:
    """Temporary audio storage."""
    return AudioStorage(tmp_path / "audio")


@pytest.fixture(name="client")
def client_fixture(
    service: SpeakerRecognitionService,
    audio_storage: AudioStorage,
) -> Iterator[TestClient]:
    """Test client running the application lifespan."""
    app = create_app(service=service, audio_storage=audio_storage)
    with TestClient(app) as client:
        yield client
