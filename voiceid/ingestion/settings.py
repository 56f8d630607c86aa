"""Stream ingestion settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from voiceid.ingestion.models import AudioFormat


class IngestionSettings(BaseSettings):
    """Audio stream ingestion configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEID_INGEST_",
        env_file=".env",
        extra="ignore",
    )

    # Stream limits
    max_stream_size: int = 100 * 1024 * 1024  # bytes
    max_duration_ms: int = 5 * 60 * 1000
    chunk_timeout_ms: int = 10_000
    max_out_of_order_chunks: int = 100
    max_concurrent_streams: int = 10
    supported_formats: list[str] = [f.value for f in AudioFormat]

    # Validator bounds
    min_duration_ms: int = 100
    min_file_size: int = 100  # bytes
    validate_header: bool = True
    check_audio_quality: bool = True

    # Temporary storage of assembled audio
    store_audio: bool = True
    temp_storage_path: Path = Path("/tmp/voiceid-audio")
    temp_storage_ttl_seconds: int = 60 * 60


settings = IngestionSettings()
