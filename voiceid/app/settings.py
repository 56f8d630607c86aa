"""API settings configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """Settings for the voiceid API server."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEID_API_",
        env_file=".env",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = Field(default=8000, validation_alias="PORT")
    log_level: str = "info"
    websocket_timeout: int = 60  # seconds between stall checks on an idle socket
    stream_consumer: Literal["voiceprint", "transcription", "none"] = "voiceprint"


settings = APISettings()
