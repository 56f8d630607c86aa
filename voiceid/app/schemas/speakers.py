"""Request schemas of the speaker recognition API."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voiceid.domain.models.speaker import Gender
from voiceid.domain_service.settings import settings


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AudioPayload(CamelModel):
    """Base64 audio (or data URL) with its encoding."""

    audio_data: str = Field(..., description="Base64 encoded audio or data URL")
    sample_rate: int = Field(default=16000, ge=8000, le=96000)
    bit_depth: int = Field(default=16)
    format: str = Field(default="pcm", pattern="^(pcm|wav)$")
    channels: int = Field(default=1, ge=1, le=2)


class EnrollRequest(AudioPayload):
    gender: Gender | None = None


class EnrollMultiRequest(CamelModel):
    samples: list[AudioPayload]
    gender: Gender | None = None


class IdentifyRequest(AudioPayload):
    threshold: float | None = Field(default=None, ge=0, le=1)


class IdentifyRealtimeRequest(CamelModel):
    audio_chunk: str = Field(..., description="Base64 encoded 16 kHz / 16-bit PCM")
    session_id: str = "default"
    window_size: int | None = Field(default=None, gt=0, le=settings.max_audio_bytes // 2)
    hop_size: int | None = Field(default=None, ge=0)
    min_confidence: float | None = Field(default=None, ge=0, le=1)
    reset: bool = False


class VerifyRequest(AudioPayload):
    speaker_id: str
    threshold: float | None = Field(default=None, ge=0, le=1)


class SpeakerIdRequest(CamelModel):
    speaker_id: str


class SetThresholdRequest(CamelModel):
    threshold: float
