"""Downstream consumers of assembled audio.

A consumer receives the audio of a completed stream and returns a JSON-ready
result, which the stream handler forwards as a ``stream.result`` message.
"""

import logging
import time
from typing import Any, Protocol

from voiceid.domain.models.audio import AudioSample
from voiceid.domain.models.serialization import to_camel_dict
from voiceid.domain.protocols.transcriber import TranscriberProtocol, TranscriptionRequest
from voiceid.domain_service.exceptions import RecognitionError
from voiceid.domain_service.recognition import SpeakerRecognitionService
from voiceid.engine.exceptions import EngineError
from voiceid.ingestion.models import AssembledAudio, StreamErrorCode

logger = logging.getLogger(__name__)

# Typical bitrates (bits per second) for duration estimates
_BITRATES = {
    "opus": 24_000,
    "pcm": 256_000,
    "wav": 256_000,
    "aac": 128_000,
}
_DEFAULT_BITRATE = 128_000


class ConsumerError(Exception):
    """Consumer failure, reported as a stream.error message."""

    def __init__(
        self,
        code: StreamErrorCode,
        message: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable


class StreamConsumer(Protocol):
    """Protocol for consumers of assembled audio."""

    kind: str

    def consume(self, audio: AssembledAudio) -> dict[str, Any]:
        """Process the audio.

        Raises:
            ConsumerError: If processing fails.
        """
        ...


def estimate_transcription_duration_ms(audio_format: str, num_bytes: int) -> int:
    bitrate = _BITRATES.get(audio_format, _DEFAULT_BITRATE)
    return round(num_bytes * 8 / bitrate * 1000)


class VoiceprintConsumer:
    """Identifies the speaker of a completed PCM or WAV stream."""

    kind = "voiceprint"

    def __init__(self, service: SpeakerRecognitionService) -> None:
        self.service = service

    def consume(self, audio: AssembledAudio) -> dict[str, Any]:
        config = audio.config
        if config.format not in ("pcm", "wav"):
            raise ConsumerError(
                StreamErrorCode.INVALID_FORMAT,
                f"Speaker identification requires pcm or wav audio, got {config.format}",
            )

        sample = AudioSample(
            data=audio.data,
            sample_rate=config.sample_rate,
            bit_depth=config.bit_depth or 16,
            audio_format=config.format,
            channels=config.channels,
        )

        try:
            result = self.service.identify(sample)
        except (RecognitionError, EngineError) as e:
            logger.warning(f"Identification failed for stream {audio.stream_id}: {e}")
            raise ConsumerError(StreamErrorCode.INTERNAL_ERROR, str(e), recoverable=True) from e

        return to_camel_dict(result)


class TranscriptionConsumer:
    """Sends completed streams to a speech-to-text provider."""

    kind = "transcription"

    def __init__(self, transcriber: TranscriberProtocol) -> None:
        self.transcriber = transcriber

    def consume(self, audio: AssembledAudio) -> dict[str, Any]:
        config = audio.config
        request = TranscriptionRequest(
            audio=audio.data,
            format=config.format,
            sample_rate=config.sample_rate,
            channels=config.channels,
            language=config.language,
            diarization=config.diarization,
        )

        started = time.monotonic()
        try:
            result = self.transcriber.transcribe(request)
        except Exception as e:
            logger.error(f"Transcription failed for stream {audio.stream_id}: {e}")
            raise ConsumerError(
                StreamErrorCode.STT_PROVIDER_ERROR,
                str(e) or "Transcription failed",
            ) from e

        if result.duration_ms is None:
            result.duration_ms = estimate_transcription_duration_ms(config.format, audio.total_bytes)
        if not result.processing_time_ms:
            result.processing_time_ms = int((time.monotonic() - started) * 1000)

        return to_camel_dict(result)
