"""Validation of assembled audio."""

from voiceid.ingestion.models import AssembledAudio, AudioFormat, ValidationResult
from voiceid.ingestion.settings import settings

VALID_SAMPLE_RATES = (8000, 16000, 22050, 24000, 44100, 48000)
SILENCE_SIZE_LIMIT = 1000  # bytes
SHORT_DURATION_MS = 500
LONG_DURATION_MS = 60_000


def validate_header(data: bytes, audio_format: str) -> bool:
    """Check the magic bytes of a container format.

    PCM has no header, so any non-empty PCM data passes.
    """
    if len(data) < 4:
        return False

    magic = data[:4]

    if audio_format == AudioFormat.WAV:
        if magic != b"RIFF":
            return False
        return len(data) < 12 or data[8:12] == b"WAVE"

    if audio_format == AudioFormat.OPUS:
        return magic in (b"OggS", b"Opus")

    if audio_format == AudioFormat.AAC:
        # ADTS: 12-bit sync word 0xFFF
        if data[0] == 0xFF and (data[1] & 0xF0) == 0xF0:
            return True
        return magic == b"ADIF"

    if audio_format == AudioFormat.PCM:
        return len(data) > 0

    return False


class AudioValidator:
    """Checks size, duration, format, header and basic quality heuristics.

    Every failed check adds a message; the audio is valid only when none did.
    """

    def __init__(
        self,
        max_file_size: int | None = None,
        min_file_size: int | None = None,
        max_duration_ms: int | None = None,
        min_duration_ms: int | None = None,
        allowed_formats: list[str] | None = None,
        check_header: bool | None = None,
        check_quality: bool | None = None,
    ) -> None:
        self.max_file_size = max_file_size if max_file_size is not None else settings.max_stream_size
        self.min_file_size = min_file_size if min_file_size is not None else settings.min_file_size
        self.max_duration_ms = (
            max_duration_ms if max_duration_ms is not None else settings.max_duration_ms
        )
        self.min_duration_ms = (
            min_duration_ms if min_duration_ms is not None else settings.min_duration_ms
        )
        self.allowed_formats = allowed_formats or list(settings.supported_formats)
        self.check_header = settings.validate_header if check_header is None else check_header
        self.check_quality = settings.check_audio_quality if check_quality is None else check_quality

    def validate(self, audio: AssembledAudio) -> ValidationResult:
        errors: list[str] = []
        config = audio.config

        if audio.total_bytes > self.max_file_size:
            errors.append(f"File size {audio.total_bytes} exceeds maximum {self.max_file_size}")
        if audio.total_bytes < self.min_file_size:
            errors.append(f"File size {audio.total_bytes} is below minimum {self.min_file_size}")

        if audio.duration_ms is not None:
            if audio.duration_ms > self.max_duration_ms:
                errors.append(
                    f"Duration {audio.duration_ms}ms exceeds maximum {self.max_duration_ms}ms"
                )
            if audio.duration_ms < self.min_duration_ms:
                errors.append(
                    f"Duration {audio.duration_ms}ms is below minimum {self.min_duration_ms}ms"
                )

        if config.format not in self.allowed_formats:
            errors.append(
                f"Format {config.format} is not in allowed formats: "
                f"{', '.join(self.allowed_formats)}"
            )

        if self.check_header and not validate_header(audio.data, config.format):
            errors.append(f"Invalid {config.format} header")

        if self.check_quality:
            errors.extend(self._quality_issues(audio))

        return ValidationResult(
            valid=not errors,
            errors=errors,
            format=config.format,
            sample_rate=config.sample_rate,
            channels=config.channels,
            duration_ms=audio.duration_ms,
        )

    @staticmethod
    def _quality_issues(audio: AssembledAudio) -> list[str]:
        issues: list[str] = []

        if audio.total_bytes < SILENCE_SIZE_LIMIT:
            issues.append("Audio may be silent or very short")

        if audio.duration_ms is not None:
            if audio.duration_ms < SHORT_DURATION_MS:
                issues.append("Audio duration is very short (< 500ms)")
            if audio.duration_ms > LONG_DURATION_MS:
                issues.append("Audio duration is very long (> 60s)")

        if audio.config.sample_rate not in VALID_SAMPLE_RATES:
            issues.append(f"Unusual sample rate: {audio.config.sample_rate}")

        if not 1 <= audio.config.channels <= 2:
            issues.append(f"Unusual channel count: {audio.config.channels}")

        return issues
