"""Domain service settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class DomainServiceSettings(BaseSettings):
    """Speaker recognition configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEID_SERVICE_",
        env_file=".env",
        extra="ignore",
    )

    # Decision thresholds
    identification_threshold: float = 0.75
    verification_threshold: float = 0.85

    # Calibration
    calibration_min_threshold: float = 0.75
    calibration_max_threshold: float = 0.85
    calibration_sweep_start: float = 0.30
    calibration_sweep_stop: float = 0.90
    calibration_sweep_step: float = 0.01

    # Enrollment
    min_enrollment_samples: int = 3
    max_enrollment_samples: int = 5
    min_consistency: float = 0.8
    min_sample_duration: float = 2.0  # seconds

    # Recommendation thresholds
    recommend_average_quality: float = 0.7
    recommend_consistency: float = 0.85
    recommend_sample_quality: float = 0.6

    # Audio payload bounds, 16 kHz / 16-bit equivalent
    min_audio_seconds: float = 1.0
    max_audio_seconds: float = 30.0
    reference_sample_rate: int = 16000

    # Real-time identification, in samples at 16 kHz / 16-bit
    realtime_window_size: int = 32000
    realtime_hop_size: int = 8000
    realtime_min_confidence: float = 0.7
    realtime_max_sessions: int = 256  # least recently used sessions are dropped beyond this

    @property
    def min_audio_bytes(self) -> int:
        return int(self.reference_sample_rate * 2 * self.min_audio_seconds)

    @property
    def max_audio_bytes(self) -> int:
        return int(self.reference_sample_rate * 2 * self.max_audio_seconds)


settings = DomainServiceSettings()
