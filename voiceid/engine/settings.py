"""Engine settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Audio processing and voiceprint engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEID_ENGINE_",
        env_file=".env",
        extra="ignore",
    )

    # Preprocessing
    target_sample_rate: int = 16000
    pre_emphasis: float = 0.97
    noise_gate_threshold: float = 0.01

    # Framing / spectrogram
    frame_size: int = 512
    hop_length: int = 256
    n_fft: int = 512
    n_mels: int = 40

    # Energy VAD
    vad_energy_threshold: float = 0.01

    # Segment selection
    max_segments: int = 3
    min_segment_seconds: float = 0.5

    # Embedding backend: "projection" or "campp"
    embedding_backend: str = "projection"
    embedding_dim: int = 256
    hidden_dim: int = 1500
    context_frames: int = 5

    # CAM++ Speaker Embedding settings
    models_dir: Path = Path("models")
    speaker_model_file: str = "3dspeaker_speech_campplus_sv_en_voxceleb_16k.onnx"
    speaker_num_threads: int = 1

    @property
    def speaker_model_path(self) -> Path:
        """Full path to CAM++ speaker model file."""
        return self.models_dir / self.speaker_model_file


settings = EngineSettings()
