"""Engine exceptions."""


class EngineError(Exception):
    """Base exception for engine."""

    pass


class ModelNotLoadedError(EngineError):
    """Model is not loaded."""

    pass


class AudioConversionError(EngineError):
    """Failed to convert audio format."""

    pass


class NoVoiceActivityError(EngineError):
    """No voice activity detected in audio."""

    pass


class MelSpectrogramError(EngineError):
    """Mel spectrogram could not be computed."""

    pass


class SpeakerEmbeddingError(EngineError):
    """Speaker embedding extraction error."""

    pass
