"""Domain service exceptions."""


class RecognitionError(Exception):
    """Base exception for speaker recognition."""

    pass


class InvalidAudioError(RecognitionError):
    """Audio payload is missing, malformed, too short or too long."""

    pass


class EnrollmentError(RecognitionError):
    """Enrollment could not be completed."""

    pass


class InsufficientSamplesError(EnrollmentError):
    """Sample count outside the allowed range."""

    pass


class InconsistentSamplesError(EnrollmentError):
    """Enrollment samples do not appear to come from one speaker."""

    pass


class SpeakerNotFoundError(RecognitionError):
    """Raised when a speaker is not found."""

    pass


class InvalidThresholdError(RecognitionError):
    """Threshold outside [0, 1]."""

    pass
