"""Database exceptions."""


class RepositoryError(Exception):
    """Base exception for repository operations."""

    pass


class RecordCorruptedError(RepositoryError):
    """Raised when a stored record cannot be decoded."""

    pass


class InvalidSpeakerIdError(RepositoryError):
    """Raised when a speaker id cannot be used as a storage key."""

    pass
