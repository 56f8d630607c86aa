"""VoiceID - streamed audio ingestion and speaker recognition."""

__version__ = "0.1.0"
