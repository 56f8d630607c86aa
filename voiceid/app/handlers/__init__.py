"""Request handlers."""

from voiceid.app.handlers.speaker import (
    SpeakerRequestHandler,
    UnknownMethodError,
    decode_audio,
)

__all__ = ["SpeakerRequestHandler", "UnknownMethodError", "decode_audio"]
