"""Voice activity detection."""

from voiceid.engine.vad.energy import SpeechSegment, detect_voice_activity

__all__ = ["SpeechSegment", "detect_voice_activity"]
