"""Engine layer - audio DSP and voiceprint extraction."""

from voiceid.engine.voiceprint import VoiceprintExtractor

__all__ = ["VoiceprintExtractor"]
