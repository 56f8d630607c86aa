"""Audio DSP utilities."""

from voiceid.engine.audio.codec import (
    decode_pcm,
    decode_wav,
    noise_gate,
    normalize_peak,
    pre_emphasis,
    preprocess_audio,
    resample_audio,
)
from voiceid.engine.audio.spectral import (
    create_mel_filterbank,
    fft_magnitude,
    hamming_window,
    hz_to_mel,
    mel_spectrogram,
    mel_to_hz,
    stft_magnitude,
)

__all__ = [
    "decode_pcm",
    "decode_wav",
    "resample_audio",
    "pre_emphasis",
    "noise_gate",
    "normalize_peak",
    "preprocess_audio",
    "hamming_window",
    "fft_magnitude",
    "stft_magnitude",
    "hz_to_mel",
    "mel_to_hz",
    "create_mel_filterbank",
    "mel_spectrogram",
]
