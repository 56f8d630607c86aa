"""Sample decoding and time-domain preprocessing."""

import io

import numpy as np
import soundfile as sf

from voiceid.engine.exceptions import AudioConversionError
from voiceid.engine.settings import settings


def decode_pcm(data: bytes, bit_depth: int = 16) -> np.ndarray:
    """Decode raw little-endian PCM bytes to float samples.

    Args:
        data: Raw PCM bytes.
        bit_depth: 16 for signed int16, 32 for float32.

    Returns:
        Audio samples as float32 numpy array. A trailing partial sample is dropped.

    Raises:
        AudioConversionError: If the bit depth is not supported.
    """
    if bit_depth == 16:
        count = len(data) // 2
        samples = np.frombuffer(data, dtype="<i2", count=count)
        return samples.astype(np.float32) / 32768.0

    if bit_depth == 32:
        count = len(data) // 4
        return np.frombuffer(data, dtype="<f4", count=count).astype(np.float32)

    raise AudioConversionError(f"Unsupported bit depth: {bit_depth}")


def decode_wav(data: bytes) -> tuple[np.ndarray, int]:
    """Decode a WAV container to mono float samples.

    Args:
        data: WAV file bytes.

    Returns:
        Tuple of (audio samples as float32 numpy array, sample rate).

    Raises:
        AudioConversionError: If decoding fails.
    """
    try:
        samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except Exception as e:
        raise AudioConversionError(f"Failed to decode WAV data: {e}") from e

    if samples.shape[1] > 1:
        samples = samples.mean(axis=1)
    else:
        samples = samples[:, 0]

    return samples.astype(np.float32), int(sample_rate)


def resample_audio(
    audio: np.ndarray,
    original_sr: int,
    target_sr: int | None = None,
) -> np.ndarray:
    """Resample audio using linear interpolation.

    Args:
        audio: Audio samples.
        original_sr: Original sample rate.
        target_sr: Target sample rate. Defaults to settings.target_sample_rate.

    Returns:
        Resampled audio samples.
    """
    if target_sr is None:
        target_sr = settings.target_sample_rate

    if original_sr == target_sr or len(audio) == 0:
        return audio

    ratio = target_sr / original_sr
    new_length = int(np.floor(len(audio) * ratio))

    src_positions = np.arange(new_length) / ratio
    index = np.floor(src_positions).astype(np.int64)
    fraction = (src_positions - index).astype(np.float32)

    # Positions past the second-to-last sample hold the final value
    last = len(audio) - 1
    tail = index >= last
    index = np.minimum(index, max(last - 1, 0))
    following = np.minimum(index + 1, last)

    result = audio[index] * (1 - fraction) + audio[following] * fraction
    result[tail] = audio[last]
    return result.astype(np.float32)


def pre_emphasis(audio: np.ndarray, coefficient: float | None = None) -> np.ndarray:
    """Apply the first-order pre-emphasis filter y[n] = x[n] - c * x[n-1]."""
    if coefficient is None:
        coefficient = settings.pre_emphasis

    if len(audio) == 0:
        return audio

    result = np.empty_like(audio)
    result[0] = audio[0]
    result[1:] = audio[1:] - coefficient * audio[:-1]
    return result


def noise_gate(audio: np.ndarray, threshold: float | None = None) -> np.ndarray:
    """Zero every sample whose magnitude is below the threshold."""
    if threshold is None:
        threshold = settings.noise_gate_threshold

    return np.where(np.abs(audio) < threshold, 0.0, audio).astype(audio.dtype)


def normalize_peak(audio: np.ndarray) -> np.ndarray:
    """Scale audio so the peak magnitude is 1."""
    if len(audio) == 0:
        return audio

    peak = float(np.max(np.abs(audio)))
    if peak == 0:
        return audio

    return (audio / peak).astype(audio.dtype)


def preprocess_audio(
    data: bytes,
    sample_rate: int = 16000,
    bit_depth: int = 16,
    audio_format: str = "pcm",
    channels: int = 1,
) -> np.ndarray:
    """Run the preprocessing pipeline on raw audio bytes.

    decode -> resample -> pre-emphasis -> noise gate -> peak normalize

    Args:
        data: Raw audio bytes (PCM samples or a WAV container).
        sample_rate: Source sample rate for raw PCM.
        bit_depth: Source bit depth for raw PCM.
        audio_format: "pcm" or "wav".
        channels: Interleaved channel count for raw PCM, averaged down to mono.

    Returns:
        Preprocessed float32 samples at the target sample rate.
    """
    if audio_format == "wav":
        audio, sample_rate = decode_wav(data)
    else:
        audio = decode_pcm(data, bit_depth)
        if channels > 1:
            frames = len(audio) // channels
            audio = audio[: frames * channels].reshape(-1, channels).mean(axis=1)

    audio = resample_audio(audio, sample_rate, settings.target_sample_rate)
    audio = pre_emphasis(audio)
    audio = noise_gate(audio)
    return normalize_peak(audio)
