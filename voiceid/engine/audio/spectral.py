"""Windowing, FFT and mel spectrogram computation."""

import numpy as np

from voiceid.engine.settings import settings


def hamming_window(size: int) -> np.ndarray:
    """Hamming window 0.54 - 0.46 * cos(2*pi*i / (N - 1))."""
    if size == 1:
        return np.ones(1)
    i = np.arange(size)
    return 0.54 - 0.46 * np.cos(2 * np.pi * i / (size - 1))


def _next_power_of_two(n: int) -> int:
    return 1 << max(0, int(np.ceil(np.log2(n))))


def _bit_reversal_permutation(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    indices = np.arange(n)
    reversed_indices = np.zeros(n, dtype=np.int64)
    for b in range(bits):
        reversed_indices |= ((indices >> b) & 1) << (bits - 1 - b)
    return reversed_indices


def fft_magnitude(frames: np.ndarray, n_fft: int | None = None) -> np.ndarray:
    """Magnitude spectrum via iterative radix-2 Cooley-Tukey FFT.

    Frames are zero-padded up to the next power of two (at least n_fft when given).
    The transform is computed in place over the bit-reversed input, one butterfly
    stage per doubling of the block size.

    Args:
        frames: 1-D signal or 2-D array of frames (num_frames, frame_size).
        n_fft: Minimum transform length.

    Returns:
        Magnitudes of the non-negative frequency bins, shape (..., padded // 2 + 1).
    """
    frames = np.asarray(frames, dtype=np.float64)
    single = frames.ndim == 1
    if single:
        frames = frames[np.newaxis, :]

    length = frames.shape[1]
    padded = _next_power_of_two(max(length, n_fft or 0, 1))

    data = np.zeros((frames.shape[0], padded), dtype=np.complex128)
    data[:, :length] = frames
    data = data[:, _bit_reversal_permutation(padded)]

    size = 2
    while size <= padded:
        half = size // 2
        twiddle = np.exp(-2j * np.pi * np.arange(half) / size)
        blocks = data.reshape(data.shape[0], -1, size)
        even = blocks[:, :, :half]
        odd = blocks[:, :, half:] * twiddle
        data = np.concatenate([even + odd, even - odd], axis=2).reshape(
            data.shape[0], padded
        )
        size *= 2

    magnitude = np.abs(data[:, : padded // 2 + 1])
    return magnitude[0] if single else magnitude


def stft_magnitude(
    audio: np.ndarray,
    frame_size: int | None = None,
    hop_length: int | None = None,
    n_fft: int | None = None,
) -> np.ndarray:
    """Hamming-windowed short-time magnitude spectra.

    Returns:
        Array of shape (num_frames, bins). Zero frames when the audio is shorter
        than one frame.
    """
    if frame_size is None:
        frame_size = settings.frame_size
    if hop_length is None:
        hop_length = settings.hop_length
    if n_fft is None:
        n_fft = settings.n_fft

    bins = _next_power_of_two(max(frame_size, n_fft)) // 2 + 1
    if len(audio) < frame_size:
        return np.zeros((0, bins))

    frames = np.lib.stride_tricks.sliding_window_view(audio, frame_size)[::hop_length]
    return fft_magnitude(frames * hamming_window(frame_size), n_fft)


def hz_to_mel(hz: float | np.ndarray) -> float | np.ndarray:
    """Convert Hz to the mel scale."""
    return 2595 * np.log10(1 + np.asarray(hz) / 700)


def mel_to_hz(mel: float | np.ndarray) -> float | np.ndarray:
    """Convert mel to Hz."""
    return 700 * (10 ** (np.asarray(mel) / 2595) - 1)


def create_mel_filterbank(
    n_fft: int,
    n_mels: int,
    sample_rate: int,
    f_min: float = 0.0,
    f_max: float | None = None,
) -> np.ndarray:
    """Triangular mel filterbank.

    Filter edges sit at n_mels + 2 points equally spaced on the mel scale between
    f_min and f_max (default Nyquist).

    Returns:
        Array of shape (n_mels, n_fft // 2 + 1).
    """
    if f_max is None:
        f_max = sample_rate / 2

    fft_freqs = np.arange(n_fft // 2 + 1) * sample_rate / n_fft
    mel_points = np.linspace(hz_to_mel(f_min), hz_to_mel(f_max), n_mels + 2)
    hz_points = mel_to_hz(mel_points)

    filterbank = np.zeros((n_mels, len(fft_freqs)))
    for i in range(n_mels):
        left, center, right = hz_points[i], hz_points[i + 1], hz_points[i + 2]

        rising = (fft_freqs >= left) & (fft_freqs <= center)
        falling = (fft_freqs > center) & (fft_freqs <= right)

        filterbank[i, rising] = (fft_freqs[rising] - left) / (center - left)
        filterbank[i, falling] = (right - fft_freqs[falling]) / (right - center)

    return filterbank


def mel_spectrogram(
    audio: np.ndarray,
    sample_rate: int | None = None,
    frame_size: int | None = None,
    hop_length: int | None = None,
    n_fft: int | None = None,
    n_mels: int | None = None,
) -> np.ndarray:
    """Log mel spectrogram, log(filter energy + 1e-10).

    Returns:
        Array of shape (num_frames, n_mels).
    """
    if sample_rate is None:
        sample_rate = settings.target_sample_rate
    if frame_size is None:
        frame_size = settings.frame_size
    if n_fft is None:
        n_fft = settings.n_fft
    if n_mels is None:
        n_mels = settings.n_mels

    spectrum = stft_magnitude(audio, frame_size, hop_length, n_fft)
    if spectrum.shape[0] == 0:
        return np.zeros((0, n_mels))

    padded = (spectrum.shape[1] - 1) * 2
    filterbank = create_mel_filterbank(padded, n_mels, sample_rate)
    return np.log(spectrum @ filterbank.T + 1e-10)
