"""Speaker id generation.

Ids have the form ``spk_<6 hex>_<M|F|U>``, the hex being the first six
characters of the SHA-256 of the first 64 components of the normalized
embedding (float32 little-endian). Unmatched audio gets
``spk_unknown_<base36 epoch millis>``.
"""

import hashlib
import re
import time

import numpy as np

from voiceid.domain.models.speaker import Gender

HASH_DIMENSIONS = 64
HASH_LENGTH = 6
UNKNOWN_PREFIX = "spk_unknown_"

_SPEAKER_ID_PATTERN = re.compile(r"^spk_([a-f0-9]{6})_([MFU])$")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


class SpeakerIdGenerator:
    """Deterministic embedding -> speaker id mapping."""

    @staticmethod
    def embedding_hash(embedding: np.ndarray) -> str:
        """Six hex characters identifying an embedding."""
        vector = np.asarray(embedding, dtype=np.float64)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm

        head = vector[:HASH_DIMENSIONS].astype("<f4").tobytes()
        return hashlib.sha256(head).hexdigest()[:HASH_LENGTH]

    @classmethod
    def generate(cls, embedding: np.ndarray, gender: Gender | str | None = None) -> str:
        """Generate the speaker id of an embedding.

        Args:
            embedding: Speaker embedding (normalized internally).
            gender: Gender code; defaults to U.

        Returns:
            Speaker id such as ``spk_a1b2c3_U``.
        """
        code = Gender(gender).value if gender else Gender.UNKNOWN.value
        return f"spk_{cls.embedding_hash(embedding)}_{code}"

    @staticmethod
    def generate_unknown() -> str:
        """Id for audio that matched no enrolled speaker."""
        return UNKNOWN_PREFIX + _to_base36(int(time.time() * 1000))

    @staticmethod
    def is_valid(speaker_id: str) -> bool:
        """Check the ``spk_<hex6>_<MFU>`` structure."""
        return _SPEAKER_ID_PATTERN.match(speaker_id) is not None

    @staticmethod
    def extract_hash(speaker_id: str) -> str | None:
        """Hash part of a valid id, else None."""
        match = _SPEAKER_ID_PATTERN.match(speaker_id)
        return match.group(1) if match else None

    @staticmethod
    def extract_gender(speaker_id: str) -> Gender | None:
        """Gender part of a valid id, else None."""
        match = _SPEAKER_ID_PATTERN.match(speaker_id)
        return Gender(match.group(2)) if match else None
