"""Speaker recognition service.

Orchestrates the voiceprint engine, the speaker repository and the in-memory
speaker index:
1. Enrollment (single sample, or 3-5 samples with a consistency check)
2. 1:N identification against every enrolled speaker
3. Real-time identification over a rolling per-session buffer
4. 1:1 verification against a claimed speaker id
5. Threshold calibration from genuine/impostor score distributions
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import UTC, datetime

from voiceid.domain.models.audio import AudioSample
from voiceid.domain.models.results import (
    EnrollmentResult,
    IdentificationResult,
    QualityReport,
    RecognitionStats,
    SampleDetail,
    SpeakerList,
    StreamingIdentificationResult,
    VerificationResult,
)
from voiceid.domain.models.speaker import Gender, SpeakerRecord
from voiceid.domain.protocols.repository import SpeakerRepositoryProtocol
from voiceid.domain.speaker_id import SpeakerIdGenerator
from voiceid.domain_service.calibration import calibrate
from voiceid.domain_service.exceptions import (
    InconsistentSamplesError,
    InsufficientSamplesError,
    InvalidAudioError,
    InvalidThresholdError,
    SpeakerNotFoundError,
)
from voiceid.domain_service.index import IndexWriter, SpeakerIndex
from voiceid.domain_service.settings import settings
from voiceid.engine.voiceprint import VoiceprintExtractor
from voiceid.engine.voiceprint.similarity import (
    average_embeddings,
    cosine_similarity,
    multi_embedding_similarity,
    pairwise_consistency,
)

logger = logging.getLogger(__name__)

DEFAULT_REALTIME_SESSION = "default"


@dataclass
class RealtimeOptions:
    """Window parameters for real-time identification, in 16-bit samples."""

    window_size: int = settings.realtime_window_size
    hop_size: int = settings.realtime_hop_size
    min_confidence: float = settings.realtime_min_confidence


def validate_audio_bytes(data: bytes, check_minimum: bool = True) -> None:
    """Reject empty, too short or too long audio before any DSP runs.

    Raises:
        InvalidAudioError: With the reason for rejection.
    """
    if not data:
        raise InvalidAudioError("Audio data is required")
    if check_minimum and len(data) < settings.min_audio_bytes:
        raise InvalidAudioError(
            f"Audio too short. Minimum {settings.min_audio_seconds:g} second required."
        )
    if len(data) > settings.max_audio_bytes:
        raise InvalidAudioError(
            f"Audio too long. Maximum {settings.max_audio_seconds:g} seconds allowed."
        )


def _gender(gender: Gender | str | None) -> Gender:
    return Gender(gender) if gender else Gender.UNKNOWN


class SpeakerRecognitionService:
    """Enrollment, identification and verification of speakers."""

    def __init__(
        self,
        repository: SpeakerRepositoryProtocol,
        extractor: VoiceprintExtractor,
        index: SpeakerIndex | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Persistent speaker store.
            extractor: Voiceprint extractor.
            index: In-memory speaker index. A new empty one if omitted.
        """
        self.repository = repository
        self.extractor = extractor
        self.index = index or SpeakerIndex()
        self._threshold = settings.identification_threshold
        self._realtime_buffers: OrderedDict[str, bytearray] = OrderedDict()
        self._realtime_lock = threading.Lock()

    def initialize(self) -> None:
        """Load every stored speaker into the index and calibrate."""
        records = self.repository.get_all()
        with self.index.update() as writer:
            writer.clear()
            for record in records:
                writer.put(record.id, record.embeddings)
            self._calibrate(writer)

        logger.info(
            f"Loaded {len(records)} speakers, identification threshold {self._threshold:.2f}"
        )

    def _calibrate(self, writer: IndexWriter) -> None:
        threshold = calibrate(writer.view())
        if threshold is not None and threshold != self._threshold:
            logger.info(f"Calibrated identification threshold: {self._threshold:.2f} -> {threshold:.2f}")
            self._threshold = threshold

    def enroll(self, sample: AudioSample, gender: Gender | str | None = None) -> EnrollmentResult:
        """Enroll one sample.

        An id that already exists gains the new embedding, its averaged
        embedding is recomputed and its enrollment count incremented.

        Raises:
            InvalidAudioError: If the payload fails the size checks.
            EngineError: If no embedding can be extracted.
        """
        validate_audio_bytes(sample.data)
        extraction = self.extractor.extract(
            sample.data,
            sample.sample_rate,
            sample.bit_depth,
            sample.audio_format,
            channels=sample.channels,
        )
        embedding = extraction.embedding

        speaker_id = SpeakerIdGenerator.generate(embedding, gender)
        speaker_hash = SpeakerIdGenerator.extract_hash(speaker_id) or ""

        with self.index.update() as writer:
            existing = self.repository.get(speaker_id)
            if existing:
                existing.embeddings.append(embedding)
                existing.embedding = average_embeddings(existing.embeddings)
                existing.enrollment_count += 1
                existing.updated_at = datetime.now(UTC)
                record = existing
            else:
                record = SpeakerRecord(
                    id=speaker_id,
                    hash=speaker_hash,
                    embedding=embedding,
                    embeddings=[embedding],
                    gender=_gender(gender),
                )

            self.repository.save(record)
            writer.put(record.id, record.embeddings)

        logger.info(
            f"Enrolled speaker {speaker_id} (update={existing is not None}, "
            f"count={record.enrollment_count}, quality={extraction.quality:.2f})"
        )

        return EnrollmentResult(
            speaker_id=speaker_id,
            hash=speaker_hash,
            confidence=extraction.quality,
            is_update=existing is not None,
            enrollment_count=record.enrollment_count,
        )

    def enroll_multi_sample(
        self,
        samples: list[AudioSample],
        gender: Gender | str | None = None,
    ) -> EnrollmentResult:
        """Enroll a speaker from several samples of the same voice.

        Args:
            samples: Between 3 and 5 audio samples.
            gender: Optional gender code for the id.

        Returns:
            EnrollmentResult carrying a quality report.

        Raises:
            InsufficientSamplesError: If the sample count is out of range.
            InconsistentSamplesError: If samples look like different speakers.
            InvalidAudioError: If any payload fails the size checks.
        """
        if len(samples) < settings.min_enrollment_samples:
            raise InsufficientSamplesError(
                f"At least {settings.min_enrollment_samples} samples required for enrollment"
            )
        if len(samples) > settings.max_enrollment_samples:
            raise InsufficientSamplesError(
                f"Maximum {settings.max_enrollment_samples} samples allowed"
            )

        embeddings = []
        details: list[SampleDetail] = []
        for i, sample in enumerate(samples):
            validate_audio_bytes(sample.data)
            extraction = self.extractor.extract(
                sample.data,
                sample.sample_rate,
                sample.bit_depth,
                sample.audio_format,
                channels=sample.channels,
            )
            embeddings.append(extraction.embedding)
            details.append(
                SampleDetail(
                    index=i,
                    quality=extraction.quality,
                    duration=sample.duration_seconds,
                )
            )

        consistency = pairwise_consistency(embeddings)
        if consistency < settings.min_consistency:
            raise InconsistentSamplesError(
                f"Sample consistency too low ({consistency:.2f}). "
                "Ensure all samples are from the same speaker."
            )

        averaged = average_embeddings(embeddings)
        speaker_id = SpeakerIdGenerator.generate(averaged, gender)
        speaker_hash = SpeakerIdGenerator.extract_hash(speaker_id) or ""

        qualities = [d.quality for d in details]
        average_quality = sum(qualities) / len(qualities)

        with self.index.update() as writer:
            record = SpeakerRecord(
                id=speaker_id,
                hash=speaker_hash,
                embedding=averaged,
                embeddings=embeddings,
                gender=_gender(gender),
                enrollment_count=len(embeddings),
            )
            previous = self.repository.get(speaker_id)
            if previous:
                record.public_id = previous.public_id
                record.created_at = previous.created_at

            self.repository.save(record)
            writer.put(record.id, record.embeddings)
            self._calibrate(writer)

        logger.info(
            f"Enrolled speaker {speaker_id} from {len(samples)} samples "
            f"(consistency={consistency:.2f})"
        )

        return EnrollmentResult(
            speaker_id=speaker_id,
            hash=speaker_hash,
            confidence=average_quality,
            is_update=False,
            enrollment_count=len(embeddings),
            quality_report=QualityReport(
                average_quality=average_quality,
                min_quality=min(qualities),
                consistency_score=consistency,
                sample_count=len(embeddings),
                sample_details=details,
                recommendations=self._recommendations(average_quality, consistency, details),
            ),
        )

    @staticmethod
    def _recommendations(
        average_quality: float,
        consistency: float,
        details: list[SampleDetail],
    ) -> list[str]:
        recommendations: list[str] = []

        if average_quality < settings.recommend_average_quality:
            recommendations.append("Audio quality is low. Please record in a quieter environment.")

        if consistency < settings.recommend_consistency:
            recommendations.append(
                "Voice consistency is low. Ensure all samples are from the same speaker."
            )

        low_quality = [
            str(d.index + 1) for d in details if d.quality < settings.recommend_sample_quality
        ]
        if low_quality:
            recommendations.append(
                f"Sample(s) {', '.join(low_quality)} have low quality. Consider re-recording."
            )

        too_short = [str(d.index + 1) for d in details if d.duration < settings.min_sample_duration]
        if too_short:
            recommendations.append(
                f"Sample(s) {', '.join(too_short)} are too short. Aim for 3-10 seconds each."
            )

        if not recommendations:
            recommendations.append("Enrollment quality is excellent!")

        return recommendations

    def identify(self, sample: AudioSample, threshold: float | None = None) -> IdentificationResult:
        """Identify the speaker of a sample among all enrolled speakers.

        Args:
            sample: Audio to identify.
            threshold: Acceptance threshold. Defaults to the calibrated one.

        Returns:
            IdentificationResult. Unknown speakers get a fresh unknown id and
            the best sub-threshold match for diagnostics.
        """
        if threshold is None:
            threshold = self._threshold

        validate_audio_bytes(sample.data)
        segments = self.extractor.extract_multiple(
            sample.data,
            sample.sample_rate,
            sample.bit_depth,
            sample.audio_format,
            channels=sample.channels,
        )

        if not segments:
            return IdentificationResult(
                speaker_id=SpeakerIdGenerator.generate_unknown(),
                confidence=0.0,
                is_known=False,
                quality=0.0,
            )

        queries = [s.embedding for s in segments]
        quality = sum(s.quality for s in segments) / len(segments)

        best_id: str | None = None
        best_score = 0.0
        for speaker_id, references in self.index.snapshot().items():
            score = multi_embedding_similarity(queries, list(references))
            if best_id is None or score > best_score:
                best_id, best_score = speaker_id, score

        if best_id is not None and best_score >= threshold:
            logger.debug(f"Identified {best_id} with confidence {best_score:.3f}")
            return IdentificationResult(
                speaker_id=best_id,
                confidence=best_score,
                is_known=True,
                quality=quality,
                match_method="multi",
            )

        return IdentificationResult(
            speaker_id=SpeakerIdGenerator.generate_unknown(),
            confidence=best_score,
            is_known=False,
            quality=quality,
            best_match_id=best_id,
        )

    def identify_realtime(
        self,
        chunk: bytes,
        options: RealtimeOptions | None = None,
        session_id: str = DEFAULT_REALTIME_SESSION,
    ) -> StreamingIdentificationResult:
        """Feed a 16 kHz / 16-bit PCM chunk into a session's rolling buffer.

        Until the buffer holds a full window the result is still processing.
        Once it does, the latest window is matched against each speaker's most
        recently added embedding and the buffer keeps its trailing
        window - hop samples.

        The window is capped at the maximum audio length and a buffer never
        holds more than that. Only the most recently used sessions are kept.
        """
        if options is None:
            options = RealtimeOptions()

        validate_audio_bytes(chunk, check_minimum=False)
        max_bytes = settings.max_audio_bytes
        window_bytes = min(options.window_size * 2, max_bytes)

        with self._realtime_lock:
            buffer = self._session_buffer(session_id)
            buffer.extend(chunk)
            if len(buffer) > max_bytes:
                del buffer[: len(buffer) - max_bytes]
            buffered_samples = len(buffer) // 2

            if len(buffer) < window_bytes:
                return StreamingIdentificationResult(
                    speaker_id=None,
                    confidence=0.0,
                    is_known=False,
                    is_processing=True,
                    buffered_samples=buffered_samples,
                )

            window = bytes(buffer[-window_bytes:])
            keep = max(window_bytes - options.hop_size * 2, 0)
            del buffer[: len(buffer) - keep]

        embedding = self.extractor.extract(window, 16000, 16).embedding

        best_id: str | None = None
        best_score = 0.0
        for speaker_id, references in self.index.snapshot().items():
            score = cosine_similarity(embedding, references[-1])
            if best_id is None or score > best_score:
                best_id, best_score = speaker_id, score

        is_known = best_id is not None and best_score >= options.min_confidence

        return StreamingIdentificationResult(
            speaker_id=best_id if is_known else None,
            confidence=best_score,
            is_known=is_known,
            is_processing=False,
            buffered_samples=buffered_samples,
        )

    def _session_buffer(self, session_id: str) -> bytearray:
        """Buffer of a session, marked most recently used. Caller holds _realtime_lock."""
        buffer = self._realtime_buffers.get(session_id)
        if buffer is None:
            buffer = self._realtime_buffers[session_id] = bytearray()
            while len(self._realtime_buffers) > settings.realtime_max_sessions:
                evicted, _ = self._realtime_buffers.popitem(last=False)
                logger.debug(f"Dropped idle real-time session {evicted}")
        else:
            self._realtime_buffers.move_to_end(session_id)
        return buffer

    @property
    def realtime_session_count(self) -> int:
        with self._realtime_lock:
            return len(self._realtime_buffers)

    def reset_realtime(self, session_id: str = DEFAULT_REALTIME_SESSION) -> None:
        """Drop a real-time session's buffered audio."""
        with self._realtime_lock:
            self._realtime_buffers.pop(session_id, None)

    def verify(
        self,
        speaker_id: str,
        sample: AudioSample,
        threshold: float | None = None,
    ) -> VerificationResult:
        """Check whether a sample belongs to the claimed speaker.

        Confidence is 0.7 * max + 0.3 * mean similarity over the speaker's
        stored embeddings.
        """
        if threshold is None:
            threshold = settings.verification_threshold

        validate_audio_bytes(sample.data)

        references = self.index.snapshot().get(speaker_id)
        if not references:
            return VerificationResult(
                speaker_id=speaker_id,
                is_verified=False,
                confidence=0.0,
                reason="SPEAKER_NOT_FOUND",
            )

        embedding = self.extractor.extract(
            sample.data,
            sample.sample_rate,
            sample.bit_depth,
            sample.audio_format,
            channels=sample.channels,
        ).embedding

        similarities = [cosine_similarity(embedding, ref) for ref in references]
        max_similarity = max(similarities)
        average_similarity = sum(similarities) / len(similarities)
        confidence = max_similarity * 0.7 + average_similarity * 0.3

        return VerificationResult(
            speaker_id=speaker_id,
            is_verified=confidence >= threshold,
            confidence=confidence,
            max_similarity=max_similarity,
            average_similarity=average_similarity,
        )

    def list_speakers(self) -> SpeakerList:
        speakers = self.repository.list_speakers()
        return SpeakerList(speakers=speakers, total_count=len(speakers))

    def get_speaker(self, speaker_id: str) -> SpeakerRecord:
        """Get a stored speaker record.

        Raises:
            SpeakerNotFoundError: If no such speaker exists.
        """
        record = self.repository.get(speaker_id)
        if record is None:
            raise SpeakerNotFoundError(f"Speaker '{speaker_id}' not found")
        return record

    def delete_speaker(self, speaker_id: str) -> bool:
        """Delete a speaker from storage and the index."""
        with self.index.update() as writer:
            deleted = self.repository.delete(speaker_id)
            if deleted:
                writer.remove(speaker_id)

        if deleted:
            logger.info(f"Deleted speaker {speaker_id}")
        return deleted

    def get_threshold(self) -> float:
        return self._threshold

    def set_threshold(self, threshold: float) -> float:
        """Set the identification threshold.

        Returns:
            The previous threshold.

        Raises:
            InvalidThresholdError: If threshold is outside [0, 1].
        """
        if threshold < 0 or threshold > 1:
            raise InvalidThresholdError("Threshold must be between 0 and 1")

        previous = self._threshold
        self._threshold = threshold
        logger.info(f"Identification threshold set: {previous:.2f} -> {threshold:.2f}")
        return previous

    def get_stats(self) -> RecognitionStats:
        total_speakers, total_embeddings = self.index.stats()
        return RecognitionStats(
            total_speakers=total_speakers,
            total_embeddings=total_embeddings,
            average_embeddings_per_speaker=(
                total_embeddings / total_speakers if total_speakers else 0.0
            ),
            current_threshold=self._threshold,
        )
