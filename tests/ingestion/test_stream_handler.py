"""Tests for the stream handler and wire messages."""

import base64
import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from voiceid.domain.models.results import IdentificationResult
from voiceid.domain.protocols.transcriber import TranscriptionResult
from voiceid.domain_service.exceptions import InvalidAudioError
from voiceid.ingestion import StreamHandler
from voiceid.ingestion.consumers import (
    ConsumerError,
    TranscriptionConsumer,
    VoiceprintConsumer,
    estimate_transcription_duration_ms,
)
from voiceid.ingestion.messages import (
    StreamAckMessage,
    StreamErrorMessage,
    StreamResultMessage,
    parse_incoming,
    to_wire,
)
from voiceid.ingestion.models import (
    AssembledAudio,
    AudioStreamConfig,
    StreamErrorCode,
    StreamStatus,
)
from voiceid.ingestion.monitor import StreamMonitor
from voiceid.ingestion.storage import AudioStorage


class RecordingConsumer:
    """Consumer that remembers what it received."""

    kind = "test"

    def __init__(self, error: ConsumerError | None = None) -> None:
        self.received: list[AssembledAudio] = []
        self.error = error

    def consume(self, audio: AssembledAudio) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.received.append(audio)
        return {"bytes": audio.total_bytes}


def start_message(audio_format: str = "pcm", **payload: Any) -> dict[str, Any]:
    return {
        "type": "stream.start",
        "id": "m-start",
        "timestamp": "2026-01-01T00:00:00Z",
        "payload": {"sessionKey": "session", "format": audio_format, "sampleRate": 16000}
        | payload,
    }


def chunk_message(stream_id: str, sequence: int, data: bytes, is_last: bool = False) -> str:
    return json.dumps(
        {
            "type": "stream.chunk",
            "id": f"m-{sequence}",
            "timestamp": "2026-01-01T00:00:00Z",
            "payload": {
                "streamId": stream_id,
                "sequence": sequence,
                "data": base64.b64encode(data).decode(),
                "isLast": is_last,
            },
        }
    )


def end_message(stream_id: str) -> dict[str, Any]:
    return {
        "type": "stream.end",
        "id": "m-end",
        "timestamp": "2026-01-01T00:00:00Z",
        "payload": {"streamId": stream_id},
    }


def start_stream(handler: StreamHandler, audio_format: str = "pcm") -> str:
    (ack,) = handler.handle_message(start_message(audio_format))
    assert isinstance(ack, StreamAckMessage)
    return ack.payload.stream_id


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture
def handler(consumer: RecordingConsumer, tmp_path) -> StreamHandler:
    """Handler with a recording consumer and temporary storage."""
    return StreamHandler(consumer=consumer, storage=AudioStorage(tmp_path))


class TestMessages:
    """Tests for wire message parsing."""

    def test_parse_chunk(self) -> None:
        """Test camelCase JSON is parsed into the chunk model."""
        message = parse_incoming(chunk_message("s1", 3, b"abc", is_last=True))

        assert message.type == "stream.chunk"
        assert message.payload.stream_id == "s1"
        assert message.payload.sequence == 3
        assert message.payload.is_last is True

    def test_unknown_type(self) -> None:
        """Test unknown message types are rejected."""
        with pytest.raises(ValueError):
            parse_incoming({"type": "stream.pause", "payload": {}})

    def test_sequence_bounds(self) -> None:
        """Test negative sequence numbers are rejected."""
        with pytest.raises(ValueError):
            parse_incoming(chunk_message("s1", -1, b"abc"))

    def test_outgoing_envelope(self) -> None:
        """Test outgoing messages serialize with camelCase keys."""
        handler = StreamHandler()
        (ack,) = handler.handle_message(start_message())
        wire = to_wire(ack)

        assert wire["type"] == "stream.ack"
        assert set(wire) == {"type", "id", "timestamp", "payload"}
        assert wire["payload"]["receivedChunks"] == 0
        assert wire["payload"]["status"] == "receiving"
        assert wire["payload"]["progress"] == 0


class TestStreamHandler:
    """Tests for StreamHandler."""

    def test_start(self, handler: StreamHandler) -> None:
        """Test stream.start registers the stream."""
        stream_id = start_stream(handler)

        assert handler.has_stream(stream_id)
        assert handler.active_stream_count == 1
        state = handler.get_stream_state(stream_id)
        assert state is not None
        assert state.status == StreamStatus.RECEIVING

    def test_unsupported_format(self, handler: StreamHandler) -> None:
        """Test unknown formats are refused at start."""
        (error,) = handler.handle_message(start_message("mp3"))

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.code == StreamErrorCode.INVALID_FORMAT
        assert error.payload.message.startswith("Unsupported audio format: mp3")
        assert handler.active_stream_count == 0

    def test_stream_cap(self, consumer: RecordingConsumer) -> None:
        """Test starts beyond the concurrent stream cap are refused."""
        handler = StreamHandler(consumer=consumer, max_streams=1)
        start_stream(handler)

        (error,) = handler.handle_message(start_message())
        assert isinstance(error, StreamErrorMessage)
        assert error.payload.message == "Too many concurrent streams (maximum 1)"

    def test_full_stream(
        self, handler: StreamHandler, consumer: RecordingConsumer, tone, tmp_path
    ) -> None:
        """Test out-of-order chunks complete, get stored and reach the consumer."""
        stream_id = start_stream(handler)
        audio = tone(200, 1.0)
        parts = [audio[:10000], audio[10000:20000], audio[20000:]]

        (ack,) = handler.handle_message(chunk_message(stream_id, 1, parts[1]))
        assert ack.payload.status == StreamStatus.RECEIVING
        assert ack.payload.received_chunks == 1
        assert 0 < ack.payload.progress < 100

        (ack,) = handler.handle_message(chunk_message(stream_id, 2, parts[2], is_last=True))
        assert ack.payload.status == StreamStatus.PROCESSING
        assert ack.payload.progress < 100

        messages = handler.handle_message(chunk_message(stream_id, 0, parts[0]))

        assert [type(m) for m in messages] == [
            StreamAckMessage,
            StreamAckMessage,
            StreamResultMessage,
        ]
        assert messages[0].payload.status == StreamStatus.PROCESSING
        assert messages[1].payload.status == StreamStatus.COMPLETED
        assert messages[1].payload.progress == 100
        assert messages[2].payload.kind == "test"
        assert messages[2].payload.result == {"bytes": len(audio)}

        assert consumer.received[0].data == audio
        assert (tmp_path / f"{stream_id}.pcm").read_bytes() == audio
        assert not handler.has_stream(stream_id)
        assert handler.monitor.get_global_stats().completed_streams == 1

    def test_duplicate_not_counted(self, handler: StreamHandler) -> None:
        """Test a duplicate chunk is acknowledged without being counted."""
        stream_id = start_stream(handler)
        handler.handle_message(chunk_message(stream_id, 0, bytes(200)))
        (ack,) = handler.handle_message(chunk_message(stream_id, 0, bytes(200)))

        assert ack.payload.received_chunks == 1
        stats = handler.get_assembler_stats(stream_id)
        assert stats is not None
        assert stats.duplicate_chunks == 1

    def test_unknown_stream(self, handler: StreamHandler) -> None:
        """Test chunks for an unknown stream are refused."""
        (error,) = handler.handle_message(chunk_message("missing", 0, b"abc"))

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.stream_id == "missing"
        assert error.payload.message == "Stream not found"

    def test_bad_base64(self, handler: StreamHandler) -> None:
        """Test undecodable chunk data is a recoverable error."""
        stream_id = start_stream(handler)
        raw = json.loads(chunk_message(stream_id, 0, b"abc"))
        raw["payload"]["data"] = "!!not base64!!"

        (error,) = handler.handle_message(raw)

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.recoverable is True
        assert error.payload.message.startswith("Failed to decode chunk data")
        assert handler.has_stream(stream_id)

    def test_malformed_message(self, handler: StreamHandler) -> None:
        """Test invalid JSON is answered with a recoverable error."""
        (error,) = handler.handle_message("{not json")

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.stream_id is None
        assert error.payload.recoverable is True
        assert error.payload.message.startswith("Invalid message")

    def test_too_large(self, consumer: RecordingConsumer) -> None:
        """Test a stream over the size cap fails."""
        handler = StreamHandler(consumer=consumer, max_stream_size=1000)
        stream_id = start_stream(handler)
        handler.handle_message(chunk_message(stream_id, 0, bytes(600)))

        (error,) = handler.handle_message(chunk_message(stream_id, 1, bytes(600)))

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.code == StreamErrorCode.AUDIO_TOO_LARGE
        assert error.payload.message == "Stream exceeds maximum size of 1000 bytes"
        assert not handler.has_stream(stream_id)
        assert handler.monitor.get_global_stats().failed_streams == 1

    def test_duplicate_near_size_cap(self, consumer: RecordingConsumer) -> None:
        """Test a resent chunk does not count against the size cap."""
        handler = StreamHandler(consumer=consumer, max_stream_size=1000)
        stream_id = start_stream(handler)
        handler.handle_message(chunk_message(stream_id, 0, bytes(600)))

        (ack,) = handler.handle_message(chunk_message(stream_id, 0, bytes(600)))

        assert isinstance(ack, StreamAckMessage)
        assert ack.payload.received_chunks == 1
        assert handler.has_stream(stream_id)
        assert handler.get_stream_state(stream_id).total_bytes == 600

    def test_validation_failure(self, handler: StreamHandler, consumer: RecordingConsumer) -> None:
        """Test invalid audio never reaches the consumer."""
        stream_id = start_stream(handler, "wav")

        messages = handler.handle_message(
            chunk_message(stream_id, 0, b"JUNK" + bytes(4000), is_last=True)
        )

        error = messages[-1]
        assert isinstance(error, StreamErrorMessage)
        assert error.payload.code == StreamErrorCode.INVALID_FORMAT
        assert error.payload.message.startswith("Audio validation failed:")
        assert "Invalid wav header" in error.payload.message
        assert consumer.received == []

    def test_consumer_error(self, tone, tmp_path) -> None:
        """Test consumer failures become stream.error after the completed ack."""
        failing = RecordingConsumer(
            ConsumerError(StreamErrorCode.STT_PROVIDER_ERROR, "provider down")
        )
        handler = StreamHandler(consumer=failing, storage=AudioStorage(tmp_path))
        stream_id = start_stream(handler)

        messages = handler.handle_message(chunk_message(stream_id, 0, tone(200, 1.0), True))

        assert messages[1].payload.status == StreamStatus.COMPLETED
        error = messages[2]
        assert isinstance(error, StreamErrorMessage)
        assert error.payload.code == StreamErrorCode.STT_PROVIDER_ERROR
        assert error.payload.message == "provider down"

    def test_end_incomplete(self, handler: StreamHandler) -> None:
        """Test stream.end with missing chunks fails the stream."""
        stream_id = start_stream(handler)
        handler.handle_message(chunk_message(stream_id, 1, bytes(200)))

        (error,) = handler.handle_message(end_message(stream_id))

        assert isinstance(error, StreamErrorMessage)
        assert error.payload.code == StreamErrorCode.INTERNAL_ERROR
        assert error.payload.message == "No audio data assembled"
        assert not handler.has_stream(stream_id)

    def test_end_unknown_stream(self, handler: StreamHandler) -> None:
        """Test stream.end for an unknown stream."""
        (error,) = handler.handle_message(end_message("missing"))
        assert error.payload.message == "Stream not found"

    def test_close(self, handler: StreamHandler) -> None:
        """Test closing discards open streams as failed."""
        start_stream(handler)
        start_stream(handler)

        handler.close()

        assert handler.active_stream_count == 0
        assert handler.monitor.get_global_stats().failed_streams == 2

    def test_monitor_tracks_chunks(self, consumer: RecordingConsumer) -> None:
        """Test accepted chunks are reported to the monitor."""
        monitor = StreamMonitor()
        handler = StreamHandler(consumer=consumer, monitor=monitor)
        stream_id = start_stream(handler)
        handler.handle_message(chunk_message(stream_id, 0, bytes(300)))

        metrics = monitor.get_stream_metrics(stream_id)
        assert metrics is not None
        assert metrics.bytes_received == 300


def _assembled(data: bytes, audio_format: str = "pcm") -> AssembledAudio:
    return AssembledAudio(
        stream_id="s1",
        config=AudioStreamConfig(
            session_key="session", format=audio_format, sample_rate=16000, channels=1
        ),
        data=data,
        total_chunks=1,
        total_bytes=len(data),
        duration_ms=1000,
    )


class TestConsumers:
    """Tests for the built-in consumers."""

    def test_voiceprint_consumer(self) -> None:
        """Test identification results are returned in camelCase."""
        service = MagicMock()
        service.identify.return_value = IdentificationResult(
            speaker_id="spk_unknown_abc", confidence=0.2, is_known=False, quality=0.5
        )

        result = VoiceprintConsumer(service).consume(_assembled(bytes(32000)))

        assert result["speakerId"] == "spk_unknown_abc"
        assert result["isKnown"] is False
        sample = service.identify.call_args.args[0]
        assert sample.sample_rate == 16000
        assert sample.bit_depth == 16

    def test_voiceprint_consumer_stereo_stream(self) -> None:
        """Test the declared channel count of a stream reaches the service."""
        service = MagicMock()
        service.identify.return_value = IdentificationResult(
            speaker_id="spk_unknown_abc", confidence=0.2, is_known=False, quality=0.5
        )
        handler = StreamHandler(consumer=VoiceprintConsumer(service))
        (ack,) = handler.handle_message(start_message(channels=2))
        stream_id = ack.payload.stream_id

        messages = handler.handle_message(
            chunk_message(stream_id, 0, bytes(64000), is_last=True)
        )

        assert isinstance(messages[-1], StreamResultMessage)
        sample = service.identify.call_args.args[0]
        assert sample.channels == 2
        assert sample.duration_seconds == pytest.approx(1.0)

    def test_voiceprint_consumer_rejects_compressed(self) -> None:
        """Test compressed streams cannot be identified."""
        with pytest.raises(ConsumerError) as exc_info:
            VoiceprintConsumer(MagicMock()).consume(_assembled(b"OggS" + bytes(100), "opus"))
        assert exc_info.value.code == StreamErrorCode.INVALID_FORMAT

    def test_voiceprint_consumer_service_error(self) -> None:
        """Test service failures are recoverable consumer errors."""
        service = MagicMock()
        service.identify.side_effect = InvalidAudioError("Audio too short")

        with pytest.raises(ConsumerError) as exc_info:
            VoiceprintConsumer(service).consume(_assembled(bytes(200)))
        assert exc_info.value.recoverable is True
        assert exc_info.value.code == StreamErrorCode.INTERNAL_ERROR

    def test_transcription_consumer(self) -> None:
        """Test the duration estimate is filled in when the provider omits it."""
        transcriber = MagicMock()
        transcriber.transcribe.return_value = TranscriptionResult(
            text="hello", provider="fake", model="m1"
        )

        result = TranscriptionConsumer(transcriber).consume(_assembled(bytes(32000)))

        assert result["text"] == "hello"
        assert result["durationMs"] == 1000
        request = transcriber.transcribe.call_args.args[0]
        assert request.mime_type == "audio/pcm"

    def test_transcription_consumer_error(self) -> None:
        """Test provider failures map to STT_PROVIDER_ERROR."""
        transcriber = MagicMock()
        transcriber.transcribe.side_effect = RuntimeError("timeout")

        with pytest.raises(ConsumerError) as exc_info:
            TranscriptionConsumer(transcriber).consume(_assembled(bytes(32000)))
        assert exc_info.value.code == StreamErrorCode.STT_PROVIDER_ERROR

    def test_duration_estimate(self) -> None:
        """Test bitrate based estimates."""
        assert estimate_transcription_duration_ms("opus", 3000) == 1000
        assert estimate_transcription_duration_ms("flac", 16000) == 1000
