"""Audio stream handler.

Bridges transport messages to per-stream assemblers:
1. stream.start creates the stream and its assembler
2. stream.chunk decodes, bounds and buffers each chunk, acknowledging progress
3. once every chunk is present (or on stream.end) the audio is assembled,
   validated, optionally stored and handed to the downstream consumer

Each call returns the messages to send back. Errors are reported as
stream.error messages for the affected stream only.
"""

import base64
import binascii
import logging
import uuid
from datetime import UTC, datetime

from pydantic import ValidationError

from voiceid.ingestion.assembler import AssemblerStats, StreamAssembler
from voiceid.ingestion.consumers import ConsumerError, StreamConsumer
from voiceid.ingestion.messages import (
    OutgoingMessage,
    StreamAckMessage,
    StreamAckPayload,
    StreamChunkPayload,
    StreamEndMessage,
    StreamErrorMessage,
    StreamErrorPayload,
    StreamResultMessage,
    StreamResultPayload,
    StreamStartMessage,
    StreamStartPayload,
    parse_incoming,
)
from voiceid.ingestion.models import (
    AudioStreamConfig,
    StreamChunk,
    StreamError,
    StreamErrorCode,
    StreamState,
    StreamStatus,
)
from voiceid.ingestion.monitor import StreamMonitor
from voiceid.ingestion.settings import settings
from voiceid.ingestion.storage import AudioStorage
from voiceid.ingestion.validator import AudioValidator

logger = logging.getLogger(__name__)


def _ack(stream_id: str, received: int, status: StreamStatus, progress: int) -> StreamAckMessage:
    return StreamAckMessage(
        payload=StreamAckPayload(
            stream_id=stream_id,
            received_chunks=received,
            status=status,
            progress=progress,
        )
    )


def _error(stream_id: str | None, error: StreamError) -> StreamErrorMessage:
    return StreamErrorMessage(
        payload=StreamErrorPayload(
            stream_id=stream_id,
            code=error.code,
            message=error.message,
            recoverable=error.recoverable,
        )
    )


def _progress(received_chunks: int) -> int:
    """Progress of an open-ended stream; approaches but never reaches 100."""
    return min(99, received_chunks * 100 // (received_chunks + 1))


class StreamHandler:
    """Stream lifecycle for one transport connection."""

    def __init__(
        self,
        consumer: StreamConsumer | None = None,
        storage: AudioStorage | None = None,
        validator: AudioValidator | None = None,
        monitor: StreamMonitor | None = None,
        max_streams: int | None = None,
        max_stream_size: int | None = None,
        supported_formats: list[str] | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            consumer: Receives assembled audio. Nothing is done with it if None.
            storage: Temporary audio storage. Audio is not stored if None.
            validator: Audio validator. Defaults to one built from settings.
            monitor: Stream monitor. Defaults to a new one.
            max_streams: Cap on concurrently active streams.
            max_stream_size: Cap on the cumulative bytes of one stream.
            supported_formats: Formats accepted by stream.start.
        """
        self.consumer = consumer
        self.storage = storage
        self.validator = validator or AudioValidator()
        self.monitor = monitor or StreamMonitor()
        self.max_streams = max_streams if max_streams is not None else settings.max_concurrent_streams
        self.max_stream_size = (
            max_stream_size if max_stream_size is not None else settings.max_stream_size
        )
        self.supported_formats = supported_formats or list(settings.supported_formats)

        self._streams: dict[str, StreamState] = {}
        self._assemblers: dict[str, StreamAssembler] = {}

    @property
    def active_stream_count(self) -> int:
        return len(self._streams)

    def has_stream(self, stream_id: str) -> bool:
        return stream_id in self._streams

    def get_stream_state(self, stream_id: str) -> StreamState | None:
        return self._streams.get(stream_id)

    def get_assembler_stats(self, stream_id: str) -> AssemblerStats | None:
        assembler = self._assemblers.get(stream_id)
        return assembler.stats() if assembler else None

    def handle_message(self, raw: str | bytes | dict) -> list[OutgoingMessage]:
        """Parse and dispatch one client message."""
        try:
            message = parse_incoming(raw)
        except ValidationError as e:
            logger.warning(f"Rejected malformed stream message: {e.error_count()} errors")
            return [
                _error(
                    None,
                    StreamError(
                        StreamErrorCode.INTERNAL_ERROR,
                        f"Invalid message: {e.errors()[0]['msg'] if e.errors() else 'malformed'}",
                        recoverable=True,
                    ),
                )
            ]

        if isinstance(message, StreamStartMessage):
            return self.start(message.payload)
        if isinstance(message, StreamEndMessage):
            return self.end(message.payload.stream_id)
        return self.chunk(message.payload)

    def start(self, payload: StreamStartPayload) -> list[OutgoingMessage]:
        stream_id = str(uuid.uuid4())

        if payload.format not in self.supported_formats:
            return [
                _error(
                    stream_id,
                    StreamError(
                        StreamErrorCode.INVALID_FORMAT,
                        f"Unsupported audio format: {payload.format}. "
                        f"Supported: {', '.join(self.supported_formats)}",
                    ),
                )
            ]

        if len(self._streams) >= self.max_streams:
            return [
                _error(
                    stream_id,
                    StreamError(
                        StreamErrorCode.INTERNAL_ERROR,
                        f"Too many concurrent streams (maximum {self.max_streams})",
                    ),
                )
            ]

        config = AudioStreamConfig(
            session_key=payload.session_key,
            format=payload.format,
            sample_rate=payload.sample_rate,
            channels=payload.channels,
            bit_depth=payload.bit_depth,
            language=payload.language,
            diarization=payload.diarization,
        )
        self._streams[stream_id] = StreamState(stream_id=stream_id, config=config)
        self._assemblers[stream_id] = StreamAssembler(stream_id, config)
        self.monitor.start_stream(stream_id)

        logger.info(
            f"Stream {stream_id} started (session={config.session_key}, format={config.format}, "
            f"{config.sample_rate}Hz x{config.channels})"
        )
        return [_ack(stream_id, 0, StreamStatus.RECEIVING, 0)]

    def chunk(self, payload: StreamChunkPayload) -> list[OutgoingMessage]:
        stream_id = payload.stream_id
        state = self._streams.get(stream_id)
        if state is None:
            return [_error(stream_id, StreamError(StreamErrorCode.INTERNAL_ERROR, "Stream not found"))]

        try:
            data = base64.b64decode(payload.data, validate=True)
        except (binascii.Error, ValueError) as e:
            self.monitor.record_error(stream_id)
            return [
                _error(
                    stream_id,
                    StreamError(
                        StreamErrorCode.INTERNAL_ERROR,
                        f"Failed to decode chunk data: {e}",
                        recoverable=True,
                    ),
                )
            ]

        assembler = self._assemblers[stream_id]
        if (
            assembler.accepts(payload.sequence)
            and state.total_bytes + len(data) > self.max_stream_size
        ):
            error = StreamError(
                StreamErrorCode.AUDIO_TOO_LARGE,
                f"Stream exceeds maximum size of {self.max_stream_size} bytes",
            )
            return [self._fail(stream_id, error)]

        accepted = assembler.add_chunk(
            StreamChunk(
                stream_id=stream_id,
                sequence=payload.sequence,
                data=data,
                is_last=payload.is_last,
            )
        )

        if accepted:
            state.received_chunks += 1
            state.total_bytes += len(data)
            state.last_chunk_at = datetime.now(UTC)
            self.monitor.update_stream(stream_id, len(data))
        else:
            logger.debug(f"Stream {stream_id}: ignored duplicate chunk {payload.sequence}")

        if assembler.is_complete:
            state.status = StreamStatus.PROCESSING
            messages: list[OutgoingMessage] = [
                _ack(stream_id, state.received_chunks, StreamStatus.PROCESSING, 100)
            ]
            messages.extend(self._finalize(stream_id))
            return messages

        if payload.is_last:
            state.status = StreamStatus.PROCESSING

        return [
            _ack(
                stream_id,
                state.received_chunks,
                state.status,
                _progress(state.received_chunks),
            )
        ]

    def end(self, stream_id: str) -> list[OutgoingMessage]:
        """Finalize a stream on explicit request."""
        if stream_id not in self._streams:
            return [_error(stream_id, StreamError(StreamErrorCode.INTERNAL_ERROR, "Stream not found"))]

        self._streams[stream_id].status = StreamStatus.PROCESSING
        return self._finalize(stream_id)

    def close(self) -> None:
        """Discard every open stream, e.g. when the connection goes away."""
        for stream_id in list(self._streams):
            logger.info(f"Stream {stream_id} discarded on connection close")
            self._cleanup(stream_id, success=False)

    def _finalize(self, stream_id: str) -> list[OutgoingMessage]:
        state = self._streams[stream_id]
        assembled = self._assemblers[stream_id].get_assembly()

        if assembled is None:
            stats = self._assemblers[stream_id].stats()
            message = "No audio data assembled"
            if stats.evicted_chunks:
                message += f" ({stats.evicted_chunks} chunks evicted from the reorder buffer)"
            return [self._fail(stream_id, StreamError(StreamErrorCode.INTERNAL_ERROR, message))]

        validation = self.validator.validate(assembled)
        if not validation.valid:
            error = StreamError(
                StreamErrorCode.INVALID_FORMAT,
                f"Audio validation failed: {', '.join(validation.errors)}",
            )
            return [self._fail(stream_id, error)]

        if self.storage is not None:
            try:
                self.storage.save(assembled)
            except (OSError, ValueError) as e:
                error = StreamError(StreamErrorCode.INTERNAL_ERROR, f"Failed to store audio: {e}")
                return [self._fail(stream_id, error)]

        state.status = StreamStatus.COMPLETED
        state.completed_at = datetime.now(UTC)
        messages: list[OutgoingMessage] = [
            _ack(stream_id, state.received_chunks, StreamStatus.COMPLETED, 100)
        ]
        logger.info(
            f"Stream {stream_id} completed: {assembled.total_chunks} chunks, "
            f"{assembled.total_bytes} bytes, ~{assembled.duration_ms}ms"
        )

        if self.consumer is not None:
            try:
                result = self.consumer.consume(assembled)
            except ConsumerError as e:
                messages.append(_error(stream_id, StreamError(e.code, e.message, e.recoverable)))
            else:
                messages.append(
                    StreamResultMessage(
                        payload=StreamResultPayload(
                            stream_id=stream_id,
                            kind=self.consumer.kind,
                            result=result,
                        )
                    )
                )

        self._cleanup(stream_id, success=True)
        return messages

    def _fail(self, stream_id: str, error: StreamError) -> StreamErrorMessage:
        state = self._streams.get(stream_id)
        if state is not None:
            state.status = StreamStatus.ERROR
            state.error = error

        logger.warning(f"Stream {stream_id} failed [{error.code.value}]: {error.message}")
        self.monitor.record_error(stream_id)
        self._cleanup(stream_id, success=False)
        return _error(stream_id, error)

    def _cleanup(self, stream_id: str, success: bool) -> None:
        self._streams.pop(stream_id, None)
        assembler = self._assemblers.pop(stream_id, None)
        if assembler is not None:
            assembler.dispose()
        self.monitor.stop_stream(stream_id, success=success)
