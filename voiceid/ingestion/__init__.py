"""Stream ingestion layer - chunked audio transport and reassembly."""

from voiceid.ingestion.assembler import StreamAssembler
from voiceid.ingestion.consumers import (
    ConsumerError,
    StreamConsumer,
    TranscriptionConsumer,
    VoiceprintConsumer,
)
from voiceid.ingestion.handler import StreamHandler
from voiceid.ingestion.monitor import StreamMonitor
from voiceid.ingestion.storage import AudioStorage
from voiceid.ingestion.validator import AudioValidator

__all__ = [
    "AudioStorage",
    "AudioValidator",
    "ConsumerError",
    "StreamAssembler",
    "StreamConsumer",
    "StreamHandler",
    "StreamMonitor",
    "TranscriptionConsumer",
    "VoiceprintConsumer",
]
