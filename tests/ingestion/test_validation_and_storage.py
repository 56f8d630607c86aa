"""Tests for audio validation, stream monitoring and temporary storage."""

from pathlib import Path

import pytest

from voiceid.ingestion.models import AssembledAudio, AudioFormat, AudioStreamConfig
from voiceid.ingestion.monitor import StreamMonitor
from voiceid.ingestion.settings import IngestionSettings
from voiceid.ingestion.storage import AudioStorage
from voiceid.ingestion.validator import AudioValidator, validate_header


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _audio(
    data: bytes,
    audio_format: str = "pcm",
    sample_rate: int = 16000,
    channels: int = 1,
    duration_ms: int | None = None,
    stream_id: str = "stream-1",
) -> AssembledAudio:
    config = AudioStreamConfig(
        session_key="session", format=audio_format, sample_rate=sample_rate, channels=channels
    )
    if duration_ms is None:
        duration_ms = round(len(data) / (sample_rate * channels * 2) * 1000)
    return AssembledAudio(
        stream_id=stream_id,
        config=config,
        data=data,
        total_chunks=1,
        total_bytes=len(data),
        duration_ms=duration_ms,
    )


class TestValidateHeader:
    """Tests for container magic checks."""

    def test_wav(self, wav_tone) -> None:
        """Test a real WAV header passes and a corrupted one fails."""
        data = wav_tone(200, 0.2)

        assert validate_header(data, "wav")
        assert not validate_header(b"RIFX" + data[4:], "wav")
        assert not validate_header(data[:8] + b"AVI " + data[12:], "wav")

    def test_every_stream_format_checked(self) -> None:
        """Test each accepted stream format has a header check and is enabled by default."""
        samples = {
            AudioFormat.OPUS: b"OggS" + bytes(10),
            AudioFormat.PCM: bytes(10),
            AudioFormat.WAV: b"RIFF" + bytes(4) + b"WAVE",
            AudioFormat.AAC: b"ADIF" + bytes(10),
        }

        for audio_format, data in samples.items():
            assert validate_header(data, audio_format.value)
        assert IngestionSettings().supported_formats == [f.value for f in AudioFormat]

    def test_other_formats(self) -> None:
        """Test opus, aac and pcm signatures."""
        assert validate_header(b"OggS" + bytes(10), "opus")
        assert validate_header(b"\xff\xf1\x50\x80", "aac")
        assert validate_header(b"ADIF" + bytes(4), "aac")
        assert not validate_header(b"\x00\x00\x00\x00", "aac")
        assert validate_header(bytes(4), "pcm")
        assert not validate_header(b"abc", "pcm")
        assert not validate_header(b"OggS", "mp3")


class TestAudioValidator:
    """Tests for AudioValidator."""

    def test_valid_pcm(self, tone) -> None:
        """Test a one second PCM recording passes."""
        result = AudioValidator().validate(_audio(tone(200, 1.0)))

        assert result.valid
        assert result.errors == []
        assert result.format == "pcm"
        assert result.duration_ms == 1000

    def test_valid_wav(self, wav_tone) -> None:
        """Test a WAV recording passes."""
        assert AudioValidator().validate(_audio(wav_tone(200, 1.0), "wav")).valid

    def test_corrupted_wav_header(self, wav_tone) -> None:
        """Test a WAV without RIFF magic is rejected."""
        data = b"JUNK" + wav_tone(200, 1.0)[4:]
        result = AudioValidator().validate(_audio(data, "wav"))

        assert not result.valid
        assert "Invalid wav header" in result.errors

    def test_size_limits(self) -> None:
        """Test the size bounds and their messages."""
        validator = AudioValidator(max_file_size=1000, check_quality=False)

        too_big = validator.validate(_audio(bytes(2000)))
        too_small = validator.validate(_audio(bytes(50)))

        assert "File size 2000 exceeds maximum 1000" in too_big.errors
        assert "File size 50 is below minimum 100" in too_small.errors

    def test_duration_limits(self) -> None:
        """Test the duration bounds and their messages."""
        validator = AudioValidator(max_duration_ms=1000, check_quality=False)

        too_long = validator.validate(_audio(bytes(64000)))
        too_short = validator.validate(_audio(bytes(1000), duration_ms=50))

        assert "Duration 2000ms exceeds maximum 1000ms" in too_long.errors
        assert "Duration 50ms is below minimum 100ms" in too_short.errors

    def test_format_not_allowed(self) -> None:
        """Test formats outside the allowed list are rejected."""
        validator = AudioValidator(allowed_formats=["wav"], check_header=False, check_quality=False)
        result = validator.validate(_audio(bytes(32000)))

        assert result.errors == ["Format pcm is not in allowed formats: wav"]

    def test_quality_heuristics(self) -> None:
        """Test quality warnings fail validation."""
        validator = AudioValidator(check_header=False)
        result = validator.validate(_audio(bytes(800), sample_rate=11025, channels=3))

        assert not result.valid
        assert "Audio may be silent or very short" in result.errors
        assert "Audio duration is very short (< 500ms)" in result.errors
        assert "Unusual sample rate: 11025" in result.errors
        assert "Unusual channel count: 3" in result.errors


class TestStreamMonitor:
    """Tests for StreamMonitor."""

    def test_metrics(self) -> None:
        """Test throughput counters."""
        clock = FakeClock()
        monitor = StreamMonitor(clock=clock)
        monitor.start_stream("s1")

        clock.now += 2.0
        monitor.update_stream("s1", 1000)
        monitor.update_stream("s1", 3000)

        metrics = monitor.get_stream_metrics("s1")
        assert metrics is not None
        assert metrics.bytes_received == 4000
        assert metrics.chunks_received == 2
        assert metrics.bytes_per_second == 2000
        assert metrics.duration_ms == 2000

    def test_stall_detection(self) -> None:
        """Test idle streams are reported and counted once."""
        clock = FakeClock()
        monitor = StreamMonitor(stall_timeout_ms=1000, clock=clock)
        monitor.start_stream("s1")
        monitor.start_stream("s2")

        clock.now += 0.5
        monitor.update_stream("s2", 10)
        clock.now += 0.7

        assert monitor.find_stalled() == ["s1"]
        assert monitor.find_stalled() == ["s1"]
        assert monitor.get_global_stats().stalled_streams == 1

        monitor.update_stream("s1", 10)
        assert monitor.find_stalled() == []

    def test_stop_stream_outcomes(self) -> None:
        """Test completed and failed streams are counted."""
        monitor = StreamMonitor(clock=FakeClock())
        monitor.start_stream("ok")
        monitor.start_stream("bad")
        monitor.record_error("bad")

        monitor.stop_stream("ok")
        monitor.stop_stream("bad", success=False)
        monitor.stop_stream("unknown")

        stats = monitor.get_global_stats()
        assert stats.total_streams == 2
        assert stats.completed_streams == 1
        assert stats.failed_streams == 1
        assert monitor.get_all_stream_metrics() == []


class TestAudioStorage:
    """Tests for AudioStorage."""

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Test audio is written as <stream id>.<format>."""
        storage = AudioStorage(tmp_path)
        path = storage.save(_audio(b"abcd" * 100, "wav", stream_id="abc"))

        assert path == tmp_path / "abc.wav"
        assert storage.load("abc") == b"abcd" * 100
        assert storage.exists("abc")
        stored = storage.get_stored("abc")
        assert stored is not None
        assert stored.size == 400

    def test_missing(self, tmp_path: Path) -> None:
        """Test unknown ids."""
        storage = AudioStorage(tmp_path)
        assert storage.load("nope") is None
        assert not storage.exists("nope")
        assert not storage.delete("nope")

    def test_too_large(self, tmp_path: Path) -> None:
        """Test oversized audio is refused."""
        storage = AudioStorage(tmp_path, max_file_size=10)
        with pytest.raises(ValueError):
            storage.save(_audio(bytes(100)))

    def test_ttl_cleanup(self, tmp_path: Path) -> None:
        """Test only expired files are removed."""
        clock = FakeClock()
        storage = AudioStorage(tmp_path, ttl_seconds=60, clock=clock)
        storage.save(_audio(bytes(200), stream_id="old"))
        clock.now += 30
        storage.save(_audio(bytes(200), stream_id="new"))

        clock.now += 40
        assert storage.cleanup() == 1
        assert not (tmp_path / "old.pcm").exists()
        assert storage.exists("new")
        assert [s.stream_id for s in storage.get_all_stored()] == ["new"]

    def test_dispose(self, tmp_path: Path) -> None:
        """Test dispose deletes every file."""
        storage = AudioStorage(tmp_path)
        storage.save(_audio(bytes(200), stream_id="a"))
        storage.save(_audio(bytes(200), stream_id="b"))

        storage.dispose()

        assert list(tmp_path.iterdir()) == []
