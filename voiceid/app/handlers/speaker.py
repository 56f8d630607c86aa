"""Speaker recognition request handler.

Every method returns a tagged result: ``{"ok": true, "result": ...}`` on
success or ``{"ok": false, "error": {"code", "message"}}`` on failure.
Exceptions never escape to the transport.
"""

import base64
import binascii
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from voiceid.app.schemas.speakers import (
    AudioPayload,
    EnrollMultiRequest,
    EnrollRequest,
    IdentifyRealtimeRequest,
    IdentifyRequest,
    SetThresholdRequest,
    SpeakerIdRequest,
    VerifyRequest,
)
from voiceid.database.exceptions import RepositoryError
from voiceid.domain.models.audio import AudioSample
from voiceid.domain.models.serialization import to_camel_dict
from voiceid.domain.models.speaker import SpeakerRecord
from voiceid.domain_service.exceptions import (
    InvalidAudioError,
    RecognitionError,
    SpeakerNotFoundError,
)
from voiceid.domain_service.recognition import RealtimeOptions, SpeakerRecognitionService
from voiceid.engine.exceptions import EngineError

logger = logging.getLogger(__name__)

HandlerResult = dict[str, Any]

_EXPECTED_ERRORS = (RecognitionError, EngineError, RepositoryError, ValidationError)


class UnknownMethodError(Exception):
    """Raised for a method name the handler does not serve."""

    pass


def success(result: Any) -> HandlerResult:
    return {"ok": True, "result": result}


def failure(code: str, message: str) -> HandlerResult:
    return {"ok": False, "error": {"code": code, "message": message}}


def decode_audio(payload: str) -> bytes:
    """Decode base64 audio, accepting an optional data URL prefix.

    Raises:
        InvalidAudioError: If the payload is empty or not valid base64.
    """
    if not payload:
        raise InvalidAudioError("Audio data is required")

    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidAudioError("Invalid audio data format") from e


def to_sample(payload: AudioPayload) -> AudioSample:
    return AudioSample(
        data=decode_audio(payload.audio_data),
        sample_rate=payload.sample_rate,
        bit_depth=payload.bit_depth,
        audio_format=payload.format,
        channels=payload.channels,
    )


def record_to_dict(record: SpeakerRecord) -> dict[str, Any]:
    """Public view of a speaker record."""
    data = to_camel_dict(record.to_summary())
    data["publicId"] = record.public_id
    data["embedding"] = [float(v) for v in record.embedding]
    data["embeddingCount"] = len(record.embeddings)
    return data


def _error_message(error: Exception) -> str:
    if isinstance(error, ValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors()
        )
        return f"Invalid request: {details}"
    return str(error)


class SpeakerRequestHandler:
    """Method-style front end of the recognition service."""

    def __init__(self, service: SpeakerRecognitionService) -> None:
        self.service = service
        self._methods: dict[str, tuple[str, Callable[[dict[str, Any]], Any]]] = {
            "enroll": ("ENROLL_FAILED", self._enroll),
            "enrollMulti": ("MULTI_ENROLL_FAILED", self._enroll_multi),
            "identify": ("IDENTIFY_FAILED", self._identify),
            "identifyRealtime": ("REALTIME_IDENTIFY_FAILED", self._identify_realtime),
            "verify": ("VERIFY_FAILED", self._verify),
            "list": ("LIST_FAILED", self._list),
            "get": ("GET_FAILED", self._get),
            "delete": ("DELETE_FAILED", self._delete),
            "stats": ("STATS_FAILED", self._stats),
            "setThreshold": ("SET_THRESHOLD_FAILED", self._set_threshold),
        }

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    def handle(self, method: str, params: dict[str, Any] | None = None) -> HandlerResult:
        """Run a method and wrap its outcome.

        Raises:
            UnknownMethodError: If the method does not exist.
        """
        if method not in self._methods:
            raise UnknownMethodError(f"Unknown method: {method}")

        code, func = self._methods[method]
        try:
            return success(func(params or {}))
        except SpeakerNotFoundError as e:
            logger.warning(f"{method}: {e}")
            return failure("SPEAKER_NOT_FOUND", str(e))
        except _EXPECTED_ERRORS as e:
            logger.warning(f"{method} failed: {_error_message(e)}")
            return failure(code, _error_message(e))
        except Exception as e:
            logger.exception(f"{method} failed unexpectedly")
            return failure(code, str(e) or type(e).__name__)

    def _enroll(self, params: dict[str, Any]) -> Any:
        request = EnrollRequest.model_validate(params)
        result = self.service.enroll(to_sample(request), request.gender)
        return to_camel_dict(result)

    def _enroll_multi(self, params: dict[str, Any]) -> Any:
        request = EnrollMultiRequest.model_validate(params)
        samples = [to_sample(s) for s in request.samples]
        result = self.service.enroll_multi_sample(samples, request.gender)
        return to_camel_dict(result)

    def _identify(self, params: dict[str, Any]) -> Any:
        request = IdentifyRequest.model_validate(params)
        result = self.service.identify(to_sample(request), request.threshold)
        return to_camel_dict(result)

    def _identify_realtime(self, params: dict[str, Any]) -> Any:
        request = IdentifyRealtimeRequest.model_validate(params)
        options = RealtimeOptions()
        if request.window_size is not None:
            options.window_size = request.window_size
        if request.hop_size is not None:
            options.hop_size = request.hop_size
        if request.min_confidence is not None:
            options.min_confidence = request.min_confidence

        if request.reset:
            self.service.reset_realtime(request.session_id)

        result = self.service.identify_realtime(
            decode_audio(request.audio_chunk), options, request.session_id
        )
        return to_camel_dict(result)

    def _verify(self, params: dict[str, Any]) -> Any:
        request = VerifyRequest.model_validate(params)
        result = self.service.verify(request.speaker_id, to_sample(request), request.threshold)
        return to_camel_dict(result)

    def _list(self, params: dict[str, Any]) -> Any:
        return to_camel_dict(self.service.list_speakers())

    def _get(self, params: dict[str, Any]) -> Any:
        request = SpeakerIdRequest.model_validate(params)
        return record_to_dict(self.service.get_speaker(request.speaker_id))

    def _delete(self, params: dict[str, Any]) -> Any:
        request = SpeakerIdRequest.model_validate(params)
        return {"success": self.service.delete_speaker(request.speaker_id)}

    def _stats(self, params: dict[str, Any]) -> Any:
        return to_camel_dict(self.service.get_stats())

    def _set_threshold(self, params: dict[str, Any]) -> Any:
        request = SetThresholdRequest.model_validate(params)
        previous = self.service.set_threshold(request.threshold)
        return {
            "success": True,
            "previousThreshold": previous,
            "newThreshold": request.threshold,
        }
