"""WebSocket endpoint for chunked audio streams."""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from voiceid.app.dependencies import AudioStorageDep, StreamConsumerDep
from voiceid.app.settings import settings
from voiceid.ingestion import StreamHandler
from voiceid.ingestion.messages import (
    OutgoingMessage,
    StreamErrorMessage,
    StreamErrorPayload,
    to_wire,
)
from voiceid.ingestion.models import StreamErrorCode

logger = logging.getLogger(__name__)

router = APIRouter()


async def send_messages(websocket: WebSocket, messages: list[OutgoingMessage]) -> None:
    """Send JSON messages through WebSocket."""
    for message in messages:
        await websocket.send_text(json.dumps(to_wire(message), ensure_ascii=False))


@router.websocket("/ws/audio")
async def audio_stream_websocket(
    websocket: WebSocket,
    consumer: StreamConsumerDep,
    storage: AudioStorageDep,
) -> None:
    """Receive stream.start / stream.chunk / stream.end messages.

    Replies with stream.ack, stream.error and stream.result messages. A
    failure affects only the stream it belongs to.
    """
    await websocket.accept()
    handler = StreamHandler(consumer=consumer, storage=storage)

    try:
        while True:
            try:
                text = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.websocket_timeout,
                )
            except asyncio.TimeoutError:
                handler.monitor.find_stalled()
                continue

            try:
                messages = handler.handle_message(text)
            except Exception as e:
                logger.exception("Unexpected error while handling stream message")
                messages = [
                    StreamErrorMessage(
                        payload=StreamErrorPayload(
                            stream_id=None,
                            code=StreamErrorCode.INTERNAL_ERROR,
                            message=str(e) or type(e).__name__,
                            recoverable=False,
                        )
                    )
                ]

            await send_messages(websocket, messages)

    except WebSocketDisconnect:
        logger.info(f"Audio stream socket disconnected ({handler.active_stream_count} open streams)")
    finally:
        handler.close()
