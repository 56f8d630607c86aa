"""HTTP routes of the speaker recognition API."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, status

from voiceid.app.dependencies import SpeakerHandlerDep
from voiceid.app.handlers.speaker import UnknownMethodError

router = APIRouter(prefix="/speakers", tags=["speakers"])


@router.post("/{method}")
async def call_method(
    method: str,
    handler: SpeakerHandlerDep,
    params: dict[str, Any] | None = Body(default=None),
) -> dict[str, Any]:
    """Run a speaker recognition method and return its tagged result."""
    try:
        return handler.handle(method, params)
    except UnknownMethodError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
