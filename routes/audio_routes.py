"""
FastAPI routes for read-aloud audio.

  POST /api/v1/audio/speak            synthesise text and take the channel
  GET  /api/v1/audio/clips/{clip_id}  bytes of the channel's current clip
  POST /api/v1/audio/control          play / pause / toggle / stop / release

Each viewer has a single audio channel; starting a new clip stops the
previous one. The AudioService is created at app start-up and lives on
`app.state.audio_service`.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Header, Request
from fastapi.responses import Response

from clients.supabase_client import get_user_from_token
from models.notes_models import AudioControlRequest, SpeakRequest
from routes.notes_routes import bearer_token
from services.audio_channel import AudioService
from utils.exceptions import AuthenticationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["audio"])


def _audio_service(request: Request) -> AudioService:
    return request.app.state.audio_service


async def _viewer_id(authorization: Optional[str]) -> str:
    user = await asyncio.to_thread(get_user_from_token, bearer_token(authorization))
    if not user:
        raise AuthenticationError("Please sign in to listen")
    return user["id"]


@router.post("/audio/speak")
async def speak(
    request: Request,
    body: SpeakRequest = Body(...),
    authorization: Optional[str] = Header(None),
):
    """
    Generate speech for `text` and start playing it on the viewer's channel.
    Returns the channel status, including `clip_id` and any `preempted` owner.
    """
    viewer_id = await _viewer_id(authorization)
    return await _audio_service(request).speak(viewer_id, body.owner, body.text, body.language)


@router.get("/audio/clips/{clip_id}")
async def get_clip(
    request: Request,
    clip_id: str,
    authorization: Optional[str] = Header(None),
):
    """Audio bytes of the clip currently on the viewer's channel."""
    viewer_id = await _viewer_id(authorization)
    clip = _audio_service(request).clip(viewer_id, clip_id)
    return Response(content=clip.content, media_type=clip.content_type)


@router.post("/audio/control")
async def control(
    request: Request,
    body: AudioControlRequest = Body(...),
    authorization: Optional[str] = Header(None),
):
    """Drive the channel. Only the current owner may play, pause or stop it."""
    viewer_id = await _viewer_id(authorization)
    return _audio_service(request).control(viewer_id, body.owner, body.action)
