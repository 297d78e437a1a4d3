"""Audio session notifications pushed in by the host platform."""

import logging

from fastapi import APIRouter
from fastapi import Depends

from cityradio.dependencies import dep_audio_session
from cityradio.models import SessionEventRequest
from cityradio.models import SuccessResponse
from cityradio.services.audio_session import LocalAudioSession
from cityradio.services.audio_session import SessionEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


@router.post(
    "/events",
    response_model=SuccessResponse,
    summary="Post Audio Session Event",
    description="Interruption, route change and background/foreground notifications",
)
async def post_session_event(
    request: SessionEventRequest,
    session: LocalAudioSession = Depends(dep_audio_session),
) -> SuccessResponse:
    session.emit(SessionEvent(type=request.type, resume_hint=request.resume_hint, reason=request.reason))
    return SuccessResponse()
