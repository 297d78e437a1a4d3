"""Playback control endpoints.

Remote-control surface for the player: every command maps to exactly one engine
operation and answers with the resulting now-playing state.
"""

import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from cityradio.dependencies import dep_engine
from cityradio.models import NowPlayingResponse
from cityradio.models import PlayStreamRequest
from cityradio.models import SeekRequest
from cityradio.models import SeekResponse
from cityradio.services.playback_engine import PlaybackEngine
from cityradio.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playback", tags=["playback"])


def _state(engine: PlaybackEngine) -> NowPlayingResponse:
    return NowPlayingResponse.from_snapshot(engine.snapshot, engine.current_time(), engine.duration())


@router.post(
    "/play",
    response_model=NowPlayingResponse,
    summary="Play",
    description="Start the live stream, or resume the stream that is already open",
)
async def play(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.play_live()
    return _state(engine)


@router.post("/pause", response_model=NowPlayingResponse, summary="Pause")
async def pause(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.pause()
    return _state(engine)


@router.post("/toggle", response_model=NowPlayingResponse, summary="Toggle Play/Pause")
async def toggle(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.toggle()
    return _state(engine)


@router.post(
    "/stop",
    response_model=NowPlayingResponse,
    summary="Stop",
    description="Release the stream and clear track info and artwork",
)
async def stop(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.stop()
    return _state(engine)


@router.post(
    "/restore-live",
    response_model=NowPlayingResponse,
    summary="Restore Live",
    description="Leave listen-again playback and arm the live stream without starting it",
)
async def restore_live(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.restore_live()
    return _state(engine)


@router.post(
    "/stream",
    response_model=NowPlayingResponse,
    summary="Play Stream",
    description="Switch to a listen-again show (by stream URL) or to the live stream identifier",
)
async def play_stream(request: PlayStreamRequest, engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    engine.play_stream(request.stream_id)
    return _state(engine)


@router.post("/seek", response_model=SeekResponse, summary="Seek Relative")
async def seek(request: SeekRequest, engine: PlaybackEngine = Depends(dep_engine)) -> SeekResponse:
    position = await engine.seek_by(request.delta_seconds)
    return SeekResponse(seeked=position is not None, position=position)


@router.post("/seek/forward", response_model=SeekResponse, summary="Skip Forward")
async def seek_forward(
    seconds: float = Query(settings.SEEK_STEP_SECONDS, gt=0, description="Seconds to skip"),
    engine: PlaybackEngine = Depends(dep_engine),
) -> SeekResponse:
    position = await engine.seek_forward(seconds)
    return SeekResponse(seeked=position is not None, position=position)


@router.post("/seek/backward", response_model=SeekResponse, summary="Skip Backward")
async def seek_backward(
    seconds: float = Query(settings.SEEK_STEP_SECONDS, gt=0, description="Seconds to go back"),
    engine: PlaybackEngine = Depends(dep_engine),
) -> SeekResponse:
    position = await engine.seek_backward(seconds)
    return SeekResponse(seeked=position is not None, position=position)
