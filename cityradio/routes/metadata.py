"""Now playing endpoints: current state and artwork image."""

import asyncio
import logging
from io import BytesIO

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Response
from PIL import Image

from cityradio.dependencies import dep_engine
from cityradio.models import ErrorResponse
from cityradio.models import NowPlayingResponse
from cityradio.services.playback_engine import PlaybackEngine

logger = logging.getLogger(__name__)

metadata_router = APIRouter(prefix="/now-playing", tags=["metadata"])


def encode_jpeg(image: Image.Image, quality: int = 85) -> bytes:
    """Encode an artwork image as JPEG (CPU-bound, runs in a thread)."""
    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, "JPEG", quality=quality)
    return buffer.getvalue()


@metadata_router.get(
    "",
    response_model=NowPlayingResponse,
    summary="Get Now Playing",
    description="Current playback state, track label and artwork details",
)
async def get_now_playing(engine: PlaybackEngine = Depends(dep_engine)) -> NowPlayingResponse:
    return NowPlayingResponse.from_snapshot(engine.snapshot, engine.current_time(), engine.duration())


@metadata_router.get(
    "/artwork",
    summary="Get Artwork",
    description="Artwork for the current track as JPEG",
    responses={
        200: {"content": {"image/jpeg": {}}},
        404: {"model": ErrorResponse, "description": "No artwork resolved (or placeholder)"},
    },
)
async def get_artwork(engine: PlaybackEngine = Depends(dep_engine)) -> Response:
    artwork = engine.snapshot.artwork
    if artwork is None or artwork.image is None:
        raise HTTPException(status_code=404, detail="No artwork available")
    try:
        content = await asyncio.to_thread(encode_jpeg, artwork.image)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to encode artwork {artwork.url}: {e}")
        raise HTTPException(status_code=404, detail="No artwork available")
    return Response(content=content, media_type="image/jpeg")
