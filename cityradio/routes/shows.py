"""Listen-again show catalog endpoints."""

from fastapi import APIRouter
from fastapi import Depends

from cityradio.catalog import SHOWS
from cityradio.dependencies import dep_engine
from cityradio.models import ShowItem
from cityradio.models import ShowListResponse
from cityradio.services.playback_engine import PlaybackEngine

router = APIRouter(prefix="/shows", tags=["shows"])


@router.get(
    "",
    response_model=ShowListResponse,
    summary="List Shows",
    description="Listen-again shows; play one with POST /playback/stream using its stream_url",
)
async def list_shows(engine: PlaybackEngine = Depends(dep_engine)) -> ShowListResponse:
    snapshot = engine.snapshot
    return ShowListResponse(
        shows=[
            ShowItem(
                title=show.title,
                stream_url=show.stream_url,
                artwork_asset=show.artwork_asset,
                is_playing=snapshot.is_playing and snapshot.show_id == show.stream_url,
            )
            for show in SHOWS
        ]
    )
