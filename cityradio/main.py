import asyncio
import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI

from cityradio.routes import playback
from cityradio.routes import session
from cityradio.routes import shows
from cityradio.routes.metadata import metadata_router
from cityradio.services.artwork_fetcher import ArtworkFetcher
from cityradio.services.audio_session import LocalAudioSession
from cityradio.services.mpd_service import MPDMediaBackend
from cityradio.services.now_playing import RedisNowPlayingPublisher
from cityradio.services.playback_engine import PlaybackEngine
from cityradio.settings import settings

# Configure global logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager: wires the player to MPD, Redis and the audio session."""
    logger.info("Radio player starting")
    media_backend = MPDMediaBackend()
    audio_session = LocalAudioSession()

    redis_client = None
    publisher = None
    command_listener = None
    shutdown_event = asyncio.Event()
    if settings.NOW_PLAYING_ENABLED:
        redis_client = redis.from_url(settings.REDIS_URL)
        publisher = RedisNowPlayingPublisher(redis_client)

    engine = PlaybackEngine(
        media_backend=media_backend,
        audio_session=audio_session,
        artwork_fetcher=ArtworkFetcher(),
        now_playing=publisher,
    )
    if publisher is not None:
        command_listener = asyncio.create_task(publisher.listen_for_commands(engine.handle_remote_command, shutdown_event))

    if settings.PREPARE_LIVE_ON_START:
        engine.restore_live()
        logger.info("Live stream prepared (not playing)")

    app.state.engine = engine
    app.state.audio_session = audio_session
    yield

    logger.info("Radio player shutting down")
    shutdown_event.set()
    await engine.close()
    if command_listener is not None:
        command_listener.cancel()
        await asyncio.gather(command_listener, return_exceptions=True)
    if publisher is not None:
        await publisher.close()
    if redis_client is not None:
        await redis_client.aclose()
    await media_backend.close()


app = FastAPI(
    title="CityRadio Player API",
    description="Playback control and now-playing state for the live radio stream and listen-again shows",
    version="1.0.0",
    lifespan=lifespan,
    root_path=settings.ROOT_PATH,
    swagger_ui_parameters={"url": f"{settings.ROOT_PATH}/openapi.json"} if settings.ROOT_PATH else None,
)


# Health check endpoint for load balancer
@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "cityradio-player"}


# Include routes
app.include_router(playback.router)
app.include_router(metadata_router)
app.include_router(shows.router)
app.include_router(session.router)
