from fastapi import HTTPException
from fastapi import Request

from cityradio.services.audio_session import LocalAudioSession
from cityradio.services.playback_engine import PlaybackEngine


def dep_engine(request: Request) -> PlaybackEngine:
    """Playback engine created in the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Player not initialized")
    return engine


def dep_audio_session(request: Request) -> LocalAudioSession:
    """Audio session event source created in the application lifespan."""
    session = getattr(request.app.state, "audio_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Audio session not initialized")
    return session
