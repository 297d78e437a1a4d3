from pydantic import BaseModel
from pydantic import Field

from cityradio.catalog import find_show
from cityradio.services.player_state import PlaybackStatus
from cityradio.services.player_state import PlayerSnapshot
from cityradio.types import SessionEventType


class SuccessResponse(BaseModel):
    """Generic success response."""

    status: str = Field(default="success", description="Operation status")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")


class ArtworkInfo(BaseModel):
    """Artwork resolved for the current track."""

    url: str | None = Field(None, description="Source URL of the artwork image")
    placeholder: bool = Field(..., description="True when the lookup failed and the placeholder is shown")
    width: int | None = Field(None, description="Image width in pixels")
    height: int | None = Field(None, description="Image height in pixels")


class NowPlayingResponse(BaseModel):
    """Current player state."""

    status: PlaybackStatus = Field(..., description="Playback state machine status")
    is_playing: bool = Field(..., description="Whether audio is playing")
    is_live: bool = Field(..., description="Whether the active stream is the live stream")
    stream_id: str | None = Field(None, description="Active stream identifier")
    show_id: str | None = Field(None, description="Active listen-again show identifier")
    show_title: str | None = Field(None, description="Catalog title of the active show")
    track_label: str | None = Field(None, description="Combined 'artist — title' label")
    title: str | None = Field(None, description="Track title from stream metadata")
    artist: str | None = Field(None, description="Track artist from stream metadata")
    artwork: ArtworkInfo | None = Field(None, description="Artwork, absent until resolved")
    seek_position: float | None = Field(None, description="Transient position readout after a seek")
    elapsed_seconds: float | None = Field(None, description="Playback position")
    duration_seconds: float | None = Field(None, description="Duration for on-demand shows")

    @classmethod
    def from_snapshot(
        cls, snapshot: PlayerSnapshot, elapsed: float | None = None, duration: float | None = None
    ) -> "NowPlayingResponse":
        show = find_show(snapshot.show_id)
        artwork = None
        if snapshot.artwork is not None:
            image = snapshot.artwork.image
            artwork = ArtworkInfo(
                url=snapshot.artwork.url,
                placeholder=snapshot.artwork.is_placeholder,
                width=image.width if image is not None else None,
                height=image.height if image is not None else None,
            )
        return cls(
            status=snapshot.playback.status,
            is_playing=snapshot.is_playing,
            is_live=snapshot.playback.is_live,
            stream_id=snapshot.stream_id,
            show_id=snapshot.show_id,
            show_title=show.title if show is not None else None,
            track_label=snapshot.track_label,
            title=snapshot.track.title,
            artist=snapshot.track.artist,
            artwork=artwork,
            seek_position=snapshot.seek_position,
            elapsed_seconds=elapsed,
            duration_seconds=duration,
        )


class PlayStreamRequest(BaseModel):
    """Request model for switching streams."""

    stream_id: str = Field(..., min_length=1, description="Show stream URL, or the live stream identifier")


class SeekRequest(BaseModel):
    """Request model for relative seeking."""

    delta_seconds: float = Field(..., description="Seconds to move (negative to go back)")


class SeekResponse(BaseModel):
    """Result of a seek request."""

    seeked: bool = Field(..., description="False when the stream is not seekable or the seek failed")
    position: float | None = Field(None, description="Confirmed position after the seek")


class ShowItem(BaseModel):
    """Listen-again catalog entry."""

    title: str = Field(..., description="Show title")
    stream_url: str = Field(..., description="Stream URL, also the show's stream identifier")
    artwork_asset: str = Field(..., description="Artwork asset name")
    is_playing: bool = Field(default=False, description="Whether this show is playing now")


class ShowListResponse(BaseModel):
    """Response model for the show catalog."""

    shows: list[ShowItem] = Field(default_factory=list, description="Listen-again shows")


class SessionEventRequest(BaseModel):
    """Audio session notification pushed by the host platform."""

    type: SessionEventType = Field(..., description="Notification type")
    resume_hint: bool = Field(default=False, description="Interruption ended with a 'should resume' hint")
    reason: str | None = Field(None, description="Route change reason")
