"""Observable player state.

``PlayerStateStore`` holds the one current ``PlayerSnapshot`` and notifies subscribers
whenever it changes. Only the playback engine writes to it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import replace
from enum import Enum

from cityradio.services.artwork_fetcher import Artwork
from cityradio.services.metadata_resolver import EMPTY_TRACK
from cityradio.services.metadata_resolver import TrackMetadata

logger = logging.getLogger(__name__)


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    PREPARING_LIVE = "preparing_live"
    LIVE_PLAYING = "live_playing"
    LIVE_PAUSED = "live_paused"
    PREPARING_SHOW = "preparing_show"
    SHOW_PLAYING = "show_playing"
    SHOW_PAUSED = "show_paused"


PLAYING_STATUSES = frozenset({PlaybackStatus.LIVE_PLAYING, PlaybackStatus.SHOW_PLAYING})
LIVE_STATUSES = frozenset({PlaybackStatus.PREPARING_LIVE, PlaybackStatus.LIVE_PLAYING, PlaybackStatus.LIVE_PAUSED})


@dataclass(frozen=True)
class PlaybackState:
    """Current stream and where it is in its lifecycle.

    ``stream_id`` is set for every status except IDLE.
    """

    status: PlaybackStatus = PlaybackStatus.IDLE
    stream_id: str | None = None

    def __post_init__(self) -> None:
        if (self.status is PlaybackStatus.IDLE) != (self.stream_id is None):
            raise ValueError(f"stream_id must be set iff status is not idle: {self.status}, {self.stream_id}")

    @classmethod
    def preparing(cls, stream_id: str, live: bool) -> "PlaybackState":
        return cls(PlaybackStatus.PREPARING_LIVE if live else PlaybackStatus.PREPARING_SHOW, stream_id)

    @classmethod
    def playing(cls, stream_id: str, live: bool) -> "PlaybackState":
        return cls(PlaybackStatus.LIVE_PLAYING if live else PlaybackStatus.SHOW_PLAYING, stream_id)

    @classmethod
    def paused(cls, stream_id: str, live: bool) -> "PlaybackState":
        return cls(PlaybackStatus.LIVE_PAUSED if live else PlaybackStatus.SHOW_PAUSED, stream_id)

    @property
    def is_playing(self) -> bool:
        return self.status in PLAYING_STATUSES

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES


IDLE = PlaybackState()


@dataclass(frozen=True)
class PlayerSnapshot:
    """Everything observers can see about the player at one instant."""

    playback: PlaybackState = IDLE
    track: TrackMetadata = EMPTY_TRACK
    artwork: Artwork | None = None
    seek_position: float | None = None  # Transient readout after a completed seek

    @property
    def is_playing(self) -> bool:
        return self.playback.is_playing

    @property
    def stream_id(self) -> str | None:
        return self.playback.stream_id

    @property
    def show_id(self) -> str | None:
        """Stream id of the on-demand show being played, None for live or idle."""
        if self.playback.status is PlaybackStatus.IDLE or self.playback.is_live:
            return None
        return self.playback.stream_id

    @property
    def track_label(self) -> str | None:
        return self.track.display_label


SnapshotCallback = Callable[[PlayerSnapshot, PlayerSnapshot], None]


class PlayerStateStore:
    """Holds the current snapshot and broadcasts changes as (old, new) pairs."""

    def __init__(self, initial: PlayerSnapshot | None = None):
        self._snapshot = initial or PlayerSnapshot()
        self._subscribers: list[SnapshotCallback] = []

    @property
    def snapshot(self) -> PlayerSnapshot:
        return self._snapshot

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a change callback. Returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update(self, **changes) -> PlayerSnapshot:
        """Apply field changes and notify subscribers if anything actually changed."""
        old = self._snapshot
        new = replace(old, **changes)
        if new == old:
            return old
        self._snapshot = new
        for callback in list(self._subscribers):
            try:
                callback(old, new)
            except Exception as e:
                logger.error(f"State subscriber {callback!r} failed: {e}", exc_info=True)
        return new

    def reset(self) -> PlayerSnapshot:
        return self.update(
            playback=IDLE,
            track=EMPTY_TRACK,
            artwork=None,
            seek_position=None,
        )
