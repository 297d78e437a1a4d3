"""Playback engine: the single owner of what is playing.

Mediates every transition between idle, live and listen-again playback, turns the
active stream's timed metadata into a track label and artwork, and publishes the
result through ``PlayerStateStore``.

All public methods are expected to be called from the event loop thread. Results that
arrive asynchronously (metadata batches, artwork lookups, seek completions) are tagged
with the connection generation that produced them and dropped if the player has
moved on to another connection since.
"""

import asyncio
import logging
from collections.abc import Callable
from collections.abc import Sequence

from cityradio.services.artwork_fetcher import ArtworkFetcher
from cityradio.services.audio_session import AudioSession
from cityradio.services.audio_session import SessionEvent
from cityradio.services.media_player import MediaBackend
from cityradio.services.media_player import MediaEvent
from cityradio.services.media_player import MediaHandle
from cityradio.services.media_player import MetadataRecord
from cityradio.services.metadata_resolver import EMPTY_TRACK
from cityradio.services.metadata_resolver import TrackMetadata
from cityradio.services.metadata_resolver import resolve_metadata
from cityradio.services.now_playing import NowPlayingCenter
from cityradio.services.now_playing import NowPlayingInfo
from cityradio.services.player_state import PlaybackState
from cityradio.services.player_state import PlayerSnapshot
from cityradio.services.player_state import PlayerStateStore
from cityradio.services.player_state import SnapshotCallback
from cityradio.settings import settings
from cityradio.types import ROUTE_DEVICE_UNAVAILABLE
from cityradio.types import RemoteCommand

logger = logging.getLogger(__name__)


class PlaybackEngine:
    def __init__(
        self,
        media_backend: MediaBackend,
        audio_session: AudioSession,
        artwork_fetcher: ArtworkFetcher,
        now_playing: NowPlayingCenter | None = None,
        store: PlayerStateStore | None = None,
        live_stream_id: str = settings.LIVE_STREAM_ID,
        live_stream_url: str = settings.LIVE_STREAM_URL,
        seek_readout_seconds: float = settings.SEEK_READOUT_SECONDS,
    ):
        self.media_backend = media_backend
        self.audio_session = audio_session
        self.artwork_fetcher = artwork_fetcher
        self.now_playing = now_playing
        self.store = store or PlayerStateStore()
        self.live_stream_id = live_stream_id
        self.live_stream_url = live_stream_url
        self.seek_readout_seconds = seek_readout_seconds

        self._handle: MediaHandle | None = None
        self._detach_metadata: Callable[[], None] | None = None
        self._detach_events: Callable[[], None] | None = None
        self._play_requested = False
        self._generation = 0
        self._artwork_request = 0
        self._artwork_tasks: set[asyncio.Task] = set()
        self._readout_timer: asyncio.TimerHandle | None = None
        self._was_playing_before_interruption = False

        self._configure_session()
        self._detach_session = audio_session.subscribe(self.handle_session_event)
        self._detach_store = self.store.subscribe(self._on_state_changed)

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def snapshot(self) -> PlayerSnapshot:
        return self.store.snapshot

    @property
    def is_playing(self) -> bool:
        return self.store.snapshot.is_playing

    @property
    def current_stream_id(self) -> str | None:
        return self.store.snapshot.stream_id

    @property
    def generation(self) -> int:
        """Identifier of the active connection; changes on every stop or stream switch."""
        return self._generation

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        return self.store.subscribe(callback)

    def current_time(self) -> float | None:
        """Playback position reported by the active connection, if any."""
        if self._handle is None:
            return None
        return self._handle.current_position()

    def duration(self) -> float | None:
        if self._handle is None:
            return None
        return self._handle.duration()

    # =========================================================================
    # Transport controls
    # =========================================================================

    def play_live(self) -> None:
        """Start the live stream, or resume whatever connection is already open."""
        if self._handle is None:
            self._open(self.live_stream_id, auto_start=True)
            return
        self._resume()

    def pause(self) -> None:
        """Suspend the active connection without releasing it."""
        state = self.snapshot.playback
        if self._handle is None or not state.is_playing:
            logger.debug(f"Pause ignored in state {state.status.value}")
            return
        self._play_requested = False
        self._handle.pause()
        self.store.update(playback=PlaybackState.paused(state.stream_id, state.is_live))
        logger.info(f"Paused {state.stream_id}")

    def stop(self) -> None:
        """Release the connection and clear track, artwork and seek readout. Idempotent."""
        self._generation += 1
        self._play_requested = False
        self._was_playing_before_interruption = False
        was_active = self._handle is not None or self.snapshot.stream_id is not None
        self._release_handle()
        self._cancel_readout()
        self.store.reset()
        if was_active:
            logger.info("Playback stopped")

    def toggle(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play_live()

    def play_stream(self, stream_id: str) -> None:
        """Switch to ``stream_id``.

        Same stream while playing is a no-op, same stream while paused or armed resumes it.
        Anything else tears the current connection down first so no metadata, artwork or
        seek state from the old stream survives into the new one.
        """
        state = self.snapshot.playback
        if self._handle is not None and state.stream_id == stream_id:
            if state.is_playing:
                logger.debug(f"Already playing {stream_id}")
                return
            self._resume()
            return
        self.stop()
        self._open(stream_id, auto_start=True)

    def restore_live(self) -> None:
        """Return to the live stream armed but silent.

        On live already this is a pause; otherwise the current stream is stopped and the
        live stream is prepared without starting, so the next play resumes live.
        """
        if self.current_stream_id == self.live_stream_id:
            self.pause()
            return
        self.stop()
        self._open(self.live_stream_id, auto_start=False)

    def handle_remote_command(self, command: RemoteCommand) -> None:
        """Apply a play/pause/toggle/stop command from a remote control."""
        if command == "play":
            self.play_live()
        elif command == "pause":
            self.pause()
        elif command == "toggle":
            self.toggle()
        elif command == "stop":
            self.stop()
        else:
            logger.warning(f"Unknown remote command: {command}")

    # =========================================================================
    # Seeking
    # =========================================================================

    async def seek_by(self, delta_seconds: float) -> float | None:
        """Seek relative to the current position, clamped to [0, duration].

        :param delta_seconds: Offset in seconds (negative seeks backwards)
        :return: The confirmed target position, or None if nothing was seeked
        """
        handle = self._handle
        if handle is None:
            logger.debug("Seek ignored: no active stream")
            return None
        if handle.seekable_range() is None:
            logger.debug(f"Seek ignored: {self.current_stream_id} is not seekable")
            return None

        target = max(0.0, handle.current_position() + delta_seconds)
        duration = handle.duration()
        if duration is not None:
            target = min(target, duration)

        generation = self._generation
        completed = await handle.seek(target, exact=True)
        if not completed:
            logger.warning(f"Seek to {target:.1f}s did not complete")
            return None
        if generation != self._generation:
            logger.debug("Seek completed for a superseded stream, readout dropped")
            return None

        self._show_seek_readout(target)
        return target

    async def seek_forward(self, seconds: float = settings.SEEK_STEP_SECONDS) -> float | None:
        return await self.seek_by(seconds)

    async def seek_backward(self, seconds: float = settings.SEEK_STEP_SECONDS) -> float | None:
        return await self.seek_by(-seconds)

    def _show_seek_readout(self, position: float) -> None:
        self._cancel_readout()
        self.store.update(seek_position=position)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._readout_timer = loop.call_later(self.seek_readout_seconds, self._clear_seek_readout)

    def _clear_seek_readout(self) -> None:
        self._readout_timer = None
        self.store.update(seek_position=None)

    def _cancel_readout(self) -> None:
        if self._readout_timer is not None:
            self._readout_timer.cancel()
            self._readout_timer = None

    # =========================================================================
    # Audio session
    # =========================================================================

    def handle_session_event(self, event: SessionEvent) -> None:
        """React to an audio session notification."""
        if event.type == "interruption_began":
            # A repeated "began" must not forget that playback was interrupted
            self._was_playing_before_interruption = self._was_playing_before_interruption or self.is_playing
            self.pause()
        elif event.type == "interruption_ended":
            should_resume = event.resume_hint and self._was_playing_before_interruption
            self._was_playing_before_interruption = False
            if should_resume:
                logger.info("Interruption ended, resuming playback")
                self.play_live()
        elif event.type == "route_changed":
            if event.reason == ROUTE_DEVICE_UNAVAILABLE:
                logger.info("Audio output device removed, pausing")
                self.pause()
            else:
                logger.debug(f"Ignoring route change: {event.reason}")
        elif event.type in ("entered_background", "entered_foreground"):
            self._notify_now_playing(self.snapshot)
        else:
            logger.warning(f"Unhandled audio session event: {event.type}")

    def _configure_session(self) -> None:
        try:
            self.audio_session.configure("playback")
        except Exception as e:
            logger.error(f"Audio session setup failed: {e}", exc_info=True)

    def _activate_session(self) -> None:
        try:
            self.audio_session.activate()
        except Exception as e:
            # Best effort: the stream is started regardless
            logger.error(f"Audio session activation failed: {e}", exc_info=True)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def _is_live(self, stream_id: str) -> bool:
        return stream_id == self.live_stream_id

    def _url_for(self, stream_id: str) -> str:
        return self.live_stream_url if self._is_live(stream_id) else stream_id

    def _open(self, stream_id: str, auto_start: bool) -> None:
        self._generation += 1
        generation = self._generation
        live = self._is_live(stream_id)

        # Clear before the new handle exists so nothing from the old stream can show
        self.store.update(
            playback=PlaybackState.preparing(stream_id, live),
            track=EMPTY_TRACK,
            artwork=None,
            seek_position=None,
        )

        try:
            handle = self.media_backend.create(self._url_for(stream_id))
        except Exception as e:
            # No failed state: the stream stays in preparing
            logger.error(f"Could not open {stream_id}: {e}", exc_info=True)
            return

        self._handle = handle
        self._detach_metadata = handle.subscribe_metadata(
            lambda records: self._on_metadata(generation, records)
        )
        self._detach_events = handle.subscribe_events(lambda event: self._on_media_event(generation, event))
        logger.info(f"Opened {'live stream' if live else 'show'} {stream_id} (auto_start={auto_start})")

        if auto_start:
            self._start_playback()

    def _resume(self) -> None:
        logger.info(f"Resuming {self.current_stream_id}")
        self._start_playback()

    def _start_playback(self) -> None:
        # The playing state is published once the handle confirms the start
        self._play_requested = True
        self._activate_session()
        self._handle.play()

    def _on_media_event(self, generation: int, event: MediaEvent) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping media event {event!r} from a superseded stream")
            return
        state = self.snapshot.playback
        if event == "playing":
            if not self._play_requested or state.is_playing:
                return
            self.store.update(playback=PlaybackState.playing(state.stream_id, state.is_live))
            logger.info(f"Playing {state.stream_id}")
        elif event == "failed":
            self._play_requested = False
            logger.error(f"Stream {state.stream_id} could not be played, staying {state.status.value}")

    def _release_handle(self) -> None:
        for detach in (self._detach_metadata, self._detach_events):
            if detach is not None:
                detach()
        self._detach_metadata = None
        self._detach_events = None
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.dispose()
        except Exception as e:
            logger.error(f"Error disposing media handle: {e}", exc_info=True)

    # =========================================================================
    # Metadata and artwork
    # =========================================================================

    def _on_metadata(self, generation: int, records: Sequence[MetadataRecord] | None) -> None:
        if generation != self._generation:
            logger.debug("Dropping metadata from a superseded stream")
            return

        track = resolve_metadata(records)
        self.store.update(track=track)
        if track.display_label:
            logger.info(f"Now playing: {track.display_label}")
        if track.title:
            self._start_artwork_lookup(generation, track)

    def _start_artwork_lookup(self, generation: int, track: TrackMetadata) -> None:
        self._artwork_request += 1
        request = self._artwork_request
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, artwork lookup skipped")
            return
        task = loop.create_task(self._resolve_artwork(generation, request, track.artist, track.title))
        self._artwork_tasks.add(task)
        task.add_done_callback(self._artwork_tasks.discard)

    async def _resolve_artwork(self, generation: int, request: int, artist: str | None, title: str) -> None:
        artwork = await self.artwork_fetcher.fetch(artist, title)
        if generation != self._generation:
            logger.debug(f"Dropping artwork for {title!r}: stream changed")
            return
        if request != self._artwork_request:
            logger.debug(f"Dropping artwork for {title!r}: a newer lookup is pending")
            return
        self.store.update(artwork=artwork)

    async def wait_for_artwork(self) -> None:
        """Wait until every in-flight artwork lookup has finished."""
        while self._artwork_tasks:
            await asyncio.gather(*list(self._artwork_tasks), return_exceptions=True)

    # =========================================================================
    # Now playing
    # =========================================================================

    def _on_state_changed(self, old: PlayerSnapshot, new: PlayerSnapshot) -> None:
        if (
            old.is_playing != new.is_playing
            or old.track_label != new.track_label
            or old.stream_id != new.stream_id
            or old.artwork != new.artwork
        ):
            self._notify_now_playing(new)

    def build_now_playing(self, snapshot: PlayerSnapshot) -> NowPlayingInfo:
        artwork = snapshot.artwork
        return NowPlayingInfo(
            title=snapshot.track_label or snapshot.stream_id,
            stream_id=snapshot.stream_id,
            is_live=snapshot.playback.is_live,
            playback_rate=1.0 if snapshot.is_playing else 0.0,
            elapsed_seconds=self.current_time(),
            duration_seconds=self.duration(),
            artwork_url=artwork.url if artwork is not None else None,
            has_artwork=artwork is not None and not artwork.is_placeholder,
        )

    def _notify_now_playing(self, snapshot: PlayerSnapshot) -> None:
        if self.now_playing is None:
            return
        try:
            self.now_playing.update(self.build_now_playing(snapshot))
        except Exception as e:
            logger.error(f"Now-playing update failed: {e}", exc_info=True)

    # =========================================================================
    # Teardown
    # =========================================================================

    async def close(self) -> None:
        """Detach from collaborators, stop playback and cancel pending lookups."""
        self._detach_session()
        self.stop()
        self._detach_store()
        for task in list(self._artwork_tasks):
            task.cancel()
        await asyncio.gather(*list(self._artwork_tasks), return_exceptions=True)
