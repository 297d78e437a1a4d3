"""MPD-backed media playback.

``MPDClient`` wraps the blocking python-mpd2 client with ``asyncio.to_thread``.
``MPDMediaBackend`` hands out one ``MPDMediaHandle`` per stream; each handle owns the
MPD queue while it is active (the queue holds just its URL), polls status/currentsong
for position and tags, pushes tag changes to its metadata subscribers and reports
whether loading and starting succeeded to its event subscribers.
"""

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Coroutine
from typing import Any

from mpd import CommandError
from mpd import MPDClient as OriginalMPDClient
from mpd import MPDError

from cityradio.exceptions import MediaBackendError
from cityradio.exceptions import MediaConnectionError
from cityradio.services.media_player import MediaEvent
from cityradio.services.media_player import MediaEventCallback
from cityradio.services.media_player import MetadataCallback
from cityradio.services.media_player import MetadataRecord
from cityradio.services.media_player import Unsubscribe
from cityradio.settings import settings

logger = logging.getLogger(__name__)

MPD_ERRORS = (MPDError, MediaBackendError, ConnectionError, OSError)


class MPDClient:
    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.client = OriginalMPDClient()
        # Held for a whole multi-command operation; python-mpd2 connections are not concurrent
        self.lock = asyncio.Lock()

    async def connect(self):
        """Connect to MPD if not already connected."""
        try:
            # Try to ping to check if already connected
            await asyncio.to_thread(self.client.ping)
        except Exception:
            try:
                await asyncio.to_thread(self.client.disconnect)
            except Exception:
                pass
            try:
                await asyncio.to_thread(self.client.connect, self.host, self.port)
            except (ConnectionError, OSError, MPDError) as e:
                raise MediaConnectionError(f"Cannot connect to MPD at {self.host}:{self.port}: {e}")

    async def disconnect(self):
        await asyncio.to_thread(self.client.disconnect)

    async def clear_queue(self):
        """Clear all songs from the MPD queue."""
        await asyncio.to_thread(self.client.clear)

    async def add_stream(self, url: str) -> str:
        """Add a stream URL to the queue.

        :returns: The MPD song ID of the added entry
        :raises MediaBackendError: If MPD refuses the URL
        """
        try:
            song_id = await asyncio.to_thread(self.client.addid, url)
        except CommandError as e:
            raise MediaBackendError(f"MPD refused {url}: {e}")
        logger.debug(f"Added {url} with song_id={song_id}")
        return song_id

    async def set_repeat(self, enabled: bool):
        """Enable or disable repeat mode."""
        await asyncio.to_thread(self.client.repeat, 1 if enabled else 0)

    async def play(self, position: int | None = None):
        """Start playback at the given position (or resume if None)."""
        if position is not None:
            await asyncio.to_thread(self.client.play, position)
        else:
            await asyncio.to_thread(self.client.play)

    async def pause(self):
        """Pause playback."""
        await asyncio.to_thread(self.client.pause, 1)

    async def resume(self):
        """Resume playback (unpause)."""
        await asyncio.to_thread(self.client.pause, 0)

    async def stop(self):
        await asyncio.to_thread(self.client.stop)

    async def seek_current(self, seconds: float):
        """Seek within the current song to an absolute position."""
        await asyncio.to_thread(self.client.seekcur, f"{seconds:.3f}")

    async def get_status(self) -> dict:
        """Get current MPD status."""
        return await asyncio.to_thread(self.client.status)

    async def get_current_song(self) -> dict:
        """Get currently playing song info."""
        return await asyncio.to_thread(self.client.currentsong)


def parse_seconds(value: str | None) -> float | None:
    """Parse an MPD seconds field ("123.456"); None when absent, malformed or zero."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def song_metadata_records(song: dict) -> list[MetadataRecord]:
    """Map MPD song tags to metadata records.

    ICY/stream titles arrive as ``title``; the station ``name`` carries no common key.
    """
    records = []
    if song.get("title"):
        records.append(MetadataRecord("title", song["title"]))
    if song.get("artist"):
        records.append(MetadataRecord("artist", song["artist"]))
    if song.get("name"):
        records.append(MetadataRecord(None, song["name"]))
    return records


class MPDMediaHandle:
    """One stream loaded into MPD."""

    def __init__(self, client: MPDClient, url: str, poll_interval: float = settings.MPD_POLL_INTERVAL):
        self.client = client
        self.url = url
        self.poll_interval = poll_interval
        self._subscribers: list[MetadataCallback] = []
        self._event_subscribers: list[MediaEventCallback] = []
        self._position = 0.0
        self._duration: float | None = None
        self._last_tags: tuple | None = None
        self._disposed = False
        self._load_failed = False
        self._tasks: set[asyncio.Task] = set()

        self._submit(self._load_stream())
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    # Commands run in submission order, each holding the client lock for its whole duration

    def _submit(self, command: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(command)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, name: str, operation: Callable[[], Awaitable[None]]) -> bool:
        try:
            async with self.client.lock:
                await self.client.connect()
                await operation()
        except MPD_ERRORS as e:
            logger.error(f"MPD {name} failed for {self.url}: {e}")
            return False
        return True

    async def _load_stream(self) -> None:
        if not await self._run("load", self._load):
            self._load_failed = True
            self._emit_event("failed")

    async def _start(self) -> None:
        self._emit_event("playing" if await self._run("play", self._play) else "failed")

    async def _load(self) -> None:
        await self.client.clear_queue()
        await self.client.set_repeat(False)
        await self.client.add_stream(self.url)
        logger.info(f"Loaded {self.url} into MPD")

    async def _play(self) -> None:
        if self._load_failed:
            raise MediaBackendError(f"{self.url} is not loaded")
        status = await self.client.get_status()
        if status.get("state") == "pause":
            await self.client.resume()
        else:
            await self.client.play()

    async def _unload(self) -> None:
        await self.client.stop()
        await self.client.clear_queue()

    def play(self) -> None:
        if not self._disposed:
            self._submit(self._start())

    def pause(self) -> None:
        if not self._disposed:
            self._submit(self._run("pause", self.client.pause))

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._subscribers.clear()
        self._event_subscribers.clear()
        self._poll_task.cancel()
        self._submit(self._run("unload", self._unload))

    @property
    def finished(self) -> bool:
        """Disposed with every submitted command done."""
        return self._disposed and not self._tasks and self._poll_task.done()

    async def join(self) -> None:
        """Wait for every submitted command (and, once disposed, the poller) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._disposed:
            await asyncio.gather(self._poll_task, return_exceptions=True)

    def current_position(self) -> float:
        return self._position

    def duration(self) -> float | None:
        return self._duration

    def seekable_range(self) -> tuple[float, float] | None:
        # MPD reports no duration for endless HTTP streams
        if self._duration is None:
            return None
        return 0.0, self._duration

    async def seek(self, to_seconds: float, exact: bool = True) -> bool:
        # MPD seeks are always exact, the flag is accepted for interface parity
        if self._disposed:
            return False
        try:
            async with self.client.lock:
                await self.client.connect()
                await self.client.seek_current(to_seconds)
        except MPD_ERRORS as e:
            logger.error(f"MPD seek to {to_seconds:.1f}s failed for {self.url}: {e}")
            return False
        self._position = to_seconds
        return True

    def subscribe_metadata(self, callback: MetadataCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def subscribe_events(self, callback: MediaEventCallback) -> Unsubscribe:
        self._event_subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._event_subscribers:
                self._event_subscribers.remove(callback)

        return unsubscribe

    def _emit_event(self, event: MediaEvent) -> None:
        for callback in list(self._event_subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Media event subscriber failed on {event}: {e}", exc_info=True)

    async def _poll_loop(self) -> None:
        try:
            while not self._disposed:
                try:
                    async with self.client.lock:
                        if self._disposed:
                            break
                        await self.client.connect()
                        status = await self.client.get_status()
                        song = await self.client.get_current_song()
                except MPD_ERRORS as e:
                    logger.warning(f"MPD poll failed for {self.url}: {e}")
                else:
                    self.apply_status(status, song)
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.debug(f"MPD poll for {self.url} cancelled")

    def apply_status(self, status: dict, song: dict) -> None:
        """Update cached position/duration and emit metadata when the tags change."""
        if self._disposed or song.get("file") != self.url:
            return
        self._position = parse_seconds(status.get("elapsed")) or 0.0
        self._duration = parse_seconds(status.get("duration"))

        tags = (song.get("title"), song.get("artist"), song.get("name"))
        if tags == self._last_tags:
            return
        self._last_tags = tags
        records = song_metadata_records(song)
        for callback in list(self._subscribers):
            try:
                callback(records)
            except Exception as e:
                logger.error(f"Metadata subscriber failed: {e}", exc_info=True)


class MPDMediaBackend:
    """Creates MPD-backed media handles sharing one MPD connection."""

    def __init__(
        self,
        host: str = settings.MPD_HOST,
        port: int = settings.MPD_PORT,
        poll_interval: float = settings.MPD_POLL_INTERVAL,
    ):
        self.client = MPDClient(host, port)
        self.poll_interval = poll_interval
        self.handles: set[MPDMediaHandle] = set()

    def create(self, url: str) -> MPDMediaHandle:
        self.handles = {handle for handle in self.handles if not handle.finished}
        handle = MPDMediaHandle(self.client, url, poll_interval=self.poll_interval)
        self.handles.add(handle)
        return handle

    async def close(self) -> None:
        """Unload every handle, then disconnect once their queued commands have run."""
        handles, self.handles = self.handles, set()
        for handle in handles:
            handle.dispose()
            await handle.join()
        try:
            async with self.client.lock:
                await self.client.disconnect()
        except (MPDError, ConnectionError, OSError):
            logger.debug("Error disconnecting from MPD (likely already disconnected)")
