import asyncio
import sys
from pathlib import Path

import pytest
from PIL import Image

project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from cityradio.services.artwork_fetcher import Artwork  # noqa: E402
from cityradio.services.audio_session import LocalAudioSession  # noqa: E402
from cityradio.services.playback_engine import PlaybackEngine  # noqa: E402

LIVE_ID = "live"
LIVE_URL = "https://streaming.example.com/live"
SHOW_A = "https://shows.example.com/a.mp3"
SHOW_B = "https://shows.example.com/b.mp3"


class FakeMediaHandle:
    """In-memory media handle recording the commands it receives."""

    def __init__(self, url: str, duration: float | None = None, seekable: tuple[float, float] | None = None):
        self.url = url
        self.calls: list[str] = []
        self.position = 0.0
        self._duration = duration
        self._seekable = seekable if seekable is not None else ((0.0, duration) if duration is not None else None)
        self.seek_result = True
        self.seek_gate: asyncio.Event | None = None
        self.seeks: list[tuple[float, bool]] = []
        self.subscribers: list = []
        self.event_subscribers: list = []
        self.start_fails = False
        self.disposed = False

    def play(self) -> None:
        self.calls.append("play")
        self.emit_event("failed" if self.start_fails else "playing")

    def pause(self) -> None:
        self.calls.append("pause")

    def dispose(self) -> None:
        self.disposed = True
        self.calls.append("dispose")

    def current_position(self) -> float:
        return self.position

    def duration(self) -> float | None:
        return self._duration

    def seekable_range(self) -> tuple[float, float] | None:
        return self._seekable

    async def seek(self, to_seconds: float, exact: bool = True) -> bool:
        self.seeks.append((to_seconds, exact))
        if self.seek_gate is not None:
            await self.seek_gate.wait()
        if self.seek_result:
            self.position = to_seconds
        return self.seek_result

    def subscribe_metadata(self, callback):
        self.subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self.subscribers:
                self.subscribers.remove(callback)

        return unsubscribe

    def subscribe_events(self, callback):
        self.event_subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self.event_subscribers:
                self.event_subscribers.remove(callback)

        return unsubscribe

    def emit(self, records) -> None:
        for callback in list(self.subscribers):
            callback(records)

    def emit_event(self, event) -> None:
        for callback in list(self.event_subscribers):
            callback(event)


class FakeMediaBackend:
    """Creates FakeMediaHandles; ``durations`` maps URL to a known duration."""

    def __init__(self):
        self.handles: list[FakeMediaHandle] = []
        self.durations: dict[str, float] = {}
        self.fail_urls: set[str] = set()
        self.start_fails: set[str] = set()

    def create(self, url: str) -> FakeMediaHandle:
        if url in self.fail_urls:
            raise RuntimeError(f"cannot open {url}")
        handle = FakeMediaHandle(url, duration=self.durations.get(url))
        handle.start_fails = url in self.start_fails
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeMediaHandle:
        return self.handles[-1]


def make_artwork(url: str = "https://img.example.com/600x600bb.jpg", color: str = "red") -> Artwork:
    return Artwork(image=Image.new("RGB", (8, 8), color), url=url)


class FakeArtworkFetcher:
    """Returns canned artwork; a per-title gate holds a lookup until released."""

    def __init__(self):
        self.calls: list[tuple[str | None, str]] = []
        self.results: dict[str, Artwork] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.default = make_artwork()

    async def fetch(self, artist: str | None, title: str) -> Artwork:
        self.calls.append((artist, title))
        gate = self.gates.get(title)
        if gate is not None:
            await gate.wait()
        return self.results.get(title, self.default)


class RecordingNowPlaying:
    def __init__(self):
        self.updates = []

    def update(self, info) -> None:
        self.updates.append(info)

    @property
    def last(self):
        return self.updates[-1]


@pytest.fixture
def media_backend():
    backend = FakeMediaBackend()
    backend.durations[SHOW_A] = 200.0
    backend.durations[SHOW_B] = 3600.0
    return backend


@pytest.fixture
def audio_session():
    return LocalAudioSession()


@pytest.fixture
def artwork_fetcher():
    return FakeArtworkFetcher()


@pytest.fixture
def now_playing():
    return RecordingNowPlaying()


@pytest.fixture
async def engine(media_backend, audio_session, artwork_fetcher, now_playing):
    """PlaybackEngine wired to in-memory collaborators."""
    player = PlaybackEngine(
        media_backend=media_backend,
        audio_session=audio_session,
        artwork_fetcher=artwork_fetcher,
        now_playing=now_playing,
        live_stream_id=LIVE_ID,
        live_stream_url=LIVE_URL,
        seek_readout_seconds=0.05,
    )
    yield player
    await player.close()
