"""Tests for the MPD media backend with a mocked python-mpd2 client."""

from unittest.mock import patch

import pytest
from conftest import FakeArtworkFetcher
from mpd import CommandError

from cityradio.services.audio_session import LocalAudioSession
from cityradio.services.media_player import MetadataRecord
from cityradio.services.mpd_service import MPDMediaBackend
from cityradio.services.mpd_service import parse_seconds
from cityradio.services.mpd_service import song_metadata_records
from cityradio.services.playback_engine import PlaybackEngine
from cityradio.services.player_state import PlaybackStatus

URL = "https://shows.example.com/a.mp3"


@pytest.fixture
def mpd():
    """The mocked python-mpd2 client instance."""
    with patch("cityradio.services.mpd_service.OriginalMPDClient") as client_class:
        client = client_class.return_value
        client.status.return_value = {"state": "stop"}
        client.currentsong.return_value = {}
        client.addid.return_value = "7"
        yield client


@pytest.fixture
async def handle(mpd):
    backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
    media = backend.create(URL)
    await media.join()
    yield media
    media.dispose()
    await media.join()


def call_names(mock):
    return [call[0] for call in mock.method_calls]


class TestHelpers:
    """Test MPD field parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [("123.456", 123.456), ("0", None), ("0.000", None), ("", None), (None, None), ("n/a", None)],
    )
    def test_parse_seconds(self, value, expected):
        assert parse_seconds(value) == expected

    def test_song_metadata_records(self):
        records = song_metadata_records({"title": "Song", "artist": "Band", "name": "Station", "file": URL})

        assert records == [
            MetadataRecord("title", "Song"),
            MetadataRecord("artist", "Band"),
            MetadataRecord(None, "Station"),
        ]

    def test_song_without_tags(self):
        assert song_metadata_records({"file": URL}) == []


class TestHandleCommands:
    """Test the commands sent to MPD."""

    async def test_create_loads_stream(self, handle, mpd):
        mpd.clear.assert_called()
        mpd.repeat.assert_called_once_with(0)
        mpd.addid.assert_called_once_with(URL)
        names = call_names(mpd)
        assert names.index("clear") < names.index("addid")

    async def test_play_after_load(self, handle, mpd):
        handle.play()
        await handle.join()

        mpd.play.assert_called_once_with()
        names = call_names(mpd)
        assert names.index("addid") < names.index("play")

    async def test_play_when_paused_resumes(self, handle, mpd):
        mpd.status.return_value = {"state": "pause"}

        handle.play()
        await handle.join()

        mpd.pause.assert_called_once_with(0)
        mpd.play.assert_not_called()

    async def test_pause(self, handle, mpd):
        handle.pause()
        await handle.join()

        mpd.pause.assert_called_once_with(1)

    async def test_dispose_unloads_once(self, handle, mpd):
        handle.dispose()
        handle.dispose()
        await handle.join()

        mpd.stop.assert_called_once_with()

    async def test_commands_after_dispose_are_ignored(self, handle, mpd):
        handle.dispose()
        await handle.join()

        handle.play()
        handle.pause()
        await handle.join()

        mpd.play.assert_not_called()
        mpd.pause.assert_not_called()
        assert await handle.seek(10.0) is False

    async def test_refused_url_is_logged_not_raised(self, mpd):
        mpd.addid.side_effect = CommandError("No such directory")
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)

        media = backend.create(URL)
        await media.join()

        media.dispose()
        await media.join()

    async def test_reconnects_when_ping_fails(self, handle, mpd):
        mpd.ping.side_effect = ConnectionError("gone")

        handle.pause()
        await handle.join()

        mpd.connect.assert_called_with("localhost", 6600)
        mpd.pause.assert_called_once_with(1)

    async def test_connect_failure_is_logged(self, handle, mpd):
        mpd.ping.side_effect = ConnectionError("gone")
        mpd.connect.side_effect = ConnectionRefusedError("refused")

        handle.pause()
        await handle.join()

        mpd.pause.assert_not_called()


class TestSeek:
    """Test seeking within the loaded stream."""

    async def test_seek_success(self, handle, mpd):
        assert await handle.seek(42.5) is True

        mpd.seekcur.assert_called_once_with("42.500")
        assert handle.current_position() == 42.5

    async def test_seek_failure(self, handle, mpd):
        mpd.seekcur.side_effect = CommandError("not seekable")

        assert await handle.seek(42.5) is False
        assert handle.current_position() == 0.0


class TestStatus:
    """Test status polling results."""

    def song(self, **tags):
        return {"file": URL, **tags}

    async def test_position_and_duration(self, handle):
        handle.apply_status({"elapsed": "12.5", "duration": "200.000"}, self.song())

        assert handle.current_position() == 12.5
        assert handle.duration() == 200.0
        assert handle.seekable_range() == (0.0, 200.0)

    async def test_live_stream_is_not_seekable(self, handle):
        handle.apply_status({"elapsed": "12.5"}, self.song())

        assert handle.duration() is None
        assert handle.seekable_range() is None

    async def test_emits_only_when_tags_change(self, handle):
        batches = []
        handle.subscribe_metadata(batches.append)

        handle.apply_status({}, self.song(title="One", artist="Band"))
        handle.apply_status({}, self.song(title="One", artist="Band"))
        handle.apply_status({}, self.song(title="Two", artist="Band"))

        assert batches == [
            [MetadataRecord("title", "One"), MetadataRecord("artist", "Band")],
            [MetadataRecord("title", "Two"), MetadataRecord("artist", "Band")],
        ]

    async def test_other_file_is_ignored(self, handle):
        batches = []
        handle.subscribe_metadata(batches.append)

        handle.apply_status({"elapsed": "30"}, {"file": "https://elsewhere.example.com/x.mp3", "title": "Other"})

        assert batches == []
        assert handle.current_position() == 0.0

    async def test_unsubscribe(self, handle):
        batches = []
        unsubscribe = handle.subscribe_metadata(batches.append)

        unsubscribe()
        handle.apply_status({}, self.song(title="One"))

        assert batches == []

    async def test_disposed_handle_ignores_status(self, handle):
        batches = []
        handle.subscribe_metadata(batches.append)
        handle.dispose()

        handle.apply_status({"elapsed": "30"}, self.song(title="One"))

        assert batches == []


class TestHandleEvents:
    """Test the load/play outcome reported to the engine."""

    async def test_play_reports_playing(self, handle):
        events = []
        handle.subscribe_events(events.append)

        handle.play()
        await handle.join()

        assert events == ["playing"]

    async def test_refused_url_reports_failure_and_never_plays(self, mpd):
        mpd.addid.side_effect = CommandError("No such directory")
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
        media = backend.create(URL)
        events = []
        media.subscribe_events(events.append)

        media.play()
        await media.join()

        assert events == ["failed", "failed"]
        mpd.play.assert_not_called()
        await backend.close()

    async def test_play_command_error_reports_failure(self, handle, mpd):
        mpd.play.side_effect = CommandError("Bad song index")
        events = []
        handle.subscribe_events(events.append)

        handle.play()
        await handle.join()

        assert events == ["failed"]


class TestEngineOnMPD:
    """Drive the playback engine against the MPD handle."""

    def make_engine(self, backend):
        return PlaybackEngine(
            media_backend=backend,
            audio_session=LocalAudioSession(),
            artwork_fetcher=FakeArtworkFetcher(),
            live_stream_id="live",
            live_stream_url="https://streaming.example.com/live",
        )

    async def test_refused_url_stays_preparing(self, mpd):
        mpd.addid.side_effect = CommandError("No such directory")
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
        engine = self.make_engine(backend)

        engine.play_stream("https://bad.example.com/nope.mp3")
        for media in list(backend.handles):
            await media.join()

        assert engine.snapshot.playback.status is PlaybackStatus.PREPARING_SHOW
        assert not engine.is_playing
        await engine.close()
        await backend.close()

    async def test_playing_after_mpd_confirms(self, mpd):
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
        engine = self.make_engine(backend)

        engine.play_stream(URL)
        assert engine.snapshot.playback.status is PlaybackStatus.PREPARING_SHOW
        for media in list(backend.handles):
            await media.join()

        assert engine.snapshot.playback.status is PlaybackStatus.SHOW_PLAYING
        await engine.close()
        await backend.close()

    async def test_shutdown_stops_mpd_before_disconnecting(self, mpd):
        """Closing the engine then the backend unloads the stream before disconnecting."""
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
        engine = self.make_engine(backend)
        engine.play_live()

        await engine.close()
        await backend.close()

        names = call_names(mpd)
        assert "stop" in names
        assert names.index("play") < names.index("stop") < names.index("disconnect")
        assert names[names.index("stop") + 1] == "clear"
        assert all(media.finished for media in backend.handles)
        assert backend.handles == set()

    async def test_close_unloads_handles_still_active(self, mpd):
        backend = MPDMediaBackend(host="localhost", port=6600, poll_interval=60)
        media = backend.create(URL)
        media.play()

        await backend.close()

        names = call_names(mpd)
        assert names.index("stop") < len(names) - 1
        assert names[-1] == "disconnect"
        assert media.finished
