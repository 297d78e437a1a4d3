"""Timed metadata to "now playing" label resolution."""

from collections.abc import Iterable
from dataclasses import dataclass

from cityradio.services.media_player import MetadataRecord

LABEL_SEPARATOR = " — "


@dataclass(frozen=True)
class TrackMetadata:
    title: str | None = None
    artist: str | None = None
    display_label: str | None = None


EMPTY_TRACK = TrackMetadata()


def format_display_label(artist: str | None, title: str | None) -> str | None:
    """Combine artist and title into "artist — title", or whichever is present."""
    if artist and title:
        return f"{artist}{LABEL_SEPARATOR}{title}"
    return title or artist or None


def resolve_metadata(records: Iterable[MetadataRecord] | None) -> TrackMetadata:
    """Resolve a batch of metadata records into a best-effort title/artist pair.

    The first "title" and first "artist" tagged values win; later duplicates in the
    same batch are ignored. Untagged values fill the title only while no title has
    been seen and never count as the artist.

    :param records: Records in arrival order (may be None or empty)
    :return: TrackMetadata, fully empty when nothing usable was found
    """
    if not records:
        return EMPTY_TRACK

    title: str | None = None
    artist: str | None = None
    for record in records:
        value = record.value or None
        if value is None:
            continue
        if record.key is None:
            if title is None:
                title = value
            continue
        key = record.key.lower()
        if key == "title":
            if title is None:
                title = value
        elif key == "artist":
            if artist is None:
                artist = value

    if title is None and artist is None:
        return EMPTY_TRACK
    return TrackMetadata(title=title, artist=artist, display_label=format_display_label(artist, title))
