"""Listen-again show catalog.

Static configuration: the player only consumes ``stream_url`` (as the stream identifier),
title and artwork asset are for presentation.
"""

from dataclasses import dataclass

LISTEN_AGAIN_BASE_URL = "https://cityliveradiouk.co.uk/Streaming/ListenAgain"


@dataclass(frozen=True)
class Show:
    title: str
    stream_url: str
    artwork_asset: str


SHOWS: tuple[Show, ...] = (
    Show("Not The 9 O'Clock Show", f"{LISTEN_AGAIN_BASE_URL}/NTNOCS.mp3", "NineOclock"),
    Show("Red Bearded Viking Show", f"{LISTEN_AGAIN_BASE_URL}/RBV.mp3", "RedBeard"),
    Show("The Country Mile", f"{LISTEN_AGAIN_BASE_URL}/CM.mp3", "CountryMile"),
    Show("Ginger and Nuts", f"{LISTEN_AGAIN_BASE_URL}/GingerandNuts.mp3", "GingerNuts"),
    Show("Weekend Anthems", f"{LISTEN_AGAIN_BASE_URL}/WeekendAnthems.mp3", "WeekendAnthems"),
    Show("Saturday Club Classics", f"{LISTEN_AGAIN_BASE_URL}/scc.mp3", "ClubClassics"),
)


def find_show(stream_id: str | None) -> Show | None:
    """Look up a catalog show by its stream identifier."""
    if not stream_id:
        return None
    for show in SHOWS:
        if show.stream_url == stream_id:
            return show
    return None
