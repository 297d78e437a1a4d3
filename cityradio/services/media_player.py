"""Media playback collaborator interface.

The playback engine never talks to an audio backend directly. It asks a ``MediaBackend``
for a ``MediaHandle`` per stream and drives that handle; handles push timed metadata
back through a subscription.
"""

from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal
from typing import Protocol


@dataclass(frozen=True)
class MetadataRecord:
    """One timed-metadata item: a common-key tag ("title", "artist", ...) and its value."""

    key: str | None = None
    value: str | None = None


MetadataCallback = Callable[[Sequence[MetadataRecord]], None]
# "playing" once a play request took effect, "failed" when loading or starting failed
MediaEvent = Literal["playing", "failed"]
MediaEventCallback = Callable[[MediaEvent], None]
Unsubscribe = Callable[[], None]


class MediaHandle(Protocol):
    """A single connection to a playable stream."""

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def dispose(self) -> None: ...

    def current_position(self) -> float: ...

    def duration(self) -> float | None: ...

    def seekable_range(self) -> tuple[float, float] | None:
        """Seekable window in seconds, or None for live/unbounded streams."""
        ...

    async def seek(self, to_seconds: float, exact: bool = True) -> bool:
        """Seek and wait for completion. Returns False if the seek did not finish."""
        ...

    def subscribe_metadata(self, callback: MetadataCallback) -> Unsubscribe: ...

    def subscribe_events(self, callback: MediaEventCallback) -> Unsubscribe:
        """Report the outcome of load and play requests."""
        ...


class MediaBackend(Protocol):
    def create(self, url: str) -> MediaHandle: ...
