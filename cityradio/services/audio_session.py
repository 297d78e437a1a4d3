"""Audio session collaborator.

The player asks the session to be configured/activated before audible playback and
subscribes to its notifications (interruptions, route changes, app lifecycle).
``LocalAudioSession`` is the in-process implementation: host integrations push
notifications into it with ``emit`` (the HTTP API exposes this as ``/session/events``).
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from cityradio.exceptions import AudioSessionError
from cityradio.types import SessionCategory
from cityradio.types import SessionEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEvent:
    type: SessionEventType
    resume_hint: bool = False  # Only meaningful for interruption_ended
    reason: str | None = None  # Only meaningful for route_changed


SessionCallback = Callable[[SessionEvent], None]


class AudioSession(Protocol):
    def configure(self, category: SessionCategory) -> None: ...

    def activate(self) -> None: ...

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]: ...


class LocalAudioSession:
    """Process-wide audio session state with a simple observer list."""

    def __init__(self) -> None:
        self.category: SessionCategory | None = None
        self.active = False
        self._subscribers: list[SessionCallback] = []

    def configure(self, category: SessionCategory) -> None:
        logger.debug(f"Audio session category set to {category}")
        self.category = category

    def activate(self) -> None:
        """Mark the session active.

        :raises AudioSessionError: If the session was never configured
        """
        if self.category is None:
            raise AudioSessionError("Audio session must be configured before activation")
        if not self.active:
            logger.info(f"Audio session activated (category={self.category})")
        self.active = True

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: SessionEvent) -> None:
        """Deliver a notification to every subscriber."""
        logger.info(f"Audio session event: {event.type} (resume_hint={event.resume_hint}, reason={event.reason})")
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Audio session subscriber failed on {event.type}: {e}", exc_info=True)
