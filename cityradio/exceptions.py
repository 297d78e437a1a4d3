class PlayerError(Exception):
    """Base exception for the radio player."""

    pass


class MediaBackendError(PlayerError):
    """Exception raised when the media playback backend fails a command."""

    pass


class MediaConnectionError(MediaBackendError):
    """Exception raised when the connection to MPD cannot be established."""

    pass


class ArtworkLookupError(PlayerError):
    """Exception raised when an artwork search or download step fails."""

    pass


class AudioSessionError(PlayerError):
    """Exception raised when the audio session cannot be configured or activated."""

    pass
