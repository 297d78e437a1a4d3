from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"  # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    ROOT_PATH: str = ""  # API root path prefix (e.g., "/api" when behind reverse proxy)

    # Live stream identity: the sentinel is what clients see, the URL is what MPD plays
    LIVE_STREAM_ID: str = "live"
    LIVE_STREAM_URL: str = "https://streaming.live365.com/a91939"
    PREPARE_LIVE_ON_START: bool = False  # Arm (but don't start) the live stream at startup

    MPD_HOST: str = "localhost"
    MPD_PORT: int = 6600
    MPD_POLL_INTERVAL: float = 1.0

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    NOW_PLAYING_ENABLED: bool = True
    NOW_PLAYING_CHANNEL: str = "events:now_playing"
    REMOTE_COMMAND_CHANNEL: str = "commands:remote"

    ARTWORK_SEARCH_URL: str = "https://itunes.apple.com/search"
    ARTWORK_TIMEOUT_SECONDS: float = 6.0  # Per request (search and download each)
    ARTWORK_IMAGE_SIZE: int = 600

    SEEK_STEP_SECONDS: float = 15.0
    SEEK_READOUT_SECONDS: float = 1.5  # How long the seek position readout stays visible

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, value: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        value_upper = value.upper()
        if value_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got {value}")
        return value_upper

    @field_validator("ARTWORK_TIMEOUT_SECONDS", "SEEK_READOUT_SECONDS", "MPD_POLL_INTERVAL")
    def validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value


settings = Settings()

__all__ = ["settings", "Settings"]
