"""Now-playing integration.

Publishes player snapshots to a Redis Pub/Sub channel for whatever renders "now playing"
(lock screens, dashboards, webhooks), and listens on a command channel for remote
play/pause/toggle/stop requests.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import asdict
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from typing import Protocol
from typing import get_args

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from cityradio.settings import settings
from cityradio.types import RemoteCommand

logger = logging.getLogger(__name__)

REMOTE_COMMANDS: tuple[str, ...] = get_args(RemoteCommand)
PUBLISH_DRAIN_SECONDS = 2.0


@dataclass(frozen=True)
class NowPlayingInfo:
    """Snapshot handed to the now-playing integration."""

    title: str | None
    stream_id: str | None
    is_live: bool
    playback_rate: float  # 1.0 while playing, 0.0 otherwise
    elapsed_seconds: float | None = None
    duration_seconds: float | None = None
    artwork_url: str | None = None
    has_artwork: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class NowPlayingCenter(Protocol):
    def update(self, info: NowPlayingInfo) -> None:
        """Fire-and-forget notification of the current snapshot."""
        ...


def parse_remote_command(data: str | bytes) -> RemoteCommand | None:
    """Decode a command message ``{"command": "toggle"}``; None if it isn't one."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Failed to decode remote command payload: {e}")
        return None
    command = payload.get("command") if isinstance(payload, dict) else None
    if command not in REMOTE_COMMANDS:
        logger.warning(f"Ignoring unknown remote command: {command!r}")
        return None
    return command


class RedisNowPlayingPublisher:
    """Publishes now-playing snapshots to Redis Pub/Sub and relays remote commands."""

    def __init__(
        self,
        redis_client: redis.Redis,
        channel: str = settings.NOW_PLAYING_CHANNEL,
        command_channel: str = settings.REMOTE_COMMAND_CHANNEL,
    ):
        """Initialize publisher with Redis client.

        Args:
            redis_client: Async Redis client instance
            channel: Channel receiving now-playing snapshots
            command_channel: Channel carrying remote commands
        """
        self.redis = redis_client
        self.channel = channel
        self.command_channel = command_channel
        self._pending: set[asyncio.Task] = set()

    def update(self, info: NowPlayingInfo) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, now-playing update dropped")
            return
        task = loop.create_task(self.publish(info))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def publish(self, info: NowPlayingInfo) -> None:
        """Publish a snapshot.

        Event payload format:
        {
            "event_type": "now_playing",
            "description": "Now playing: Artist — Title",
            "data": { ... NowPlayingInfo fields ... },
            "timestamp": "2025-10-29T12:34:56.789Z"
        }
        """
        event_payload = {
            "event_type": "now_playing",
            "description": f"Now playing: {info.title}" if info.playback_rate else "Playback stopped",
            "data": info.to_dict(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

        try:
            subscribers = await self.redis.publish(self.channel, json.dumps(event_payload))
            logger.debug(f"Published now_playing to {subscribers} subscribers")
        except Exception as e:
            logger.error(f"Failed to publish now_playing event: {e}", exc_info=True)
            # Don't raise - now-playing updates should not break playback

    async def listen_for_commands(
        self, handler: Callable[[RemoteCommand], None], shutdown_event: asyncio.Event
    ) -> None:
        """Relay commands from the command channel to ``handler`` until shutdown."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.command_channel)
        logger.info(f"Listening for remote commands on {self.command_channel}")

        try:
            while not shutdown_event.is_set():
                try:
                    # Blocks up to 1s so shutdown is noticed promptly
                    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                except (RedisConnectionError, ConnectionError, OSError) as e:
                    logger.error(f"Redis connection error in command listener: {e}")
                    await asyncio.sleep(5)  # Wait before reconnecting
                    try:
                        pubsub = self.redis.pubsub()
                        await pubsub.subscribe(self.command_channel)
                        logger.info("Reconnected to Redis command channel")
                    except Exception as reconnect_error:
                        logger.error(f"Failed to reconnect command listener: {reconnect_error}")
                    continue

                if message and message["type"] == "message":
                    command = parse_remote_command(message["data"])
                    if command is None:
                        continue
                    logger.info(f"Remote command received: {command}")
                    try:
                        handler(command)
                    except Exception as e:
                        logger.error(f"Remote command {command} failed: {e}", exc_info=True)

        except asyncio.CancelledError:
            logger.info("Remote command listener cancelled")
        finally:
            try:
                await pubsub.unsubscribe()
                await pubsub.aclose()
            except (RedisConnectionError, ConnectionError, OSError):
                logger.debug("Error closing command pubsub (likely already disconnected)")

    async def close(self, timeout: float = PUBLISH_DRAIN_SECONDS) -> None:
        """Let queued publishes finish (bounded by ``timeout``), then cancel the rest."""
        if not self._pending:
            return
        _, unfinished = await asyncio.wait(list(self._pending), timeout=timeout)
        if unfinished:
            logger.warning(f"Dropping {len(unfinished)} now-playing update(s) still pending at shutdown")
        for task in unfinished:
            task.cancel()
        await asyncio.gather(*unfinished, return_exceptions=True)
