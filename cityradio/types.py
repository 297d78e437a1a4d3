"""Shared type definitions for the application."""

from typing import Literal

# Commands accepted from remote controls (HTTP API, Redis command channel)
RemoteCommand = Literal["play", "pause", "toggle", "stop"]

# Audio session notifications
SessionEventType = Literal[
    "interruption_began",
    "interruption_ended",
    "route_changed",
    "entered_background",
    "entered_foreground",
]

# Audio session category requested by the player
SessionCategory = Literal["playback", "ambient"]

# Route change reason that means the output device went away (headphones unplugged)
ROUTE_DEVICE_UNAVAILABLE = "old_device_unavailable"
