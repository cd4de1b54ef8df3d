from __future__ import annotations

from typing import Any, Protocol

from .entities import RawPlaylist


class MetadataProvider(Protocol):
    """Port for fetching a remote playlist's raw metadata.

    Implementations must be idempotent reads and may raise on failure.
    """

    def resolve(self, url: str) -> RawPlaylist:
        """Return the playlist title and its unfiltered entries."""


class TrackPlayer(Protocol):
    """Port for the audio backend."""

    def play(self, primary_url: str, title: str, alternate_url: str) -> bool:
        """Start playing a track. Failure is reported as False."""


class PersistentStore(Protocol):
    """Durable key/value store surviving process restarts."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default."""

    def set(self, key: str, value: Any) -> None:
        """Store value under key. ``None`` removes the key."""


class Notifier(Protocol):
    """User-facing message sink."""

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class SignalBus(Protocol):
    """Fire-and-forget refresh signals for observers such as status displays."""

    def emit(self, topic: str) -> None:
        """Notify subscribers of topic. No acknowledgment is expected."""
