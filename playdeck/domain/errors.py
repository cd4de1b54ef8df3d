from typing import Optional


class PlayDeckError(Exception):
    """Base class for errors raised by the playback engine."""


class ProviderError(PlayDeckError):
    """The metadata provider failed to return a playlist."""


class MetadataFetchError(PlayDeckError):
    """Playlist metadata could not be fetched (provider failure or timeout)."""

    def __init__(self, url: str, reason: str = "", timed_out: bool = False) -> None:
        message = f"Failed to fetch playlist metadata for {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.timed_out = timed_out


class PlaybackFailure(PlayDeckError):
    """A single track failed to play. Recovered by skipping forward."""

    def __init__(self, track_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Failed to play track {track_id}")
        self.track_id = track_id


class EmptyPlaylist(PlayDeckError):
    """A resolve produced zero playable tracks."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Playlist {url} has no playable tracks")
        self.url = url


class InvalidState(PlayDeckError):
    """A playlist command was invoked while no playlist session is active."""


class StoreError(PlayDeckError):
    """Persisted state could not be read or written."""
