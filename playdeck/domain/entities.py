from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class PlaybackMode(str, Enum):
    """Which of the two playback modes is active."""

    SEARCH = "search"
    PLAYLIST = "playlist"

    @classmethod
    def parse(cls, value: Any) -> "PlaybackMode":
        """Parse a persisted mode flag, defaulting to SEARCH for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.SEARCH


@dataclass(frozen=True)
class PlaylistReference:
    """A saved pointer to a remote playlist. Identity key is ``url``."""

    url: str
    title: str = ""
    added_at: int = 0

    @property
    def label(self) -> str:
        return self.title or self.url

    def to_json(self) -> Dict[str, Any]:
        return {"url": self.url, "title": self.title, "addedAt": self.added_at}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PlaylistReference":
        return cls(
            url=data["url"],
            title=data.get("title") or "",
            added_at=int(data.get("addedAt") or 0),
        )


@dataclass(frozen=True)
class Track:
    """A playable entry of a playlist.

    ``primary_url`` and ``alternate_url`` are both canonical forms derived from ``id``.
    """

    id: str
    title: str
    primary_url: str
    alternate_url: str

    def to_json(self) -> Dict[str, Any]:
        return {
            "videoId": self.id,
            "title": self.title,
            "webUrl": self.primary_url,
            "musicUrl": self.alternate_url,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Track":
        return cls(
            id=data.get("videoId") or "",
            title=data.get("title") or "",
            primary_url=data.get("webUrl") or "",
            alternate_url=data.get("musicUrl") or "",
        )


@dataclass(frozen=True)
class ActiveSession:
    """Resolved track list and cursor of the playlist currently playing.

    Invariant: ``0 <= cursor < len(tracks)`` when there are tracks, ``cursor == 0`` otherwise.
    """

    reference: PlaylistReference
    tracks: List[Track] = field(default_factory=list)
    cursor: int = 0

    def __post_init__(self):
        object.__setattr__(self, "tracks", list(self.tracks))
        object.__setattr__(self, "cursor", clamp_cursor(self.cursor, len(self.tracks)))

    @property
    def current_track(self) -> Optional[Track]:
        if 0 <= self.cursor < len(self.tracks):
            return self.tracks[self.cursor]
        return None

    @property
    def has_next(self) -> bool:
        return self.cursor + 1 < len(self.tracks)

    @property
    def has_previous(self) -> bool:
        return self.cursor - 1 >= 0

    @property
    def next_track(self) -> Optional[Track]:
        return self.tracks[self.cursor + 1] if self.has_next else None

    @property
    def previous_track(self) -> Optional[Track]:
        return self.tracks[self.cursor - 1] if self.has_previous else None

    def with_cursor(self, cursor: int) -> "ActiveSession":
        return replace(self, cursor=cursor)

    def to_json(self) -> Dict[str, Any]:
        """Serialize session to JSON."""
        return {
            "playlist": self.reference.to_json(),
            "tracks": [track.to_json() for track in self.tracks],
            "currentIndex": self.cursor,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ActiveSession":
        """Deserialize session from JSON, clamping a stale cursor back into bounds."""
        tracks = [Track.from_json(item) for item in data.get("tracks") or []]
        return cls(
            reference=PlaylistReference.from_json(data["playlist"]),
            tracks=[track for track in tracks if track.id],
            cursor=int(data.get("currentIndex") or 0),
        )


def clamp_cursor(cursor: int, length: int) -> int:
    """Clamp ``cursor`` into ``[0, length - 1]``; 0 for an empty list."""
    if length <= 0:
        return 0
    return min(max(cursor, 0), length - 1)


@dataclass(frozen=True)
class RawPlaylist:
    """Unfiltered playlist payload as returned by a metadata provider."""

    title: Optional[str] = None
    entries: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class PlaylistMetadata:
    """Resolved playlist: display title and playable tracks."""

    title: str
    tracks: List[Track] = field(default_factory=list)
