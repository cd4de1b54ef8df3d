from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from .entities import Track


WEB_WATCH_URL = "https://www.youtube.com/watch?v={id}"
MUSIC_WATCH_URL = "https://music.youtube.com/watch?v={id}"
_BASE_URL = "https://www.youtube.com"

UNTITLED_PLAYLIST = "Untitled Playlist"
UNKNOWN_ITEM = "Unknown Playlist Item"

_UNAVAILABLE_TITLE_MARKERS = ("private video", "deleted video")
_PATH_ID_PATTERN = re.compile(r"/(?:watch|shorts)/([^/?#]+)/?$")


def extract_video_id(possible_url: Optional[str]) -> Optional[str]:
    """Parse a video id out of a URL's ``v`` query parameter or its path.

    Relative URLs are resolved against the web host, so ``/watch?v=abc`` works too.
    """
    if not possible_url:
        return None
    try:
        parsed = urlparse(urljoin(_BASE_URL + "/", possible_url))
    except ValueError:
        return None

    values = parse_qs(parsed.query).get("v")
    if values and values[0]:
        return values[0]

    if parsed.netloc.endswith("youtu.be"):
        segment = parsed.path.strip("/").split("/")[0]
        return segment or None

    match = _PATH_ID_PATTERN.search(parsed.path)
    return match.group(1) if match else None


def is_unavailable_entry(entry: Dict[str, Any]) -> bool:
    """True for private/deleted placeholders and entries whose availability is not public."""
    title = str(entry.get("title") or "").lower()
    if any(marker in title for marker in _UNAVAILABLE_TITLE_MARKERS):
        return True
    availability = str(entry.get("availability") or "").lower()
    return bool(availability) and availability != "public"


def entry_to_track(entry: Dict[str, Any], playlist_title: Optional[str] = None) -> Optional[Track]:
    """Map a raw provider entry to a Track, or None when no id can be resolved."""
    raw_url = entry.get("url") or entry.get("webpage_url")
    video_id = entry.get("id") or entry.get("video_id") or extract_video_id(raw_url)
    if not video_id:
        return None

    video_id = str(video_id)
    return Track(
        id=video_id,
        title=entry.get("title") or playlist_title or UNKNOWN_ITEM,
        primary_url=WEB_WATCH_URL.format(id=video_id),
        alternate_url=MUSIC_WATCH_URL.format(id=video_id),
    )


def entries_to_tracks(entries: Iterable[Any], playlist_title: Optional[str] = None) -> List[Track]:
    tracks: List[Track] = []
    for entry in entries or []:
        # yt-dlp yields None for entries it failed to extract with ignoreerrors
        if not isinstance(entry, dict) or is_unavailable_entry(entry):
            continue
        track = entry_to_track(entry, playlist_title)
        if track is not None:
            tracks.append(track)
    return tracks
