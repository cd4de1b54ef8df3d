import logging
import threading
import time
from typing import Any, Dict

from playdeck.domain.entities import PlaylistMetadata, RawPlaylist
from playdeck.domain.errors import MetadataFetchError
from playdeck.domain.media import UNTITLED_PLAYLIST, entries_to_tracks
from playdeck.domain.ports import MetadataProvider


logger = logging.getLogger(__name__)

PLAYLIST_METADATA_TIMEOUT_MS = 45000


class MetadataSyncer:
    """Resolves a playlist url to its current title and playable tracks.

    The provider call runs on a one-shot daemon thread. When it outlives the
    timeout the thread is abandoned and ``MetadataFetchError`` is raised; a
    daemon thread never holds up interpreter exit. The syncer itself never
    writes persisted state.
    """

    def __init__(self, provider: MetadataProvider, timeout_ms: int = PLAYLIST_METADATA_TIMEOUT_MS):
        """Initialize syncer.

        Args:
            provider: Source of raw playlist metadata
            timeout_ms: Upper bound for a single provider call in milliseconds
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.provider = provider
        self.timeout_ms = timeout_ms

    def resolve(self, url: str) -> PlaylistMetadata:
        """Fetch the playlist and return its filtered track list.

        Raises:
            MetadataFetchError: on provider failure or timeout
        """
        start_time = time.time()
        raw = self._fetch_with_timeout(url)

        title = raw.title or UNTITLED_PLAYLIST
        entries = list(raw.entries or [])
        tracks = entries_to_tracks(entries, raw.title)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Resolved playlist '{title}': {len(tracks)}/{len(entries)} playable entries in {duration_ms}ms"
        )
        return PlaylistMetadata(title=title, tracks=tracks)

    def _fetch_with_timeout(self, url: str) -> RawPlaylist:
        outcome: Dict[str, Any] = {}

        def fetch():
            try:
                outcome["raw"] = self.provider.resolve(url)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=fetch, name="playlist-metadata", daemon=True)
        worker.start()
        worker.join(self.timeout_ms / 1000)

        if worker.is_alive():
            logger.warning(f"Fetching playlist metadata for {url} timed out after {self.timeout_ms}ms")
            raise MetadataFetchError(url, "Fetching playlist metadata timed out.", timed_out=True)

        error = outcome.get("error")
        if isinstance(error, MetadataFetchError):
            raise error
        if error is not None:
            logger.error(f"Failed to fetch playlist metadata for {url}: {error}")
            raise MetadataFetchError(url, str(error)) from error

        raw = outcome.get("raw")
        if raw is None:
            raise MetadataFetchError(url, "Provider returned no playlist")
        if isinstance(raw, dict):
            raw = RawPlaylist(title=raw.get("title"), entries=list(raw.get("entries") or []))
        return raw
