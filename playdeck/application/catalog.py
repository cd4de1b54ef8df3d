import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from playdeck.domain.entities import PlaylistReference
from playdeck.domain.ports import PersistentStore


logger = logging.getLogger(__name__)

SAVED_PLAYLISTS_KEY = "savedPlaylists"
MAX_SAVED_PLAYLISTS = 50


class PlaylistCatalog:
    """Bounded, most-recently-added-first list of saved playlist references.

    The catalog is read from and written to the store on every call; nothing is cached.
    Duplicate urls are allowed.
    """

    def __init__(self, store: PersistentStore, capacity: int = MAX_SAVED_PLAYLISTS):
        if capacity <= 0:
            raise ValueError("Catalog capacity must be positive")
        self._store = store
        self.capacity = capacity

    def list(self) -> List[PlaylistReference]:
        raw = self._store.get(SAVED_PLAYLISTS_KEY, []) or []
        references = []
        for item in raw:
            try:
                references.append(PlaylistReference.from_json(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed saved playlist entry {item!r}: {e}")
        return references

    def find(self, url: str) -> Optional[PlaylistReference]:
        return next((ref for ref in self.list() if ref.url == url), None)

    def add(self, reference: PlaylistReference) -> List[PlaylistReference]:
        """Prepend reference, dropping the oldest entries beyond capacity."""
        references = [reference] + self.list()
        trimmed = references[: self.capacity]
        if len(references) > len(trimmed):
            logger.info(f"Catalog full, evicted {len(references) - len(trimmed)} oldest playlist(s)")
        self._save(trimmed)
        return trimmed

    def overwrite(self, references: Iterable[PlaylistReference]) -> None:
        self._save(list(references)[: self.capacity])

    def update(self, url: str, **fields: Any) -> None:
        """Apply fields to every entry whose url matches. No-op without a match."""
        references = self.list()
        if not any(ref.url == url for ref in references):
            return
        self._save([replace(ref, **fields) if ref.url == url else ref for ref in references])

    def remove_many(self, urls: Iterable[str]) -> List[PlaylistReference]:
        """Remove every entry whose url is in urls and return the removed entries.

        The active session is not touched; callers tear it down when its url was removed.
        """
        url_set = set(urls)
        if not url_set:
            return []

        kept: List[PlaylistReference] = []
        removed: List[PlaylistReference] = []
        for ref in self.list():
            (removed if ref.url in url_set else kept).append(ref)

        if removed:
            self._save(kept)
        return removed

    def _save(self, references: List[PlaylistReference]) -> None:
        self._store.set(SAVED_PLAYLISTS_KEY, [ref.to_json() for ref in references])
