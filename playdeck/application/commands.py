import logging
import time
from typing import Iterable, List, Optional

from playdeck.application.catalog import PlaylistCatalog
from playdeck.application.orchestrator import PLAYLIST_STATE_TOPIC, PlaybackOrchestrator
from playdeck.application.syncer import MetadataSyncer
from playdeck.crosscutting.logging import CorrelationContext, log_error
from playdeck.domain.entities import PlaylistReference
from playdeck.domain.errors import MetadataFetchError
from playdeck.domain.ports import Notifier, SignalBus


logger = logging.getLogger(__name__)

MSG_ADD_FAILED = "Failed to add playlist. Please verify the URL and try again."
MSG_NO_PLAYLISTS = "No playlists saved yet. Add one first."
MSG_DELETE_CANCELLED = "Playlist deletion cancelled."
MSG_DELETE_FAILED = "Selected playlists could not be deleted."
MSG_ACTIVE_DELETED = "Stopped playback because the playing playlist was deleted."


class PlaylistCommands:
    """User-level playlist management on top of the catalog and the orchestrator.

    Deleting the playlist that is currently playing also ends the session.
    """

    def __init__(
        self,
        catalog: PlaylistCatalog,
        syncer: MetadataSyncer,
        orchestrator: PlaybackOrchestrator,
        notifier: Notifier,
        signals: Optional[SignalBus] = None,
        notify_active_playlist_deletion: bool = True,
    ):
        self.catalog = catalog
        self.syncer = syncer
        self.orchestrator = orchestrator
        self.notifier = notifier
        self.signals = signals
        self.notify_active_playlist_deletion = notify_active_playlist_deletion

    def list_playlists(self) -> List[PlaylistReference]:
        return self.catalog.list()

    def add_playlist(self, url: str, play_now: bool = False) -> Optional[PlaylistReference]:
        """Resolve url's title, save it at the top of the catalog and optionally start it."""
        url = (url or "").strip()
        if not url:
            return None

        with CorrelationContext(command="add", playlist_url=url):
            try:
                metadata = self.syncer.resolve(url)
            except MetadataFetchError as e:
                log_error(logger, "Failed to add playlist URL", e)
                self.notifier.error(MSG_ADD_FAILED)
                return None

            reference = PlaylistReference(
                url=url,
                title=metadata.title,
                added_at=int(time.time() * 1000),
            )
            self.catalog.add(reference)
            self._signal()
            self.notifier.info(f'Playlist "{metadata.title}" added.')

        if play_now:
            self.orchestrator.start(reference)
        return reference

    def select_playlist(self, url: str) -> bool:
        """Start playback of a saved playlist."""
        playlists = self.catalog.list()
        if not playlists:
            self.notifier.info(MSG_NO_PLAYLISTS)
            return False

        reference = next((p for p in playlists if p.url == url), None)
        if reference is None:
            self.notifier.warn(f"Playlist {url} is not saved.")
            return False

        return self.orchestrator.start(reference)

    def delete_playlists(self, urls: Iterable[str]) -> List[PlaylistReference]:
        """Delete saved playlists, stopping playback when the active one is among them."""
        if not self.catalog.list():
            self.notifier.info(MSG_NO_PLAYLISTS)
            return []

        urls_to_delete = [url for url in urls if url]
        if not urls_to_delete:
            self.notifier.info(MSG_DELETE_CANCELLED)
            return []

        session = self.orchestrator.session
        active_removed = bool(session and session.reference.url in urls_to_delete)

        with CorrelationContext(command="delete"):
            deleted = self.catalog.remove_many(urls_to_delete)
            if not deleted:
                self.notifier.warn(MSG_DELETE_FAILED)
                return []

            logger.info(f"Deleted {len(deleted)} saved playlist(s)")
            self._signal()

            if active_removed:
                self.orchestrator.complete()
                if self.notify_active_playlist_deletion:
                    self.notifier.info(MSG_ACTIVE_DELETED)

        if len(deleted) == 1:
            self.notifier.info(f'Deleted playlist "{deleted[0].label}".')
        else:
            self.notifier.info(f"Deleted {len(deleted)} playlists.")
        return deleted

    def _signal(self) -> None:
        if self.signals is not None:
            self.signals.emit(PLAYLIST_STATE_TOPIC)
