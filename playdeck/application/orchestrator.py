import functools
import logging
from typing import Any, Dict, List, Optional

from playdeck.application.catalog import PlaylistCatalog
from playdeck.application.session import ActivePlaylistState
from playdeck.application.syncer import MetadataSyncer
from playdeck.crosscutting.logging import CorrelationContext, log_error, log_with_fields
from playdeck.domain.entities import ActiveSession, PlaybackMode, PlaylistReference, Track, clamp_cursor
from playdeck.domain.errors import (
    EmptyPlaylist, InvalidState, MetadataFetchError, PlaybackFailure, StoreError,
)
from playdeck.domain.ports import Notifier, SignalBus, TrackPlayer


logger = logging.getLogger(__name__)

PLAYLIST_STATE_TOPIC = "playlist_state"

MSG_START_FAILED = "Failed to start playlist playback."
MSG_EMPTY = "Playlist is empty. Returning to search mode."
MSG_NO_ACTIVE = "No active playlist selected."
MSG_TRACK_UNAVAILABLE = "Playlist track unavailable."
MSG_SKIPPING = "Failed to play playlist track. Skipping to next available item."
MSG_REACHED_END = "Reached end of playlist."
MSG_AT_FIRST = "Already at first playlist track."
MSG_INACTIVE = "Playlist mode inactive."
MSG_NOTHING_TO_REFRESH = "No active playlist to refresh."
MSG_REFRESH_FAILED = "Failed to refresh playlist."
MSG_ACTIVATE_FIRST = "Activate a playlist to use this command."
MSG_UNEXPECTED = "Playlist command failed."
MSG_STATE_UNREADABLE = "Playlist state could not be read or saved."


def command_boundary(name: str):
    """Run an orchestrator command inside a correlation context and stop any
    unexpected exception there, reporting it instead of raising."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            with CorrelationContext(command=name):
                try:
                    return func(self, *args, **kwargs)
                except StoreError as e:
                    log_error(logger, f"Playlist command '{name}' hit unreadable state", e)
                    self.notifier.error(MSG_STATE_UNREADABLE)
                    return False
                except Exception as e:
                    log_error(logger, f"Playlist command '{name}' failed", e)
                    self.notifier.error(MSG_UNEXPECTED)
                    return False
        return wrapper
    return decorator


class PlaybackOrchestrator:
    """State machine driving playlist playback.

    Modes are SEARCH (no session) and PLAYLIST (one active session). Every public
    command handles its own failures: it reports them through the notifier and
    leaves the persisted state either untouched or in SEARCH mode, never half
    updated. Callers must serialize invocations; there is no internal locking.
    """

    def __init__(
        self,
        catalog: PlaylistCatalog,
        state: ActivePlaylistState,
        syncer: MetadataSyncer,
        player: TrackPlayer,
        notifier: Notifier,
        signals: Optional[SignalBus] = None,
    ):
        self.catalog = catalog
        self.state = state
        self.syncer = syncer
        self.player = player
        self.notifier = notifier
        self.signals = signals

    # Read accessors

    @property
    def mode(self) -> PlaybackMode:
        return self.state.get_mode()

    @property
    def session(self) -> Optional[ActiveSession]:
        return self.state.get_session()

    @property
    def current_track(self) -> Optional[Track]:
        session = self.session
        return session.current_track if session else None

    @property
    def has_next(self) -> bool:
        session = self.session
        return bool(session and session.has_next)

    @property
    def has_previous(self) -> bool:
        session = self.session
        return bool(session and session.has_previous)

    def status(self) -> Dict[str, Any]:
        """Summary of the engine state for status displays."""
        session = self.session
        summary: Dict[str, Any] = {
            "mode": self.mode.value,
            "playlist": None,
            "cursor": None,
            "track_count": 0,
            "current_track": None,
            "next_track": None,
            "previous_track": None,
        }
        if session is None:
            return summary

        summary.update(
            playlist={"url": session.reference.url, "title": session.reference.title},
            cursor=session.cursor,
            track_count=len(session.tracks),
            current_track=_track_summary(session.current_track),
            next_track=_track_summary(session.next_track),
            previous_track=_track_summary(session.previous_track),
        )
        return summary

    # Commands

    @command_boundary("start")
    def start(self, reference: PlaylistReference) -> bool:
        """Resolve reference and start playing its first track.

        A failed resolve leaves any existing state untouched. An empty playlist
        ends in search mode.
        """
        with CorrelationContext(playlist_url=reference.url):
            try:
                metadata = self.syncer.resolve(reference.url)
                if not metadata.tracks:
                    raise EmptyPlaylist(reference.url)
            except MetadataFetchError as e:
                log_error(logger, "Failed to start playlist playback", e)
                self.notifier.error(MSG_START_FAILED)
                return False
            except EmptyPlaylist as e:
                logger.info(str(e))
                self.complete()
                self.notifier.info(MSG_EMPTY)
                return False

            session = ActiveSession(
                reference=PlaylistReference(
                    url=reference.url, title=metadata.title, added_at=reference.added_at
                ),
                tracks=metadata.tracks,
                cursor=0,
            )
            self.catalog.update(reference.url, title=metadata.title)
            self.state.activate(session)

            log_with_fields(logger, "INFO", "Playlist playback started", {
                "title": metadata.title,
                "track_count": len(metadata.tracks),
            })
            self._signal()
            return self.play_current()

    @command_boundary("play_current")
    def play_current(self) -> bool:
        """Play the track at the cursor, skipping forward past tracks that fail.

        A failed track is never retried. The loop runs at most once per track
        from the cursor to the end of the list, reports the skip once, and ends
        the session when the list is exhausted. Returns True once a track plays.
        """
        session = self.session
        if session is None:
            self.notifier.warn(MSG_NO_ACTIVE)
            return False

        skip_reported = False
        while True:
            track = session.current_track
            if track is None:
                self.notifier.warn(MSG_TRACK_UNAVAILABLE)
                return False

            try:
                self._play(track)
                return True
            except PlaybackFailure as e:
                logger.warning(f"{e} (cursor {session.cursor} of {len(session.tracks)})")

            if not skip_reported:
                self.notifier.warn(MSG_SKIPPING)
                skip_reported = True

            if not session.has_next:
                self.complete()
                self.notifier.info(MSG_REACHED_END)
                return False

            session = self.state.set_cursor(session, session.cursor + 1)
            self._signal()

    @command_boundary("next")
    def next(self) -> bool:
        session = self.session
        if session is None:
            self.notifier.info(MSG_INACTIVE)
            return False

        if not session.has_next:
            self.complete()
            self.notifier.info(MSG_REACHED_END)
            return False

        self.state.set_cursor(session, session.cursor + 1)
        self._signal()
        return self.play_current()

    @command_boundary("previous")
    def previous(self) -> bool:
        session = self.session
        if session is None:
            self.notifier.info(MSG_INACTIVE)
            return False

        if not session.has_previous:
            self.notifier.warn(MSG_AT_FIRST)
            return False

        self.state.set_cursor(session, session.cursor - 1)
        self._signal()
        return self.play_current()

    @command_boundary("refresh")
    def refresh(self) -> bool:
        """Re-resolve the active playlist, keeping the current track selected when it still exists."""
        session = self.session
        if session is None:
            self.notifier.info(MSG_NOTHING_TO_REFRESH)
            return False

        url = session.reference.url
        with CorrelationContext(playlist_url=url):
            try:
                metadata = self.syncer.resolve(url)
            except MetadataFetchError as e:
                log_error(logger, "Failed to refresh playlist", e)
                self.notifier.error(MSG_REFRESH_FAILED)
                return False

            if not metadata.tracks:
                logger.info(f"Playlist {url} has no playable tracks after refresh")
                self.complete()
                self.notifier.info(MSG_EMPTY)
                return False

            cursor = resync_cursor(session, metadata.tracks)
            refreshed = ActiveSession(
                reference=PlaylistReference(
                    url=url, title=metadata.title, added_at=session.reference.added_at
                ),
                tracks=metadata.tracks,
                cursor=cursor,
            )
            self.catalog.update(url, title=metadata.title)
            self.state.activate(refreshed)

            current = session.current_track
            log_with_fields(logger, "INFO", "Playlist refreshed", {
                "previous_track_id": current.id if current else None,
                "previous_cursor": session.cursor,
                "cursor": cursor,
                "track_count": len(metadata.tracks),
            })
            self._signal()
            return True

    @command_boundary("complete")
    def complete(self) -> None:
        """Discard the active session and return to search mode."""
        self.state.clear()
        logger.info("Playlist session cleared; search mode active")
        self._signal()

    @command_boundary("ensure_playlist_mode")
    def ensure_playlist_mode(self) -> bool:
        """Guard for commands that only make sense while a playlist is active."""
        try:
            self._require_session()
        except InvalidState as e:
            logger.debug(str(e))
            self.notifier.info(MSG_ACTIVATE_FIRST)
            return False
        return True

    # Internals

    def _require_session(self) -> ActiveSession:
        if self.state.get_mode() is not PlaybackMode.PLAYLIST:
            raise InvalidState("Playback mode is not playlist")
        session = self.session
        if session is None:
            raise InvalidState("No active playlist session")
        return session

    def _play(self, track: Track) -> None:
        logger.info(f"Playing '{track.title}' ({track.id})")
        try:
            ok = self.player.play(track.primary_url, track.title, track.alternate_url)
        except Exception as e:
            raise PlaybackFailure(track.id, f"Player raised while playing {track.id}: {e}") from e
        if not ok:
            raise PlaybackFailure(track.id)

    def _signal(self) -> None:
        if self.signals is not None:
            self.signals.emit(PLAYLIST_STATE_TOPIC)


def resync_cursor(session: ActiveSession, tracks: List[Track]) -> int:
    """Cursor into ``tracks`` after resyncing ``session``.

    The new index of the previously current track id when it is still present,
    otherwise the old cursor clamped to the new length (0 for an empty list).
    """
    current = session.current_track
    if current is not None:
        for index, track in enumerate(tracks):
            if track.id == current.id:
                return index
    return clamp_cursor(session.cursor, len(tracks))


def _track_summary(track: Optional[Track]) -> Optional[Dict[str, str]]:
    if track is None:
        return None
    return {"id": track.id, "title": track.title, "url": track.primary_url}
