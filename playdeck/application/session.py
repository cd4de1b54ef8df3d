import logging
from typing import Optional

from playdeck.domain.entities import ActiveSession, PlaybackMode
from playdeck.domain.ports import PersistentStore


logger = logging.getLogger(__name__)

ACTIVE_PLAYLIST_STATE_KEY = "activePlaylistState"
PLAYBACK_MODE_KEY = "playbackMode"


class ActivePlaylistState:
    """The single persisted slot holding the active session and the mode flag.

    The session and the mode flag are written together, flag first, and the
    mode is read back from whether a session exists, so ``mode == PLAYLIST``
    holds exactly when a session exists even after an interrupted write.
    """

    def __init__(self, store: PersistentStore):
        self._store = store

    def get_session(self) -> Optional[ActiveSession]:
        raw = self._store.get(ACTIVE_PLAYLIST_STATE_KEY)
        if not raw:
            return None
        try:
            return ActiveSession.from_json(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable active playlist state: {e}")
            return None

    def get_mode(self) -> PlaybackMode:
        flag = PlaybackMode.parse(self._store.get(PLAYBACK_MODE_KEY, PlaybackMode.SEARCH.value))
        mode = PlaybackMode.PLAYLIST if self.get_session() is not None else PlaybackMode.SEARCH
        if flag is not mode:
            # Left over from an interrupted write
            logger.warning(f"Stored playback mode '{flag.value}' disagrees with session state; using '{mode.value}'")
        return mode

    def activate(self, session: ActiveSession) -> None:
        """Store session as the active one and switch to playlist mode."""
        self._store.set(PLAYBACK_MODE_KEY, PlaybackMode.PLAYLIST.value)
        self._store.set(ACTIVE_PLAYLIST_STATE_KEY, session.to_json())

    def set_cursor(self, session: ActiveSession, cursor: int) -> ActiveSession:
        updated = session.with_cursor(cursor)
        self.activate(updated)
        return updated

    def clear(self) -> None:
        """Drop the session and fall back to search mode."""
        self._store.set(ACTIVE_PLAYLIST_STATE_KEY, None)
        self._store.set(PLAYBACK_MODE_KEY, PlaybackMode.SEARCH.value)
