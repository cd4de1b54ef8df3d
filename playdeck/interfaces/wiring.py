from dataclasses import dataclass
from typing import Optional

from playdeck.application.catalog import PlaylistCatalog
from playdeck.application.commands import PlaylistCommands
from playdeck.application.orchestrator import PlaybackOrchestrator
from playdeck.application.session import ActivePlaylistState
from playdeck.application.syncer import MetadataSyncer
from playdeck.crosscutting.config import Settings
from playdeck.crosscutting.notifications import LoggingNotifier, SignalBus
from playdeck.domain.ports import MetadataProvider, PersistentStore, TrackPlayer


@dataclass
class PlayDeck:
    """Fully wired engine shared by the CLI and HTTP hosts."""

    settings: Settings
    store: PersistentStore
    catalog: PlaylistCatalog
    state: ActivePlaylistState
    syncer: MetadataSyncer
    orchestrator: PlaybackOrchestrator
    commands: PlaylistCommands
    notifier: LoggingNotifier
    signals: SignalBus


def build_playdeck(settings: Settings,
                   store: PersistentStore,
                   provider: MetadataProvider,
                   player: TrackPlayer,
                   notifier: Optional[LoggingNotifier] = None,
                   signals: Optional[SignalBus] = None) -> PlayDeck:
    """Compose the engine from its collaborators."""
    notifier = notifier or LoggingNotifier()
    signals = signals or SignalBus()

    catalog = PlaylistCatalog(store, capacity=settings.max_saved_playlists)
    state = ActivePlaylistState(store)
    syncer = MetadataSyncer(provider, timeout_ms=settings.metadata_timeout_ms)
    orchestrator = PlaybackOrchestrator(
        catalog=catalog,
        state=state,
        syncer=syncer,
        player=player,
        notifier=notifier,
        signals=signals,
    )
    commands = PlaylistCommands(
        catalog=catalog,
        syncer=syncer,
        orchestrator=orchestrator,
        notifier=notifier,
        signals=signals,
        notify_active_playlist_deletion=settings.notify_active_playlist_deletion,
    )
    return PlayDeck(
        settings=settings,
        store=store,
        catalog=catalog,
        state=state,
        syncer=syncer,
        orchestrator=orchestrator,
        commands=commands,
        notifier=notifier,
        signals=signals,
    )
