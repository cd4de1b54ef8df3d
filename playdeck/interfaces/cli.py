import argparse
import json
import logging
import signal
import sys
import time
from typing import List, Optional

from playdeck.crosscutting.config import ConfigError, ConfigManager, Settings, setup_config
from playdeck.crosscutting.logging import setup_logging
from playdeck.crosscutting.notifications import LoggingNotifier
from playdeck.infrastructure.player.mpv import MpvTrackPlayer
from playdeck.infrastructure.providers.ytdlp import YtDlpMetadataProvider
from playdeck.infrastructure.storage.json_store import JsonFileStore
from playdeck.interfaces.wiring import PlayDeck, build_playdeck


LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
_LEVEL_PREFIX = {'info': '', 'warning': 'warning: ', 'error': 'error: '}


class CLI:
    """Command Line Interface for PlayDeck.

    Each invocation runs exactly one command against the persisted state, so
    commands from one shell are serialized by construction.
    """

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._setup_signal_handlers()
        self._start_time = None
        self.deck: Optional[PlayDeck] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            '--log-level',
            choices=LOG_LEVELS,
            default=None,
            help='Set logging level (default: PLAYDECK_LOG_LEVEL or INFO)'
        )
        common.add_argument(
            '--config-dir',
            default=None,
            help='Directory holding state.json and .env (default: ~/.playdeck)'
        )

        parser = argparse.ArgumentParser(
            prog='playdeck',
            description='Queue remote playlists and step through them'
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        add_parser = subparsers.add_parser('add', parents=[common], help='Save a playlist URL')
        add_parser.add_argument('url', help='Playlist URL')
        add_parser.add_argument(
            '--play',
            action='store_true',
            help='Start playing the playlist right after saving it'
        )

        subparsers.add_parser('list', parents=[common], help='List saved playlists')

        play_parser = subparsers.add_parser('play', parents=[common], help='Play a saved playlist')
        play_parser.add_argument('url', help='URL of a saved playlist')

        subparsers.add_parser('next', parents=[common], help='Play the next playlist track')
        subparsers.add_parser('previous', parents=[common], help='Play the previous playlist track')
        subparsers.add_parser('refresh', parents=[common], help='Resync the active playlist')
        subparsers.add_parser('stop', parents=[common], help='Stop playback and leave playlist mode')
        subparsers.add_parser('status', parents=[common], help='Show the current playback state')

        delete_parser = subparsers.add_parser('delete', parents=[common], help='Delete saved playlists')
        delete_parser.add_argument('urls', nargs='+', help='Playlist URLs to delete')

        serve_parser = subparsers.add_parser('serve', parents=[common], help='Run the HTTP control server')
        serve_parser.add_argument('--host', default='localhost', help='Bind address (default: localhost)')
        serve_parser.add_argument('--port', type=int, default=3000, help='Port (default: 3000)')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down gracefully...")
            self._cleanup_resources()
            sys.exit(130)  # Standard exit code for signal termination

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Log execution time on exit."""
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")

    def _echo(self, level: str, message: str) -> None:
        stream = sys.stdout if level == 'info' else sys.stderr
        print(f"{_LEVEL_PREFIX.get(level, '')}{message}", file=stream)

    def _create_deck(self, config: ConfigManager, settings: Settings) -> PlayDeck:
        """Wire the engine against the on-disk state and the real adapters."""
        store = JsonFileStore(config.state_file)
        provider = YtDlpMetadataProvider()
        player = MpvTrackPlayer(
            command=settings.player_command,
            startup_grace_sec=settings.player_startup_grace_sec,
            pid_file=config.config_dir / 'mpv.pid',
        )
        notifier = LoggingNotifier(echo=self._echo)
        return build_playdeck(settings, store, provider, player, notifier=notifier)

    def _list_playlists(self) -> None:
        playlists = self.deck.commands.list_playlists()
        if not playlists:
            print("No playlists saved yet. Add one first.")
            return

        active = self.deck.orchestrator.session
        active_url = active.reference.url if active else None
        print("Saved playlists:")
        print("-" * 50)
        for playlist in playlists:
            marker = "[PLAYING] " if playlist.url == active_url else ""
            print(f"{marker}{playlist.label}")
            print(f"    {playlist.url}")

    def _show_status(self) -> None:
        print(json.dumps(self.deck.orchestrator.status(), indent=2, ensure_ascii=False))

    def _stop(self) -> None:
        self.deck.orchestrator.complete()
        self.deck.orchestrator.player.stop()

    def _serve(self, args: argparse.Namespace) -> None:
        from playdeck.interfaces.http import HTTPServer

        server = HTTPServer(self.deck, host=args.host, port=args.port)
        server.run()

    def _dispatch(self, args: argparse.Namespace) -> bool:
        """Run the selected command. Returns False when the command reported a failure."""
        orchestrator = self.deck.orchestrator
        commands = self.deck.commands

        if args.command == 'add':
            return commands.add_playlist(args.url, play_now=args.play) is not None
        if args.command == 'list':
            self._list_playlists()
            return True
        if args.command == 'play':
            return commands.select_playlist(args.url)
        if args.command == 'next':
            return orchestrator.ensure_playlist_mode() and orchestrator.next()
        if args.command == 'previous':
            return orchestrator.ensure_playlist_mode() and orchestrator.previous()
        if args.command == 'refresh':
            return orchestrator.refresh()
        if args.command == 'stop':
            self._stop()
            return True
        if args.command == 'status':
            self._show_status()
            return True
        if args.command == 'delete':
            return bool(commands.delete_playlists(args.urls))
        if args.command == 'serve':
            self._serve(args)
            return True

        self.parser.print_help()
        return False

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()

        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            return 1

        try:
            config = setup_config(args.config_dir)
            settings = config.load_settings()
        except ConfigError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1

        setup_logging(args.log_level or settings.log_level, settings.log_file)
        logger = logging.getLogger(__name__)

        try:
            self.deck = self._create_deck(config, settings)
            return 0 if self._dispatch(args) else 1
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        except Exception as e:
            logger.error(f"CLI error: {e}", exc_info=True)
            print(f"error: {e}", file=sys.stderr)
            return 1
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
