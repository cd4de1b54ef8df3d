import logging
import os
import threading
from datetime import datetime
from typing import Any, Callable

from flask import Flask, jsonify, request

from playdeck.interfaces.wiring import PlayDeck


VERSION = "0.1.0"


class HTTPServer:
    """HTTP control surface for a PlayDeck engine.

    The engine expects one command at a time, so every command endpoint runs
    under a single lock. Responses carry the user messages the command produced
    and the resulting status.
    """

    def __init__(self, deck: PlayDeck, host: str = 'localhost', port: int = 3000, debug: bool = False):
        """Initialize HTTP server."""
        self.deck = deck
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()

        self.version = VERSION
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _command_response(self, func: Callable[[], Any]):
        """Run one engine command under the lock and report its messages and the new status."""
        try:
            with self._lock:
                self.deck.notifier.drain()
                result = func()
                messages = [
                    {'level': level, 'message': message}
                    for level, message in self.deck.notifier.drain()
                ]
                status = self.deck.orchestrator.status()
        except Exception as e:
            self.logger.error(f"HTTP command failed: {e}", exc_info=True)
            return jsonify({'error': 'Internal server error', 'details': str(e)}), 500

        return jsonify({'result': _jsonable(result), 'messages': messages, 'status': status}), 200

    def _setup_routes(self) -> None:
        """Setup Flask routes."""
        deck = self.deck
        app = self.app

        @app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'PlayDeck HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'status': '/status',
                    'playlists': '/playlists',
                    'start': '/playback/start',
                    'next': '/playback/next',
                    'previous': '/playback/previous',
                    'refresh': '/playback/refresh',
                    'stop': '/playback/stop',
                }
            }), 200

        @app.route('/status', methods=['GET'])
        def status():
            with self._lock:
                return jsonify(deck.orchestrator.status()), 200

        @app.route('/playlists', methods=['GET'])
        def list_playlists():
            with self._lock:
                playlists = [ref.to_json() for ref in deck.commands.list_playlists()]
            return jsonify({'playlists': playlists}), 200

        @app.route('/playlists', methods=['POST'])
        def add_playlist():
            body = request.get_json(silent=True) or {}
            url = str(body.get('url') or '').strip()
            if not url:
                return jsonify({'error': 'Missing playlist url'}), 400
            play_now = bool(body.get('play', False))
            return self._command_response(
                lambda: _reference_json(deck.commands.add_playlist(url, play_now=play_now))
            )

        @app.route('/playlists', methods=['DELETE'])
        def delete_playlists():
            body = request.get_json(silent=True) or {}
            urls = body.get('urls')
            if not isinstance(urls, list) or not urls:
                return jsonify({'error': 'Expected a non-empty "urls" list'}), 400
            return self._command_response(
                lambda: [ref.to_json() for ref in deck.commands.delete_playlists([str(u) for u in urls])]
            )

        @app.route('/playback/start', methods=['POST'])
        def start_playback():
            body = request.get_json(silent=True) or {}
            url = str(body.get('url') or '').strip()
            if not url:
                return jsonify({'error': 'Missing playlist url'}), 400
            return self._command_response(lambda: deck.commands.select_playlist(url))

        @app.route('/playback/next', methods=['POST'])
        def next_track():
            return self._command_response(
                lambda: deck.orchestrator.ensure_playlist_mode() and deck.orchestrator.next()
            )

        @app.route('/playback/previous', methods=['POST'])
        def previous_track():
            return self._command_response(
                lambda: deck.orchestrator.ensure_playlist_mode() and deck.orchestrator.previous()
            )

        @app.route('/playback/refresh', methods=['POST'])
        def refresh_playlist():
            return self._command_response(deck.orchestrator.refresh)

        @app.route('/playback/stop', methods=['POST'])
        def stop_playback():
            def stop():
                deck.orchestrator.complete()
                stopper = getattr(deck.orchestrator.player, 'stop', None)
                if callable(stopper):
                    stopper()
                return True
            return self._command_response(stop)

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting PlayDeck HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug,
            threaded=True,
        )


def _reference_json(reference):
    return reference.to_json() if reference is not None else None


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
