import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from radiodeck.application.coordinator import SessionCoordinator
from radiodeck.crosscutting.config import VERSION
from radiodeck.domain.entities import CatalogState, Error, PlaybackStatus, Station


def station_to_dict(station: Optional[Station], favorite: Optional[bool] = None) -> Optional[Dict[str, Any]]:
    if station is None:
        return None
    data = station.to_json()
    data['key'] = station.key
    if favorite is not None:
        data['favorite'] = favorite
    return data


def status_to_dict(status: PlaybackStatus) -> Dict[str, Any]:
    data = {
        'state': type(status).__name__.lower(),
        'station': station_to_dict(status.station),
    }
    if isinstance(status, Error):
        data['message'] = status.message
    return data


class HTTPServer:
    """HTTP control API over a session coordinator."""

    def __init__(self, coordinator: SessionCoordinator,
                 host: str = 'localhost', port: int = 3000, debug: bool = False):
        """Initialize HTTP server."""
        self.coordinator = coordinator
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        self.version = VERSION
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _catalog_payload(self, state: CatalogState) -> Dict[str, Any]:
        favorites = self.coordinator.favorites
        return {
            'query': state.query,
            'offset': state.offset,
            'can_load_more': state.can_load_more,
            'loading': state.loading,
            'error': state.error,
            'stations': [
                station_to_dict(s, favorites.is_favorite(favorites.key_for(s)))
                for s in state.displayed
            ],
        }

    def _playback_payload(self) -> Dict[str, Any]:
        return status_to_dict(self.coordinator.session.status)

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'radiodeck HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'stations': '/stations',
                    'favorites': '/favorites',
                    'playback': '/playback'
                }
            }), 200

        @self.app.route('/stations', methods=['GET'])
        def stations():
            """Current catalog page; a ``q`` parameter starts a new search."""
            query = request.args.get('q')
            if query is not None:
                self.coordinator.search(query)
            return jsonify(self._catalog_payload(self.coordinator.catalog.state)), 200

        @self.app.route('/stations/more', methods=['POST'])
        def stations_more():
            self.coordinator.load_more()
            return jsonify(self._catalog_payload(self.coordinator.catalog.state)), 202

        @self.app.route('/stations/refresh', methods=['POST'])
        def stations_refresh():
            self.coordinator.refresh()
            return jsonify(self._catalog_payload(self.coordinator.catalog.state)), 202

        @self.app.route('/stations/error', methods=['DELETE'])
        def stations_clear_error():
            self.coordinator.catalog.clear_error()
            return jsonify(self._catalog_payload(self.coordinator.catalog.state)), 200

        @self.app.route('/favorites', methods=['GET'])
        def favorites():
            stations = self.coordinator.favorites.all()
            return jsonify({
                'favorites': [station_to_dict(s, True) for s in stations]
            }), 200

        @self.app.route('/favorites/<path:key>/toggle', methods=['POST'])
        def toggle_favorite(key: str):
            station = self.coordinator.find_station(key)
            if station is None:
                return jsonify({'error': 'Unknown station', 'key': key}), 404
            favorite = self.coordinator.toggle_favorite(station)
            return jsonify({'key': key, 'favorite': favorite}), 200

        @self.app.route('/playback', methods=['GET'])
        def playback():
            return jsonify(self._playback_payload()), 200

        @self.app.route('/playback/play', methods=['POST'])
        def playback_play():
            payload = request.get_json(silent=True) or {}
            key = payload.get('key')
            if not key:
                return jsonify({'error': 'Missing station key'}), 400
            station = self.coordinator.play_by_key(key)
            if station is None:
                return jsonify({'error': 'Unknown station', 'key': key}), 404
            return jsonify(self._playback_payload()), 202

        @self.app.route('/playback/<command>', methods=['POST'])
        def playback_command(command: str):
            actions = {
                'pause': self.coordinator.pause,
                'resume': self.coordinator.resume,
                'stop': self.coordinator.stop,
                'next': self.coordinator.play_next,
                'previous': self.coordinator.play_previous,
            }
            action = actions.get(command)
            if action is None:
                return jsonify({'error': f'Unknown command: {command}'}), 404
            try:
                action()
            except Exception as e:
                self.logger.error(f"Playback command {command} failed: {e}")
                return jsonify({
                    'error': 'Internal server error',
                    'details': str(e)
                }), 500
            return jsonify(self._playback_payload()), 202

        @self.app.route('/playback/last', methods=['GET'])
        def playback_last():
            station = self.coordinator.restore_last_played()
            return jsonify({'station': station_to_dict(station)}), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting radiodeck HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug,
            use_reloader=False
        )


def create_app(coordinator: SessionCoordinator) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(coordinator)
    return server.app
