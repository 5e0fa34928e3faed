import argparse
import logging
import signal
import sys
import threading
import time
from typing import Optional

from dotenv import load_dotenv

from radiodeck.application.catalog import StationCatalog
from radiodeck.application.coordinator import SessionCoordinator
from radiodeck.application.favorites import FavoritesStore
from radiodeck.crosscutting.config import ConfigError, Settings, get_config_manager, get_settings, setup_config
from radiodeck.crosscutting.logging import log_error, setup_logging
from radiodeck.domain.entities import CatalogState, Error, Idle, PlaybackStatus, Station
from radiodeck.domain.errors import NetworkError, PersistenceError, PlaybackError
from radiodeck.infrastructure.directory.radio_browser import RadioBrowserClient
from radiodeck.infrastructure.storage.json_store import JsonFileStore
from radiodeck.infrastructure.storage.memory_store import InMemoryStore
from radiodeck.interfaces import bootstrap


logger = logging.getLogger(__name__)


def wait_until_idle(catalog: StationCatalog, timeout: float = 30.0) -> CatalogState:
    """Block until the catalog has no fetch in flight."""
    done = threading.Event()

    def observer(state: CatalogState) -> None:
        if not state.loading:
            done.set()

    unsubscribe = catalog.subscribe(observer)
    try:
        if not done.wait(timeout):
            raise NetworkError(f"Directory did not answer within {timeout:.0f}s")
    finally:
        unsubscribe()
    return catalog.state


def format_station(station: Station, favorite: bool = False) -> str:
    marker = "*" if favorite else " "
    details = ", ".join(v for v in (station.country_code, station.language) if v)
    suffix = f" ({details})" if details else ""
    return f"{marker} {station.key}: {station.display_name}{suffix}"


class CLI:
    """Command Line Interface for radiodeck."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._coordinator: Optional[SessionCoordinator] = None
        self._stop_requested = threading.Event()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='radiodeck',
            description='Browse, favorite and play internet radio stations'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='WARNING',
            help='Set logging level'
        )
        parser.add_argument(
            '--log-file',
            default=None,
            help='Also write structured logs to this file'
        )
        parser.add_argument(
            '--no-persist',
            action='store_true',
            help='Keep favorites and last played station in memory only'
        )
        parser.add_argument(
            '--config-dir',
            default=None,
            help='Directory holding the .env file and data (default: ~/.radiodeck)'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        search_parser = subparsers.add_parser('search', help='Search stations by name')
        search_parser.add_argument('query', nargs='?', default='', help='Station name to search for')
        search_parser.add_argument(
            '--pages',
            type=int,
            default=1,
            help='Number of pages to load (default: 1)'
        )

        favorites_parser = subparsers.add_parser('favorites', help='List favorite stations')
        favorites_parser.add_argument(
            '--remove',
            metavar='KEY',
            help='Remove the favorite with this key'
        )
        favorites_parser.add_argument(
            '--add-from',
            metavar='QUERY',
            help='Search QUERY and add the first result to favorites'
        )

        subparsers.add_parser('mirrors', help='Check which directory mirrors answer')
        subparsers.add_parser('config', help='Show the resolved configuration')

        play_parser = subparsers.add_parser('play', help='Play a station until interrupted')
        target = play_parser.add_mutually_exclusive_group(required=True)
        target.add_argument('--key', help='Play the favorite with this key')
        target.add_argument('--query', help='Play the first search result for this query')
        target.add_argument('--last', action='store_true', help='Play the last played station')

        serve_parser = subparsers.add_parser('serve', help='Run the HTTP control API')
        serve_parser.add_argument('--host', default='localhost', help='Bind address')
        serve_parser.add_argument('--port', type=int, default=3000, help='Bind port')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger.warning(f"Received signal {signum}, shutting down gracefully...")
            self._stop_requested.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Clean up resources on exit."""
        if self._coordinator is not None:
            self._coordinator.close()
            self._coordinator = None
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def _create_store(self, settings: Settings, args: argparse.Namespace):
        if args.no_persist:
            return InMemoryStore()
        return JsonFileStore(settings.data_dir)

    def _search(self, args: argparse.Namespace, settings: Settings) -> None:
        directory = bootstrap.create_directory(settings)
        catalog = StationCatalog(directory, page_size=settings.page_size)
        try:
            catalog.search(args.query)
            if not args.query.strip():
                catalog.load_more()
            state = wait_until_idle(catalog, settings.timeout * 3)
            for _ in range(max(0, args.pages - 1)):
                if not state.can_load_more:
                    break
                catalog.load_more()
                state = wait_until_idle(catalog, settings.timeout * 3)
        finally:
            catalog.close()

        if state.error:
            raise NetworkError(state.error)

        store = self._create_store(settings, args)
        favorite_keys = {s.key for s in store.get_favorites()}
        print(f"{len(state.displayed)} stations for {args.query!r}:")
        print("-" * 50)
        for station in state.displayed:
            print(format_station(station, station.key in favorite_keys))

    def _favorites(self, args: argparse.Namespace, settings: Settings) -> None:
        favorites = FavoritesStore(self._create_store(settings, args), key_mode=settings.favorite_key)

        if args.remove:
            station = favorites.find(args.remove)
            if station is None:
                print(f"No favorite with key {args.remove!r}")
                sys.exit(1)
            favorites.toggle(station)
        elif args.add_from:
            directory = bootstrap.create_directory(settings)
            results = directory.search(args.add_from.strip(), 0, 1)
            if not results:
                print(f"No station matches {args.add_from!r}")
                sys.exit(1)
            if not favorites.is_favorite(favorites.key_for(results[0])):
                favorites.toggle(results[0])

        stations = sorted(favorites.all(), key=lambda s: (s.display_name.casefold(), s.key or ''))
        print(f"{len(stations)} favorite stations:")
        print("-" * 50)
        for station in stations:
            print(format_station(station, True))

    def _mirrors(self, args: argparse.Namespace, settings: Settings) -> None:
        healthy = 0
        for base_url in settings.mirrors:
            client = RadioBrowserClient(base_url, timeout=settings.timeout, user_agent=settings.user_agent)
            started = time.time()
            try:
                client.search(None, 0, 1)
            except NetworkError as e:
                print(f"[DOWN] {base_url}: {e}")
                continue
            healthy += 1
            print(f"[UP]   {base_url} ({(time.time() - started) * 1000:.0f} ms)")
        if not healthy:
            sys.exit(1)

    def _config(self, args: argparse.Namespace, settings: Settings) -> None:
        summary = get_config_manager().get_config_summary()
        print("Configuration:")
        print("-" * 50)
        for key, value in summary.items():
            if isinstance(value, list):
                value = ", ".join(value)
            print(f"{key}: {value}")

    def _play(self, args: argparse.Namespace, settings: Settings) -> None:
        store = self._create_store(settings, args)
        self._coordinator = bootstrap.build_coordinator(settings, store=store)
        coordinator = self._coordinator

        station: Optional[Station] = None
        if args.last:
            station = coordinator.restore_last_played()
            if station is None:
                print("No station has been played yet")
                sys.exit(1)
        elif args.key:
            station = coordinator.find_station(args.key)
            if station is None:
                print(f"No favorite with key {args.key!r}")
                sys.exit(1)
        else:
            coordinator.search(args.query)
            state = wait_until_idle(coordinator.catalog, settings.timeout * 3)
            if state.error:
                raise NetworkError(state.error)
            if not state.displayed:
                print(f"No station matches {args.query!r}")
                sys.exit(1)
            station = state.displayed[0]

        started = []

        def on_status(status: PlaybackStatus) -> None:
            if isinstance(status, Error):
                print(f"Error: {status.message}")
                self._stop_requested.set()
            elif isinstance(status, Idle):
                # Replayed Idle on subscribe is ignored; a later one means the stream ended
                if started:
                    print("Stream ended")
                    self._stop_requested.set()
            else:
                started.append(status)
                print(f"{type(status).__name__}: {status.station.display_name}")

        coordinator.session.subscribe(on_status)
        coordinator.play(station)
        self._setup_signal_handlers()
        while not self._stop_requested.wait(0.5):
            pass
        coordinator.stop()

    def _serve(self, args: argparse.Namespace, settings: Settings) -> None:
        from radiodeck.interfaces.http import HTTPServer

        store = self._create_store(settings, args)
        self._coordinator = bootstrap.build_coordinator(settings, store=store)
        server = HTTPServer(self._coordinator, host=args.host, port=args.port, debug=args.debug)
        self._coordinator.start()
        server.run()

    def run(self, argv=None) -> None:
        """Run the CLI."""
        self._start_time = time.time()
        args = None

        try:
            args = self.parser.parse_args(argv)

            if not args.command:
                self.parser.print_help()
                sys.exit(1)

            setup_logging(args.log_level, log_file=args.log_file, structured=args.log_file is not None)
            load_dotenv()
            if args.config_dir:
                setup_config(args.config_dir)
            settings = get_settings()

            if args.command == 'search':
                self._search(args, settings)
            elif args.command == 'favorites':
                self._favorites(args, settings)
            elif args.command == 'mirrors':
                self._mirrors(args, settings)
            elif args.command == 'config':
                self._config(args, settings)
            elif args.command == 'play':
                self._play(args, settings)
            elif args.command == 'serve':
                self._serve(args, settings)
            else:
                self.parser.print_help()
                sys.exit(1)

        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            self._cleanup_resources()
            sys.exit(130)
        except (ConfigError, NetworkError, PersistenceError, PlaybackError, RuntimeError) as e:
            log_error(logger, "CLI error", e, command=args.command if args else None)
            print(f"Error: {e}", file=sys.stderr)
            self._cleanup_resources()
            sys.exit(1)
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
