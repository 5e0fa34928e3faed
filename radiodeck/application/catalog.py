import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from radiodeck.application.channel import LastValueChannel
from radiodeck.application.merging import merge_stations
from radiodeck.crosscutting.logging import CorrelationContext, log_fetch_complete
from radiodeck.domain.entities import CatalogState, Station
from radiodeck.domain.errors import NetworkError
from radiodeck.domain.ports import StationDirectory


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


class StationCatalog:
    """Paginated, deduplicating view of a remote station directory.

    The catalog owns two collections:

    * ``displayed``: the result set of the current query epoch, in arrival order
    * ``all``: every station seen across epochs, keyed by ``Station.key``

    At most one directory fetch is in flight. Fetches run on ``executor``;
    all state changes happen under the catalog lock and are published as
    immutable ``CatalogState`` snapshots.
    """

    def __init__(self,
                 directory: StationDirectory,
                 page_size: int = DEFAULT_PAGE_SIZE,
                 executor: Optional[Executor] = None):
        """Initialize the catalog.

        Args:
            directory: Directory client used for every page fetch
            page_size: Number of stations requested per page
            executor: Executor running fetches; defaults to a single worker thread
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._directory = directory
        self._page_size = page_size
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="catalog-fetch")
        self._owns_executor = executor is None
        self._lock = threading.RLock()

        self._query = ""
        self._epoch = 0
        self._displayed: List[Station] = []
        self._all: Dict[str, Station] = {}
        self._offset = 0
        self._can_load_more = True
        self._loading = False
        self._error: Optional[str] = None
        self._closed = False

        self._channel: LastValueChannel[CatalogState] = LastValueChannel(self._snapshot(), name="catalog")

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def state(self) -> CatalogState:
        return self._channel.value

    def subscribe(self, observer: Callable[[CatalogState], None]) -> Callable[[], None]:
        """Observe catalog snapshots; the current one is replayed immediately."""
        return self._channel.subscribe(observer)

    def search(self, query: str) -> None:
        """Switch to a new query epoch unless the trimmed query is unchanged.

        A search issued while a fetch is in flight resets the epoch at once;
        the in-flight results are discarded when they arrive and a fetch for
        the new query is issued in their place.
        """
        query = (query or "").strip()
        with self._lock:
            if query == self._query:
                logger.debug(f"Query unchanged ({query!r}), not fetching")
                return
            logger.info(f"Starting new catalog epoch for query {query!r}")
            self._reset_epoch(query)
            if self._loading:
                self._publish()
                return
            self._start_fetch()

    def load_more(self) -> None:
        """Fetch the next page for the current query, if pagination is still open."""
        with self._lock:
            if not self._can_load_more or self._loading:
                return
            self._start_fetch()

    def refresh(self) -> None:
        """Restart the current epoch; this is the explicit retry after a failure."""
        with self._lock:
            logger.info(f"Refreshing catalog for query {self._query!r}")
            self._reset_epoch(self._query)
            if self._loading:
                self._publish()
                return
            self._start_fetch()

    def clear_error(self) -> None:
        with self._lock:
            if self._error is None:
                return
            self._error = None
            self._publish()

    def find(self, key: Optional[str]) -> Optional[Station]:
        if key is None:
            return None
        with self._lock:
            return self._all.get(key)

    def all_stations(self) -> List[Station]:
        with self._lock:
            return list(self._all.values())

    def next_station(self, current: Optional[Station]) -> Optional[Station]:
        """Station following ``current`` in the full catalog, wrapping around."""
        return self._step(current, 1)

    def previous_station(self, current: Optional[Station]) -> Optional[Station]:
        """Station preceding ``current`` in the full catalog, wrapping around."""
        return self._step(current, -1)

    def close(self) -> None:
        """Stop issuing fetches; a fetch already running completes without a follow-up."""
        with self._lock:
            self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _step(self, current: Optional[Station], delta: int) -> Optional[Station]:
        with self._lock:
            stations = list(self._all.values())
        if not stations:
            return None
        keys = [s.key for s in stations]
        key = current.key if current is not None else None
        if key not in keys:
            return stations[0]
        return stations[(keys.index(key) + delta) % len(stations)]

    def _reset_epoch(self, query: str) -> None:
        self._query = query
        self._epoch += 1
        self._displayed = []
        self._offset = 0
        self._can_load_more = True
        self._error = None

    def _start_fetch(self) -> None:
        if self._closed:
            logger.debug("Catalog closed, not fetching")
            self._loading = False
            self._publish()
            return
        self._loading = True
        epoch, query, offset = self._epoch, self._query, self._offset
        self._publish()
        self._executor.submit(self._fetch, epoch, query, offset, self._page_size)

    def _fetch(self, epoch: int, query: str, offset: int, limit: int) -> None:
        """Run one directory request and hand the outcome back to the catalog."""
        started = time.monotonic()
        with CorrelationContext(query=query, stage="catalog_fetch"):
            try:
                page = self._directory.search(query or None, offset, limit)
            except NetworkError as e:
                self._complete(epoch, offset, None, str(e))
                return
            except Exception as e:
                logger.exception(f"Unexpected directory failure for query {query!r}")
                self._complete(epoch, offset, None, str(e))
                return
            duration_ms = int((time.monotonic() - started) * 1000)
            log_fetch_complete(logger, query, offset, len(page), duration_ms)
            self._complete(epoch, offset, list(page), None)

    def _complete(self, epoch: int, offset: int, page: Optional[List[Station]], error: Optional[str]) -> None:
        with self._lock:
            self._loading = False

            if epoch != self._epoch:
                logger.info(f"Discarding stale page for superseded epoch {epoch}; fetching {self._query!r}")
                self._start_fetch()
                return

            if error is not None:
                logger.warning(f"Catalog fetch failed at offset {offset}: {error}")
                self._error = f"Could not load stations: {error}"
                self._can_load_more = False
                self._publish()
                return

            if not page:
                self._can_load_more = False
            else:
                self._displayed.extend(page)
                self._offset = len(self._displayed)
                self._all = merge_stations(self._all, page)
            self._error = None
            self._publish()

    def _snapshot(self) -> CatalogState:
        return CatalogState(
            displayed=tuple(self._displayed),
            query=self._query,
            offset=self._offset,
            can_load_more=self._can_load_more,
            loading=self._loading,
            error=self._error,
            all=dict(self._all),
        )

    def _publish(self) -> None:
        self._channel.publish(self._snapshot())
