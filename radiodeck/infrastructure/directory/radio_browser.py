import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from radiodeck.domain.entities import Station
from radiodeck.domain.errors import NetworkError
from radiodeck.domain.ports import StationDirectory

logger = logging.getLogger(__name__)

DEFAULT_MIRRORS = [
    "https://de1.api.radio-browser.info",
    "https://de2.api.radio-browser.info",
    "https://at1.api.radio-browser.info",
    "https://nl1.api.radio-browser.info",
    "https://fr1.api.radio-browser.info",
    "https://us1.api.radio-browser.info",
    "https://gb1.api.radio-browser.info",
]

SEARCH_PATH = "/json/stations/search"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def station_from_record(record: Dict[str, Any]) -> Station:
    """Convert a Radio Browser station record to a domain Station.

    The resolved URL is preferred over the submitted one since the latter
    often points at a playlist file rather than the stream itself.
    """
    return Station(
        id=_clean(record.get('stationuuid')),
        name=_clean(record.get('name')),
        stream_url=_clean(record.get('url_resolved')) or _clean(record.get('url')),
        icon_url=_clean(record.get('favicon')),
        country_code=_clean(record.get('countrycode')),
        language=_clean(record.get('language')),
    )


class RadioBrowserClient(StationDirectory):
    """Radio Browser directory adapter implementing the StationDirectory port."""

    def __init__(self,
                 base_url: str,
                 session: Optional[requests.Session] = None,
                 timeout: float = 10.0,
                 user_agent: str = "radiodeck",
                 language: Optional[str] = None,
                 hide_broken: bool = True,
                 order: Optional[str] = None):
        """Initialize the client for a single mirror.

        Args:
            base_url: Mirror base URL, e.g. https://de1.api.radio-browser.info
            session: Optional shared requests session
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
            language: Restrict results to this language
            hide_broken: Skip stations that failed the directory's last check
            order: Server-side ordering field (name, votes, clickcount, ...)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.language = language
        self.hide_broken = hide_broken
        self.order = order
        self._session = session or requests.Session()
        self._session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/json',
        })

    def _build_params(self, query: Optional[str], offset: int, limit: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {'offset': offset, 'limit': limit}
        if query:
            params['name'] = query
        if self.language:
            params['language'] = self.language
        if self.hide_broken:
            params['hidebroken'] = 'true'
        if self.order:
            params['order'] = self.order
        return params

    def search(self, query: Optional[str], offset: int, limit: int) -> List[Station]:
        """Return one page of stations whose name matches ``query``.

        Raises:
            NetworkError: on transport failure, non-2xx status or malformed body
        """
        url = f"{self.base_url}{SEARCH_PATH}"
        params = self._build_params(query, offset, limit)
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {self.base_url} failed: {e}")

        if response.status_code != 200:
            raise NetworkError(
                f"{self.base_url} answered with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            records = response.json()
        except ValueError as e:
            raise NetworkError(f"Malformed response from {self.base_url}: {e}")

        if not isinstance(records, list):
            raise NetworkError(f"Unexpected response shape from {self.base_url}")

        stations = [station_from_record(r) for r in records if isinstance(r, dict)]
        logger.debug(f"{self.base_url} returned {len(stations)} stations for {query!r} at offset {offset}")
        return stations


def select_directory_client(base_urls: Iterable[str],
                            session: Optional[requests.Session] = None,
                            **client_kwargs) -> RadioBrowserClient:
    """Probe mirrors in order and return a client bound to the first healthy one.

    A mirror is healthy when a one-station query returns at least one result.

    Raises:
        NetworkError: if no mirror answers
    """
    failures = []
    for base_url in base_urls:
        client = RadioBrowserClient(base_url, session=session, **client_kwargs)
        try:
            probe = client.search(None, 0, 1)
        except NetworkError as e:
            logger.warning(f"Mirror {base_url} unavailable: {e}")
            failures.append(base_url)
            continue
        if probe:
            logger.info(f"Using directory mirror {base_url}")
            return client
        logger.warning(f"Mirror {base_url} returned no stations")
        failures.append(base_url)

    raise NetworkError(f"No directory mirror reachable (tried: {', '.join(failures) or 'none'})")
