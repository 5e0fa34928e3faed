import pytest
import requests
from unittest.mock import Mock

from radiodeck.domain.entities import Station
from radiodeck.domain.errors import NetworkError
from radiodeck.infrastructure.directory.radio_browser import (
    SEARCH_PATH, RadioBrowserClient, select_directory_client, station_from_record,
)


RECORD = {
    "stationuuid": "9617a958-0601-11e8-ae97-52543be04c81",
    "name": " Jazz Radio ",
    "url": "http://jazz.example.com/playlist.pls",
    "url_resolved": "http://jazz.example.com/stream.mp3",
    "favicon": "",
    "countrycode": "FR",
    "language": "french",
}


def make_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestStationFromRecord:
    def test_maps_fields(self):
        station = station_from_record(RECORD)
        assert station == Station(
            id="9617a958-0601-11e8-ae97-52543be04c81",
            name="Jazz Radio",
            stream_url="http://jazz.example.com/stream.mp3",
            icon_url=None,
            country_code="FR",
            language="french",
        )

    def test_falls_back_to_submitted_url(self):
        station = station_from_record({**RECORD, "url_resolved": ""})
        assert station.stream_url == "http://jazz.example.com/playlist.pls"

    def test_missing_uuid(self):
        station = station_from_record({"name": "x", "url": "http://x"})
        assert station.id is None
        assert station.key == "url:http://x"


class TestRadioBrowserClient:
    """Tests for the directory HTTP adapter."""

    def setup_method(self):
        self.session = Mock()
        self.client = RadioBrowserClient("https://de1.api.radio-browser.info/",
                                         session=self.session, timeout=5.0, user_agent="radiodeck-test")

    def test_search_sends_paging_parameters(self):
        self.session.get.return_value = make_response(payload=[RECORD])
        stations = self.client.search("jazz", 40, 20)

        assert len(stations) == 1
        self.session.get.assert_called_once_with(
            f"https://de1.api.radio-browser.info{SEARCH_PATH}",
            params={'offset': 40, 'limit': 20, 'name': 'jazz', 'hidebroken': 'true'},
            timeout=5.0,
        )
        self.session.headers.update.assert_called_once_with({
            'User-Agent': 'radiodeck-test',
            'Accept': 'application/json',
        })

    def test_empty_query_omits_name(self):
        self.session.get.return_value = make_response(payload=[])
        assert self.client.search(None, 0, 20) == []
        params = self.session.get.call_args.kwargs['params']
        assert 'name' not in params

    def test_language_and_order_are_forwarded(self):
        client = RadioBrowserClient("https://x", session=self.session, language="german",
                                    hide_broken=False, order="votes")
        self.session.get.return_value = make_response(payload=[])
        client.search("rock", 0, 10)
        params = self.session.get.call_args.kwargs['params']
        assert params == {'offset': 0, 'limit': 10, 'name': 'rock', 'language': 'german', 'order': 'votes'}

    def test_transport_failure_raises_network_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError, match="refused"):
            self.client.search("jazz", 0, 20)

    def test_http_error_status(self):
        self.session.get.return_value = make_response(status_code=503)
        with pytest.raises(NetworkError) as exc_info:
            self.client.search("jazz", 0, 20)
        assert exc_info.value.status_code == 503

    def test_malformed_body(self):
        self.session.get.return_value = make_response(json_error=ValueError("not json"))
        with pytest.raises(NetworkError, match="Malformed"):
            self.client.search("jazz", 0, 20)

    def test_unexpected_shape(self):
        self.session.get.return_value = make_response(payload={"error": "nope"})
        with pytest.raises(NetworkError, match="Unexpected"):
            self.client.search("jazz", 0, 20)

    def test_non_object_records_are_skipped(self):
        self.session.get.return_value = make_response(payload=[RECORD, "junk", None])
        assert len(self.client.search("jazz", 0, 20)) == 1


class TestSelectDirectoryClient:
    """Tests for mirror selection."""

    def test_first_healthy_mirror_wins(self):
        session = Mock()
        session.get.side_effect = [
            requests.Timeout("slow"),
            make_response(payload=[RECORD]),
        ]
        client = select_directory_client(["https://a", "https://b", "https://c"], session=session)
        assert client.base_url == "https://b"
        assert session.get.call_count == 2
        assert session.get.call_args.kwargs['params']['limit'] == 1

    def test_mirror_without_stations_is_skipped(self):
        session = Mock()
        session.get.side_effect = [make_response(payload=[]), make_response(payload=[RECORD])]
        client = select_directory_client(["https://a", "https://b"], session=session)
        assert client.base_url == "https://b"

    def test_no_mirror_reachable(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError, match="No directory mirror reachable"):
            select_directory_client(["https://a", "https://b"], session=session)

    def test_client_options_are_passed_through(self):
        session = Mock()
        session.get.return_value = make_response(payload=[RECORD])
        client = select_directory_client(["https://a"], session=session, language="english", timeout=3.0)
        assert client.language == "english"
        assert client.timeout == 3.0
