from __future__ import annotations

import threading

import pytest
import requests

from conftest import FakeResponse, make_network
from emushim.core.errors import DownloadCancelledError

URL = "https://dl.test/emu.7z"


def test_download_reports_progress_in_band(tmp_path):
    payload = b"z" * 200000
    network = make_network({URL: FakeResponse(content=payload)})
    events = []

    destination = tmp_path / "emu.7z"
    network.download_file(URL, str(destination), lambda message, percent: events.append(percent), (10, 70))

    assert destination.read_bytes() == payload
    assert events == sorted(events)
    assert all(10 <= percent <= 70 for percent in events)
    assert events[-1] == 70


def test_download_without_length_reports_nothing_mid_transfer(tmp_path):
    network = make_network({URL: FakeResponse(content=b"abc", headers={})})
    events = []

    network.download_file(URL, str(tmp_path / "emu.7z"), lambda message, percent: events.append(percent))

    assert events == []
    assert (tmp_path / "emu.7z").read_bytes() == b"abc"


def test_download_http_error_leaves_no_file(tmp_path):
    network = make_network({URL: FakeResponse(status_code=503)})
    destination = tmp_path / "emu.7z"

    with pytest.raises(requests.HTTPError):
        network.download_file(URL, str(destination))
    assert not destination.exists()


def test_cancelled_download_removes_partial_file(tmp_path):
    network = make_network({URL: FakeResponse(content=b"z" * 200000)})
    cancel = threading.Event()
    cancel.set()
    destination = tmp_path / "emu.7z"

    with pytest.raises(DownloadCancelledError):
        network.download_file(URL, str(destination), cancel_event=cancel)
    assert not destination.exists()


def test_fetch_json_retries_transient_errors():
    network = make_network({URL: [requests.ConnectionError("reset"), FakeResponse(status_code=502), FakeResponse(json_data=[1])]})
    assert network.fetch_json(URL) == [1]
    assert len(network.session.calls) == 3


def test_fetch_json_gives_up_after_max_retries():
    network = make_network({URL: requests.Timeout("slow")}, max_retries=1)
    with pytest.raises(requests.Timeout):
        network.fetch_json(URL)
    assert len(network.session.calls) == 2


def test_fetch_json_does_not_retry_client_errors():
    network = make_network({URL: FakeResponse(status_code=404)})
    with pytest.raises(requests.HTTPError):
        network.fetch_json(URL)
    assert len(network.session.calls) == 1
