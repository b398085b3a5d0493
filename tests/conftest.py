from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import pytest
import requests

from emushim.core.models import Settings
from emushim.core.network import NetworkManager


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b"", headers=None, text=None):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.text = text
        self.headers = headers if headers is not None else {"content-length": str(len(content))}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self.text is not None:
            return json.loads(self.text)
        return self._json

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class FakeSession:
    """Serves canned responses (or raises canned exceptions) per URL."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status_code=404)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        return route


def make_network(routes=None, **settings) -> NetworkManager:
    return NetworkManager(session=FakeSession(routes), settings=Settings(**settings), retry_delay=0)


def build_zip(files: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def shim_dir(tmp_path: Path) -> Path:
    shim = tmp_path / "shim"
    shim.mkdir()
    (shim / "steam_api.dll").write_bytes(b"SHIM32" * 100)
    (shim / "steam_api64.dll").write_bytes(b"SHIM64" * 100)
    (shim / "steamclient.dll").write_bytes(b"CLIENT32")
    (shim / "steamclient64.dll").write_bytes(b"CLIENT64")
    return shim


@pytest.fixture
def game_dir(tmp_path: Path) -> Path:
    game = tmp_path / "game"
    (game / "bin" / "win64").mkdir(parents=True)
    (game / "steam_api.dll").write_bytes(b"\x00MZ\x90SteamUser017\x00SteamFriends015\x00")
    (game / "bin" / "win64" / "steam_api64.dll").write_bytes(b"\x00MZ\x90SteamUtils009\xffSteamUser017\x00")
    return game
