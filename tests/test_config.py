from __future__ import annotations

import json

from emushim.core.config import ConfigManager
from emushim.core.models import DEFAULT_GITHUB_URL


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("EMUSHIM_INSTALL_PATH", "EMUSHIM_GITHUB_URL", "EMUSHIM_GITLAB_URL"):
        monkeypatch.delenv(name, raising=False)

    config = ConfigManager(str(tmp_path / "emushim.json")).get_config()
    assert config.github_url == DEFAULT_GITHUB_URL
    assert config.install_path.endswith("shim")


def test_invalid_json_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("EMUSHIM_GITHUB_URL", raising=False)
    path = tmp_path / "emushim.json"
    path.write_text("{broken")

    assert ConfigManager(str(path)).get_config().github_url == DEFAULT_GITHUB_URL


def test_environment_overrides_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "emushim.json"
    path.write_text(json.dumps({"install_path": "/from/file", "max_retries": 5}))
    monkeypatch.setenv("EMUSHIM_INSTALL_PATH", "/from/env")

    config = ConfigManager(str(path)).get_config()
    assert config.install_path == "/from/env"
    assert config.max_retries == 5


def test_update_config_persists_changes(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("EMUSHIM_INSTALL_PATH", raising=False)
    path = tmp_path / "emushim.json"
    manager = ConfigManager(str(path))

    manager.update_config(install_path="/games/shim")

    assert json.loads(path.read_text())["install_path"] == "/games/shim"
    assert ConfigManager(str(path)).get_config().install_path == "/games/shim"


def test_update_config_without_changes_does_not_write(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "emushim.json"
    manager = ConfigManager(str(path))

    manager.update_config(max_retries=manager.get_config().max_retries)
    assert not path.exists()
