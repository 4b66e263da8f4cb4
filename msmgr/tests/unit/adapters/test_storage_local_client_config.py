from __future__ import annotations

import json
from pathlib import Path

import pytest

from msmgr.adapters.storage_local import StorageLocal, default_config_dir
from msmgr.viewmodels.settings_vm import SettingsVM


def test_missing_file_loads_empty_config(tmp_path: Path) -> None:
    storage = StorageLocal(root_dir=str(tmp_path / "cfg"))

    assert storage.load_client_config() == {}
    assert not (tmp_path / "cfg").exists()


def test_save_then_load_settings_vm_snapshot(tmp_path: Path) -> None:
    storage = StorageLocal(root_dir=str(tmp_path / "cfg"))
    vm = SettingsVM()
    vm.apply_dict({"base_url": "http://10.0.0.5:7878", "device_poll_interval_ms": 3000})

    storage.save_client_config(vm.to_dict())

    assert (tmp_path / "cfg" / "client.json").exists()
    assert not (tmp_path / "cfg" / "client.json.tmp").exists()
    restored = SettingsVM()
    restored.apply_dict(storage.load_client_config())
    assert restored.to_dict() == vm.to_dict()


def test_non_object_content_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "client.json"
    path.write_text(json.dumps(["not", "a", "dict"]), encoding="utf-8")
    storage = StorageLocal(root_dir=str(tmp_path))

    with pytest.raises(ValueError):
        storage.load_client_config()


def test_default_dir_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert default_config_dir() == str(tmp_path / "ms-manager")
    assert StorageLocal().path == str(tmp_path / "ms-manager" / "client.json")
