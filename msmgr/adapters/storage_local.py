from __future__ import annotations
import json
import os
from typing import Dict

from msmgr.domain.ports import ConfigStoragePort

CONFIG_FILENAME = "client.json"


def default_config_dir() -> str:
    """Per-user configuration directory (``$XDG_CONFIG_HOME/ms-manager``)."""
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, "ms-manager")


class StorageLocal(ConfigStoragePort):
    """Local filesystem storage for client connection/polling preferences (JSON)."""

    def __init__(self, root_dir: str | None = None, filename: str = CONFIG_FILENAME) -> None:
        self.root = root_dir or default_config_dir()
        self.filename = filename

    @property
    def path(self) -> str:
        return os.path.join(self.root, self.filename)

    def save_client_config(self, config: Dict) -> None:
        os.makedirs(self.root, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(config, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def load_client_config(self) -> Dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: expected a JSON object")
        return data


__all__ = ["StorageLocal", "default_config_dir"]
