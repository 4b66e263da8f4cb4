from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from ..domain.ports import CHANNELS
from ..utils.logging import env_forces_debug

BASE_URL_ENV = "MSMGR_BASE_URL"
TOKEN_ENV = "MSMGR_TOKEN"


@dataclass(frozen=True)
class ClientConfig:
    """Typed client settings that persist via StorageLocal."""

    base_url: str = "http://127.0.0.1:7878"
    request_timeout_s: int = 10
    action_timeout_s: int = 600
    retries: int = 2
    device_poll_interval_ms: int = 4000
    bridge_poll_interval_ms: int = 2000
    activity_limit: int = 500
    default_channel: str = "stable"
    default_profile: str = "default"


_POSITIVE_INT_KEYS = {
    "request_timeout_s",
    "action_timeout_s",
    "device_poll_interval_ms",
    "bridge_poll_interval_ms",
    "activity_limit",
}


def _default_debug_logging() -> bool:
    return env_forces_debug()


class SettingsVM:
    """Keeps client connection/polling settings and validation, no I/O here."""

    def __init__(self, *, config: Optional[ClientConfig] = None) -> None:
        self.config = config or ClientConfig()
        self.token: str = ""
        self.debug_logging: bool = _default_debug_logging()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self.config = replace(self.config, base_url=self._coerce_url(value))

    def apply_dict(self, payload: Mapping[str, Any]) -> None:
        """Apply persisted settings to the view-model.

        Raises:
            ValueError: On unknown keys or values that cannot be coerced.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("Settings payload must be a mapping of flat keys.")

        config_keys = {f.name for f in fields(ClientConfig)}
        allowed = config_keys | {"token", "debug_logging"}
        unknown = set(payload.keys()) - allowed
        if unknown:
            raise ValueError(f"Unsupported settings keys: {', '.join(sorted(str(key) for key in unknown))}")

        updates: Dict[str, Any] = {}
        for key in config_keys:
            if key in payload:
                updates[key] = self._coerce_config_value(key, payload[key])
        if updates:
            self.config = replace(self.config, **updates)

        if "token" in payload:
            self.token = str(payload["token"] or "").strip()
        if "debug_logging" in payload:
            self.debug_logging = self._coerce_bool(payload["debug_logging"])

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Let ``MSMGR_BASE_URL`` / ``MSMGR_TOKEN`` override persisted values."""
        env = os.environ if environ is None else environ
        url = (env.get(BASE_URL_ENV) or "").strip()
        if url:
            self.base_url = url
        token = (env.get(TOKEN_ENV) or "").strip()
        if token:
            self.token = token

    def to_dict(self) -> dict:
        snapshot = asdict(self.config)
        snapshot.update({"token": self.token, "debug_logging": bool(self.debug_logging)})
        return snapshot

    # ------------------------------------------------------------------
    def _coerce_config_value(self, key: str, value: Any) -> Any:
        if key == "base_url":
            return self._coerce_url(value)
        if key == "default_channel":
            channel = str(value or "").strip().lower()
            if channel not in CHANNELS:
                raise ValueError(f"default_channel must be one of {', '.join(CHANNELS)}")
            return channel
        if key == "default_profile":
            profile = str(value or "").strip()
            if not profile:
                raise ValueError("default_profile cannot be empty")
            return profile
        if key == "retries":
            return self._coerce_int(key, value, minimum=0)
        if key in _POSITIVE_INT_KEYS:
            return self._coerce_int(key, value, minimum=1)
        return value

    @staticmethod
    def _coerce_url(value: Any) -> str:
        text = str(value or "").strip().rstrip("/")
        if not text.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {value!r}")
        return text

    @staticmethod
    def _coerce_int(key: str, value: Any, *, minimum: int) -> int:
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer") from exc
        if number < minimum:
            raise ValueError(f"{key} must be >= {minimum}")
        return number

    @staticmethod
    def _coerce_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)


__all__ = ["BASE_URL_ENV", "ClientConfig", "SettingsVM", "TOKEN_ENV"]
