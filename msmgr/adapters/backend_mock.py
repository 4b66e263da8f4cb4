from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from msmgr.adapters.api_errors import ApiClientError
from msmgr.domain.ports import (
    FLASH_EVENT,
    INSTALL_EVENT,
    BackendPort,
    Channel,
    EventHandler,
    EventStreamPort,
    Profile,
)


class _BusSubscription:
    def __init__(self, bus: "InMemoryEventBus", event: str, handler: EventHandler) -> None:
        self._bus = bus
        self._event = event
        self._handler = handler

    async def close(self) -> None:
        self._bus.remove(self._event, self._handler)


@dataclass
class InMemoryEventBus(EventStreamPort):
    """Synchronous in-process event delivery, in publish order."""

    handlers: Dict[str, List[EventHandler]] = field(default_factory=dict)

    async def subscribe(self, event: str, handler: EventHandler) -> _BusSubscription:
        self.handlers.setdefault(event, []).append(handler)
        return _BusSubscription(self, event, handler)

    def remove(self, event: str, handler: EventHandler) -> None:
        bucket = self.handlers.get(event, [])
        if handler in bucket:
            bucket.remove(handler)

    def publish(self, event: str, payload: Mapping[str, Any]) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler(dict(payload))


@dataclass
class BackendMock(BackendPort):
    """Offline substitute for ``BackendRestAdapter`` with deterministic responses.

    Install and flash runs publish the same event sequences as the real
    backend on ``bus`` so the dashboard can be exercised without hardware.
    """

    bus: InMemoryEventBus = field(default_factory=InMemoryEventBus)
    platform: Dict[str, str] = field(default_factory=lambda: {"os": "linux", "arch": "x86_64"})
    payload_root: str = "/opt/ms-manager"
    step_delay_s: float = 0.05
    flash_blocks: int = 10

    def __post_init__(self) -> None:
        self._settings: Dict[str, Any] = {
            "schema": 1,
            "channel": "stable",
            "profile": "default",
            "pinned_tag": None,
        }
        self._installed: Optional[Dict[str, Any]] = None
        self._last_flashed: Optional[Dict[str, Any]] = None
        self._tags: Dict[Channel, List[str]] = {
            "stable": ["v1.2.0", "v1.1.0", "v1.0.0"],
            "beta": ["v1.3.0-beta.2", "v1.3.0-beta.1"],
            "nightly": [],
        }

    # ---------- queries ----------
    async def status_get(self) -> Mapping[str, Any]:
        return {
            "settings": dict(self._settings),
            "installed": dict(self._installed) if self._installed else None,
            "host_installed": self._installed is not None,
            "platform": dict(self.platform),
            "payload_root": self.payload_root,
            "device": await self.device_status_get(),
            "last_flashed": dict(self._last_flashed) if self._last_flashed else None,
            "bridge": await self.bridge_status_get(),
        }

    async def device_status_get(self) -> Mapping[str, Any]:
        connected = self._installed is not None
        targets = [{"index": 0, "id": "teensy-0", "kind": "halfkay"}] if connected else []
        return {"connected": connected, "count": len(targets), "targets": targets}

    async def bridge_status_get(self) -> Mapping[str, Any]:
        installed = self._installed is not None
        return {
            "installed": installed,
            "running": installed,
            "paused": False,
            "serial_open": installed,
            "version": "0.4.0" if installed else None,
            "message": None if installed else "oc-bridge missing",
        }

    async def list_channel_tags(self, channel: Channel) -> List[str]:
        return list(self._tags.get(channel, []))

    async def resolve_latest_manifest(self, channel: Channel) -> Mapping[str, Any]:
        tags = self._tags.get(channel, [])
        if not tags:
            return {
                "channel": channel,
                "available": False,
                "tag": None,
                "manifest": None,
                "message": f"no release published on {channel}",
            }
        return self._release(channel, tags[0])

    async def resolve_manifest_for_tag(self, channel: Channel, tag: str) -> Mapping[str, Any]:
        if tag not in self._tags.get(channel, []):
            raise ApiClientError(
                f"tag {tag} not found on {channel}",
                status=404,
                code="tag_not_found",
                details={"channel": channel, "tag": tag},
            )
        return self._release(channel, tag)

    async def app_update_check(self) -> Mapping[str, Any]:
        return {"current_version": "0.1.0", "available": False, "update": None, "error": None}

    # ---------- mutations ----------
    async def settings_set_channel(self, channel: Channel) -> Mapping[str, Any]:
        if channel not in self._tags:
            raise ApiClientError(f"unknown channel {channel}", status=400, code="invalid_channel")
        self._settings.update({"channel": channel, "pinned_tag": None})
        return dict(self._settings)

    async def settings_set_profile(self, profile: Profile) -> Mapping[str, Any]:
        if not profile.strip():
            raise ApiClientError("profile cannot be empty", status=400, code="invalid_profile")
        self._settings["profile"] = profile
        return dict(self._settings)

    async def settings_set_pinned_tag(self, pinned_tag: Optional[str]) -> Mapping[str, Any]:
        self._settings["pinned_tag"] = pinned_tag or None
        return dict(self._settings)

    async def install_selected(self) -> Mapping[str, Any]:
        channel = self._settings["channel"]
        tags = self._tags.get(channel, [])
        tag = self._settings["pinned_tag"] or (tags[0] if tags else None)
        if not tag:
            raise ApiClientError("no release to install", status=409, code="no_release")
        profile = self._settings["profile"]
        assets = ["ms-loader", "oc-bridge", f"firmware-{profile}"]
        self.bus.publish(
            INSTALL_EVENT,
            {"type": "begin", "channel": channel, "tag": tag, "profile": profile,
             "assets_total": len(assets)},
        )
        for index, asset_id in enumerate(assets, start=1):
            await asyncio.sleep(self.step_delay_s)
            self.bus.publish(
                INSTALL_EVENT,
                {"type": "downloading", "index": index, "total": len(assets),
                 "asset_id": asset_id, "filename": f"{asset_id}.zip"},
            )
        for step in ("extract", "activate"):
            await asyncio.sleep(self.step_delay_s)
            self.bus.publish(INSTALL_EVENT, {"type": "applying", "step": step})
        self._installed = {"schema": 1, "channel": channel, "profile": profile, "tag": tag}
        self.bus.publish(INSTALL_EVENT, {"type": "done", "tag": tag, "profile": profile})
        return dict(self._installed)

    async def flash_firmware(self, profile: Profile) -> Mapping[str, Any]:
        if self._installed is None:
            raise ApiClientError("install the host bundle first", status=409, code="not_installed")
        installed = self._installed
        self.bus.publish(
            FLASH_EVENT,
            {"type": "begin", "channel": installed["channel"], "tag": installed["tag"],
             "profile": profile},
        )
        self.bus.publish(FLASH_EVENT, {"type": "output", "line": json.dumps({"event": "discover_start"})})
        self.bus.publish(FLASH_EVENT, {"type": "output", "line": json.dumps({"event": "hex_loaded"})})
        for i in range(self.flash_blocks):
            await asyncio.sleep(self.step_delay_s)
            line = json.dumps({"event": "block", "i": i, "n": self.flash_blocks})
            self.bus.publish(FLASH_EVENT, {"type": "output", "line": line})
        self.bus.publish(FLASH_EVENT, {"type": "done", "ok": True})
        self._last_flashed = {
            "channel": installed["channel"],
            "tag": installed["tag"],
            "profile": profile,
            "flashed_at_ms": int(time.time() * 1000),
        }
        return dict(self._last_flashed)

    async def payload_root_relocate(self, new_root: str) -> Mapping[str, Any]:
        root = (new_root or "").strip()
        if not root.startswith("/"):
            raise ApiClientError("payload root must be absolute", status=400, code="invalid_path")
        await asyncio.sleep(self.step_delay_s)
        self.payload_root = root
        return await self.status_get()

    async def app_update_open_latest(self) -> None:
        return None

    # ---------- helpers ----------
    def _release(self, channel: Channel, tag: str) -> Mapping[str, Any]:
        os_name, arch = self.platform["os"], self.platform["arch"]
        return {
            "channel": channel,
            "available": True,
            "tag": tag,
            "message": None,
            "manifest": {
                "schema": 1,
                "channel": channel,
                "tag": tag,
                "published_at": "2026-01-01T00:00:00Z",
                "install_sets": [
                    {"id": "default", "os": os_name, "arch": arch, "assets": ["ms-loader"]},
                    {"id": "bitwig", "os": os_name, "arch": arch, "assets": ["ms-loader"]},
                    {"id": "default", "os": "windows", "arch": "x86_64", "assets": []},
                ],
            },
        }


__all__ = ["BackendMock", "InMemoryEventBus"]
