"""Typed, immutable snapshots returned by backend commands.

Each snapshot is built from the raw command payload with ``from_payload`` so
the reconciler never works on untyped dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple


def _as_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Platform":
        return cls(
            os=str(payload.get("os") or "").strip().lower(),
            arch=str(payload.get("arch") or "").strip().lower(),
        )


@dataclass(frozen=True)
class Settings:
    """Durable backend settings echoed after every settings mutation."""

    channel: str
    profile: str
    pinned_tag: Optional[str] = None
    schema: int = 1

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Settings":
        channel = str(payload.get("channel") or "").strip()
        if not channel:
            raise ValueError("Missing channel in settings response.")
        return cls(
            channel=channel,
            profile=str(payload.get("profile") or "default").strip() or "default",
            pinned_tag=_as_text(payload.get("pinned_tag")),
            schema=_as_int(payload.get("schema"), 1),
        )


@dataclass(frozen=True)
class InstallState:
    channel: str
    profile: str
    tag: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InstallState":
        return cls(
            channel=str(payload.get("channel") or "").strip(),
            profile=str(payload.get("profile") or "").strip(),
            tag=str(payload.get("tag") or "").strip(),
        )


@dataclass(frozen=True)
class LastFlashed:
    channel: str
    tag: str
    profile: str
    flashed_at_ms: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LastFlashed":
        return cls(
            channel=str(payload.get("channel") or "").strip(),
            tag=str(payload.get("tag") or "").strip(),
            profile=str(payload.get("profile") or "").strip(),
            flashed_at_ms=_as_int(payload.get("flashed_at_ms")),
        )


@dataclass(frozen=True)
class DeviceTarget:
    index: int
    target_id: str
    kind: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DeviceTarget":
        return cls(
            index=_as_int(payload.get("index")),
            target_id=str(payload.get("id") or payload.get("target_id") or "").strip(),
            kind=str(payload.get("kind") or "").strip(),
        )


@dataclass(frozen=True)
class DeviceStatus:
    """Controller presence as seen by the loader tool."""

    connected: bool = False
    count: int = 0
    targets: Tuple[DeviceTarget, ...] = ()

    @property
    def signature(self) -> Tuple[bool, int]:
        """Presence signature used to de-duplicate presence log entries."""
        return (self.connected, self.count)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DeviceStatus":
        raw_targets = payload.get("targets")
        targets = tuple(
            DeviceTarget.from_payload(item)
            for item in (raw_targets if isinstance(raw_targets, list) else [])
            if isinstance(item, Mapping)
        )
        return cls(
            connected=bool(payload.get("connected")),
            count=_as_int(payload.get("count")),
            targets=targets,
        )


@dataclass(frozen=True)
class BridgeStatus:
    """Health of the background bridge service."""

    installed: bool = False
    running: bool = False
    paused: bool = False
    serial_open: bool = False
    version: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BridgeStatus":
        return cls(
            installed=bool(payload.get("installed")),
            running=bool(payload.get("running")),
            paused=bool(payload.get("paused")),
            serial_open=bool(payload.get("serial_open")),
            version=_as_text(payload.get("version")),
            message=_as_text(payload.get("message")),
        )


@dataclass(frozen=True)
class Status:
    """Full point-in-time status returned by ``status_get`` and relocation."""

    settings: Settings
    platform: Platform
    payload_root: str
    installed: Optional[InstallState] = None
    host_installed: bool = False
    device: DeviceStatus = DeviceStatus()
    last_flashed: Optional[LastFlashed] = None
    bridge: BridgeStatus = BridgeStatus()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Status":
        settings_raw = payload.get("settings")
        if not isinstance(settings_raw, Mapping):
            raise ValueError("Missing settings in status response.")
        installed_raw = payload.get("installed")
        last_flashed_raw = payload.get("last_flashed")
        return cls(
            settings=Settings.from_payload(settings_raw),
            platform=Platform.from_payload(_as_mapping(payload.get("platform"))),
            payload_root=str(payload.get("payload_root") or ""),
            installed=(
                InstallState.from_payload(installed_raw)
                if isinstance(installed_raw, Mapping)
                else None
            ),
            host_installed=bool(payload.get("host_installed")),
            device=DeviceStatus.from_payload(_as_mapping(payload.get("device"))),
            last_flashed=(
                LastFlashed.from_payload(last_flashed_raw)
                if isinstance(last_flashed_raw, Mapping)
                else None
            ),
            bridge=BridgeStatus.from_payload(_as_mapping(payload.get("bridge"))),
        )


@dataclass(frozen=True)
class InstallSet:
    """Manifest grouping of assets for one OS/architecture pair."""

    set_id: str
    os: Optional[str] = None
    arch: Optional[str] = None
    assets: Tuple[str, ...] = ()

    def applies_to(self, platform: Platform) -> bool:
        return self.os == platform.os and self.arch == platform.arch

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InstallSet":
        assets = payload.get("assets")
        return cls(
            set_id=str(payload.get("id") or "").strip(),
            os=_as_text(payload.get("os")),
            arch=_as_text(payload.get("arch")),
            assets=tuple(str(a) for a in (assets if isinstance(assets, list) else [])),
        )


@dataclass(frozen=True)
class Manifest:
    channel: str
    tag: str
    published_at: str = ""
    install_sets: Tuple[InstallSet, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Manifest":
        sets = payload.get("install_sets")
        return cls(
            channel=str(payload.get("channel") or "").strip(),
            tag=str(payload.get("tag") or "").strip(),
            published_at=str(payload.get("published_at") or ""),
            install_sets=tuple(
                InstallSet.from_payload(item)
                for item in (sets if isinstance(sets, list) else [])
                if isinstance(item, Mapping)
            ),
        )


@dataclass(frozen=True)
class ReleaseResolution:
    """Result of resolving the latest (or a pinned) release for a channel."""

    channel: str
    available: bool
    tag: Optional[str] = None
    manifest: Optional[Manifest] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReleaseResolution":
        manifest_raw = payload.get("manifest")
        return cls(
            channel=str(payload.get("channel") or "").strip(),
            available=bool(payload.get("available")),
            tag=_as_text(payload.get("tag")),
            manifest=(
                Manifest.from_payload(manifest_raw)
                if isinstance(manifest_raw, Mapping)
                else None
            ),
            message=_as_text(payload.get("message")),
        )


@dataclass(frozen=True)
class AppUpdateInfo:
    version: str
    pub_date: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AppUpdateStatus:
    current_version: str
    available: bool
    update: Optional[AppUpdateInfo] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AppUpdateStatus":
        update_raw = payload.get("update")
        update = None
        if isinstance(update_raw, Mapping) and _as_text(update_raw.get("version")):
            update = AppUpdateInfo(
                version=str(update_raw.get("version")).strip(),
                pub_date=_as_text(update_raw.get("pub_date")),
                notes=_as_text(update_raw.get("notes")),
            )
        return cls(
            current_version=str(payload.get("current_version") or "").strip(),
            available=bool(payload.get("available")),
            update=update,
            error=_as_text(payload.get("error")),
        )


__all__ = [
    "AppUpdateInfo",
    "AppUpdateStatus",
    "BridgeStatus",
    "DeviceStatus",
    "DeviceTarget",
    "InstallSet",
    "InstallState",
    "LastFlashed",
    "Manifest",
    "Platform",
    "ReleaseResolution",
    "Settings",
    "Status",
]
