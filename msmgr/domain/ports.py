from __future__ import annotations
from typing import Any, Callable, List, Mapping, Optional, Protocol

Channel = str
Profile = str

CHANNELS: tuple[Channel, ...] = ("stable", "beta", "nightly")

INSTALL_EVENT = "ms-manager://install"
FLASH_EVENT = "ms-manager://flash"

EventHandler = Callable[[Mapping[str, Any]], None]


# ---- Error model ----
class UseCaseError(Exception):
    """Base class for use case level errors (user-presentable)."""

    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"UseCaseError(code={self.code!r}, message={self.message!r})"


# ---- Ports (Hexagonal boundaries) ----
class BackendPort(Protocol):
    """Request/response commands exposed by the manager backend.

    Every method returns the raw JSON-compatible payload of the command; use
    cases turn them into typed snapshots.
    """

    async def status_get(self) -> Mapping[str, Any]: ...
    async def device_status_get(self) -> Mapping[str, Any]: ...
    async def bridge_status_get(self) -> Mapping[str, Any]: ...
    async def settings_set_channel(self, channel: Channel) -> Mapping[str, Any]: ...
    async def settings_set_profile(self, profile: Profile) -> Mapping[str, Any]: ...
    async def settings_set_pinned_tag(self, pinned_tag: Optional[str]) -> Mapping[str, Any]: ...
    async def resolve_latest_manifest(self, channel: Channel) -> Mapping[str, Any]: ...
    async def resolve_manifest_for_tag(self, channel: Channel, tag: str) -> Mapping[str, Any]: ...
    async def list_channel_tags(self, channel: Channel) -> List[str]: ...
    async def install_selected(self) -> Mapping[str, Any]: ...
    async def flash_firmware(self, profile: Profile) -> Mapping[str, Any]: ...
    async def payload_root_relocate(self, new_root: str) -> Mapping[str, Any]: ...
    async def app_update_check(self) -> Mapping[str, Any]: ...
    async def app_update_open_latest(self) -> None: ...


class Subscription(Protocol):
    """Handle for one live push-event subscription."""

    async def close(self) -> None: ...


class EventStreamPort(Protocol):
    """Ordered push-event delivery for named channels (install, flash)."""

    async def subscribe(self, event: str, handler: EventHandler) -> Subscription: ...


class FolderPickerPort(Protocol):
    """Optional interactive folder selection."""

    def pick_folder(self, title: str, initial_dir: Optional[str]) -> Optional[str]: ...


class ConfigStoragePort(Protocol):
    """Persistence for client-side connection and polling preferences."""

    def load_client_config(self) -> dict: ...
    def save_client_config(self, config: dict) -> None: ...


