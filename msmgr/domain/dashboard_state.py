"""Dashboard aggregate and the container that owns it.

``DashboardState`` and its nested modal states are frozen; every mutation goes
through :meth:`StateStore.update`, which swaps the whole value in one step and
then notifies view listeners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .activity import ActivityFilter
from .models import (
    AppUpdateStatus,
    BridgeStatus,
    DeviceStatus,
    InstallState,
    LastFlashed,
    Platform,
    ReleaseResolution,
)
from .ports import UseCaseError

DEFAULT_CHANNEL = "stable"
DEFAULT_PROFILE = "default"
DEFAULT_PROFILE_OPTIONS: Tuple[str, ...] = ("default", "bitwig")

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlashModalState:
    open: bool = False
    target_profile: Optional[str] = None
    ack: bool = False


@dataclass(frozen=True)
class RelocateModalState:
    open: bool = False
    next_root: str = ""
    ack: bool = False


@dataclass(frozen=True)
class ContextMenuState:
    open: bool = False
    x: int = 0
    y: int = 0
    target_profile: Optional[str] = None


@dataclass(frozen=True)
class DashboardState:
    """Single source of truth for the dashboard view."""

    # identity / config
    channel: str = DEFAULT_CHANNEL
    profile: str = DEFAULT_PROFILE
    pinned_tag: Optional[str] = None

    # remote-derived facts
    platform: Optional[Platform] = None
    payload_root: Optional[str] = None
    installed: Optional[InstallState] = None
    host_installed: bool = False
    device: DeviceStatus = DeviceStatus()
    last_flashed: Optional[LastFlashed] = None
    bridge: BridgeStatus = BridgeStatus()
    release: Optional[ReleaseResolution] = None
    profile_options: Tuple[str, ...] = DEFAULT_PROFILE_OPTIONS
    tags: Tuple[str, ...] = ()
    app_update: Optional[AppUpdateStatus] = None

    # operation flags
    loading_release: bool = False
    loading_tags: bool = False
    saving_settings: bool = False
    installing: bool = False
    flashing: bool = False
    relocating: bool = False
    checking_app_update: bool = False
    installing_app_update: bool = False

    # transient
    now: Optional[str] = None
    flash_progress: Optional[int] = None
    error: Optional[UseCaseError] = field(default=None, compare=False)

    # modal / menu / panel
    flash_modal: FlashModalState = FlashModalState()
    relocate_modal: RelocateModalState = RelocateModalState()
    ctx_menu: ContextMenuState = ContextMenuState()
    activity_open: bool = False
    activity_filter: ActivityFilter = "all"

    @property
    def busy(self) -> bool:
        """True while any resource-mutating action is in flight."""
        return self.installing or self.flashing or self.relocating or self.saving_settings


Listener = Callable[[DashboardState], None]


class StateStore:
    """Owner of the current :class:`DashboardState`.

    ``update`` runs the transform synchronously, so no other coroutine can
    observe or interleave with a half-applied change. After :meth:`close` the
    store is frozen: further updates are ignored.
    """

    def __init__(self, initial: Optional[DashboardState] = None) -> None:
        self._state = initial or DashboardState()
        self._listeners: List[Listener] = []
        self._closed = False

    def get(self) -> DashboardState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def update(self, transform: Callable[[DashboardState], DashboardState]) -> bool:
        """Replace the state with ``transform(current)``.

        Returns:
            ``False`` when the store is closed and the update was ignored.
        """
        if self._closed:
            _log.debug("Ignoring state update after teardown")
            return False
        next_state = transform(self._state)
        if next_state is self._state:
            return True
        self._state = next_state
        for listener in list(self._listeners):
            try:
                listener(next_state)
            except Exception:
                _log.exception("State listener failed")
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and call it once with the current state."""
        self._listeners.append(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()


__all__ = [
    "ContextMenuState",
    "DEFAULT_CHANNEL",
    "DEFAULT_PROFILE",
    "DEFAULT_PROFILE_OPTIONS",
    "DashboardState",
    "FlashModalState",
    "RelocateModalState",
    "StateStore",
]
