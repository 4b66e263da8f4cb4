"""Domain package exports for snapshots, events, and the dashboard aggregate."""

from .activity import ActivityEntry, ActivityLog
from .dashboard_state import DashboardState, StateStore
from .events import parse_flash_event, parse_install_event
from .models import (
    AppUpdateStatus,
    BridgeStatus,
    DeviceStatus,
    ReleaseResolution,
    Settings,
    Status,
)
from .ports import UseCaseError
from .progress import DecodedLine, decode_line

__all__ = [
    "ActivityEntry",
    "ActivityLog",
    "AppUpdateStatus",
    "BridgeStatus",
    "DashboardState",
    "DecodedLine",
    "DeviceStatus",
    "ReleaseResolution",
    "Settings",
    "StateStore",
    "Status",
    "UseCaseError",
    "decode_line",
    "parse_flash_event",
    "parse_install_event",
]
