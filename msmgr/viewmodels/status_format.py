"""Narration and activity-label helpers for the dashboard.

Call context:
    ``DashboardReconciler`` turns every pushed event and presence change into
    one "now" line and one activity message using these helpers.
"""

from __future__ import annotations

from typing import Optional

from msmgr.domain.events import (
    FlashBegin,
    FlashDone,
    FlashEvent,
    FlashOutput,
    InstallApplying,
    InstallBegin,
    InstallDone,
    InstallDownloading,
    InstallEvent,
)
from msmgr.domain.models import DeviceStatus
from msmgr.domain.progress import ELLIPSIS, DecodedLine, decode_line


def install_narration(event: InstallEvent) -> str:
    if isinstance(event, InstallBegin):
        return f"Installing {event.tag} ({event.profile}){ELLIPSIS}"
    if isinstance(event, InstallDownloading):
        return f"Downloading {event.index}/{event.total}: {event.filename}"
    if isinstance(event, InstallApplying):
        return f"Applying: {event.step}"
    if isinstance(event, InstallDone):
        return f"Installed {event.tag} ({event.profile})"
    return ""


def install_activity(event: InstallEvent) -> str:
    if isinstance(event, InstallBegin):
        return f"begin {event.tag} ({event.profile})"
    if isinstance(event, InstallDownloading):
        return f"download {event.index}/{event.total} {event.filename}"
    if isinstance(event, InstallApplying):
        return f"apply {event.step}"
    if isinstance(event, InstallDone):
        return f"done {event.tag} ({event.profile})"
    return ""


def flash_narration(event: FlashEvent, decoded: Optional[DecodedLine] = None) -> str:
    """Return the "now" line for a flash event.

    ``decoded`` lets callers reuse an already decoded output line.
    """
    if isinstance(event, FlashBegin):
        return f"Flashing firmware: {event.profile}{ELLIPSIS}"
    if isinstance(event, FlashOutput):
        return (decoded or decode_line(event.line)).text
    if isinstance(event, FlashDone):
        return "Flash done" if event.ok else "Flash failed"
    return ""


def device_presence_label(device: DeviceStatus) -> str:
    if device.connected:
        return f"controller detected ({device.count})"
    return "controller not detected"


def release_label(pinned_tag: Optional[str]) -> str:
    return pinned_tag or "latest"


__all__ = [
    "device_presence_label",
    "flash_narration",
    "install_activity",
    "install_narration",
    "release_label",
]
