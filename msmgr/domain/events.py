"""Tagged push-event variants for the install and flash channels.

Payloads arrive as JSON objects discriminated by their ``type`` field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class InstallBegin:
    channel: str
    tag: str
    profile: str
    assets_total: int


@dataclass(frozen=True)
class InstallDownloading:
    index: int
    total: int
    asset_id: str
    filename: str


@dataclass(frozen=True)
class InstallApplying:
    step: str


@dataclass(frozen=True)
class InstallDone:
    tag: str
    profile: str


@dataclass(frozen=True)
class FlashBegin:
    channel: str
    tag: str
    profile: str


@dataclass(frozen=True)
class FlashOutput:
    line: str


@dataclass(frozen=True)
class FlashDone:
    ok: bool


InstallEvent = Union[InstallBegin, InstallDownloading, InstallApplying, InstallDone]
FlashEvent = Union[FlashBegin, FlashOutput, FlashDone]


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def _int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Event field '{key}' must be numeric, got {value!r}.")
    return int(value)


def _bool(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key)
    if not isinstance(value, bool):
        raise ValueError(f"Event field '{key}' must be a boolean, got {value!r}.")
    return value


def parse_install_event(payload: Mapping[str, Any]) -> InstallEvent:
    """Build a typed install event.

    Raises:
        ValueError: If the payload is not a mapping or its ``type`` is unknown.
    """
    if not isinstance(payload, Mapping):
        raise ValueError("Install event payload must be an object.")
    kind = str(payload.get("type") or "").strip().lower()
    if kind == "begin":
        return InstallBegin(
            channel=_text(payload, "channel"),
            tag=_text(payload, "tag"),
            profile=_text(payload, "profile"),
            assets_total=_int(payload, "assets_total"),
        )
    if kind == "downloading":
        return InstallDownloading(
            index=_int(payload, "index"),
            total=_int(payload, "total"),
            asset_id=_text(payload, "asset_id"),
            filename=_text(payload, "filename"),
        )
    if kind == "applying":
        return InstallApplying(step=_text(payload, "step"))
    if kind == "done":
        return InstallDone(tag=_text(payload, "tag"), profile=_text(payload, "profile"))
    raise ValueError(f"Unknown install event type: {kind!r}")


def parse_flash_event(payload: Mapping[str, Any]) -> FlashEvent:
    """Build a typed flash event.

    Raises:
        ValueError: If the payload is not a mapping or its ``type`` is unknown.
    """
    if not isinstance(payload, Mapping):
        raise ValueError("Flash event payload must be an object.")
    kind = str(payload.get("type") or "").strip().lower()
    if kind == "begin":
        return FlashBegin(
            channel=_text(payload, "channel"),
            tag=_text(payload, "tag"),
            profile=_text(payload, "profile"),
        )
    if kind == "output":
        return FlashOutput(line=_text(payload, "line"))
    if kind == "done":
        return FlashDone(ok=_bool(payload, "ok"))
    raise ValueError(f"Unknown flash event type: {kind!r}")


__all__ = [
    "FlashBegin",
    "FlashDone",
    "FlashEvent",
    "FlashOutput",
    "InstallApplying",
    "InstallBegin",
    "InstallDone",
    "InstallDownloading",
    "InstallEvent",
    "parse_flash_event",
    "parse_install_event",
]
