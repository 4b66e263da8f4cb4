from __future__ import annotations

import pytest

from msmgr.domain.events import (
    FlashDone,
    FlashOutput,
    InstallBegin,
    InstallDownloading,
    parse_flash_event,
    parse_install_event,
)
from msmgr.domain.models import (
    AppUpdateStatus,
    DeviceStatus,
    Platform,
    ReleaseResolution,
    Settings,
    Status,
)


def test_parse_install_events() -> None:
    begin = parse_install_event(
        {"type": "begin", "channel": "beta", "tag": "v1", "profile": "default", "assets_total": 3}
    )
    downloading = parse_install_event(
        {"type": "downloading", "index": 2, "total": 3, "asset_id": "a", "filename": "a.zip"}
    )

    assert begin == InstallBegin(channel="beta", tag="v1", profile="default", assets_total=3)
    assert downloading == InstallDownloading(index=2, total=3, asset_id="a", filename="a.zip")


def test_parse_flash_events() -> None:
    assert parse_flash_event({"type": "output", "line": "hello"}) == FlashOutput(line="hello")
    assert parse_flash_event({"type": "done", "ok": False}) == FlashDone(ok=False)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "done", "ok": "false"},
        {"type": "done", "ok": 1},
        {"type": "done"},
    ],
)
def test_flash_done_requires_boolean_ok(payload) -> None:
    with pytest.raises(ValueError):
        parse_flash_event(payload)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "exploded"},
        {},
        ["begin"],
        {"type": "downloading", "index": "two", "total": 3},
    ],
)
def test_malformed_install_events_raise_value_error(payload) -> None:
    with pytest.raises(ValueError):
        parse_install_event(payload)


def test_status_from_payload_builds_nested_snapshots() -> None:
    status = Status.from_payload(
        {
            "settings": {"schema": 1, "channel": "beta", "profile": "bitwig", "pinned_tag": "v2"},
            "platform": {"os": "Linux", "arch": "x86_64"},
            "payload_root": "/opt/ms",
            "installed": {"channel": "beta", "profile": "bitwig", "tag": "v2"},
            "host_installed": True,
            "device": {"connected": True, "count": 1, "targets": [{"index": 0, "id": "t0"}]},
            "last_flashed": None,
            "bridge": {"installed": True, "running": True},
        }
    )

    assert status.settings == Settings(channel="beta", profile="bitwig", pinned_tag="v2")
    assert status.platform == Platform(os="linux", arch="x86_64")
    assert status.installed is not None and status.installed.tag == "v2"
    assert status.device.signature == (True, 1)
    assert status.device.targets[0].target_id == "t0"
    assert status.last_flashed is None
    assert status.bridge.running is True


def test_status_without_settings_is_rejected() -> None:
    with pytest.raises(ValueError):
        Status.from_payload({"payload_root": "/x"})


def test_device_signature_ignores_targets() -> None:
    a = DeviceStatus.from_payload({"connected": True, "count": 1, "targets": [{"id": "a"}]})
    b = DeviceStatus.from_payload({"connected": True, "count": 1, "targets": [{"id": "b"}]})

    assert a.signature == b.signature


def test_release_resolution_unavailable() -> None:
    release = ReleaseResolution.from_payload(
        {"channel": "nightly", "available": False, "tag": None, "manifest": None, "message": "none"}
    )

    assert release.available is False
    assert release.manifest is None
    assert release.message == "none"


def test_app_update_status_with_update() -> None:
    status = AppUpdateStatus.from_payload(
        {"current_version": "0.1.0", "available": True, "update": {"version": "0.2.0"}}
    )

    assert status.update is not None
    assert status.update.version == "0.2.0"
    assert status.error is None
