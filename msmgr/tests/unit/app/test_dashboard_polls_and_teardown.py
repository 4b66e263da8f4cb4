from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from msmgr.adapters.api_errors import ApiTimeoutError
from msmgr.adapters.backend_mock import InMemoryEventBus
from msmgr.app.dashboard import BRIDGE_POLL, DEVICE_POLL, DashboardReconciler, DashboardUseCases
from msmgr.app.polling_scheduler import PollingScheduler
from msmgr.domain.activity import ActivityLog
from msmgr.domain.dashboard_state import StateStore
from msmgr.domain.ports import FLASH_EVENT, INSTALL_EVENT


class _PollBackend:
    """Minimal backend: device/bridge answers are scripted, everything else canned."""

    def __init__(self) -> None:
        self.device: Dict[str, Any] = {"connected": False, "count": 0, "targets": []}
        self.bridge: Dict[str, Any] = {"installed": True, "running": True}
        self.calls: List[str] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.errors: Dict[str, Exception] = {}

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.errors:
            raise self.errors[name]

    async def status_get(self):
        await self._enter("status_get")
        return {
            "settings": {"channel": "stable", "profile": "default"},
            "platform": {"os": "linux", "arch": "x86_64"},
            "payload_root": "/opt/ms-manager",
        }

    async def device_status_get(self):
        await self._enter("device_status_get")
        return dict(self.device)

    async def bridge_status_get(self):
        await self._enter("bridge_status_get")
        return dict(self.bridge)

    async def list_channel_tags(self, channel):
        await self._enter("list_channel_tags")
        return ["v1.0.0"]

    async def resolve_latest_manifest(self, channel):
        await self._enter("resolve_latest_manifest")
        return {"channel": channel, "available": True, "tag": "v1.0.0", "manifest": None}

    async def app_update_check(self):
        await self._enter("app_update_check")
        return {"current_version": "0.1.0", "available": False}

    async def payload_root_relocate(self, new_root):
        await self._enter("payload_root_relocate")
        return {
            "settings": {"channel": "stable", "profile": "default"},
            "platform": {"os": "linux", "arch": "x86_64"},
            "payload_root": new_root,
        }


class _FailingBus(InMemoryEventBus):
    """Event bus whose subscriptions can be told to fail on close."""

    def __init__(self, failing_event: Optional[str] = None) -> None:
        super().__init__()
        self.failing_event = failing_event
        self.closed: List[str] = []

    async def subscribe(self, event, handler):
        inner = await super().subscribe(event, handler)
        bus = self

        class _Sub:
            async def close(self) -> None:
                if event == bus.failing_event:
                    raise RuntimeError("unlisten exploded")
                await inner.close()
                bus.closed.append(event)

        return _Sub()


def _dashboard(backend: _PollBackend, bus: Optional[InMemoryEventBus] = None) -> DashboardReconciler:
    return DashboardReconciler(
        StateStore(),
        ActivityLog(),
        DashboardUseCases.from_backend(backend),
        bus or InMemoryEventBus(),
        scheduler=PollingScheduler(),
        # Timers never elapse during a test; ticks are fired explicitly.
        device_poll_interval_ms=600_000,
        bridge_poll_interval_ms=600_000,
    )


def _device_entries(dash: DashboardReconciler) -> List[str]:
    return [e.message for e in dash.activity.entries("device")]


# ---------------------------------------------------------------------------
# poll bodies
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_overlapping_device_ticks_issue_one_fetch() -> None:
    backend = _PollBackend()
    dash = _dashboard(backend)
    session = await dash.start()
    try:
        backend.calls.clear()
        backend.gates["device_status_get"] = asyncio.Event()

        assert dash.scheduler.fire(DEVICE_POLL) is True
        await asyncio.sleep(0)
        assert dash.scheduler.fire(DEVICE_POLL) is False

        handle = dash.scheduler.handle_for(DEVICE_POLL)
        backend.gates["device_status_get"].set()
        await handle.in_flight

        assert backend.calls.count("device_status_get") == 1
        assert handle.dropped == 1
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_device_presence_logged_only_on_change() -> None:
    backend = _PollBackend()
    dash = _dashboard(backend)

    await dash.poll_device_once()
    await dash.poll_device_once()
    backend.device = {"connected": True, "count": 1, "targets": [{"index": 0, "id": "t0"}]}
    await dash.poll_device_once()
    await dash.poll_device_once()
    backend.device = {"connected": True, "count": 2, "targets": []}
    await dash.poll_device_once()

    assert _device_entries(dash) == [
        "controller not detected",
        "controller detected (1)",
        "controller detected (2)",
    ]
    assert dash.state.device.count == 2


@pytest.mark.asyncio
async def test_bridge_poll_updates_state() -> None:
    backend = _PollBackend()
    backend.bridge = {"installed": True, "running": False, "message": "paused by user"}
    dash = _dashboard(backend)

    await dash.poll_bridge_once()

    assert dash.state.bridge.running is False
    assert dash.state.bridge.message == "paused by user"


@pytest.mark.asyncio
async def test_poll_failure_warns_once_per_streak() -> None:
    backend = _PollBackend()
    backend.errors["device_status_get"] = ApiTimeoutError("down")
    dash = _dashboard(backend)

    await dash.poll_device_once()
    await dash.poll_device_once()
    await dash.poll_device_once()

    warnings = [e for e in dash.activity.entries("device") if e.level == "warn"]
    assert len(warnings) == 1
    assert warnings[0].message.startswith("device poll failed:")
    assert dash.state.error is None

    del backend.errors["device_status_get"]
    await dash.poll_device_once()
    backend.errors["device_status_get"] = ApiTimeoutError("down again")
    await dash.poll_device_once()

    warnings = [e for e in dash.activity.entries("device") if e.level == "warn"]
    assert len(warnings) == 2


@pytest.mark.asyncio
async def test_polls_are_gated_while_relocating() -> None:
    backend = _PollBackend()
    dash = _dashboard(backend)
    session = await dash.start()
    try:
        backend.calls.clear()
        backend.gates["payload_root_relocate"] = asyncio.Event()
        dash.open_relocate_modal()
        dash.set_relocate_root("/new/root")
        dash.set_relocate_ack(True)

        relocation = asyncio.create_task(dash.confirm_relocate_modal())
        await asyncio.sleep(0)
        assert dash.state.relocating is True

        assert dash.scheduler.fire(DEVICE_POLL) is False
        assert dash.scheduler.fire(BRIDGE_POLL) is False
        await dash.poll_device_once()
        assert "device_status_get" not in backend.calls
        assert "bridge_status_get" not in backend.calls

        backend.gates["payload_root_relocate"].set()
        assert await relocation is True

        assert dash.state.relocating is False
        assert dash.state.payload_root == "/new/root"
        assert dash.scheduler.fire(DEVICE_POLL) is True
        await dash.scheduler.handle_for(DEVICE_POLL).in_flight
        assert "device_status_get" in backend.calls
    finally:
        await session.close()


# ---------------------------------------------------------------------------
# teardown
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_teardown_releases_everything_even_when_one_close_fails() -> None:
    backend = _PollBackend()
    bus = _FailingBus(failing_event=INSTALL_EVENT)
    dash = _dashboard(backend, bus)
    session = await dash.start()

    await session.close()

    assert bus.closed == [FLASH_EVENT]
    assert dash.scheduler.handle_for(DEVICE_POLL) is None
    assert dash.scheduler.handle_for(BRIDGE_POLL) is None
    assert dash.store.closed is True
    assert session.closed is True
    assert all(task.done() for task in session.tasks)

    await session.close()
    assert bus.closed == [FLASH_EVENT]


@pytest.mark.asyncio
async def test_fetch_completing_after_teardown_does_not_touch_state() -> None:
    backend = _PollBackend()
    dash = _dashboard(backend)
    session = await dash.start()
    await asyncio.gather(*session.tasks)
    before = dash.state
    entries_before = len(dash.activity.entries())

    backend.gates["device_status_get"] = asyncio.Event()
    backend.device = {"connected": True, "count": 3, "targets": []}
    pending = asyncio.create_task(dash.poll_device_once())
    await asyncio.sleep(0)

    await session.close()
    backend.gates["device_status_get"].set()
    await pending

    assert dash.state is before
    assert len(dash.activity.entries()) == entries_before


@pytest.mark.asyncio
async def test_events_after_teardown_are_ignored() -> None:
    backend = _PollBackend()
    bus = InMemoryEventBus()
    dash = _dashboard(backend, bus)
    session = await dash.start()
    handler = bus.handlers[FLASH_EVENT][0]

    await session.close()
    handler({"type": "begin", "channel": "stable", "tag": "v1", "profile": "default"})

    assert bus.handlers[FLASH_EVENT] == []
    assert dash.state.now is None
    assert dash.activity.entries("flash") == ()


@pytest.mark.asyncio
async def test_subscribe_failure_is_logged_and_start_continues() -> None:
    class _BrokenBus(InMemoryEventBus):
        async def subscribe(self, event, handler):
            raise ConnectionError("event stream refused")

    backend = _PollBackend()
    dash = _dashboard(backend, _BrokenBus())

    session = await dash.start()
    try:
        errors = [e.message for e in dash.activity.entries("net") if e.level == "error"]
        assert len(errors) == 2
        assert dash.scheduler.handle_for(DEVICE_POLL) is not None
        assert session.subscriptions == (None, None)
    finally:
        await session.close()
