"""Adapter and use-case wiring for the dashboard runtime.

This module owns lazy construction of the concrete backend transport, the
event stream and the dashboard reconciler from values held by
:class:`msmgr.viewmodels.settings_vm.SettingsVM`.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from ..adapters.backend_mock import BackendMock, InMemoryEventBus
from ..adapters.backend_rest import BackendRestAdapter
from ..adapters.event_stream import SseEventStream
from ..adapters.folder_picker import TkFolderPicker
from ..domain.activity import ActivityLog
from ..domain.dashboard_state import DashboardState, StateStore
from ..domain.ports import FolderPickerPort
from ..viewmodels.settings_vm import SettingsVM
from .dashboard import DashboardReconciler, DashboardUseCases

_log = logging.getLogger(__name__)


class AppController:
    """Create and cache runtime adapters/use-cases from settings state.

    Call chain:
        ``msmgr.app.main`` creates one instance, calls ``build_dashboard`` and
        ``start``s the returned reconciler. ``aclose`` releases transports
        after the dashboard session is closed.
    """

    def __init__(
        self,
        settings_vm: SettingsVM,
        *,
        offline: bool = False,
        folder_picker: Optional[FolderPickerPort] = None,
    ) -> None:
        """Initialize controller with settings-backed lazy dependencies.

        Args:
            settings_vm: Client settings (base URL, token, timeouts, poll
                intervals, activity capacity).
            offline: Use the in-process ``BackendMock`` instead of HTTP.
            folder_picker: Folder chooser for relocation; defaults to Tk.
        """
        self.settings_vm = settings_vm
        self.offline = offline
        self.folder_picker = folder_picker
        self._backend: Optional[Union[BackendRestAdapter, BackendMock]] = None
        self._events: Optional[Union[SseEventStream, InMemoryEventBus]] = None
        self.usecases: Optional[DashboardUseCases] = None

    @property
    def backend(self) -> Optional[Union[BackendRestAdapter, BackendMock]]:
        return self._backend

    @property
    def events(self) -> Optional[Union[SseEventStream, InMemoryEventBus]]:
        return self._events

    def ensure_ready(self) -> None:
        """Build backend, event stream and use cases if not cached yet."""
        if self._backend is not None and self._events is not None and self.usecases is not None:
            return
        cfg = self.settings_vm.config
        if self.offline:
            bus = InMemoryEventBus()
            self._backend = BackendMock(bus=bus)
            self._events = bus
            _log.info("Using offline backend mock")
        else:
            token = self.settings_vm.token or None
            self._backend = BackendRestAdapter(
                cfg.base_url,
                token=token,
                request_timeout_s=cfg.request_timeout_s,
                action_timeout_s=cfg.action_timeout_s,
                retries=cfg.retries,
            )
            self._events = SseEventStream(cfg.base_url, token=token)
            _log.info("Using backend at %s", cfg.base_url)
        self.usecases = DashboardUseCases.from_backend(self._backend)

    def build_dashboard(self) -> DashboardReconciler:
        """Return a reconciler over a fresh store and activity log."""
        self.ensure_ready()
        cfg = self.settings_vm.config
        store = StateStore(
            DashboardState(channel=cfg.default_channel, profile=cfg.default_profile)
        )
        activity = ActivityLog(limit=cfg.activity_limit)
        return DashboardReconciler(
            store,
            activity,
            self.usecases,
            self._events,
            folder_picker=self.folder_picker or TkFolderPicker(),
            device_poll_interval_ms=cfg.device_poll_interval_ms,
            bridge_poll_interval_ms=cfg.bridge_poll_interval_ms,
        )

    async def aclose(self) -> None:
        """Close transports; cached adapters are dropped."""
        events, backend = self._events, self._backend
        self._events = None
        self._backend = None
        self.usecases = None
        if isinstance(events, SseEventStream):
            try:
                await events.aclose()
            except Exception:
                _log.exception("Failed to close event stream client")
        if isinstance(backend, BackendRestAdapter):
            backend.close()


__all__ = ["AppController"]
