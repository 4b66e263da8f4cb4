"""Dashboard reconciler: the single writer of ``DashboardState``.

Responsibilities:
    - issue backend commands through use cases and fold their results back
      into the state (the backend's answer always wins over local guesses)
    - translate install/flash push events into narration, progress and
      activity entries
    - run the device and bridge polls, gated while the payload root moves
    - keep modal/menu/panel state for the view

Every state change is a synchronous ``StateStore.update`` between two awaits,
so no transform ever spans a suspension point.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Set

from msmgr.app.polling_scheduler import PollingScheduler
from msmgr.app.session import DashboardSession
from msmgr.domain.activity import ActivityFilter, ActivityLog
from msmgr.domain.dashboard_state import (
    ContextMenuState,
    DashboardState,
    FlashModalState,
    RelocateModalState,
    StateStore,
)
from msmgr.domain.events import (
    FlashBegin,
    FlashDone,
    FlashOutput,
    InstallDone,
    parse_flash_event,
    parse_install_event,
)
from msmgr.domain.models import Settings, Status
from msmgr.domain.ports import (
    FLASH_EVENT,
    INSTALL_EVENT,
    BackendPort,
    Channel,
    EventHandler,
    EventStreamPort,
    FolderPickerPort,
    Profile,
    Subscription,
    UseCaseError,
)
from msmgr.domain.progress import decode_line
from msmgr.usecases.app_update import CheckAppUpdate, OpenLatestAppUpdate
from msmgr.usecases.error_mapping import map_api_error
from msmgr.usecases.fetch_status import FetchBridgeStatus, FetchDeviceStatus, FetchStatus
from msmgr.usecases.flash_firmware import FlashFirmware
from msmgr.usecases.install_release import InstallSelected
from msmgr.usecases.list_channel_tags import ListChannelTags
from msmgr.usecases.relocate_payload_root import RelocatePayloadRoot
from msmgr.usecases.resolve_release import ResolveRelease, corrected_profile, derive_profile_options
from msmgr.usecases.update_settings import SettingsWriter
from msmgr.viewmodels.status_format import (
    device_presence_label,
    flash_narration,
    install_activity,
    install_narration,
    release_label,
)

DEVICE_POLL = "device"
BRIDGE_POLL = "bridge"
DEVICE_POLL_INTERVAL_MS = 4000
BRIDGE_POLL_INTERVAL_MS = 2000
FOLDER_PICKER_TITLE = "Select installation folder"

_log = logging.getLogger(__name__)


@dataclass
class DashboardUseCases:
    """Bundle of the use cases the reconciler drives."""

    fetch_status: FetchStatus
    fetch_device_status: FetchDeviceStatus
    fetch_bridge_status: FetchBridgeStatus
    list_tags: ListChannelTags
    resolve_release: ResolveRelease
    settings: SettingsWriter
    install_selected: InstallSelected
    flash_firmware: FlashFirmware
    relocate_payload_root: RelocatePayloadRoot
    check_app_update: CheckAppUpdate
    open_latest_app_update: OpenLatestAppUpdate

    @classmethod
    def from_backend(cls, backend: BackendPort) -> "DashboardUseCases":
        return cls(
            fetch_status=FetchStatus(backend),
            fetch_device_status=FetchDeviceStatus(backend),
            fetch_bridge_status=FetchBridgeStatus(backend),
            list_tags=ListChannelTags(backend),
            resolve_release=ResolveRelease(backend),
            settings=SettingsWriter(backend),
            install_selected=InstallSelected(backend),
            flash_firmware=FlashFirmware(backend),
            relocate_payload_root=RelocatePayloadRoot(backend),
            check_app_update=CheckAppUpdate(backend),
            open_latest_app_update=OpenLatestAppUpdate(backend),
        )


def _error_details(err: UseCaseError) -> Mapping[str, Any]:
    return {"code": err.code, "message": err.message, "details": err.details}


class DashboardReconciler:
    """Commands, event handlers and poll bodies for one dashboard view.

    Action commands return ``True`` when their backend call was issued (the
    outcome, good or bad, lands in state and the activity log) and ``False``
    when a precondition turned them into a no-op.
    """

    def __init__(
        self,
        store: StateStore,
        activity: ActivityLog,
        usecases: DashboardUseCases,
        events: EventStreamPort,
        *,
        folder_picker: Optional[FolderPickerPort] = None,
        scheduler: Optional[PollingScheduler] = None,
        device_poll_interval_ms: int = DEVICE_POLL_INTERVAL_MS,
        bridge_poll_interval_ms: int = BRIDGE_POLL_INTERVAL_MS,
    ) -> None:
        self.store = store
        self.activity = activity
        self.usecases = usecases
        self.events = events
        self.folder_picker = folder_picker
        self.scheduler = scheduler or PollingScheduler()
        self.device_poll_interval_ms = device_poll_interval_ms
        self.bridge_poll_interval_ms = bridge_poll_interval_ms
        self._last_device_signature: Optional[tuple] = None
        self._failing_polls: Set[str] = set()
        self._session: Optional[DashboardSession] = None

    @property
    def state(self) -> DashboardState:
        return self.store.get()

    @property
    def session(self) -> Optional[DashboardSession]:
        return self._session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> DashboardSession:
        """Load initial data, subscribe to push events and start the polls.

        Returns:
            DashboardSession: The only handle able to tear the run down.

        Raises:
            RuntimeError: When called a second time on the same reconciler.
        """
        if self._session is not None:
            raise RuntimeError("Dashboard already started")
        self.activity.add("info", "ui", "boot")

        await self.refresh_status()
        await self.refresh_tags()
        await self.refresh_release()
        update_check = asyncio.get_running_loop().create_task(
            self.check_app_update(), name="app-update-check"
        )

        install_sub = await self._subscribe(INSTALL_EVENT, self.handle_install_event)
        flash_sub = await self._subscribe(FLASH_EVENT, self.handle_flash_event)

        self.scheduler.start(
            DEVICE_POLL, self.device_poll_interval_ms, self.poll_device_once, gate=self._polls_allowed
        )
        self.scheduler.start(
            BRIDGE_POLL, self.bridge_poll_interval_ms, self.poll_bridge_once, gate=self._polls_allowed
        )

        self._session = DashboardSession(
            store=self.store,
            scheduler=self.scheduler,
            subscriptions=(install_sub, flash_sub),
            polls=(DEVICE_POLL, BRIDGE_POLL),
            tasks=(update_check,),
        )
        return self._session

    async def _subscribe(self, event: str, handler: EventHandler) -> Optional[Subscription]:
        try:
            return await self.events.subscribe(event, handler)
        except Exception as exc:
            err = map_api_error(exc, default_code="SUBSCRIBE_FAILED")
            _log.error("Subscribing to %s failed: %s", event, err.message)
            self.activity.add("error", "net", f"subscribe {event} failed", _error_details(err))
            return None

    def _polls_allowed(self) -> bool:
        return not self.store.get().relocating

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------
    def _update(self, **changes: Any) -> bool:
        return self.store.update(lambda s: replace(s, **changes))

    def _set_error(self, exc: BaseException) -> None:
        err = map_api_error(exc)
        self._update(error=err)
        self.activity.add("error", "ui", err.message, err.details)

    def _apply_status(self, status: Status) -> None:
        self._update(
            channel=status.settings.channel,
            pinned_tag=status.settings.pinned_tag,
            profile=status.settings.profile,
            platform=status.platform,
            payload_root=status.payload_root,
            installed=status.installed,
            host_installed=status.host_installed,
            device=status.device,
            last_flashed=status.last_flashed,
            bridge=status.bridge,
        )

    def _apply_settings(self, settings: Settings) -> None:
        self._update(
            channel=settings.channel,
            pinned_tag=settings.pinned_tag,
            profile=settings.profile,
        )

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------
    async def refresh_status(self) -> None:
        self.activity.add("info", "ui", "status refresh")
        try:
            status = await self.usecases.fetch_status()
        except UseCaseError as err:
            self._set_error(err)
            return
        self._apply_status(status)

    async def refresh_tags(self) -> bool:
        """Reload the tag list of the current channel; failures only warn.

        Returns ``False`` without calling the backend while a reload is running.
        """
        if self.state.loading_tags:
            return False
        self._update(loading_tags=True)
        try:
            snap = self.state
            self.activity.add("info", "net", f"list tags channel={snap.channel}")
            tags = await self.usecases.list_tags(snap.channel, pinned_tag=snap.pinned_tag)
            self._update(tags=tags)
            self.activity.add("ok", "net", f"tags count={len(tags)}")
        except UseCaseError as err:
            self.activity.add("warn", "net", "list tags failed", _error_details(err))
        finally:
            self._update(loading_tags=False)
        return True

    async def refresh_release(self) -> bool:
        """Resolve the current channel/pin and re-derive profile options.

        A selected profile the release does not offer for this platform is
        replaced by the first offered one through the settings writer.
        ``state.error`` is left alone; commands clear it before they start.

        Returns:
            bool: ``False`` when a resolve was already running and nothing was
            issued.
        """
        if self.state.loading_release:
            return False
        self._update(loading_release=True)
        try:
            snap = self.state
            self.activity.add(
                "info",
                "net",
                f"resolve release channel={snap.channel} tag={release_label(snap.pinned_tag)}",
            )
            release = await self.usecases.resolve_release(snap.channel, pinned_tag=snap.pinned_tag)
            self._update(release=release)
            if release.available:
                self.activity.add("ok", "net", f"release tag={release.tag or '?'}")
            else:
                self.activity.add("warn", "net", release.message or "no release")

            platform = self.state.platform
            if release.manifest is not None and platform is not None:
                options = derive_profile_options(release.manifest, platform)
                self._update(profile_options=options)
                next_profile = corrected_profile(self.state.profile, options)
                if next_profile is not None:
                    self.activity.add("info", "ui", f"auto profile={next_profile}")
                    settings = await self.usecases.settings.set_profile(next_profile)
                    self._update(profile=settings.profile)
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(loading_release=False)
        return True

    async def check_app_update(self) -> bool:
        """Best-effort update check; never sets ``state.error``."""
        if self.state.checking_app_update:
            return False
        self._update(checking_app_update=True)
        try:
            self.activity.add("info", "net", "check app update")
            result = await self.usecases.check_app_update()
            self._update(app_update=result)
            if result.error:
                self.activity.add("warn", "net", f"app update check failed: {result.error}")
            elif result.available and result.update is not None:
                self.activity.add("ok", "net", f"app update available: {result.update.version}")
            else:
                self.activity.add("ok", "net", "app is up to date")
        except UseCaseError as err:
            self.activity.add("warn", "net", "app update check failed", _error_details(err))
        finally:
            self._update(checking_app_update=False)
        return True

    # ------------------------------------------------------------------
    # Settings commands
    # ------------------------------------------------------------------
    async def set_channel(self, channel: Channel) -> bool:
        if self.state.saving_settings:
            return False
        self._update(saving_settings=True, error=None)
        try:
            self.activity.add("info", "ui", f"set channel={channel}")
            settings = await self.usecases.settings.set_channel(channel)
            self._apply_settings(settings)
            await self.refresh_tags()
            await self.refresh_release()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(saving_settings=False)
        return True

    async def set_profile(self, profile: Profile) -> bool:
        if self.state.saving_settings:
            return False
        self._update(saving_settings=True, error=None)
        try:
            self.activity.add("info", "ui", f"set profile={profile}")
            settings = await self.usecases.settings.set_profile(profile)
            self._update(profile=settings.profile)
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(saving_settings=False)
        return True

    async def set_pinned_tag(self, pinned_tag: Optional[str]) -> bool:
        """Pin ``pinned_tag`` (``None``/blank tracks latest) and re-resolve."""
        if self.state.saving_settings:
            return False
        self._update(saving_settings=True, error=None)
        try:
            self.activity.add("info", "ui", f"pin tag={release_label(pinned_tag)}")
            settings = await self.usecases.settings.set_pinned_tag(pinned_tag)
            self._update(pinned_tag=settings.pinned_tag)
            await self.refresh_release()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(saving_settings=False)
        return True

    # ------------------------------------------------------------------
    # Install / app update
    # ------------------------------------------------------------------
    async def install(self) -> bool:
        if self.state.installing:
            return False
        self._update(installing=True, error=None)
        try:
            snap = self.state
            self.activity.add(
                "info",
                "install",
                f"install channel={snap.channel} profile={snap.profile} tag={release_label(snap.pinned_tag)}",
            )
            installed = await self.usecases.install_selected()
            self._update(installed=installed)
            await self.refresh_status()
            await self.refresh_release()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(installing=False)
        return True

    async def install_app_update(self) -> bool:
        """Open the latest manager release page when an update is known."""
        snap = self.state
        if snap.app_update is None or not snap.app_update.available:
            return False
        if snap.installing_app_update or snap.busy:
            return False
        self._update(installing_app_update=True, error=None)
        self.activity.add("info", "ui", "opening ms-manager latest release page")
        try:
            await self.usecases.open_latest_app_update()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(installing_app_update=False)
        return True

    # ------------------------------------------------------------------
    # Flash modal
    # ------------------------------------------------------------------
    def open_flash_modal(self, profile: Profile) -> None:
        self._update(flash_modal=FlashModalState(open=True, target_profile=profile, ack=False))

    def cancel_flash_modal(self) -> None:
        self._update(flash_modal=FlashModalState())

    def set_flash_ack(self, ack: bool) -> None:
        self.store.update(lambda s: replace(s, flash_modal=replace(s.flash_modal, ack=bool(ack))))

    async def confirm_flash_modal(self) -> bool:
        """Flash the modal's target profile once the operator acknowledged.

        Returns ``False`` without touching state when the modal has no target,
        is not acknowledged, or a flash is already running.
        """
        snap = self.state
        target = snap.flash_modal.target_profile
        if not target or not snap.flash_modal.ack or snap.flashing:
            return False

        self._update(flashing=True, flash_progress=None, error=None)
        self.activity.add("info", "flash", f"flash start profile={target}")
        try:
            flashed = await self.usecases.flash_firmware(target)
            self._update(last_flashed=flashed)
            self.activity.add("ok", "flash", f"flash done profile={flashed.profile}")
            self.cancel_flash_modal()
            await self.refresh_status()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(flashing=False, flash_progress=None)
        return True

    # ------------------------------------------------------------------
    # Relocate modal
    # ------------------------------------------------------------------
    def open_relocate_modal(self) -> None:
        self.store.update(
            lambda s: replace(
                s, relocate_modal=RelocateModalState(open=True, next_root=s.payload_root or "", ack=False)
            )
        )

    def cancel_relocate_modal(self) -> None:
        self._update(relocate_modal=RelocateModalState())

    def set_relocate_root(self, next_root: str) -> None:
        self.store.update(
            lambda s: replace(s, relocate_modal=replace(s.relocate_modal, next_root=next_root or ""))
        )

    def set_relocate_ack(self, ack: bool) -> None:
        self.store.update(lambda s: replace(s, relocate_modal=replace(s.relocate_modal, ack=bool(ack))))

    async def browse_relocate_root(self) -> bool:
        """Ask the folder picker for a new root; picker failures only warn.

        Returns:
            ``True`` when a folder was chosen and copied into the modal.
        """
        if self.folder_picker is None:
            return False
        try:
            selected = self.folder_picker.pick_folder(FOLDER_PICKER_TITLE, self.state.payload_root)
        except Exception as exc:
            _log.warning("Folder picker failed: %s", exc)
            self.activity.add("warn", "ui", "folder picker failed", str(exc))
            return False
        if not isinstance(selected, str) or not selected.strip():
            return False
        self.set_relocate_root(selected)
        return True

    async def confirm_relocate_modal(self) -> bool:
        """Move the payload root to the modal's path.

        Polls are gated for the whole call. Returns ``False`` without touching
        state when the modal is not acknowledged, the trimmed path is blank,
        or a relocation is already running.
        """
        snap = self.state
        next_root = snap.relocate_modal.next_root.strip()
        if not snap.relocate_modal.ack or not next_root or snap.relocating:
            return False

        self._update(relocating=True, error=None)
        self.activity.add("info", "fs", f"relocate payload root -> {next_root}")
        try:
            status = await self.usecases.relocate_payload_root(next_root)
            self._apply_status(status)
            self.activity.add("ok", "fs", f"payload root: {status.payload_root}")
            self.cancel_relocate_modal()
            await self.refresh_tags()
            await self.refresh_release()
        except UseCaseError as err:
            self._set_error(err)
        finally:
            self._update(relocating=False)
        return True

    # ------------------------------------------------------------------
    # Menu / activity panel
    # ------------------------------------------------------------------
    def open_context_menu(self, profile: Profile, x: int, y: int) -> None:
        self._update(ctx_menu=ContextMenuState(open=True, x=int(x), y=int(y), target_profile=profile))

    def close_context_menu(self) -> None:
        self._update(ctx_menu=ContextMenuState())

    def toggle_activity(self) -> None:
        self.store.update(lambda s: replace(s, activity_open=not s.activity_open))

    def set_activity_filter(self, scope_filter: ActivityFilter) -> None:
        self._update(activity_filter=scope_filter)

    # ------------------------------------------------------------------
    # Push events
    # ------------------------------------------------------------------
    def handle_install_event(self, payload: Mapping[str, Any]) -> None:
        if self.store.closed:
            return
        try:
            event = parse_install_event(payload)
        except ValueError as exc:
            self.activity.add("warn", "install", f"ignored install event: {exc}", payload)
            return
        self._update(now=install_narration(event))
        level = "ok" if isinstance(event, InstallDone) else "info"
        self.activity.add(level, "install", install_activity(event))

    def handle_flash_event(self, payload: Mapping[str, Any]) -> None:
        if self.store.closed:
            return
        try:
            event = parse_flash_event(payload)
        except ValueError as exc:
            self.activity.add("warn", "flash", f"ignored flash event: {exc}", payload)
            return

        if isinstance(event, FlashBegin):
            self._update(now=flash_narration(event), flash_progress=None)
            self.activity.add("info", "flash", f"begin {event.tag} ({event.profile})")
        elif isinstance(event, FlashOutput):
            decoded = decode_line(event.line)
            if decoded.percent is not None:
                self._update(now=flash_narration(event, decoded), flash_progress=decoded.percent)
            else:
                self._update(now=flash_narration(event, decoded))
            self.activity.add("info", "flash", event.line)
        elif isinstance(event, FlashDone):
            self._update(now=flash_narration(event), flash_progress=None)
            if event.ok:
                self.activity.add("ok", "flash", "done")
            else:
                self.activity.add("error", "flash", "failed")

    # ------------------------------------------------------------------
    # Poll bodies
    # ------------------------------------------------------------------
    async def poll_device_once(self) -> None:
        """One device-presence poll; logs only when the signature changes."""
        if self.state.relocating:
            return
        try:
            device = await self.usecases.fetch_device_status()
        except UseCaseError as err:
            self._poll_failed(DEVICE_POLL, "device", err)
            return
        if self.store.closed:
            return
        self._poll_recovered(DEVICE_POLL)
        if device.signature != self._last_device_signature:
            self._last_device_signature = device.signature
            self.activity.add("info", "device", device_presence_label(device))
        self._update(device=device)

    async def poll_bridge_once(self) -> None:
        if self.state.relocating:
            return
        try:
            bridge = await self.usecases.fetch_bridge_status()
        except UseCaseError as err:
            self._poll_failed(BRIDGE_POLL, "net", err)
            return
        if self.store.closed:
            return
        self._poll_recovered(BRIDGE_POLL)
        self._update(bridge=bridge)

    def _poll_failed(self, name: str, scope: str, err: UseCaseError) -> None:
        # Warn once per failure streak; repeats go to debug.
        if self.store.closed:
            return
        if name in self._failing_polls:
            _log.debug("Poll %s still failing: %s", name, err.message)
            return
        self._failing_polls.add(name)
        self.activity.add("warn", scope, f"{name} poll failed: {err.message}", _error_details(err))

    def _poll_recovered(self, name: str) -> None:
        if name in self._failing_polls:
            self._failing_polls.discard(name)
            _log.info("Poll %s recovered", name)


__all__ = [
    "BRIDGE_POLL",
    "BRIDGE_POLL_INTERVAL_MS",
    "DEVICE_POLL",
    "DEVICE_POLL_INTERVAL_MS",
    "DashboardReconciler",
    "DashboardUseCases",
]
