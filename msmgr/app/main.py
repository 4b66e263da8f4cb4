# msmgr/app/main.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional, Sequence, Tuple

from ..adapters.storage_local import StorageLocal
from ..domain.activity import ActivityEntry, ActivityLog
from ..domain.dashboard_state import DashboardState
from ..utils import logging as logging_utils
from ..viewmodels.settings_vm import SettingsVM
from .controller import AppController
from .dashboard import DashboardReconciler

_log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msmgr",
        description="Console dashboard for the ms-manager backend.",
    )
    parser.add_argument("--config", help="Path to the client JSON config file.")
    parser.add_argument("--base-url", help="Backend base URL (overrides config and MSMGR_BASE_URL).")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run against the in-process mock backend instead of HTTP.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Load status, tags and release once, print a summary and exit.",
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Write the effective client settings back to the config file.",
    )
    return parser


def _storage_for(path: Optional[str]) -> StorageLocal:
    if not path:
        return StorageLocal()
    directory, filename = os.path.split(os.path.abspath(path))
    return StorageLocal(root_dir=directory, filename=filename)


def load_settings(args: argparse.Namespace) -> Tuple[SettingsVM, StorageLocal]:
    """Build settings from the config file, then env, then CLI flags.

    Raises:
        ValueError: On malformed config content or invalid values.
    """
    storage = _storage_for(args.config)
    settings_vm = SettingsVM()
    try:
        settings_vm.apply_dict(storage.load_client_config())
    except json.JSONDecodeError as exc:
        raise ValueError(f"{storage.path}: invalid JSON ({exc})") from exc
    settings_vm.apply_env()
    if args.base_url:
        settings_vm.base_url = args.base_url
    return settings_vm, storage


class ConsoleView:
    """Prints narration and activity changes to stdout."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout
        self._last_now: Optional[str] = None

    def on_state(self, state: DashboardState) -> None:
        if state.now and state.now != self._last_now:
            self._last_now = state.now
            self._write(f"> {state.now}")

    def on_activity(self, entries: Tuple[ActivityEntry, ...]) -> None:
        if entries:
            self._write(ActivityLog.to_text(entries[-1:]))

    def _write(self, line: str) -> None:
        print(line, file=self.stream, flush=True)


def summary_lines(state: DashboardState) -> list:
    release = state.release
    lines = [
        f"channel:      {state.channel}",
        f"profile:      {state.profile} (options: {', '.join(state.profile_options)})",
        f"pinned tag:   {state.pinned_tag or 'latest'}",
        f"payload root: {state.payload_root or '-'}",
        f"installed:    {state.installed.tag if state.installed else '-'}",
        f"release:      {(release.tag or '-') if release and release.available else 'unavailable'}",
        f"tags:         {', '.join(state.tags) or '-'}",
        f"controller:   {'connected (%d)' % state.device.count if state.device.connected else 'not detected'}",
        f"bridge:       {'running' if state.bridge.running else 'stopped'}",
    ]
    if state.error is not None:
        lines.append(f"error:        [{state.error.code}] {state.error.message}")
    return lines


async def run(args: argparse.Namespace, settings_vm: SettingsVM) -> int:
    controller = AppController(settings_vm, offline=args.offline)
    reconciler: DashboardReconciler = controller.build_dashboard()
    view = ConsoleView()
    unsubscribe_activity = reconciler.activity.subscribe(view.on_activity)
    unsubscribe_state = reconciler.store.subscribe(view.on_state)

    session = await reconciler.start()
    try:
        if args.once:
            for line in summary_lines(reconciler.state):
                print(line)
            return 1 if reconciler.state.error is not None else 0
        await asyncio.Event().wait()
    finally:
        await session.close()
        unsubscribe_state()
        unsubscribe_activity()
        await controller.aclose()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings_vm, storage = load_settings(args)
    except (OSError, ValueError) as exc:
        logging_utils.configure_root()
        _log.error("Cannot load client settings: %s", exc)
        return 2

    logging_utils.configure_root(logging.DEBUG if settings_vm.debug_logging else logging.INFO)

    if args.save_config:
        storage.save_client_config(settings_vm.to_dict())
        _log.info("Saved client settings to %s", storage.path)

    try:
        return asyncio.run(run(args, settings_vm))
    except KeyboardInterrupt:
        _log.info("Interrupted, dashboard closed")
        return 130


if __name__ == "__main__":
    sys.exit(main())
