"""Use cases for the manager application's own updates."""

from __future__ import annotations

from dataclasses import dataclass

from msmgr.domain.models import AppUpdateStatus
from msmgr.domain.ports import BackendPort, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class CheckAppUpdate:
    """Ask the backend whether a newer manager release exists.

    Updater problems come back in-band as ``AppUpdateStatus.error``; only
    transport failures raise.
    """

    backend: BackendPort

    async def __call__(self) -> AppUpdateStatus:
        try:
            payload = await self.backend.app_update_check()
        except Exception as exc:
            raise map_api_error(exc, default_code="APP_UPDATE_CHECK_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed app update response.")
        return AppUpdateStatus.from_payload(payload)


@dataclass
class OpenLatestAppUpdate:
    """Open the latest manager release page."""

    backend: BackendPort

    async def __call__(self) -> None:
        try:
            await self.backend.app_update_open_latest()
        except Exception as exc:
            raise map_api_error(exc, default_code="APP_UPDATE_OPEN_FAILED") from exc


__all__ = ["CheckAppUpdate", "OpenLatestAppUpdate"]
