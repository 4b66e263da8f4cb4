"""Use case installing the selected release (channel/profile/pinned tag)."""

from __future__ import annotations

from dataclasses import dataclass

from msmgr.domain.models import InstallState
from msmgr.domain.ports import BackendPort, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class InstallSelected:
    """Use-case callable for ``install_selected``.

    Progress is narrated by install events; the call resolves with the new
    install record once the backend has applied every asset.
    """

    backend: BackendPort

    async def __call__(self) -> InstallState:
        try:
            payload = await self.backend.install_selected()
        except Exception as exc:
            raise map_api_error(exc, default_code="INSTALL_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed install response.")
        return InstallState.from_payload(payload)


__all__ = ["InstallSelected"]
