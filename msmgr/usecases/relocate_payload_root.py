"""Use case moving the install (payload) root to a new folder."""

from __future__ import annotations

from dataclasses import dataclass

from msmgr.domain.models import Status
from msmgr.domain.ports import BackendPort, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class RelocatePayloadRoot:
    """Use-case callable for ``payload_root_relocate``."""

    backend: BackendPort

    async def __call__(self, new_root: str) -> Status:
        """Relocate the payload root and return the resulting full status.

        Raises:
            UseCaseError: If ``new_root`` is blank or the backend refuses the
                move (not empty, not writable, same as current).
        """
        root = (new_root or "").strip()
        if not root:
            raise UseCaseError("invalid_path", "Installation folder cannot be empty.")
        try:
            payload = await self.backend.payload_root_relocate(root)
        except Exception as exc:
            raise map_api_error(exc, default_code="RELOCATE_FAILED") from exc
        try:
            return Status.from_payload(payload)
        except (TypeError, ValueError, AttributeError) as exc:
            raise UseCaseError("invalid_response", f"Malformed status: {exc}") from exc


__all__ = ["RelocatePayloadRoot"]
