"""Use case for flashing controller firmware.

The backend runs the loader tool and streams its output on the flash event
channel while this call is pending; the call itself resolves with the record
of the completed flash.
"""

from __future__ import annotations

from dataclasses import dataclass

from msmgr.domain.models import LastFlashed
from msmgr.domain.ports import BackendPort, Profile, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class FlashFirmware:
    """Use-case callable for firmware flashing.

    Attributes:
        backend: Port issuing ``flash_firmware``.
    """
    backend: BackendPort

    async def __call__(self, profile: Profile) -> LastFlashed:
        """Flash the firmware of ``profile`` onto the connected controller.

        Args:
            profile: Install-set identifier selected by the operator.

        Returns:
            LastFlashed: Backend record of the completed flash.

        Call Chain:
            Flash confirmation modal -> ``DashboardReconciler.confirm_flash_modal``
            -> ``FlashFirmware.__call__`` -> ``BackendPort.flash_firmware``.

        Raises:
            UseCaseError: If the profile is blank or the backend reports a
                failure (loader missing, no controller, tool error).
        """
        target = (profile or "").strip()
        if not target:
            raise UseCaseError("FIRMWARE_NO_TARGET", "No firmware profile selected.")
        try:
            payload = await self.backend.flash_firmware(target)
        except Exception as exc:
            raise map_api_error(exc, default_code="FLASH_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed flash response.")
        return LastFlashed.from_payload(payload)


__all__ = ["FlashFirmware"]
