"""Point-in-time status queries (full status, device presence, bridge health).

Each callable returns an immutable snapshot and raises ``UseCaseError`` on
failure; callers decide whether the failure is user-facing or best-effort.
"""

from __future__ import annotations

from dataclasses import dataclass

from msmgr.domain.models import BridgeStatus, DeviceStatus, Status
from msmgr.domain.ports import BackendPort, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class FetchStatus:
    """Use-case callable for the full ``status_get`` snapshot."""

    backend: BackendPort

    async def __call__(self) -> Status:
        try:
            payload = await self.backend.status_get()
        except Exception as exc:
            raise map_api_error(exc, default_code="STATUS_FAILED") from exc
        try:
            return Status.from_payload(payload)
        except (TypeError, ValueError, AttributeError) as exc:
            raise UseCaseError("invalid_response", f"Malformed status: {exc}") from exc


@dataclass
class FetchDeviceStatus:
    """Use-case callable for controller presence polling."""

    backend: BackendPort

    async def __call__(self) -> DeviceStatus:
        try:
            payload = await self.backend.device_status_get()
        except Exception as exc:
            raise map_api_error(exc, default_code="DEVICE_STATUS_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed device status.")
        return DeviceStatus.from_payload(payload)


@dataclass
class FetchBridgeStatus:
    """Use-case callable for bridge health polling."""

    backend: BackendPort

    async def __call__(self) -> BridgeStatus:
        try:
            payload = await self.backend.bridge_status_get()
        except Exception as exc:
            raise map_api_error(exc, default_code="BRIDGE_STATUS_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed bridge status.")
        return BridgeStatus.from_payload(payload)


__all__ = ["FetchBridgeStatus", "FetchDeviceStatus", "FetchStatus"]
