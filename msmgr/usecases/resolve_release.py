"""Use case resolving the release a channel (or pinned tag) points at.

Also derives the profile options the resolved manifest offers for the host
platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from msmgr.domain.models import Manifest, Platform, ReleaseResolution
from msmgr.domain.ports import BackendPort, Channel, UseCaseError
from msmgr.usecases.error_mapping import map_api_error

FALLBACK_PROFILE = "default"


def derive_profile_options(manifest: Manifest, platform: Platform) -> Tuple[str, ...]:
    """Return unique install-set ids for ``platform`` in manifest order.

    Falls back to ``("default",)`` when no install set matches.
    """
    ids: List[str] = []
    for install_set in manifest.install_sets:
        if not install_set.applies_to(platform):
            continue
        if install_set.set_id and install_set.set_id not in ids:
            ids.append(install_set.set_id)
    return tuple(ids) if ids else (FALLBACK_PROFILE,)


def corrected_profile(profile: str, options: Tuple[str, ...]) -> Optional[str]:
    """Return the profile to switch to, or ``None`` when ``profile`` is valid."""
    if profile in options:
        return None
    return options[0] if options else FALLBACK_PROFILE


@dataclass
class ResolveRelease:
    """Use-case callable for ``resolve_latest_manifest``/``resolve_manifest_for_tag``."""

    backend: BackendPort

    async def __call__(self, channel: Channel, *, pinned_tag: Optional[str] = None) -> ReleaseResolution:
        """Resolve the pinned tag when one is set, else the channel's latest.

        Raises:
            UseCaseError: On transport failures or malformed responses. An
                unavailable release is a normal result, not an error.
        """
        try:
            if pinned_tag:
                payload = await self.backend.resolve_manifest_for_tag(channel, pinned_tag)
            else:
                payload = await self.backend.resolve_latest_manifest(channel)
        except Exception as exc:
            raise map_api_error(exc, default_code="RELEASE_FAILED") from exc
        if not hasattr(payload, "get"):
            raise UseCaseError("invalid_response", "Malformed release response.")
        return ReleaseResolution.from_payload(payload)


__all__ = ["FALLBACK_PROFILE", "ResolveRelease", "corrected_profile", "derive_profile_options"]
