"""Use cases mutating durable backend settings (channel, profile, pinned tag).

All three share one ``asyncio.Lock`` so settings writes reach the backend one
at a time, including automatic profile corrections issued while a channel
change is still settling.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from msmgr.domain.models import Settings
from msmgr.domain.ports import CHANNELS, BackendPort, Channel, Profile, UseCaseError
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class SettingsWriter:
    """Serialized gateway for every settings mutation."""

    backend: BackendPort
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def _apply(
        self,
        call: Callable[[], Awaitable[Mapping[str, Any]]],
        *,
        default_code: str,
    ) -> Settings:
        async with self.lock:
            try:
                payload = await call()
            except Exception as exc:
                raise map_api_error(exc, default_code=default_code) from exc
        try:
            return Settings.from_payload(payload)
        except (TypeError, ValueError, AttributeError) as exc:
            raise UseCaseError("invalid_response", f"Malformed settings: {exc}") from exc

    async def set_channel(self, channel: Channel) -> Settings:
        """Switch release channel.

        Raises:
            UseCaseError: If ``channel`` is not a known channel or the backend
                rejects the change.
        """
        if channel not in CHANNELS:
            raise UseCaseError("invalid_channel", f"Unknown channel: {channel}")
        return await self._apply(
            lambda: self.backend.settings_set_channel(channel),
            default_code="SET_CHANNEL_FAILED",
        )

    async def set_profile(self, profile: Profile) -> Settings:
        profile = (profile or "").strip()
        if not profile:
            raise UseCaseError("invalid_profile", "Profile cannot be empty.")
        return await self._apply(
            lambda: self.backend.settings_set_profile(profile),
            default_code="SET_PROFILE_FAILED",
        )

    async def set_pinned_tag(self, pinned_tag: Optional[str]) -> Settings:
        """Pin a release tag, or track latest when ``pinned_tag`` is blank."""
        tag = (pinned_tag or "").strip() or None
        return await self._apply(
            lambda: self.backend.settings_set_pinned_tag(tag),
            default_code="SET_PINNED_TAG_FAILED",
        )


__all__ = ["SettingsWriter"]
