"""Use case listing the release tags published on a channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from msmgr.domain.ports import BackendPort, Channel
from msmgr.usecases.error_mapping import map_api_error


@dataclass
class ListChannelTags:
    """Use-case callable returning the selectable tags for a channel.

    A pinned tag the backend no longer lists is kept selectable by prepending
    it, so the picker can still show the current choice.
    """

    backend: BackendPort

    async def __call__(self, channel: Channel, *, pinned_tag: Optional[str] = None) -> Tuple[str, ...]:
        try:
            tags = await self.backend.list_channel_tags(channel)
        except Exception as exc:
            raise map_api_error(exc, default_code="TAGS_FAILED") from exc
        out = [str(tag) for tag in tags or []]
        if pinned_tag and pinned_tag not in out:
            out.insert(0, pinned_tag)
        return tuple(out)


__all__ = ["ListChannelTags"]
