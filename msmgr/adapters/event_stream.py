"""Server-sent-events adapter implementing ``EventStreamPort``.

Each subscription owns one long-lived ``GET /api/events?name=<event>`` stream
read by a dedicated task, so events of one channel are handed to the handler
strictly in arrival order. Dropped connections are re-opened after a short
pause until the subscription is closed.

Expected SSE blocks::

    event: ms-manager://flash
    data: {"type": "output", "line": "..."}

"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import httpx

from msmgr.domain.ports import EventHandler, EventStreamPort, Subscription

_log = logging.getLogger(__name__)


@dataclass
class SseParser:
    """Incremental parser for ``text/event-stream`` lines.

    ``feed`` returns ``(event, data)`` when a blank line completes a block.
    ``id:`` and comment lines are ignored.
    """

    event: Optional[str] = None
    data_lines: List[str] = field(default_factory=list)

    def feed(self, line: str) -> Optional[Tuple[Optional[str], str]]:
        line = line.rstrip("\r\n")
        if line == "":
            if not self.data_lines:
                self.event = None
                return None
            block = (self.event, "\n".join(self.data_lines))
            self.event = None
            self.data_lines = []
            return block
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self.event = value.strip()
        elif name == "data":
            self.data_lines.append(value)
        return None


class SseSubscription(Subscription):
    """Reader task for one event name."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        event: str,
        handler: EventHandler,
        *,
        reconnect_delay_s: float = 1.0,
    ) -> None:
        self._client = client
        self._url = url
        self._event = event
        self._handler = handler
        self._reconnect_delay_s = reconnect_delay_s
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"sse:{self._event}"
        )

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self._read_stream()
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, httpx.StreamError) as exc:
                _log.warning("Event stream %s dropped: %s", self._event, exc)
            await asyncio.sleep(self._reconnect_delay_s)

    async def _read_stream(self) -> None:
        parser = SseParser()
        async with self._client.stream(
            "GET",
            self._url,
            params={"name": self._event},
            headers={"Accept": "text/event-stream"},
        ) as resp:
            resp.raise_for_status()
            _log.debug("Event stream %s connected", self._event)
            async for line in resp.aiter_lines():
                block = parser.feed(line)
                if block is None:
                    continue
                name, data = block
                if name is not None and name != self._event:
                    continue
                self._dispatch(data)

    def _dispatch(self, data: str) -> None:
        try:
            payload: Any = json.loads(data)
        except ValueError:
            _log.warning("Event stream %s: undecodable payload %.200s", self._event, data)
            return
        try:
            self._handler(payload)
        except Exception:
            _log.exception("Event handler for %s failed", self._event)


class SseEventStream(EventStreamPort):
    """Factory of SSE subscriptions against one backend."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        reconnect_delay_s: float = 1.0,
    ) -> None:
        if not (base_url or "").strip():
            raise ValueError("SseEventStream requires a base URL")
        headers = {"X-Manager-Token": token} if token else None
        self.url = f"{base_url.strip().rstrip('/')}/api/events"
        self._client = client or httpx.AsyncClient(timeout=None, headers=headers)
        self._reconnect_delay_s = reconnect_delay_s

    async def subscribe(self, event: str, handler: EventHandler) -> SseSubscription:
        sub = SseSubscription(
            self._client,
            self.url,
            event,
            handler,
            reconnect_delay_s=self._reconnect_delay_s,
        )
        sub.start()
        return sub

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["SseEventStream", "SseParser", "SseSubscription"]
