"""Scheduler that owns the dashboard's interval poll loops.

Each named loop sleeps its interval and then fires one tick. A tick runs in
its own task, so a slow fetch never delays the timer; a tick that fires while
the previous one is still running is dropped, not queued. An optional gate is
checked synchronously before each tick and drops it when closed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

TickFn = Callable[[], Awaitable[None]]
GateFn = Callable[[], bool]

_log = logging.getLogger(__name__)


def _always_open() -> bool:
    return True


@dataclass
class PollHandle:
    """Timer and re-entrancy state associated with a single poll loop.

    Attributes:
        name: Loop key (``device``, ``bridge``).
        interval_s: Delay between ticks in seconds.
        tick: Coroutine function executed on every accepted tick.
        gate: Returns ``False`` while ticks must be skipped.
        timer: Task sleeping between ticks.
        in_flight: Task running the current tick, if any.
        dropped: Number of ticks dropped because a tick was still running or
            the gate was closed.
    """
    name: str
    interval_s: float
    tick: TickFn
    gate: GateFn = _always_open
    timer: Optional[asyncio.Task] = None
    in_flight: Optional[asyncio.Task] = None
    dropped: int = field(default=0)

    @property
    def busy(self) -> bool:
        return self.in_flight is not None


class PollingScheduler:
    """Manage named interval polls on the running asyncio loop."""

    def __init__(self) -> None:
        self._handles: Dict[str, PollHandle] = {}

    def start(
        self,
        name: str,
        interval_ms: int,
        tick: TickFn,
        *,
        gate: Optional[GateFn] = None,
    ) -> PollHandle:
        """Start (or restart) the loop ``name``.

        Args:
            name: Poll loop key.
            interval_ms: Delay in milliseconds between ticks.
            tick: Coroutine function run on each accepted tick.
            gate: Optional predicate; a tick is dropped while it returns ``False``.
        """
        self.cancel(name)
        handle = PollHandle(
            name=name,
            interval_s=max(1, int(interval_ms)) / 1000.0,
            tick=tick,
            gate=gate or _always_open,
        )
        handle.timer = asyncio.get_running_loop().create_task(
            self._run(handle), name=f"poll:{name}"
        )
        self._handles[name] = handle
        return handle

    def fire(self, name: str) -> bool:
        """Run one tick of ``name`` now unless it is busy or gated.

        The busy flag is checked and set before anything suspends, so two
        fires in the same loop iteration never start two fetches.

        Returns:
            ``True`` when a tick was started, ``False`` when it was dropped.
        """
        handle = self._handles.get(name)
        if handle is None:
            return False
        if handle.busy:
            handle.dropped += 1
            _log.debug("Poll %s: previous tick still running, dropped", name)
            return False
        if not handle.gate():
            handle.dropped += 1
            _log.debug("Poll %s: gated, dropped", name)
            return False
        task = asyncio.get_running_loop().create_task(
            self._run_tick(handle), name=f"poll-tick:{name}"
        )
        handle.in_flight = task
        return True

    def cancel(self, name: str) -> None:
        """Stop the loop ``name`` and cancel its in-flight tick."""
        handle = self._handles.pop(name, None)
        if not handle:
            return
        for task in (handle.timer, handle.in_flight):
            if task is not None and not task.done():
                task.cancel()
        handle.timer = None
        handle.in_flight = None

    def cancel_all(self) -> None:
        """Cancel all loops."""
        for name in list(self._handles.keys()):
            self.cancel(name)

    def handle_for(self, name: str) -> Optional[PollHandle]:
        """Return the current handle for a loop, if running."""
        return self._handles.get(name)

    async def _run(self, handle: PollHandle) -> None:
        while True:
            await asyncio.sleep(handle.interval_s)
            self.fire(handle.name)

    async def _run_tick(self, handle: PollHandle) -> None:
        try:
            await handle.tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            _log.exception("Poll %s tick failed", handle.name)
        finally:
            if handle.in_flight is asyncio.current_task():
                handle.in_flight = None


__all__ = ["PollHandle", "PollingScheduler"]
