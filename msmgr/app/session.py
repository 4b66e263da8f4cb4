"""Teardown handle returned by ``DashboardReconciler.start``."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from msmgr.app.polling_scheduler import PollingScheduler
from msmgr.domain.dashboard_state import StateStore
from msmgr.domain.ports import Subscription

_log = logging.getLogger(__name__)


@dataclass
class DashboardSession:
    """Owns every live resource of one dashboard run.

    Attributes:
        store: State container frozen on close.
        scheduler: Scheduler running the poll loops named in ``polls``.
        subscriptions: Event subscriptions (``None`` where subscribing failed).
        polls: Poll loop names to cancel.
        tasks: Fire-and-forget tasks still pending at teardown.
    """

    store: StateStore
    scheduler: PollingScheduler
    subscriptions: Tuple[Optional[Subscription], ...] = ()
    polls: Tuple[str, ...] = ()
    tasks: Tuple[asyncio.Task, ...] = ()
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release every resource; safe to call more than once.

        The store is frozen first so results of fetches still in flight are
        discarded. Each resource is released on its own; a failing release is
        logged and the remaining ones still run.
        """
        if self._closed:
            return
        self._closed = True
        self.store.close()

        for subscription in self.subscriptions:
            if subscription is None:
                continue
            try:
                await subscription.close()
            except Exception:
                _log.exception("Failed to close event subscription %r", subscription)

        for name in self.polls:
            try:
                self.scheduler.cancel(name)
            except Exception:
                _log.exception("Failed to cancel poll %s", name)

        pending = [task for task in self.tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        _log.debug("Dashboard session closed")


__all__ = ["DashboardSession"]
