"""Bounded, append-only activity journal shared by the whole session.

Entries are immutable; the log keeps the ``limit`` most recent ones and
mirrors every append to the ``msmgr.activity`` logger.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Iterable, List, Literal, Tuple

ActivityLevel = Literal["info", "ok", "warn", "error"]
ActivityScope = Literal["ui", "net", "install", "flash", "device", "fs"]
ActivityFilter = Literal["all", "ui", "net", "install", "flash", "device", "fs"]

LEVELS: Tuple[str, ...] = ("info", "ok", "warn", "error")
SCOPES: Tuple[str, ...] = ("ui", "net", "install", "flash", "device", "fs")
DEFAULT_LIMIT = 500

_LOG_LEVELS = {
    "info": logging.INFO,
    "ok": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_mirror = logging.getLogger("msmgr.activity")

Listener = Callable[[Tuple["ActivityEntry", ...]], None]


@dataclass(frozen=True)
class ActivityEntry:
    """One journal line.

    Attributes:
        ts: Creation time in epoch seconds.
        level: Severity (``info``, ``ok``, ``warn``, ``error``).
        scope: Subsystem that produced the entry.
        message: Human-readable text.
        details: Optional structured context (error payloads, raw values).
    """

    ts: float
    level: ActivityLevel
    scope: ActivityScope
    message: str
    details: Any = None


class ActivityLog:
    """Thread-safe bounded FIFO of activity entries."""

    def __init__(self, limit: int = DEFAULT_LIMIT, *, clock: Callable[[], float] = time.time) -> None:
        if limit < 1:
            raise ValueError("ActivityLog limit must be at least 1")
        self.limit = int(limit)
        self._clock = clock
        self._entries: Deque[ActivityEntry] = deque(maxlen=self.limit)
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def add(
        self,
        level: ActivityLevel,
        scope: ActivityScope,
        message: str,
        details: Any = None,
    ) -> ActivityEntry:
        """Append one entry, evicting the oldest when the log is full."""
        if level not in LEVELS:
            raise ValueError(f"Unknown activity level: {level!r}")
        if scope not in SCOPES:
            raise ValueError(f"Unknown activity scope: {scope!r}")
        entry = ActivityEntry(
            ts=self._clock(),
            level=level,
            scope=scope,
            message=str(message),
            details=details,
        )
        with self._lock:
            self._entries.append(entry)
            snapshot = tuple(self._entries)
        if details is None:
            _mirror.log(_LOG_LEVELS[level], "[%s] %s", scope, entry.message)
        else:
            _mirror.log(_LOG_LEVELS[level], "[%s] %s (%r)", scope, entry.message, details)
        self._notify(snapshot)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self._notify(())

    def entries(self, scope_filter: ActivityFilter = "all") -> Tuple[ActivityEntry, ...]:
        """Return entries oldest-first, optionally restricted to one scope."""
        with self._lock:
            snapshot = tuple(self._entries)
        if scope_filter == "all":
            return snapshot
        return tuple(entry for entry in snapshot if entry.scope == scope_filter)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a view listener; returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, snapshot: Tuple[ActivityEntry, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _mirror.exception("Activity listener failed")

    @staticmethod
    def to_text(entries: Iterable[ActivityEntry]) -> str:
        """Render entries as plain text, one ``HH:MM:SS LEVEL SCOPE message`` line each."""
        lines = []
        for entry in entries:
            stamp = time.strftime("%H:%M:%S", time.localtime(entry.ts))
            level = entry.level.upper().ljust(5)
            scope = entry.scope.upper().ljust(7)
            lines.append(f"{stamp} {level} {scope} {entry.message}")
        return "\n".join(lines)


__all__ = [
    "ActivityEntry",
    "ActivityFilter",
    "ActivityLevel",
    "ActivityLog",
    "ActivityScope",
    "DEFAULT_LIMIT",
    "LEVELS",
    "SCOPES",
]
