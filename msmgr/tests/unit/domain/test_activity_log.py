from __future__ import annotations

import logging
import threading
import time
from typing import List, Tuple

import pytest

from msmgr.domain.activity import ActivityEntry, ActivityLog


def _clock_from(values: List[float]):
    it = iter(values)
    return lambda: next(it)


def test_log_never_exceeds_capacity_and_evicts_oldest_first() -> None:
    log = ActivityLog(limit=3)

    for idx in range(10):
        log.add("info", "ui", f"msg {idx}")

    assert len(log) == 3
    assert [e.message for e in log.entries()] == ["msg 7", "msg 8", "msg 9"]


def test_entries_keep_insertion_order_and_filter_by_scope() -> None:
    log = ActivityLog()
    log.add("info", "net", "a")
    log.add("warn", "device", "b")
    log.add("ok", "net", "c")

    assert [e.message for e in log.entries()] == ["a", "b", "c"]
    assert [e.message for e in log.entries("net")] == ["a", "c"]
    assert log.entries("fs") == ()
    assert [e.message for e in log.entries("device")] == ["b"]
    assert log.entries("flash") == ()


def test_entries_are_immutable() -> None:
    log = ActivityLog()
    entry = log.add("error", "ui", "boom", {"code": "x"})

    with pytest.raises(AttributeError):
        entry.message = "changed"  # type: ignore[misc]
    assert entry.details == {"code": "x"}


def test_unknown_level_or_scope_is_rejected() -> None:
    log = ActivityLog()

    with pytest.raises(ValueError):
        log.add("debug", "ui", "nope")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        log.add("info", "disk", "nope")  # type: ignore[arg-type]
    assert len(log) == 0


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ActivityLog(limit=0)


def test_clear_empties_log_and_notifies() -> None:
    log = ActivityLog()
    seen: List[Tuple[ActivityEntry, ...]] = []
    log.subscribe(seen.append)
    log.add("info", "ui", "one")

    log.clear()

    assert len(log) == 0
    assert seen[-1] == ()


def test_subscribers_get_snapshots_and_can_unsubscribe() -> None:
    log = ActivityLog(limit=2)
    seen: List[Tuple[ActivityEntry, ...]] = []
    unsubscribe = log.subscribe(seen.append)

    log.add("info", "ui", "one")
    log.add("info", "ui", "two")
    log.add("info", "ui", "three")
    unsubscribe()
    log.add("info", "ui", "four")

    assert [len(snapshot) for snapshot in seen] == [1, 2, 2]
    assert [e.message for e in seen[-1]] == ["two", "three"]


def test_failing_listener_does_not_break_append() -> None:
    log = ActivityLog()

    def _boom(_snapshot) -> None:
        raise RuntimeError("listener failure")

    log.subscribe(_boom)
    log.add("info", "ui", "still recorded")

    assert len(log) == 1


def test_concurrent_appends_are_safe() -> None:
    log = ActivityLog(limit=50)

    def _writer(tag: str) -> None:
        for idx in range(200):
            log.add("info", "net", f"{tag}-{idx}")

    threads = [threading.Thread(target=_writer, args=(f"t{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(log) == 50


def test_to_text_pads_level_and_scope() -> None:
    ts = time.mktime((2026, 1, 2, 3, 4, 5, 0, 0, -1))
    log = ActivityLog(clock=_clock_from([ts]))
    log.add("ok", "flash", "done")

    assert ActivityLog.to_text(log.entries()) == "03:04:05 OK    FLASH   done"


def test_appends_are_mirrored_to_logging(caplog: pytest.LogCaptureFixture) -> None:
    log = ActivityLog()

    with caplog.at_level(logging.INFO, logger="msmgr.activity"):
        log.add("warn", "net", "list tags failed")

    assert any(
        rec.levelno == logging.WARNING and "list tags failed" in rec.getMessage()
        for rec in caplog.records
    )
