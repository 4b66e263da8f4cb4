from __future__ import annotations

import logging

import pytest

from msmgr.utils import logging as logging_utils


@pytest.mark.parametrize(
    ("value", "expected"),
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("15", 15), ("", logging.INFO), ("loud", logging.INFO)],
)
def test_parse_level(value, expected) -> None:
    assert logging_utils.parse_level(value, logging.INFO) == expected


def test_env_level_prefers_explicit_level_over_debug_flag() -> None:
    env = {"MSMGR_LOG_LEVEL": "error", "MSMGR_DEBUG": "1"}

    assert logging_utils.env_level(env) == logging.ERROR
    assert logging_utils.env_level({"MSMGR_DEBUG": "yes"}) == logging.DEBUG
    assert logging_utils.env_level({}) is None
    assert logging_utils.env_forces_debug({"MSMGR_DEBUG": "on"}) is True
    assert logging_utils.env_forces_debug({"MSMGR_LOG_LEVEL": "info"}) is False


def test_configure_root_applies_env_and_quiets_transports(monkeypatch) -> None:
    root = logging.getLogger()
    saved_level = root.level
    saved_httpx = logging.getLogger("httpx").level
    monkeypatch.setenv("MSMGR_LOG_LEVEL", "debug")
    try:
        effective = logging_utils.configure_root(logging.WARNING)

        assert effective == logging.DEBUG
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.setLevel(saved_level)
        logging.getLogger("httpx").setLevel(saved_httpx)
