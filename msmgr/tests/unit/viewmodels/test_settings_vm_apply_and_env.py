from __future__ import annotations

import pytest

from msmgr.viewmodels.settings_vm import ClientConfig, SettingsVM


def test_defaults_match_client_config() -> None:
    vm = SettingsVM()

    assert vm.config == ClientConfig()
    assert vm.base_url == "http://127.0.0.1:7878"
    assert vm.config.device_poll_interval_ms == 4000
    assert vm.config.bridge_poll_interval_ms == 2000
    assert vm.config.activity_limit == 500


def test_apply_dict_coerces_values() -> None:
    vm = SettingsVM()

    vm.apply_dict(
        {
            "base_url": "https://manager.local:9000/",
            "request_timeout_s": "12",
            "retries": 0,
            "default_channel": "BETA",
            "token": "  s3cret ",
            "debug_logging": "yes",
        }
    )

    assert vm.base_url == "https://manager.local:9000"
    assert vm.config.request_timeout_s == 12
    assert vm.config.retries == 0
    assert vm.config.default_channel == "beta"
    assert vm.token == "s3cret"
    assert vm.debug_logging is True


@pytest.mark.parametrize(
    "payload",
    [
        {"unknown_key": 1},
        {"base_url": "ftp://nope"},
        {"device_poll_interval_ms": 0},
        {"activity_limit": "many"},
        {"retries": -1},
        {"request_timeout_s": True},
        {"default_channel": "canary"},
        {"default_profile": "  "},
    ],
)
def test_apply_dict_rejects_invalid_values(payload) -> None:
    vm = SettingsVM()

    with pytest.raises(ValueError):
        vm.apply_dict(payload)
    assert vm.config == ClientConfig()


def test_apply_dict_requires_mapping() -> None:
    with pytest.raises(ValueError):
        SettingsVM().apply_dict(["base_url"])  # type: ignore[arg-type]


def test_env_overrides_persisted_values() -> None:
    vm = SettingsVM()
    vm.apply_dict({"base_url": "http://from-file:1", "token": "file"})

    vm.apply_env({"MSMGR_BASE_URL": "http://from-env:2", "MSMGR_TOKEN": "env"})

    assert vm.base_url == "http://from-env:2"
    assert vm.token == "env"


def test_blank_env_values_are_ignored() -> None:
    vm = SettingsVM()

    vm.apply_env({"MSMGR_BASE_URL": "  ", "MSMGR_TOKEN": ""})

    assert vm.base_url == "http://127.0.0.1:7878"
    assert vm.token == ""


def test_to_dict_round_trips() -> None:
    vm = SettingsVM()
    vm.apply_dict({"bridge_poll_interval_ms": 1500, "token": "t"})

    clone = SettingsVM()
    clone.apply_dict(vm.to_dict())

    assert clone.to_dict() == vm.to_dict()
