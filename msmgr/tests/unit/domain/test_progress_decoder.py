from __future__ import annotations

import json
import math

import pytest

from msmgr.domain.progress import (
    FIRMWARE_LOADED,
    MAX_DISPLAY_CHARS,
    WAITING_FOR_CONTROLLER,
    ProbeOutcome,
    decode_line,
    display_percent,
    probe_block,
    probe_semantic_event,
    round_half_up,
)


def _line(**fields) -> str:
    return json.dumps(fields)


@pytest.mark.parametrize("n", [1, 3, 7, 10, 64, 333])
def test_block_protocol_percentage_matches_formula(n: int) -> None:
    for i in range(n):
        decoded = decode_line(_line(event="block", i=i, n=n))
        raw = (i + 1) / n * 100
        expected = max(1, min(100, math.floor(raw + 0.5)))
        assert decoded.percent == expected
        assert decoded.text == f"Flashing… {expected}%"


def test_block_with_zero_total_is_not_a_percentage() -> None:
    decoded = decode_line(_line(event="block", i=0, n=0))

    assert decoded.percent is None
    assert decoded.text == '{"event": "block", "i": 0, "n": 0}'


@pytest.mark.parametrize("key", ["percent", "percent_complete", "progress_percent", "pct"])
def test_percent_keys_round_value(key: str) -> None:
    assert decode_line(_line(**{key: 42.4})).percent == 42
    assert decode_line(_line(**{key: 100})).percent == 100
    assert decode_line(_line(**{key: 0.2})).percent == 1


def test_percent_zero_yields_no_percentage() -> None:
    decoded = decode_line(_line(percent=0))

    assert decoded.percent is None


def test_first_valid_percent_key_wins() -> None:
    line = _line(percent=150, percent_complete=30, pct=80)

    assert decode_line(line).percent == 30


def test_nested_progress_percent() -> None:
    assert decode_line(_line(progress={"percent": 75})).percent == 75
    assert decode_line(_line(progress={"percent": 101})).percent is None
    assert decode_line(_line(progress="75%")).percent is None


def test_booleans_and_strings_are_not_numbers() -> None:
    assert decode_line(_line(percent=True)).percent is None
    assert decode_line(_line(percent="50")).percent is None
    assert decode_line(_line(event="block", i=True, n=2)).percent is None


def test_half_values_round_up() -> None:
    assert round_half_up(62.5) == 63
    assert round_half_up(0.5) == 1
    assert display_percent(62.5) == 63
    assert display_percent(0) is None
    assert display_percent(-3) is None
    assert display_percent(250) == 100


def test_semantic_events_map_to_labels() -> None:
    assert decode_line(_line(event="discover_start")).text == WAITING_FOR_CONTROLLER
    assert decode_line(_line(event="discover_done", count=0)).text == WAITING_FOR_CONTROLLER
    assert decode_line(_line(event="hex_loaded")).text == FIRMWARE_LOADED


def test_discover_done_with_targets_falls_back_to_raw_line() -> None:
    line = _line(event="discover_done", count=2)

    assert probe_semantic_event(json.loads(line)).outcome is ProbeOutcome.NO_VALUE
    assert decode_line(line).text == line


def test_block_probe_is_unmatched_for_other_events() -> None:
    assert probe_block({"event": "hex_loaded"}).outcome is ProbeOutcome.UNMATCHED
    assert probe_block({"event": "block", "i": 1, "n": 4}).value == 50.0


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "not json at all",
        "{broken",
        "[1, 2, 3]",
        "42",
        "null",
        '"a string"',
        "[" * 5000,
        "\x00\x01garbage",
        "NaN",
        '{"percent": Infinity}',
    ],
)
def test_unparseable_lines_never_raise(line: str) -> None:
    decoded = decode_line(line)

    assert isinstance(decoded.text, str)
    assert len(decoded.text) <= MAX_DISPLAY_CHARS + 1
    assert decoded.percent is None


def test_plain_text_is_trimmed_and_capped() -> None:
    assert decode_line("  Programming flash...  ").text == "Programming flash..."

    long_line = "x" * 120
    decoded = decode_line(long_line)

    assert decoded.text == "x" * MAX_DISPLAY_CHARS + "…"
