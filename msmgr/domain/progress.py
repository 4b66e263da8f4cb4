"""Heuristic decoding of flash-tool output lines.

The loader tool prints free-form text, sometimes a JSON object per line. The
decoder runs an ordered chain of probes over the parsed object. Every probe is
total and answers with a :class:`Probe`:

* ``VALUE``: the shape is recognized and carries a value; the chain stops,
* ``NO_VALUE``: the shape is recognized but carries nothing usable; the chain
  stops and the caller falls back,
* ``UNMATCHED``: the next probe runs.

Percentages only count when strictly positive; ``0`` means "nothing
happened yet" and never reaches the display.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence

MAX_DISPLAY_CHARS = 80
ELLIPSIS = "…"
PERCENT_KEYS = ("percent", "percent_complete", "progress_percent", "pct")

WAITING_FOR_CONTROLLER = "Waiting for controller…"
FIRMWARE_LOADED = "Firmware loaded…"


class ProbeOutcome(Enum):
    VALUE = "value"
    NO_VALUE = "no_value"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class Probe:
    outcome: ProbeOutcome
    value: Any = None

    @property
    def matched(self) -> bool:
        return self.outcome is not ProbeOutcome.UNMATCHED

    @property
    def has_value(self) -> bool:
        return self.outcome is ProbeOutcome.VALUE


UNMATCHED = Probe(ProbeOutcome.UNMATCHED)
NO_VALUE = Probe(ProbeOutcome.NO_VALUE)


@dataclass(frozen=True)
class DecodedLine:
    """Display text plus an optional integer percentage in ``[1, 100]``."""

    text: str
    percent: Optional[int] = None


def parse_json_line(line: str) -> Optional[Any]:
    """Parse one line as JSON; ``None`` means "no structured data"."""
    try:
        return json.loads(line)
    except (TypeError, ValueError, RecursionError):
        return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _in_percent_range(value: Any) -> Optional[float]:
    number = _number(value)
    if number is None or number < 0 or number > 100:
        return None
    return number


# ---- percentage probes ---------------------------------------------------
def probe_block(obj: Mapping[str, Any]) -> Probe:
    """Block protocol ``{"event": "block", "i": <index>, "n": <total>}``."""
    if obj.get("event") != "block":
        return UNMATCHED
    index = _number(obj.get("i"))
    total = _number(obj.get("n"))
    if index is None or total is None or total <= 0:
        return UNMATCHED
    pct = (index + 1) / total * 100
    if not math.isfinite(pct):
        return UNMATCHED
    return Probe(ProbeOutcome.VALUE, pct)


def probe_percent_keys(obj: Mapping[str, Any]) -> Probe:
    for key in PERCENT_KEYS:
        value = _in_percent_range(obj.get(key))
        if value is not None:
            return Probe(ProbeOutcome.VALUE, value)
    return UNMATCHED


def probe_nested_progress(obj: Mapping[str, Any]) -> Probe:
    progress = obj.get("progress")
    if not isinstance(progress, Mapping):
        return UNMATCHED
    value = _in_percent_range(progress.get("percent"))
    if value is None:
        return UNMATCHED
    return Probe(ProbeOutcome.VALUE, value)


# ---- label probes ---------------------------------------------------------
def probe_semantic_event(obj: Mapping[str, Any]) -> Probe:
    event = obj.get("event")
    if not isinstance(event, str):
        return UNMATCHED
    if event == "discover_start":
        return Probe(ProbeOutcome.VALUE, WAITING_FOR_CONTROLLER)
    if event == "discover_done":
        if _number(obj.get("count")) == 0:
            return Probe(ProbeOutcome.VALUE, WAITING_FOR_CONTROLLER)
        return NO_VALUE
    if event == "hex_loaded":
        return Probe(ProbeOutcome.VALUE, FIRMWARE_LOADED)
    return UNMATCHED


PERCENT_PROBES: Sequence[Callable[[Mapping[str, Any]], Probe]] = (
    probe_block,
    probe_percent_keys,
    probe_nested_progress,
)
LABEL_PROBES: Sequence[Callable[[Mapping[str, Any]], Probe]] = (probe_semantic_event,)


def run_chain(obj: Any, probes: Sequence[Callable[[Mapping[str, Any]], Probe]]) -> Probe:
    """Return the first matching probe result, or ``UNMATCHED``."""
    if not isinstance(obj, Mapping):
        return UNMATCHED
    for probe in probes:
        result = probe(obj)
        if result.matched:
            return result
    return UNMATCHED


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def display_percent(raw: Optional[float]) -> Optional[int]:
    """Clamp a raw percentage to ``[1, 100]``; non-positive means "none yet"."""
    if raw is None or raw <= 0:
        return None
    return max(1, min(100, round_half_up(raw)))


def shorten(line: str, limit: int = MAX_DISPLAY_CHARS) -> str:
    if len(line) > limit:
        return f"{line[:limit]}{ELLIPSIS}"
    return line


def decode_line(line: str) -> DecodedLine:
    """Decode one raw output line into display text and optional percentage.

    Never raises; unparseable input degrades to the trimmed, length-capped line.
    """
    text = (line or "").strip()
    obj = parse_json_line(text)

    percent = display_percent(run_chain(obj, PERCENT_PROBES).value)
    if percent is not None:
        return DecodedLine(text=f"Flashing{ELLIPSIS} {percent}%", percent=percent)

    label = run_chain(obj, LABEL_PROBES)
    if label.has_value:
        return DecodedLine(text=label.value)

    return DecodedLine(text=shorten(text))


__all__ = [
    "DecodedLine",
    "ELLIPSIS",
    "MAX_DISPLAY_CHARS",
    "PERCENT_KEYS",
    "Probe",
    "ProbeOutcome",
    "decode_line",
    "display_percent",
    "parse_json_line",
    "round_half_up",
    "run_chain",
    "shorten",
]
