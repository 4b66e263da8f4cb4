"""Process-wide logging setup for the console dashboard."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional, Sequence

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"
LEVEL_ENV = "MSMGR_LOG_LEVEL"
DEBUG_ENV = "MSMGR_DEBUG"

# Transport libraries log every request/connection at INFO or DEBUG.
NOISY_LOGGERS: Sequence[str] = ("httpx", "httpcore", "urllib3")


def parse_level(value: Optional[str], fallback: int) -> int:
    """Turn ``"debug"``/``"WARNING"``/``"10"`` into a level; junk gives ``fallback``."""
    text = (value or "").strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    candidate = logging.getLevelName(text.upper())
    return candidate if isinstance(candidate, int) else fallback


def env_level(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Level forced by the environment, or ``None`` when nothing is set."""
    env = os.environ if environ is None else environ
    explicit = env.get(LEVEL_ENV)
    if explicit and explicit.strip():
        return parse_level(explicit, logging.INFO)
    if (env.get(DEBUG_ENV) or "").strip().lower() in {"1", "true", "yes", "on"}:
        return logging.DEBUG
    return None


def env_forces_debug(environ: Optional[Mapping[str, str]] = None) -> bool:
    level = env_level(environ)
    return level is not None and level <= logging.DEBUG


def configure_root(
    default_level: int | str = logging.INFO,
    *,
    quiet: Sequence[str] = NOISY_LOGGERS,
) -> int:
    """
    Configure the root logger once and return the effective level.

    ``MSMGR_LOG_LEVEL`` / ``MSMGR_DEBUG`` win over ``default_level``. Loggers
    named in ``quiet`` never go below WARNING unless the root itself does.
    """
    fallback = (
        parse_level(default_level, logging.INFO)
        if isinstance(default_level, str)
        else int(default_level)
    )
    effective = env_level()
    if effective is None:
        effective = fallback

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    root.setLevel(effective)
    for name in quiet:
        logging.getLogger(name).setLevel(max(effective, logging.WARNING))
    return effective


__all__ = [
    "DEBUG_ENV",
    "LEVEL_ENV",
    "NOISY_LOGGERS",
    "configure_root",
    "env_forces_debug",
    "env_level",
    "parse_level",
]
