"""Translate adapter failures (or any raised value) into ``UseCaseError``."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from msmgr.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    ApiTimeoutError,
)
from msmgr.domain.ports import UseCaseError

UNKNOWN_CODE = "unknown"


def map_api_error(
    exc: Any,
    *,
    default_code: str = UNKNOWN_CODE,
    default_message: Optional[str] = None,
) -> UseCaseError:
    """Normalize a failure into ``code``/``message``/``details``.

    Structured backend errors keep their own code and details; plain strings
    and arbitrary values get ``default_code``. Never raises.

    Args:
        exc: Exception instance or any other value surfaced by a remote call.
        default_code: Code used when the failure carries none.
        default_message: Message used when the failure carries none.

    Returns:
        UseCaseError: Value returned to the caller.
    """
    try:
        return _map(exc, default_code, default_message)
    except Exception:
        return UseCaseError(default_code, _safe_repr(exc))


def _map(exc: Any, default_code: str, default_message: Optional[str]) -> UseCaseError:
    if isinstance(exc, UseCaseError):
        return exc
    if isinstance(exc, ApiTimeoutError):
        return UseCaseError(
            "transport_unavailable",
            "Backend not reachable. Is ms-manager running?",
            {"context": exc.context} if exc.context else None,
        )
    if isinstance(exc, ApiError):
        message = str(exc).strip()
        if isinstance(exc, ApiServerError) and not exc.code:
            return UseCaseError("backend_error", message or "Backend error, try again.", exc.details)
        if isinstance(exc, ApiClientError) and not exc.code:
            label = f"request_rejected_{exc.status}" if exc.status else "request_rejected"
            return UseCaseError(label, message or "Request rejected.", exc.details)
        return UseCaseError(exc.code or default_code, message or default_message or "", exc.details)
    if isinstance(exc, Mapping):
        code = exc.get("code")
        message = exc.get("message")
        if isinstance(code, str) and isinstance(message, str):
            return UseCaseError(code, message, exc.get("details"))
    if isinstance(exc, str):
        return UseCaseError(default_code, exc)
    if isinstance(exc, BaseException):
        text = str(exc).strip() or default_message or exc.__class__.__name__
        return UseCaseError(default_code, text)
    try:
        text = json.dumps(exc)
    except (TypeError, ValueError):
        text = _safe_repr(exc)
    return UseCaseError(default_code, text)


def _safe_repr(value: Any) -> str:
    try:
        return repr(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


__all__ = ["UNKNOWN_CODE", "map_api_error"]
