"""Typed transport failures raised by the backend command adapter.

The backend answers failed commands with ``{"code", "message", "details"}``;
these helpers pull that shape out of whatever body actually arrived.
"""

from __future__ import annotations

from typing import Any, Optional


class ApiError(RuntimeError):
    """Base class for backend command failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details
        self.payload = payload
        self.context = context


class ApiClientError(ApiError):
    """Command rejected by the backend (HTTP 4xx)."""


class ApiServerError(ApiError):
    """Command failed inside the backend (HTTP 5xx)."""


class ApiTimeoutError(ApiError):
    """Transport level timeout or connectivity failure."""

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        super().__init__(message, code="transport_unavailable", context=context)


def parse_error_payload(resp: Any) -> Any:
    """Best-effort extraction of an error body without raising."""
    try:
        return resp.json()
    except Exception:
        snippet = getattr(resp, "text", "")
        if not snippet:
            return None
        return snippet[:400]


def extract_error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("code", "error_code", "error"):
            value = payload.get(key)
            if value is None or isinstance(value, (dict, list)):
                continue
            return str(value)
    return None


def extract_error_message(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        text = payload.strip()
        return text or None
    if isinstance(payload, dict):
        for key in ("message", "detail", "error", "title"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, (dict, list)):
                candidate = extract_error_message(value)
                if candidate:
                    return candidate
    if isinstance(payload, list):
        for item in payload:
            candidate = extract_error_message(item)
            if candidate:
                return candidate
    return None


def extract_error_details(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("details")
    return None


def build_error_message(ctx: str, status: int, payload: Any) -> str:
    detail = extract_error_message(payload)
    if detail:
        return detail
    return f"{ctx}: HTTP {status}"


__all__ = [
    "ApiClientError",
    "ApiError",
    "ApiServerError",
    "ApiTimeoutError",
    "build_error_message",
    "extract_error_code",
    "extract_error_details",
    "extract_error_message",
    "parse_error_payload",
]
