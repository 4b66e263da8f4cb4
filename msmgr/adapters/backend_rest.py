"""REST adapter implementing ``BackendPort``.

The manager backend exposes each command under ``/api/<command>``: queries are
``GET`` with query parameters, mutations are ``POST`` with a JSON body. Failed
commands answer with ``{"code", "message", "details"}``.

Dependencies:
    - ``RetryingSession``/``HttpConfig`` for shared HTTP policy.
    - ``api_errors`` helpers for status-to-error conversion.

Call context:
    - Built by ``msmgr/app/controller.py``; called by the use cases.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from msmgr.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    build_error_message,
    extract_error_code,
    extract_error_details,
    parse_error_payload,
)
from msmgr.adapters.http_client import HttpConfig, RetryingSession
from msmgr.domain.ports import BackendPort, Channel, Profile


class BackendRestAdapter(BackendPort):
    """HTTP transport for manager backend commands."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        request_timeout_s: int = 10,
        action_timeout_s: int = 600,
        retries: int = 2,
    ) -> None:
        """Create adapter for one backend base URL.

        Raises:
            ValueError: If ``base_url`` is empty.
        """
        if not (base_url or "").strip():
            raise ValueError("BackendRestAdapter requires a base URL")
        self.base_url = base_url.strip().rstrip("/")
        self.cfg = HttpConfig(
            request_timeout_s=request_timeout_s,
            action_timeout_s=action_timeout_s,
            retries=retries,
        )
        self.session = RetryingSession(token, self.cfg)
        self._log = logging.getLogger(__name__)

    # ---- queries --------------------------------------------------------
    async def status_get(self) -> Mapping[str, Any]:
        return await self._query("status_get")

    async def device_status_get(self) -> Mapping[str, Any]:
        return await self._query("device_status_get")

    async def bridge_status_get(self) -> Mapping[str, Any]:
        return await self._query("bridge_status_get")

    async def resolve_latest_manifest(self, channel: Channel) -> Mapping[str, Any]:
        return await self._query("resolve_latest_manifest", {"channel": channel})

    async def resolve_manifest_for_tag(self, channel: Channel, tag: str) -> Mapping[str, Any]:
        return await self._query("resolve_manifest_for_tag", {"channel": channel, "tag": tag})

    async def list_channel_tags(self, channel: Channel) -> List[str]:
        data = await self._query("list_channel_tags", {"channel": channel})
        if not isinstance(data, list):
            raise ApiError(f"list_channel_tags: expected a list, got {type(data).__name__}")
        return [str(tag) for tag in data]

    async def app_update_check(self) -> Mapping[str, Any]:
        return await self._query("app_update_check")

    # ---- mutations ------------------------------------------------------
    async def settings_set_channel(self, channel: Channel) -> Mapping[str, Any]:
        return await self._command("settings_set_channel", {"channel": channel})

    async def settings_set_profile(self, profile: Profile) -> Mapping[str, Any]:
        return await self._command("settings_set_profile", {"profile": profile})

    async def settings_set_pinned_tag(self, pinned_tag: Optional[str]) -> Mapping[str, Any]:
        return await self._command("settings_set_pinned_tag", {"pinned_tag": pinned_tag})

    async def install_selected(self) -> Mapping[str, Any]:
        return await self._command("install_selected", {}, long_running=True)

    async def flash_firmware(self, profile: Profile) -> Mapping[str, Any]:
        return await self._command("flash_firmware", {"profile": profile}, long_running=True)

    async def payload_root_relocate(self, new_root: str) -> Mapping[str, Any]:
        return await self._command(
            "payload_root_relocate", {"new_root": new_root}, long_running=True
        )

    async def app_update_open_latest(self) -> None:
        await self._command("app_update_open_latest", {}, long_running=True)

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    async def _query(self, command: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = self._make_url(command)
        resp = await asyncio.to_thread(self.session.get, url, params=params)
        self._ensure_ok(resp, command)
        return self._json_any(resp)

    async def _command(
        self, command: str, body: Dict[str, Any], *, long_running: bool = False
    ) -> Any:
        # Long-running actions touch the device or disk; never replay them.
        url = self._make_url(command)
        self._log.debug("POST %s %s", command, body)
        resp = await asyncio.to_thread(
            self.session.post,
            url,
            json_body=body,
            timeout=self.cfg.action_timeout_s if long_running else None,
            retry=not long_running,
        )
        self._ensure_ok(resp, command)
        return self._json_any(resp)

    def _make_url(self, command: str) -> str:
        return f"{self.base_url}/api/{command}"

    @staticmethod
    def _ensure_ok(resp: requests.Response, ctx: str) -> None:
        """Raise typed adapter errors for non-2xx responses.

        Raises:
            ApiClientError: For HTTP 4xx responses.
            ApiServerError: For HTTP 5xx responses.
            ApiError: For all other non-2xx responses.
        """
        if 200 <= resp.status_code < 300:
            return
        status = resp.status_code
        payload = parse_error_payload(resp)
        kwargs = dict(
            status=status,
            code=extract_error_code(payload),
            details=extract_error_details(payload),
            payload=payload,
            context=ctx,
        )
        message = build_error_message(ctx, status, payload)
        if 400 <= status < 500:
            raise ApiClientError(message, **kwargs)
        if 500 <= status < 600:
            raise ApiServerError(message, **kwargs)
        raise ApiError(message, **kwargs)

    @staticmethod
    def _json_any(resp: requests.Response) -> Any:
        """Parse JSON response payload; empty bodies decode to ``None``.

        Raises:
            ApiError: If the body is not valid JSON.
        """
        if not getattr(resp, "content", b""):
            return None
        try:
            return resp.json()
        except ValueError:
            snippet = getattr(resp, "text", "")[:400]
            raise ApiError(f"Invalid JSON response: {snippet}", code="invalid_response")


__all__ = ["BackendRestAdapter"]
