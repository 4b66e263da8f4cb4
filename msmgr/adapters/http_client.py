"""Blocking ``requests`` transport shared by the backend command adapter.

Dependencies:
    - ``requests`` for network I/O.
    - ``msmgr.adapters.api_errors.ApiTimeoutError`` for typed transport failures.

Call context:
    - Constructed by ``msmgr/adapters/backend_rest.py``.
    - Blocking; the adapter runs every call through ``asyncio.to_thread``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from requests import exceptions as req_exc

from msmgr.adapters.api_errors import ApiTimeoutError

TOKEN_HEADER = "X-Manager-Token"

_log = logging.getLogger(__name__)


@dataclass
class HttpConfig:
    """Timeout and retry configuration for backend calls.

    Attributes:
        request_timeout_s: Timeout in seconds for queries and quick commands.
        action_timeout_s: Timeout in seconds for long-running actions
            (install, flash, relocate).
        retries: Extra attempts after a timeout or refused connection. Only
            applied to requests flagged as safe to repeat.
    """
    request_timeout_s: int = 10
    action_timeout_s: int = 600
    retries: int = 2


class RetryingSession:
    """``requests.Session`` holder adding the token header and retry policy.

    Callers build the URLs and map non-2xx responses themselves.
    """

    def __init__(self, token: Optional[str], cfg: HttpConfig) -> None:
        self.session = requests.Session()
        self.token = token
        self.cfg = cfg

    def headers(self, *, json_body: bool = False) -> Dict[str, str]:
        out = {"Accept": "application/json"}
        if self.token:
            out[TOKEN_HEADER] = self.token
        if json_body:
            out["Content-Type"] = "application/json"
        return out

    def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[int] = None,
    ) -> requests.Response:
        """GET ``url``; queries are always safe to repeat.

        Raises:
            ApiTimeoutError: When every attempt timed out or could not connect.
        """
        return self._send(
            "GET",
            url,
            lambda: self.session.get(
                url,
                params=params,
                headers=self.headers(),
                timeout=timeout or self.cfg.request_timeout_s,
            ),
            attempts=self.cfg.retries + 1,
        )

    def post(
        self,
        url: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        timeout: Optional[int] = None,
        retry: bool = True,
    ) -> requests.Response:
        """POST ``json_body`` as JSON text.

        Args:
            url: Absolute endpoint URL.
            json_body: Command arguments, or ``None`` for an empty body.
            timeout: Override of ``request_timeout_s``.
            retry: Repeat on transport failures. Must be ``False`` for commands
                that change device or disk state.

        Raises:
            ApiTimeoutError: When every attempt timed out or could not connect.
        """
        data = None if json_body is None else json.dumps(json_body)
        return self._send(
            "POST",
            url,
            lambda: self.session.post(
                url,
                data=data,
                headers=self.headers(json_body=json_body is not None),
                timeout=timeout or self.cfg.request_timeout_s,
            ),
            attempts=self.cfg.retries + 1 if retry else 1,
        )

    def close(self) -> None:
        self.session.close()

    @staticmethod
    def _send(
        method: str,
        url: str,
        call: Callable[[], requests.Response],
        *,
        attempts: int,
    ) -> requests.Response:
        context = f"{method} {url}"
        for attempt in range(1, attempts + 1):
            try:
                return call()
            except (req_exc.Timeout, req_exc.ConnectionError) as exc:
                _log.debug("%s failed (attempt %d/%d): %s", context, attempt, attempts, exc)
        raise ApiTimeoutError(f"Timeout contacting {url}", context=context)


__all__ = ["HttpConfig", "RetryingSession", "TOKEN_HEADER"]
