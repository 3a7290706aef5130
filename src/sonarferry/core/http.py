"""Async HTTP base client shared by the source and destination readers.

Wraps ``httpx.AsyncClient`` with token auth, server error mapping into
the typed error hierarchy, page/page-size pagination and (optionally)
rate-limit retries and POST throttling.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from sonarferry.config.constants import PAGE_SIZE
from sonarferry.core.errors import AuthenticationError, DestinationApiError, SourceApiError

log = structlog.get_logger(__name__)

ApiErrorType = type[SourceApiError] | type[DestinationApiError]

_RETRY_STATUSES = frozenset({429, 503})


def server_message(response: httpx.Response) -> str:
    """Extract the human message from a server error body."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        errors = data.get("errors") or []
        if errors and isinstance(errors[0], dict) and errors[0].get("msg"):
            return str(errors[0]["msg"])
        if data.get("message"):
            return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class ApiClient:
    """Base class for the two server clients. Use as an async context manager."""

    service_name = "server"
    error_type: ApiErrorType = SourceApiError

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 60.0,
        max_retries: int = 0,
        base_delay_sec: float = 1.0,
        min_request_interval_sec: float = 0.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._base_delay = base_delay_sec
        self._min_post_interval = min_request_interval_sec
        self._last_post = 0.0
        self._post_lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(token, ""),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _throttle_post(self) -> None:
        if self._min_post_interval <= 0:
            return
        async with self._post_lock:
            wait = self._min_post_interval - (time.monotonic() - self._last_post)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_post = time.monotonic()

    async def request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send one request, retrying 429/503 up to ``max_retries`` times."""
        attempt = 0
        while True:
            if method == "POST":
                await self._throttle_post()
            try:
                response = await self._client.request(method, endpoint, **kwargs)
            except httpx.RequestError as e:
                raise self.error_type.unreachable(self.base_url, endpoint, str(e) or type(e).__name__) from e

            if response.status_code in _RETRY_STATUSES and self._max_retries > 0:
                attempt += 1
                if attempt <= self._max_retries:
                    delay = self._base_delay * 2 ** (attempt - 1)
                    log.warning(
                        "rate_limited",
                        status=response.status_code,
                        endpoint=endpoint,
                        retry=attempt,
                        max_retries=self._max_retries,
                        delay_sec=delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                log.error("rate_limit_retries_exhausted", endpoint=endpoint, retries=self._max_retries)
                self._on_retries_exhausted(response, endpoint)

            self._raise_for_status(response, endpoint)
            return response

    def _on_retries_exhausted(self, response: httpx.Response, endpoint: str) -> None:
        self._raise_for_status(response, endpoint)

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        if response.is_success:
            return
        status = response.status_code
        message = server_message(response)
        if status in (401, 403):
            raise AuthenticationError.rejected(self.service_name, message)
        raise self.error_type.request_failed(status, endpoint, message)

    async def get_json(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self.request("GET", endpoint, params=params)
        log.debug("api_get", endpoint=endpoint, status=response.status_code)
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def get_text(self, endpoint: str, params: dict[str, Any] | None = None) -> str:
        response = await self.request("GET", endpoint, params=params)
        return response.text

    async def post(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = await self.request("POST", endpoint, params=params, **kwargs)
        log.debug("api_post", endpoint=endpoint, status=response.status_code)
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def get_paginated(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data_key: str = "components",
        page_size: int = PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """Collect every page of a ``p``/``ps`` paginated endpoint."""
        results: list[dict[str, Any]] = []
        page = 1
        while True:
            data = await self.get_json(endpoint, {**(params or {}), "p": page, "ps": page_size})
            items = data.get(data_key) or []
            results.extend(items)

            paging = data.get("paging") or {}
            total = paging.get("total", data.get("total", 0)) or 0
            if page * page_size >= total or len(items) < page_size:
                break
            page += 1

        log.debug("paginated_fetch", endpoint=endpoint, count=len(results))
        return results
