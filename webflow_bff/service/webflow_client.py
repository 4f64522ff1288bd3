from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from ..domain.errors import UpstreamError
from ..logging_conf import get_logger

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_API_VERSION",
    "RATE_LIMIT_STATUS",
    "Sleep",
    "WebflowClient",
    "decode_payload",
    "retry_on_rate_limit",
]

logger = get_logger("service.webflow_client")

DEFAULT_BASE_URL = "https://api.webflow.com"
DEFAULT_API_VERSION = "2.0.0"
RATE_LIMIT_STATUS = 429

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[Any]]


def decode_payload(response: httpx.Response) -> Any:
    """Return the JSON body if there is one, else the text (or None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class WebflowClient:
    """Thin async wrapper over the Webflow REST API.

    - `/v2/...` calls carry the `Accept-Version` header; `/beta/...` calls don't.
    - Non-2xx answers raise `UpstreamError` with the status and decoded payload.
    - Transport failures raise `UpstreamError` without a status.

    Use as an async context manager so the underlying connection pool is closed.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_version = api_version
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "WebflowClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        headers: dict[str, str] = {}
        if path.startswith("/v2/"):
            headers["Accept-Version"] = self._api_version
        if json is not None:
            headers["Content-Type"] = "application/json"
        try:
            r = await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(
                "upstream.unreachable",
                extra={"event": "upstream_unreachable", "method": method, "path": path, "error": str(e)},
            )
            raise UpstreamError(f"Webflow request failed: {e}") from e

        if r.status_code >= 400:
            payload = decode_payload(r)
            logger.warning(
                "upstream.error",
                extra={
                    "event": "upstream_error",
                    "method": method,
                    "path": path,
                    "status_code": r.status_code,
                },
            )
            raise UpstreamError(
                f"Webflow API error ({r.status_code})",
                upstream_status=r.status_code,
                payload=payload,
            )
        return decode_payload(r)

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json if json is not None else {})

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json if json is not None else {})


async def retry_on_rate_limit(
    call: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
    label: str = "upstream",
) -> T:
    """Await `call()`, retrying while the upstream answers 429.

    On each 429 wait `delay` seconds, double it and try again, up to `retries`
    retries; after that (or on any other error) the error propagates.
    """
    delay = base_delay
    attempt = 0
    while True:
        try:
            return await call()
        except UpstreamError as e:
            if e.upstream_status != RATE_LIMIT_STATUS or attempt >= retries:
                raise
            attempt += 1
            logger.info(
                "upstream.rate_limited",
                extra={
                    "event": "rate_limited",
                    "label": label,
                    "attempt": attempt,
                    "delay_ms": int(delay * 1000),
                },
            )
            await sleep(delay)
            delay *= 2
