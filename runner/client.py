from __future__ import annotations

import asyncio
import time

import httpx

from runner.types import AuthError, ExportError, SitesError, SmokeError
from webflow_bff.domain.csv_export import CSV_HEADER
from webflow_bff.logging_conf import get_logger

logger = get_logger("runner.client")


def _client(
    base_url: str, *, timeout: float, transport: httpx.AsyncBaseTransport | None
) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)


async def wait_for_health(
    base_url: str,
    timeout_s: float = 20.0,
    *,
    poll_interval: float = 0.25,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Ping /api/health until it answers ok or raise after a timeout."""
    deadline = time.monotonic() + timeout_s
    async with _client(base_url, timeout=5.0, transport=transport) as client:
        while time.monotonic() < deadline:
            try:
                r = await client.get("/api/health")
                if r.status_code == 200 and r.json().get("status") == "ok":
                    logger.info("health.ok", extra={"event": "health_ok"})
                    return
            except (httpx.HTTPError, ValueError):
                pass
            await asyncio.sleep(poll_interval)
    raise SmokeError("Health check did not pass within timeout")


async def authenticate(
    base_url: str,
    webflow_token: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Exchange the Webflow token for a session token."""
    async with _client(base_url, timeout=timeout, transport=transport) as client:
        r = await client.post(
            "/api/auth/authenticate",
            json={"token": webflow_token, "tokenName": "smoke-runner"},
        )
    if r.status_code != 200:
        raise AuthError(f"authenticate returned {r.status_code}: {r.text[:200]}")
    token = r.json().get("token")
    if not token:
        raise AuthError("authenticate response carried no token")
    logger.info("auth.ok", extra={"event": "auth_ok"})
    return token


async def list_sites(
    base_url: str,
    session_token: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict]:
    async with _client(base_url, timeout=timeout, transport=transport) as client:
        r = await client.get(
            "/api/webflow/sites", headers={"Authorization": f"Bearer {session_token}"}
        )
    if r.status_code != 200:
        raise SitesError(f"list sites returned {r.status_code}: {r.text[:200]}")
    sites = r.json().get("sites") or []
    logger.info("sites.ok", extra={"event": "sites_ok", "count": len(sites)})
    return sites


async def export_csv(
    base_url: str,
    session_token: str,
    site_id: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    """Download the site's asset CSV and return its data row count."""
    async with _client(base_url, timeout=timeout, transport=transport) as client:
        r = await client.get(
            f"/api/webflow/sites/{site_id}/assets/csv",
            headers={"Authorization": f"Bearer {session_token}"},
        )
    if r.status_code != 200:
        raise ExportError(f"csv export returned {r.status_code}: {r.text[:200]}")
    if not r.headers.get("content-type", "").startswith("text/csv"):
        raise ExportError(f"unexpected content type {r.headers.get('content-type')!r}")
    lines = r.text.splitlines()
    if not lines or lines[0] != ",".join(CSV_HEADER):
        raise ExportError("csv header mismatch")
    rows = len(lines) - 1
    logger.info("csv.ok", extra={"event": "csv_ok", "site_id": site_id, "rows": rows})
    return rows
