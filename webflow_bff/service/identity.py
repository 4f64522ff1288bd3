"""Supabase Auth, spoken over its REST API.

Only the calls the premium flow needs: resolve a user from their access
token, and the service-role admin calls to list users and update metadata.
"""
from __future__ import annotations

from typing import Any

import httpx

from ..domain.errors import InternalError, UpstreamError
from ..logging_conf import get_logger
from .webflow_client import decode_payload

logger = get_logger("service.identity")


class IdentityClient:
    def __init__(
        self,
        base_url: str | None,
        *,
        anon_key: str | None = None,
        service_role_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise InternalError("Identity provider is not configured (SUPABASE_URL)")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/auth/v1", timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "IdentityClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._http.aclose()

    def _admin_headers(self) -> dict[str, str]:
        if not self._service_role_key:
            raise InternalError("Identity provider admin key is not configured")
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _call(self, method: str, path: str, *, headers: dict[str, str], json: Any = None) -> Any:
        try:
            r = await self._http.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Identity provider unreachable: {e}") from e
        if r.status_code >= 400:
            logger.warning(
                "identity.error",
                extra={"event": "identity_error", "path": path, "status_code": r.status_code},
            )
            raise UpstreamError(
                "Identity provider error", upstream_status=r.status_code, payload=decode_payload(r)
            )
        return decode_payload(r) or {}

    async def get_user(self, access_token: str) -> dict:
        """The user owning `access_token`; 401/403 upstream means the token is bad."""
        headers = {"Authorization": f"Bearer {access_token}"}
        if self._anon_key:
            headers["apikey"] = self._anon_key
        return await self._call("GET", "/user", headers=headers)

    async def list_users(self) -> list[dict]:
        data = await self._call("GET", "/admin/users", headers=self._admin_headers())
        if isinstance(data, dict):
            return data.get("users") or []
        return data if isinstance(data, list) else []

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> dict:
        return await self._call(
            "PUT",
            f"/admin/users/{user_id}",
            headers=self._admin_headers(),
            json={"user_metadata": metadata},
        )
