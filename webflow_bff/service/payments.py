"""Stripe, spoken over its REST API (form-encoded requests, basic auth)."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from ..domain.errors import InternalError, UpstreamError
from ..logging_conf import get_logger
from .webflow_client import decode_payload

logger = get_logger("service.payments")


def flatten_form(data: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Encode nested dicts/lists the way Stripe expects: `a[b][0][c]=v`."""
    out: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            out.extend(flatten_form(value, name))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                if isinstance(item, Mapping):
                    out.extend(flatten_form(item, f"{name}[{i}]"))
                else:
                    out.append((f"{name}[{i}]", str(item)))
        elif isinstance(value, bool):
            out.append((name, "true" if value else "false"))
        else:
            out.append((name, str(value)))
    return out


class PaymentsClient:
    def __init__(
        self,
        secret_key: str | None,
        *,
        base_url: str = "https://api.stripe.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not secret_key:
            raise InternalError("Payments provider is not configured (STRIPE_SECRET_KEY)")
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/v1",
            auth=(secret_key, ""),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "PaymentsClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._http.aclose()

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        form: Mapping[str, Any] | None = None,
    ) -> dict:
        try:
            r = await self._http.request(
                method,
                path,
                params=dict(params) if params else None,
                data=dict(flatten_form(form)) if form else None,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Payments provider unreachable: {e}") from e
        if r.status_code >= 400:
            logger.warning(
                "payments.error",
                extra={"event": "payments_error", "path": path, "status_code": r.status_code},
            )
            raise UpstreamError(
                "Payments provider error", upstream_status=r.status_code, payload=decode_payload(r)
            )
        data = decode_payload(r)
        return data if isinstance(data, dict) else {}

    async def find_customer(self, email: str) -> dict | None:
        data = await self._call("GET", "/customers", params={"email": email, "limit": 1})
        found = data.get("data") or []
        return found[0] if found else None

    async def create_customer(self, email: str, *, metadata: Mapping[str, str]) -> dict:
        return await self._call("POST", "/customers", form={"email": email, "metadata": metadata})

    async def create_checkout_session(self, params: Mapping[str, Any]) -> dict:
        return await self._call("POST", "/checkout/sessions", form=params)

    async def retrieve_checkout_session(self, session_id: str) -> dict:
        return await self._call("GET", f"/checkout/sessions/{session_id}")
