from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel

from ..domain.errors import Unauthorized
from ..domain.tokens import SessionClaims, TokenError, decode_session_token
from ..logging_conf import get_logger

__all__ = [
    "CREDENTIAL_HEADER",
    "SessionRecord",
    "SessionStore",
    "InMemorySessionStore",
    "Credential",
    "bearer_token",
    "require_session",
    "resolve_credential",
]

logger = get_logger("service.credentials")

CREDENTIAL_HEADER = "X-Webflow-Token"


class SessionRecord(BaseModel):
    """What the proxy remembers about a caller between requests."""

    id: str
    webflow_token: str | None = None
    token_name: str | None = None
    username: str | None = None
    password_hash: str | None = None
    created_at: int = 0


class SessionStore(Protocol):
    def get(self, key: str) -> SessionRecord | None: ...

    def put(self, key: str, record: SessionRecord) -> None: ...


class InMemorySessionStore:
    """Process-local session store.

    Development placeholder: contents are lost on restart and are not shared
    between workers. Swap in a durable implementation of `SessionStore` for
    production deployments.
    """

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}

    def get(self, key: str) -> SessionRecord | None:
        return self._records.get(key)

    def put(self, key: str, record: SessionRecord) -> None:
        if not record.created_at:
            record = record.model_copy(update={"created_at": int(time.time() * 1000)})
        self._records[key] = record

    def __len__(self) -> int:
        return len(self._records)


@dataclass(frozen=True)
class Credential:
    """Upstream bearer token resolved for one request."""

    token: str
    source: str  # "header" | "session_claim" | "session_store"
    subject: str | None = None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    # Starlette headers are case-insensitive; plain dicts in tests may not be.
    val = headers.get(name)
    if val is None:
        val = headers.get(name.lower())
    return val.strip() if isinstance(val, str) and val.strip() else None


def bearer_token(headers: Mapping[str, str]) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, if any."""
    auth = _header(headers, "Authorization")
    if not auth:
        return None
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_session(headers: Mapping[str, str], *, secret: str) -> SessionClaims:
    """Decode the caller's session token or raise `Unauthorized`."""
    token = bearer_token(headers)
    if not token:
        raise Unauthorized("No authorization token provided")
    try:
        return decode_session_token(token, secret=secret)
    except TokenError as e:
        logger.info("session.rejected", extra={"event": "session_rejected", "reason": e.code})
        raise Unauthorized(str(e), extra={"reason": e.code}) from e


def resolve_credential(
    headers: Mapping[str, str], *, secret: str, store: SessionStore
) -> Credential:
    """Find the upstream credential for this request.

    Order: the `X-Webflow-Token` header; then a verified session token's
    embedded `webflowToken` claim; then the session store entry for its `sub`.
    Raises `Unauthorized` if none resolves.
    """
    direct = _header(headers, CREDENTIAL_HEADER)
    if direct:
        return Credential(token=direct, source="header")

    if not bearer_token(headers):
        raise Unauthorized("No Webflow token found")

    claims = require_session(headers, secret=secret)
    if claims.webflowToken:
        return Credential(token=claims.webflowToken, source="session_claim", subject=claims.sub)

    record = store.get(claims.sub)
    if record is not None and record.webflow_token:
        return Credential(token=record.webflow_token, source="session_store", subject=claims.sub)

    logger.info("credential.missing", extra={"event": "credential_missing", "subject": claims.sub})
    raise Unauthorized("No Webflow token found")
