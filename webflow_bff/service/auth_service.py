from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from uuid import uuid4

from ..config import Settings
from ..domain.errors import BadRequest, Conflict, Unauthorized, UpstreamError
from ..domain.tokens import SessionClaims, issue_session_token
from ..logging_conf import get_logger
from .credentials import Credential, SessionRecord, SessionStore
from .webflow_client import WebflowClient
from .webflow_service import count_sites

logger = get_logger("service.auth")

ClientFactory = Callable[[str], WebflowClient]

MIN_SAVED_TOKEN_LENGTH = 30
_PBKDF2_ROUNDS = 200_000


def hash_password(password: str, *, salt: bytes | None = None) -> str:
    """Salted PBKDF2-SHA256, stored as `rounds$salt$digest` (hex)."""
    salt = salt if salt is not None else secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)
    return f"{_PBKDF2_ROUNDS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        rounds_s, salt_hex, digest_hex = stored.split("$")
        rounds = int(rounds_s)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(digest.hex(), digest_hex)


def _user_key(username: str) -> str:
    return f"user:{username.strip().lower()}"


def _session_response(token: str, message: str, **extra: object) -> dict:
    return {"success": True, "token": token, "message": message, **extra}


async def _check_upstream_token(token: str, client_factory: ClientFactory) -> int:
    async with client_factory(token) as client:
        return await count_sites(client)


# ------------------------
# Use-cases
# ------------------------

async def authenticate(
    *,
    token: str | None,
    token_name: str | None,
    settings: Settings,
    store: SessionStore,
    client_factory: ClientFactory,
) -> dict:
    """Exchange a Webflow API token for a session token.

    The Webflow token is checked against `/v2/sites` and kept in the session
    store; it is copied into the session token only when the deployment sets
    `embed_upstream_token`.
    """
    if not token or not isinstance(token, str):
        raise BadRequest("Token is required")

    try:
        site_count = await _check_upstream_token(token, client_factory)
    except UpstreamError as e:
        if e.upstream_status == 401:
            raise BadRequest("Invalid Webflow token. Authentication failed.") from e
        raise BadRequest(
            "Invalid Webflow token or insufficient permission scopes. "
            "Please ensure your token has the sites:read scope.",
            extra={"error": e.upstream_message},
        ) from e

    name = token_name or "Unnamed Token"
    session_id = uuid4().hex
    store.put(session_id, SessionRecord(id=session_id, webflow_token=token, token_name=name))
    session_token = issue_session_token(
        secret=settings.jwt_secret,
        subject=session_id,
        ttl_seconds=settings.session_ttl_seconds,
        name=name,
        webflow_token=token if settings.embed_upstream_token else None,
    )
    logger.info(
        "auth.authenticated",
        extra={"event": "authenticated", "session_id": session_id, "site_count": site_count},
    )
    return _session_response(
        session_token,
        "Authenticated successfully",
        user={"id": session_id, "tokenName": name},
    )


def register(
    *, username: str | None, password: str | None, settings: Settings, store: SessionStore
) -> dict:
    if not username or not password:
        raise BadRequest("Username and password are required")
    key = _user_key(username)
    if store.get(key) is not None:
        raise Conflict("Username is already registered")

    user_id = uuid4().hex
    record = SessionRecord(id=user_id, username=username, password_hash=hash_password(password))
    store.put(key, record)
    store.put(user_id, record)
    token = issue_session_token(
        secret=settings.jwt_secret,
        subject=user_id,
        ttl_seconds=settings.session_ttl_seconds,
        username=username,
    )
    logger.info("auth.registered", extra={"event": "registered", "user_id": user_id})
    return _session_response(token, "User registered successfully")


def login(
    *, username: str | None, password: str | None, settings: Settings, store: SessionStore
) -> dict:
    if not username or not password:
        raise BadRequest("Username and password are required")
    record = store.get(_user_key(username))
    if record is None or not record.password_hash or not verify_password(password, record.password_hash):
        logger.info("auth.login_failed", extra={"event": "login_failed"})
        raise Unauthorized("Invalid username or password")

    # The id-keyed entry may have gained a Webflow token since registration.
    current = store.get(record.id) or record
    token = issue_session_token(
        secret=settings.jwt_secret,
        subject=record.id,
        ttl_seconds=settings.session_ttl_seconds,
        username=record.username,
        webflow_token=current.webflow_token if settings.embed_upstream_token else None,
    )
    logger.info("auth.login", extra={"event": "login", "user_id": record.id})
    return _session_response(token, "Login successful")


def profile(claims: SessionClaims, store: SessionStore) -> dict:
    record = store.get(claims.sub)
    return {
        "id": claims.sub,
        "username": claims.username or (record.username if record else None),
        "name": claims.name or (record.token_name if record else None),
        "tokenName": record.token_name if record else claims.name,
        "authenticated": claims.authenticated,
        "hasWebflowToken": bool(claims.webflowToken or (record and record.webflow_token)),
    }


async def save_token(
    claims: SessionClaims,
    *,
    token: str | None,
    settings: Settings,
    store: SessionStore,
    client_factory: ClientFactory,
) -> dict:
    """Attach a Webflow token to the caller's session after checking it upstream.

    When the deployment embeds the upstream token in session tokens, the
    caller's current token carries the old (or no) credential, so a fresh
    session token carrying the new one is returned as `token`.
    """
    if not token:
        raise BadRequest("Token is required")
    if len(token) < MIN_SAVED_TOKEN_LENGTH:
        raise BadRequest(
            "Invalid token format. Webflow API tokens are longer than 30 characters."
        )
    try:
        site_count = await _check_upstream_token(token, client_factory)
    except UpstreamError as e:
        raise BadRequest(
            "Invalid Webflow token. The API returned an error.",
            extra={"error": e.upstream_message},
        ) from e

    record = store.get(claims.sub) or SessionRecord(id=claims.sub, username=claims.username)
    store.put(claims.sub, record.model_copy(update={"webflow_token": token}))
    logger.info("auth.token_saved", extra={"event": "token_saved", "subject": claims.sub})
    out: dict = {"message": "Webflow token saved successfully", "siteCount": site_count}
    if settings.embed_upstream_token:
        out["token"] = issue_session_token(
            secret=settings.jwt_secret,
            subject=claims.sub,
            ttl_seconds=settings.session_ttl_seconds,
            username=claims.username,
            name=claims.name,
            webflow_token=token,
        )
    return out


async def validate_token(credential: Credential, *, client_factory: ClientFactory) -> dict:
    try:
        site_count = await _check_upstream_token(credential.token, client_factory)
    except UpstreamError as e:
        raise BadRequest(
            e.upstream_message if e.upstream_status else "Invalid Webflow token",
            extra={"valid": False, "error": e.upstream_status or e.message},
        ) from e
    return {"valid": True, "message": "Webflow token is valid", "siteCount": site_count}
