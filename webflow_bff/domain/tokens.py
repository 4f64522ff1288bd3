from __future__ import annotations

import time
from typing import Any

import jwt
from pydantic import BaseModel, ValidationError

__all__ = [
    "SESSION_ALGORITHM",
    "SessionClaims",
    "TokenError",
    "MalformedTokenError",
    "ExpiredTokenError",
    "issue_session_token",
    "decode_session_token",
]

SESSION_ALGORITHM = "HS256"


# ------------------------
# Errors
# ------------------------
class TokenError(ValueError):
    """Base class for session-token errors.

    The `code` attribute lets the API map errors to stable machine codes.
    """

    code: str = "invalid_token"


class MalformedTokenError(TokenError):
    code = "malformed_token"


class ExpiredTokenError(TokenError):
    code = "expired_token"


# ------------------------
# Schema
# ------------------------
class SessionClaims(BaseModel):
    """Claims carried by a locally issued session token.

    `webflowToken` is only present when the deployment opts into embedding the
    upstream credential in the token (stateless serverless setups).
    """

    sub: str
    iat: int
    exp: int
    username: str | None = None
    name: str | None = None
    authenticated: bool = True
    webflowToken: str | None = None


# ------------------------
# Public encode/decode
# ------------------------

def issue_session_token(
    *,
    secret: str,
    subject: str,
    ttl_seconds: int,
    username: str | None = None,
    name: str | None = None,
    webflow_token: str | None = None,
    now: int | None = None,
) -> str:
    """Sign a session token for `subject` that expires after `ttl_seconds`."""
    if not secret:
        raise ValueError("a signing secret is required")
    issued = int(time.time()) if now is None else now
    claims: dict[str, Any] = {
        "sub": subject,
        "iat": issued,
        "exp": issued + ttl_seconds,
        "authenticated": True,
    }
    if username:
        claims["username"] = username
    if name:
        claims["name"] = name
    if webflow_token:
        claims["webflowToken"] = webflow_token
    return jwt.encode(claims, secret, algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str, *, secret: str) -> SessionClaims:
    """Verify signature and expiry and return the claims.

    Raises a specific `TokenError` subclass if verification fails.
    """
    if not token:
        raise MalformedTokenError("Token is empty")
    try:
        data = jwt.decode(
            token,
            secret,
            algorithms=[SESSION_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise MalformedTokenError(f"Invalid token: {e}") from e

    try:
        return SessionClaims(**data)
    except ValidationError as e:
        raise MalformedTokenError(f"Token claims invalid: {e}") from e
