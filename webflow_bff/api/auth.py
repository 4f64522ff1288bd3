from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool

from ..service import auth_service, premium_service
from ..service.credentials import bearer_token, require_session, resolve_credential
from .deps import client_factory, get_settings, get_store, get_transport, read_body
from .models import (
    AuthenticateRequest,
    CredentialsRequest,
    PremiumToggleRequest,
    SaveTokenRequest,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ------------------------
# Session operations (also reachable as /api/webflow/auth/...)
# ------------------------

async def authenticate(request: Request) -> dict:
    body = await read_body(request, AuthenticateRequest)
    return await auth_service.authenticate(
        token=body.token,
        token_name=body.tokenName,
        settings=get_settings(request),
        store=get_store(request),
        client_factory=client_factory(request),
    )


async def register(request: Request) -> dict:
    body = await read_body(request, CredentialsRequest)
    # PBKDF2 is CPU bound; keep it off the event loop.
    return await run_in_threadpool(
        auth_service.register,
        username=body.username,
        password=body.password,
        settings=get_settings(request),
        store=get_store(request),
    )


async def login(request: Request) -> dict:
    body = await read_body(request, CredentialsRequest)
    return await run_in_threadpool(
        auth_service.login,
        username=body.username,
        password=body.password,
        settings=get_settings(request),
        store=get_store(request),
    )


async def profile(request: Request) -> dict:
    claims = require_session(request.headers, secret=get_settings(request).jwt_secret)
    return auth_service.profile(claims, get_store(request))


async def save_token(request: Request) -> dict:
    claims = require_session(request.headers, secret=get_settings(request).jwt_secret)
    body = await read_body(request, SaveTokenRequest)
    return await auth_service.save_token(
        claims,
        token=body.token,
        settings=get_settings(request),
        store=get_store(request),
        client_factory=client_factory(request),
    )


async def validate_token(request: Request) -> dict:
    credential = resolve_credential(
        request.headers, secret=get_settings(request).jwt_secret, store=get_store(request)
    )
    return await auth_service.validate_token(credential, client_factory=client_factory(request))


router.add_api_route("/authenticate", authenticate, methods=["POST"], summary="Exchange a Webflow token for a session")
router.add_api_route("/register", register, methods=["POST"], summary="Register a user")
router.add_api_route("/login", login, methods=["POST"], summary="Log a user in")
router.add_api_route("/profile", profile, methods=["GET"], summary="Current session profile")
router.add_api_route("/token", save_token, methods=["POST"], summary="Attach a Webflow token to the session")
router.add_api_route("/token/validate", validate_token, methods=["GET"], summary="Check the Webflow token")


# ------------------------
# Premium upgrade
# ------------------------

@router.post("/upgrade-premium", summary="Start a premium checkout")
async def create_checkout(request: Request) -> dict:
    return await premium_service.create_checkout(
        get_settings(request), bearer_token(request.headers), transport=get_transport(request)
    )


@router.get("/upgrade-premium", summary="Verify a premium checkout")
async def verify_payment(request: Request, session_id: str | None = None) -> dict:
    return await premium_service.verify_payment(
        get_settings(request), session_id, transport=get_transport(request)
    )


# ------------------------
# Admin
# ------------------------

@router.get("/admin/users", summary="List users with their premium flag (admin)")
async def admin_list_users(request: Request) -> dict:
    settings = get_settings(request)
    transport = get_transport(request)
    await premium_service.require_admin(settings, bearer_token(request.headers), transport=transport)
    return await premium_service.list_users(settings, transport=transport)


@router.patch("/admin/users/{user_id}/premium", summary="Toggle a user's premium flag (admin)")
async def admin_set_premium(user_id: str, request: Request) -> dict:
    settings = get_settings(request)
    transport = get_transport(request)
    await premium_service.require_admin(settings, bearer_token(request.headers), transport=transport)
    body = await read_body(request, PremiumToggleRequest)
    return await premium_service.set_premium(settings, user_id, body.premium, transport=transport)
