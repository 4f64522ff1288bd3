from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from ..config import Settings
from ..domain.errors import BadRequest, Forbidden, InternalError, Unauthorized, UpstreamError
from ..logging_conf import get_logger
from .identity import IdentityClient
from .payments import PaymentsClient

logger = get_logger("service.premium")

def _identity(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> IdentityClient:
    return IdentityClient(
        settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
        transport=transport,
    )


def _payments(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> PaymentsClient:
    return PaymentsClient(
        settings.stripe_secret_key, base_url=settings.stripe_api_base, transport=transport
    )


def is_premium(user: Mapping[str, Any]) -> bool:
    return (user.get("user_metadata") or {}).get("premium") is True


# ------------------------
# Admin
# ------------------------

async def current_user(
    settings: Settings,
    access_token: str | None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Resolve an identity-provider access token to its user or raise `Unauthorized`."""
    if not access_token:
        raise Unauthorized("Missing or invalid authorization header")
    async with _identity(settings, transport) as identity:
        try:
            user = await identity.get_user(access_token)
        except UpstreamError as e:
            if e.upstream_status in (401, 403, 404):
                raise Unauthorized("Invalid or expired token") from e
            raise
    if not user.get("id"):
        raise Unauthorized("Invalid or expired token")
    return user


async def require_admin(
    settings: Settings,
    access_token: str | None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Return the caller's user record if they are the configured admin.

    The caller is identified by a verified identity-provider token; its email
    must equal ADMIN_EMAIL. No token (or a bad one) is 401, anyone else 403.
    """
    user = await current_user(settings, access_token, transport=transport)
    email = user.get("email")
    if (
        not settings.admin_email
        or not isinstance(email, str)
        or email.strip().lower() != settings.admin_email.strip().lower()
    ):
        logger.info("admin.denied", extra={"event": "admin_denied", "user_id": user.get("id")})
        raise Forbidden("Forbidden")
    return user

async def list_users(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> dict:
    async with _identity(settings, transport) as identity:
        users = await identity.list_users()
    return {
        "users": [{"id": u.get("id"), "email": u.get("email"), "premium": is_premium(u)} for u in users]
    }


async def set_premium(
    settings: Settings,
    user_id: str,
    premium: Any,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    if not isinstance(premium, bool):
        raise BadRequest("premium must be boolean")
    async with _identity(settings, transport) as identity:
        data = await identity.update_user_metadata(user_id, {"premium": premium})
    user = data.get("user") or data
    logger.info("admin.premium_set", extra={"event": "premium_set", "user_id": user_id, "premium": premium})
    return {"id": user.get("id"), "email": user.get("email"), "premium": is_premium(user)}


# ------------------------
# Checkout
# ------------------------

def checkout_params(settings: Settings, *, customer_id: str, user_id: str) -> dict[str, Any]:
    base = settings.client_url.rstrip("/")
    return {
        "customer": customer_id,
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": "Premium Upgrade",
                        "description": (
                            "Unlock all premium features including CMS management, "
                            "page publishing, and priority support"
                        ),
                    },
                    "unit_amount": settings.premium_price_cents,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "success_url": f"{base}/dashboard?session_id={{CHECKOUT_SESSION_ID}}&upgrade=success",
        "cancel_url": f"{base}/dashboard?upgrade=cancelled",
        "metadata": {"user_id": user_id, "type": "premium_upgrade"},
    }


async def create_checkout(
    settings: Settings,
    access_token: str | None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Start a one-off premium purchase for the user behind `access_token`."""
    user = await current_user(settings, access_token, transport=transport)
    if is_premium(user):
        raise BadRequest("User is already premium")

    email = user.get("email")
    if not email:
        raise BadRequest("User has no email address")

    async with _payments(settings, transport) as payments:
        try:
            customer = await payments.find_customer(email)
            if customer is None:
                customer = await payments.create_customer(email, metadata={"user_id": user["id"]})
            session = await payments.create_checkout_session(
                checkout_params(settings, customer_id=customer["id"], user_id=user["id"])
            )
        except UpstreamError as e:
            raise InternalError(
                "Failed to create checkout session", extra={"details": e.upstream_message}
            ) from e

    logger.info("premium.checkout", extra={"event": "checkout_created", "user_id": user["id"]})
    return {"success": True, "checkout_url": session.get("url"), "session_id": session.get("id")}


async def verify_payment(
    settings: Settings,
    session_id: str | None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Mark the buyer premium once their checkout session is paid."""
    if not session_id:
        raise BadRequest("Missing session_id parameter")

    async with _payments(settings, transport) as payments:
        try:
            session = await payments.retrieve_checkout_session(session_id)
        except UpstreamError as e:
            raise InternalError(
                "Failed to verify payment", extra={"details": e.upstream_message}
            ) from e

    status = session.get("payment_status")
    user_id = (session.get("metadata") or {}).get("user_id")
    if status != "paid" or not user_id:
        return {
            "success": False,
            "payment_status": status,
            "message": "Payment not completed yet" if status == "unpaid" else "Payment failed",
        }

    metadata = {
        "premium": True,
        "premium_since": datetime.now(UTC).isoformat(),
        "stripe_customer_id": session.get("customer"),
        "stripe_session_id": session.get("id"),
        "subscription_id": f"stripe_{session.get('id')}",
    }
    async with _identity(settings, transport) as identity:
        try:
            data = await identity.update_user_metadata(user_id, metadata)
        except UpstreamError as e:
            raise InternalError("Failed to upgrade account") from e
    user = data.get("user") or data
    logger.info("premium.upgraded", extra={"event": "premium_upgraded", "user_id": user_id})
    return {
        "success": True,
        "message": "Successfully upgraded to premium!",
        "payment_status": status,
        "user": {"id": user.get("id"), "email": user.get("email"), "premium": True},
    }
