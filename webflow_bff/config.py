"""Service configuration.

Settings come from the process environment; a `.env` file in the working
directory is loaded first for local development (python-dotenv). `JWT_SECRET`
is mandatory: there is no fallback signing secret, and `Settings.from_env()`
raises `ConfigError` when it is missing so the service refuses to start.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

__all__ = ["ConfigError", "Settings", "load_env_file"]

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


def load_env_file(path: str | os.PathLike[str] | None = None) -> None:
    """Load a .env file into the environment without overriding real variables."""
    env_path = Path(path) if path else Path(".") / ".env"
    load_dotenv(dotenv_path=env_path, override=False)


class Settings(BaseModel):
    # Session tokens
    jwt_secret: str = Field(..., min_length=1)
    session_ttl_seconds: int = Field(24 * 60 * 60, gt=0)
    embed_upstream_token: bool = False

    # Webflow
    webflow_api_base: str = "https://api.webflow.com"
    webflow_api_version: str = "2.0.0"
    upstream_timeout: float = Field(30.0, gt=0)
    publish_retry_base_delay: float = Field(1.0, ge=0)
    publish_max_retries: int = Field(3, ge=0)

    # Identity / payments
    admin_email: str | None = None
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_role_key: str | None = None
    stripe_secret_key: str | None = None
    stripe_api_base: str = "https://api.stripe.com"
    client_url: str = "http://localhost:5173"
    premium_price_cents: int = Field(1900, gt=0)

    # Service
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, *, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigError: if JWT_SECRET is missing or a value fails validation.
        """
        if environ is None:
            if dotenv:
                load_env_file()
            environ = os.environ

        secret = (environ.get("JWT_SECRET") or "").strip()
        if not secret:
            raise ConfigError(
                "JWT_SECRET is not set. Session tokens cannot be signed without it; "
                "set it in the environment or in .env."
            )

        raw: dict[str, Any] = {"jwt_secret": secret}
        mapping = {
            "SESSION_TTL_SECONDS": "session_ttl_seconds",
            "WEBFLOW_API_BASE": "webflow_api_base",
            "WEBFLOW_API_VERSION": "webflow_api_version",
            "UPSTREAM_TIMEOUT": "upstream_timeout",
            "PUBLISH_RETRY_BASE_DELAY": "publish_retry_base_delay",
            "PUBLISH_MAX_RETRIES": "publish_max_retries",
            "ADMIN_EMAIL": "admin_email",
            "SUPABASE_URL": "supabase_url",
            "SUPABASE_ANON_KEY": "supabase_anon_key",
            "SUPABASE_SERVICE_ROLE_KEY": "supabase_service_role_key",
            "STRIPE_SECRET_KEY": "stripe_secret_key",
            "STRIPE_API_BASE": "stripe_api_base",
            "CLIENT_URL": "client_url",
            "PREMIUM_PRICE_CENTS": "premium_price_cents",
            "APP_VERSION": "app_version",
            "LOG_LEVEL": "log_level",
        }
        for env_key, field in mapping.items():
            val = environ.get(env_key)
            if val is not None and val.strip() != "":
                raw[field] = val.strip()
        embed = environ.get("SESSION_EMBED_UPSTREAM_TOKEN")
        if embed is not None:
            raw["embed_upstream_token"] = embed.strip().lower() in _TRUTHY

        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigError(f"Configuration validation failed:\n{e}") from e

    def masked(self) -> dict[str, Any]:
        """Configuration snapshot safe to expose on the debug endpoint."""

        def mask(value: str | None) -> str | None:
            if not value:
                return None
            return "***" + value[-6:] if len(value) > 6 else "***"

        return {
            "webflowApiBase": self.webflow_api_base,
            "webflowApiVersion": self.webflow_api_version,
            "sessionTtlSeconds": self.session_ttl_seconds,
            "embedUpstreamToken": self.embed_upstream_token,
            "supabaseUrl": self.supabase_url,
            "supabaseServiceRoleKey": mask(self.supabase_service_role_key),
            "stripeSecretKey": mask(self.stripe_secret_key),
            "adminConfigured": bool(self.admin_email),
            "clientUrl": self.client_url,
            "appVersion": self.app_version,
            "logLevel": self.log_level,
        }
