from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class _Body(BaseModel):
    """Request bodies accept unknown keys; only the named ones are used."""

    model_config = ConfigDict(extra="ignore")


class AuthenticateRequest(_Body):
    """Exchange a Webflow API token for a session token."""
    token: Optional[str] = None
    tokenName: Optional[str] = None


class CredentialsRequest(_Body):
    """Username/password pair for register and login."""
    username: Optional[str] = None
    password: Optional[str] = None


class SaveTokenRequest(_Body):
    token: Optional[str] = None


class PublishRequest(_Body):
    """Publish options; `siteId` is only read on `/sites/publish`."""
    siteId: Optional[str] = None
    scheduledTime: Optional[str] = None


class CreateAssetRequest(_Body):
    fileName: Optional[str] = None
    fileHash: Optional[str] = None


class UpdateAssetRequest(_Body):
    altText: Optional[str] = None
    displayName: Optional[str] = None


class UpdateItemRequest(_Body):
    fieldData: Optional[dict[str, Any]] = None
    isDraft: Optional[bool] = None
    isArchived: Optional[bool] = None
    cmsLocaleId: Optional[str] = None


class PremiumToggleRequest(_Body):
    premium: Any = None


class HealthResponse(BaseModel):
    status: str
    message: str
