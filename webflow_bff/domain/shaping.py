"""Reshaping of Webflow payloads for the UI.

Every function here is pure: it takes upstream JSON (dicts) and returns new
dicts with convenience fields added. Upstream fields are kept as-is.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

__all__ = [
    "DESIGNER_BASE",
    "site_domain",
    "enhance_site",
    "published_url",
    "preview_url",
    "enhance_page",
    "enhance_collection",
    "normalize_collection",
    "flatten_item",
    "custom_code",
]

DESIGNER_BASE = "https://webflow.com/design"


def _site_name(site: Mapping[str, Any]) -> str | None:
    return site.get("displayName") or site.get("shortName")


def site_domain(site: Mapping[str, Any]) -> str | None:
    """First custom domain, else the webflow.io subdomain, else None."""
    domains = site.get("customDomains") or []
    if domains and isinstance(domains[0], Mapping) and domains[0].get("url"):
        return domains[0]["url"]
    if site.get("shortName"):
        return f"{site['shortName']}.webflow.io"
    return None


def enhance_site(site: Mapping[str, Any]) -> dict[str, Any]:
    domain = site_domain(site)
    return {
        **site,
        "displayName": _site_name(site) or "Unnamed Site",
        "domain": domain,
        "url": f"https://{domain}" if domain else None,
        "previewUrl": f"{DESIGNER_BASE}/{site.get('id')}",
    }


def published_url(site: Mapping[str, Any] | None, page: Mapping[str, Any] | None) -> str | None:
    """Public URL of a page; the `index` slug maps to the site root."""
    if not site or not page:
        return None
    domain = site_domain(site)
    if not domain:
        return None
    slug = page.get("slug")
    if slug == "index" or not slug:
        return f"https://{domain}"
    return f"https://{domain}/{slug}"


def preview_url(site_id: str | None, page_id: str | None) -> str | None:
    if not site_id or not page_id:
        return None
    return f"{DESIGNER_BASE}/{site_id}/page/{page_id}"


def enhance_page(page: Mapping[str, Any], site: Mapping[str, Any]) -> dict[str, Any]:
    return {
        **page,
        "siteName": _site_name(site),
        "siteId": site.get("id"),
        "url": published_url(site, page),
        "previewUrl": preview_url(site.get("id"), page.get("id")),
    }


def enhance_collection(collection: Mapping[str, Any], site: Mapping[str, Any]) -> dict[str, Any]:
    site_id = site.get("id")
    return {
        **collection,
        "name": collection.get("displayName") or collection.get("name") or "Unnamed Collection",
        "siteName": _site_name(site),
        "siteId": site_id,
        "designerUrl": f"{DESIGNER_BASE}/{site_id}/collections/{collection.get('id')}",
        "stagedItemCount": collection.get("itemCount") or 0,
        # live counts are only known once items are listed
        "liveItemCount": 0,
    }


def normalize_collection(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Always answer `{collection: {..., fields: [...]}}`, warning when fields are missing."""
    collection = payload.get("collection") or payload
    fields = collection.get("fields")
    if not isinstance(fields, list) or not fields:
        return {
            "collection": {**collection, "fields": []},
            "warning": (
                "No fields found in collection details. "
                "Check your Webflow API response and permissions."
            ),
        }
    return {"collection": dict(collection)}


def flatten_item(item: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a CMS item for list views; `fieldData` keys are spread last."""
    field_data = item.get("fieldData") or {}
    return {
        "id": item.get("id"),
        "name": field_data.get("name")
        or field_data.get("title")
        or field_data.get("slug")
        or "Unnamed Item",
        "slug": field_data.get("slug") or "",
        "status": "draft" if item.get("isDraft") else "published",
        "updated": item.get("lastUpdated") or "",
        "created": item.get("createdOn") or "",
        "publishedOn": item.get("publishedOn") or "",
        "isDraft": item.get("isDraft") is True,
        "isArchived": item.get("isArchived") is True,
        **field_data,
    }


def custom_code(page: Mapping[str, Any]) -> dict[str, str]:
    codes = page.get("customCodes") or {}
    return {
        "headCode": codes.get("head") or "",
        "footerCode": codes.get("footer") or "",
    }
