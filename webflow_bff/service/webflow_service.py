from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from ..domain import shaping
from ..domain.csv_export import assets_to_csv
from ..domain.errors import BadRequest, NotFound, UpstreamError
from ..logging_conf import get_logger
from .webflow_client import RATE_LIMIT_STATUS, Sleep, WebflowClient, retry_on_rate_limit

logger = get_logger("service.webflow")

PUBLISH_RATE_LIMIT_MESSAGE = (
    "Too many requests. Please wait before trying again. "
    "Note: Webflow has a rate limit of 1 publish per minute."
)


def _list(payload: Any, key: str) -> list[dict]:
    if isinstance(payload, dict):
        value = payload.get(key)
        if isinstance(value, list):
            return [v for v in value if isinstance(v, dict)]
    return []


# ------------------------
# Sites
# ------------------------

async def list_sites(client: WebflowClient) -> dict:
    """Return every site the credential can see, enriched with URLs."""
    data = await client.get("/v2/sites")
    sites = [shaping.enhance_site(s) for s in _list(data, "sites")]
    logger.info("sites.list", extra={"event": "sites_list", "count": len(sites)})
    return {"sites": sites}


async def get_site(client: WebflowClient, site_id: str) -> dict:
    data = await client.get(f"/v2/sites/{site_id}")
    return shaping.enhance_site(data if isinstance(data, dict) else {})


def parse_scheduled_time(value: Any) -> str:
    """Normalize a client-supplied schedule to an ISO-8601 UTC timestamp."""
    if not isinstance(value, str) or not value.strip():
        raise BadRequest("Invalid scheduled time format")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise BadRequest("Invalid scheduled time format") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def publish_site(
    client: WebflowClient,
    site_id: str,
    *,
    scheduled_time: str | None = None,
    retries: int = 3,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> dict:
    """Publish a site to its custom domains (or webflow.io when it has none).

    Both the domain lookup and the publish call back off on 429; a domain
    lookup failure is tolerated and treated as "no custom domains".
    """
    body: dict[str, Any] = {}
    if scheduled_time:
        body["scheduledTime"] = parse_scheduled_time(scheduled_time)

    domain_ids: list[str] = []
    try:
        domains = await retry_on_rate_limit(
            lambda: client.get(f"/v2/sites/{site_id}/custom_domains"),
            retries=retries,
            base_delay=base_delay,
            sleep=sleep,
            label="custom_domains",
        )
        domain_ids = [d["id"] for d in _list(domains, "customDomains") if d.get("id")]
    except UpstreamError as e:
        logger.info(
            "publish.domains_unavailable",
            extra={"event": "publish_domains_unavailable", "site_id": site_id, "error": e.upstream_message},
        )

    body = {
        "customDomains": domain_ids,
        "publishToWebflowSubdomain": not domain_ids,
        **body,
    }
    try:
        result = await retry_on_rate_limit(
            lambda: client.post(f"/v2/sites/{site_id}/publish", body),
            retries=retries,
            base_delay=base_delay,
            sleep=sleep,
            label="publish",
        )
    except UpstreamError as e:
        if e.upstream_status == RATE_LIMIT_STATUS:
            raise UpstreamError(
                PUBLISH_RATE_LIMIT_MESSAGE,
                upstream_status=RATE_LIMIT_STATUS,
                payload=e.payload,
                extra={"error": e.payload},
                final=True,
            ) from e
        raise e.wrap(e.upstream_message if e.upstream_status else "Failed to publish site") from e

    logger.info(
        "publish.done",
        extra={"event": "publish_done", "site_id": site_id, "custom_domains": len(domain_ids)},
    )
    return {"message": "Site published successfully", "publishDetails": result}


# ------------------------
# Site assets
# ------------------------

async def _fetch_site_assets(client: WebflowClient, site_id: str) -> dict:
    # The beta assets endpoint answers for unknown sites too; check the site first.
    await client.get(f"/v2/sites/{site_id}")
    data = await client.get(f"/beta/sites/{site_id}/assets")
    return data if isinstance(data, dict) else {"assets": []}


async def list_site_assets(client: WebflowClient, site_id: str) -> dict:
    return await _fetch_site_assets(client, site_id)


async def create_site_asset(
    client: WebflowClient, site_id: str, *, file_name: str, file_hash: str
) -> dict:
    """Ask Webflow for upload details for a new asset; the client uploads the bytes."""
    data = await client.post(
        f"/beta/sites/{site_id}/assets", {"fileName": file_name, "fileHash": file_hash}
    )
    data = data or {}
    return {
        "uploadUrl": data.get("uploadUrl"),
        "uploadDetails": data.get("uploadDetails"),
        "id": data.get("id"),
    }


async def export_site_assets_csv(client: WebflowClient, site_id: str) -> str:
    data = await _fetch_site_assets(client, site_id)
    assets = _list(data, "assets")
    logger.info("assets.csv", extra={"event": "assets_csv", "site_id": site_id, "count": len(assets)})
    return assets_to_csv(assets)


# ------------------------
# Assets
# ------------------------

async def get_asset(client: WebflowClient, asset_id: str) -> Any:
    return await client.get(f"/beta/assets/{asset_id}")


async def update_asset(
    client: WebflowClient,
    asset_id: str,
    *,
    alt_text: str | None = None,
    display_name: str | None = None,
) -> Any:
    if alt_text is None and display_name is None:
        raise BadRequest("At least one of altText or displayName is required")
    body: dict[str, str] = {}
    if alt_text is not None:
        body["altText"] = alt_text
    if display_name is not None:
        body["displayName"] = display_name
    return await client.patch(f"/beta/assets/{asset_id}", body)


# ------------------------
# Pages
# ------------------------

async def list_pages(client: WebflowClient) -> dict:
    """Pages of every site; a site whose pages cannot be read is skipped."""
    sites = _list(await client.get("/v2/sites"), "sites")
    if not sites:
        return {"pages": [], "message": "No sites found for this token"}

    pages: list[dict] = []
    for site in sites:
        site_id = site.get("id")
        try:
            site_pages = _list(await client.get(f"/v2/sites/{site_id}/pages"), "pages")
            site_info = await client.get(f"/v2/sites/{site_id}")
            site_info = site_info if isinstance(site_info, dict) else {}
        except UpstreamError as e:
            logger.warning(
                "pages.site_skipped",
                extra={"event": "pages_site_skipped", "site_id": site_id, "error": e.upstream_message},
            )
            continue
        pages.extend(shaping.enhance_page(p, {**site, **site_info}) for p in site_pages)
    return {"pages": pages}


async def get_page(client: WebflowClient, page_id: str, site_id: str | None) -> dict:
    if not site_id:
        raise BadRequest("Site ID is required as a query parameter")
    site = await client.get(f"/v2/sites/{site_id}")
    if not site:
        raise NotFound("Site not found")
    pages = _list(await client.get(f"/v2/sites/{site_id}/pages"), "pages")
    page = next((p for p in pages if p.get("id") == page_id), None)
    if page is None:
        raise NotFound("Page not found in this site")
    return shaping.enhance_page(page, site)


async def _site_id_for_page(client: WebflowClient, page_id: str, site_id: str | None) -> str:
    if site_id:
        return site_id
    try:
        page = await client.get(f"/v2/pages/{page_id}")
    except UpstreamError as e:
        raise e.wrap("Failed to determine site ID for page") from e
    page = page or {}
    found = page.get("siteId") or (page.get("site") or {}).get("id")
    if not found:
        raise UpstreamError("Failed to determine site ID for page", final=True)
    return found


async def get_page_dom(client: WebflowClient, page_id: str, site_id: str | None = None) -> Any:
    sid = await _site_id_for_page(client, page_id, site_id)
    return await client.get(f"/v2/sites/{sid}/pages/{page_id}/dom")


async def get_page_custom_code(
    client: WebflowClient, page_id: str, site_id: str | None = None
) -> dict:
    sid = await _site_id_for_page(client, page_id, site_id)
    page = await client.get(f"/v2/sites/{sid}/pages/{page_id}")
    return shaping.custom_code(page or {})


# ------------------------
# Collections
# ------------------------

async def list_collections(client: WebflowClient) -> dict:
    sites = _list(await client.get("/v2/sites"), "sites")
    if not sites:
        return {"collections": [], "message": "No sites found for this token"}

    collections: list[dict] = []
    for site in sites:
        site_id = site.get("id")
        try:
            found = _list(await client.get(f"/v2/sites/{site_id}/collections"), "collections")
        except UpstreamError as e:
            logger.warning(
                "collections.site_skipped",
                extra={"event": "collections_site_skipped", "site_id": site_id, "error": e.upstream_message},
            )
            continue
        collections.extend(shaping.enhance_collection(c, site) for c in found)
    return {"collections": collections}


async def get_collection(client: WebflowClient, collection_id: str) -> dict:
    data = await client.get(f"/v2/collections/{collection_id}")
    return shaping.normalize_collection(data or {})


def _total(payload: Any, items: list) -> int:
    pagination = payload.get("pagination") if isinstance(payload, dict) else None
    if isinstance(pagination, dict) and pagination.get("total") is not None:
        return pagination["total"]
    return len(items)


async def list_collection_items(client: WebflowClient, collection_id: str) -> dict:
    """Staged items for the list view plus staged/live counts."""
    staged = await client.get(f"/beta/collections/{collection_id}/items")
    live = await client.get(f"/v2/collections/{collection_id}/items/live")
    staged_items = _list(staged, "items")
    live_items = _list(live, "items")
    staged_total = _total(staged, staged_items)
    pagination = staged.get("pagination") if isinstance(staged, dict) else None
    return {
        "items": [shaping.flatten_item(i) for i in staged_items],
        "total": staged_total,
        "stagedCount": staged_total,
        "liveCount": _total(live, live_items),
        "offset": (pagination or {}).get("offset") or 0,
    }


async def get_collection_item(client: WebflowClient, collection_id: str, item_id: str) -> Any:
    return await client.get(f"/v2/collections/{collection_id}/items/{item_id}")


async def update_collection_item(
    client: WebflowClient,
    collection_id: str,
    item_id: str,
    *,
    field_data: dict[str, Any] | None,
    is_draft: bool | None = None,
    is_archived: bool | None = None,
    cms_locale_id: str | None = None,
) -> Any:
    if field_data is None:
        raise BadRequest("fieldData is required")
    body: dict[str, Any] = {"fieldData": field_data}
    if is_draft is not None:
        body["isDraft"] = is_draft
    if is_archived is not None:
        body["isArchived"] = is_archived
    if cms_locale_id:
        body["cmsLocaleId"] = cms_locale_id
    return await client.patch(f"/v2/collections/{collection_id}/items/{item_id}", body)


# ------------------------
# Token checks
# ------------------------

async def count_sites(client: WebflowClient) -> int:
    """Number of sites visible to the credential; doubles as a validity check."""
    return len(_list(await client.get("/v2/sites"), "sites"))
