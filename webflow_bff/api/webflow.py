"""Catch-all `/api/webflow/...` endpoint.

Every request goes through `domain.routing.route()`; the resulting operation
is looked up in `_OPERATIONS` and run with a `WebflowClient` bound to the
caller's resolved credential.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from ..domain import routing
from ..domain.csv_export import csv_filename
from ..domain.errors import (
    ApiError,
    BadRequest,
    InternalError,
    MethodNotAllowed,
    NotFound,
    UpstreamError,
)
from ..domain.routing import Operation
from ..logging_conf import get_logger
from ..service import webflow_service
from ..service.credentials import resolve_credential
from ..service.webflow_client import WebflowClient
from . import auth
from .deps import client_factory, get_settings, get_sleep, get_store, read_body
from .models import CreateAssetRequest, PublishRequest, UpdateAssetRequest, UpdateItemRequest

router = APIRouter(prefix="/api/webflow", tags=["webflow"])
logger = get_logger("api.webflow")

Handler = Callable[[Request, WebflowClient, Mapping[str, str]], Awaitable[Any]]


# ------------------------
# Sites
# ------------------------

async def _list_sites(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.list_sites(client)


async def _get_site(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_site(client, params["site_id"])


async def _publish_site(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    body = await read_body(request, PublishRequest)
    site_id = params.get("site_id") or body.siteId
    if not site_id:
        raise BadRequest("Site ID is required")
    settings = get_settings(request)
    return await webflow_service.publish_site(
        client,
        site_id,
        scheduled_time=body.scheduledTime,
        retries=settings.publish_max_retries,
        base_delay=settings.publish_retry_base_delay,
        sleep=get_sleep(request),
    )


async def _list_site_assets(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.list_site_assets(client, params["site_id"])


async def _create_site_asset(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    body = await read_body(request, CreateAssetRequest)
    if not body.fileName or not body.fileHash:
        raise BadRequest("fileName and fileHash are required")
    return await webflow_service.create_site_asset(
        client, params["site_id"], file_name=body.fileName, file_hash=body.fileHash
    )


async def _export_site_assets_csv(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    site_id = params["site_id"]
    text = await webflow_service.export_site_assets_csv(client, site_id)
    return Response(
        content=text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(site_id)}"'},
    )


# ------------------------
# Assets
# ------------------------

async def _get_asset(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_asset(client, params["asset_id"])


async def _update_asset(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    body = await read_body(request, UpdateAssetRequest)
    return await webflow_service.update_asset(
        client, params["asset_id"], alt_text=body.altText, display_name=body.displayName
    )


# ------------------------
# Pages
# ------------------------

async def _list_pages(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.list_pages(client)


async def _get_page(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_page(
        client, params["page_id"], request.query_params.get("siteId")
    )


async def _get_page_dom(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_page_dom(
        client, params["page_id"], request.query_params.get("siteId")
    )


async def _get_page_custom_code(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_page_custom_code(
        client, params["page_id"], request.query_params.get("siteId")
    )


# ------------------------
# Collections
# ------------------------

async def _list_collections(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.list_collections(client)


async def _get_collection(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_collection(client, params["collection_id"])


async def _list_collection_items(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.list_collection_items(client, params["collection_id"])


async def _get_collection_item(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    return await webflow_service.get_collection_item(
        client, params["collection_id"], params["item_id"]
    )


async def _update_collection_item(request: Request, client: WebflowClient, params: Mapping[str, str]) -> Any:
    body = await read_body(request, UpdateItemRequest)
    return await webflow_service.update_collection_item(
        client,
        params["collection_id"],
        params["item_id"],
        field_data=body.fieldData,
        is_draft=body.isDraft,
        is_archived=body.isArchived,
        cms_locale_id=body.cmsLocaleId,
    )


# Operation -> (handler, message used when the upstream call fails)
_OPERATIONS: dict[Operation, tuple[Handler, str]] = {
    Operation.list_sites: (_list_sites, "Failed to fetch sites"),
    Operation.get_site: (_get_site, "Failed to fetch site"),
    Operation.publish_site: (_publish_site, "Failed to publish site"),
    Operation.list_site_assets: (_list_site_assets, "Failed to fetch assets"),
    Operation.create_site_asset: (_create_site_asset, "Failed to create asset"),
    Operation.export_site_assets_csv: (_export_site_assets_csv, "Failed to export assets"),
    Operation.get_asset: (_get_asset, "Failed to fetch asset"),
    Operation.update_asset: (_update_asset, "Failed to update asset"),
    Operation.list_pages: (_list_pages, "Failed to fetch pages"),
    Operation.get_page: (_get_page, "Failed to fetch page"),
    Operation.get_page_dom: (_get_page_dom, "Failed to fetch page DOM"),
    Operation.get_page_custom_code: (_get_page_custom_code, "Failed to fetch page custom code"),
    Operation.list_collections: (_list_collections, "Failed to fetch collections"),
    Operation.get_collection: (_get_collection, "Failed to fetch collection"),
    Operation.list_collection_items: (_list_collection_items, "Failed to fetch collection items"),
    Operation.get_collection_item: (_get_collection_item, "Failed to fetch collection item"),
    Operation.update_collection_item: (_update_collection_item, "Failed to update collection item"),
}

# Session operations carry their own credential handling.
_SESSION_OPERATIONS: dict[Operation, Callable[[Request], Awaitable[dict]]] = {
    Operation.authenticate: auth.authenticate,
    Operation.register: auth.register,
    Operation.login: auth.login,
    Operation.profile: auth.profile,
    Operation.save_token: auth.save_token,
    Operation.validate_token: auth.validate_token,
}


async def _run(request: Request, matched: routing.Matched) -> Any:
    session_handler = _SESSION_OPERATIONS.get(matched.operation)
    if session_handler is not None:
        return await session_handler(request)

    handler, failure = _OPERATIONS[matched.operation]
    # Resolve the credential before the body is read or a client exists.
    credential = resolve_credential(
        request.headers, secret=get_settings(request).jwt_secret, store=get_store(request)
    )
    try:
        async with client_factory(request)(credential.token) as client:
            return await handler(request, client, matched.params)
    except UpstreamError as e:
        if e.final:
            raise
        raise e.wrap(failure) from e


@router.api_route(
    "/{rest:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    summary="Webflow proxy",
)
async def webflow_proxy(rest: str, request: Request) -> Any:
    result = routing.route(request.method, request.url.path, request.query_params)

    if isinstance(result, routing.Preflight):
        return Response(status_code=200)
    if isinstance(result, routing.NotFound):
        raise NotFound(result.reason)
    if isinstance(result, routing.MethodNotAllowed):
        raise MethodNotAllowed("Method Not Allowed", extra={"allowed": list(result.allowed)})

    logger.info(
        "webflow.dispatch",
        extra={
            "event": "webflow_dispatch",
            "operation": result.operation.value,
            "category": result.match.category.value,
        },
    )
    try:
        out = await _run(request, result)
    except ApiError:
        raise
    except Exception as e:
        # rendered through the ApiError handler like every other failure
        logger.exception(
            "webflow.failed",
            extra={"event": "webflow_failed", "operation": result.operation.value},
        )
        raise InternalError("Server error") from e
    if isinstance(out, Response):
        return out
    return JSONResponse(content=out)
