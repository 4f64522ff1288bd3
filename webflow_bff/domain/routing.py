"""Path router for the Webflow proxy surface.

`route()` is a pure function: it looks at the method, the URL path and the
query string and returns one of four variants (`Preflight`, `NotFound`,
`MethodNotAllowed`, `Matched`). It never raises and never touches I/O, so the
HTTP layer can dispatch on the result and tests can exercise it directly.

Category selection is keyword based and order dependent. The segment list is
checked for `collections`, `pages`, `sites`, `assets` and `auth`, in that order,
and the first keyword present anywhere in the path wins even when a later
keyword would be more specific (`/webflow/sites/S1/assets/csv` is a `sites`
route).
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Union

__all__ = [
    "ANCHOR_SEGMENT",
    "CATEGORY_PRECEDENCE",
    "Category",
    "Operation",
    "RouteMatch",
    "Preflight",
    "NotFound",
    "MethodNotAllowed",
    "Matched",
    "RouteResult",
    "split_path",
    "match_path",
    "route",
]

ANCHOR_SEGMENT = "webflow"


class Category(str, Enum):
    collections = "collections"
    pages = "pages"
    sites = "sites"
    assets = "assets"
    auth = "auth"


CATEGORY_PRECEDENCE: tuple[Category, ...] = (
    Category.collections,
    Category.pages,
    Category.sites,
    Category.assets,
    Category.auth,
)


class Operation(str, Enum):
    list_sites = "list_sites"
    get_site = "get_site"
    publish_site = "publish_site"
    list_site_assets = "list_site_assets"
    create_site_asset = "create_site_asset"
    export_site_assets_csv = "export_site_assets_csv"
    list_pages = "list_pages"
    get_page = "get_page"
    get_page_dom = "get_page_dom"
    get_page_custom_code = "get_page_custom_code"
    list_collections = "list_collections"
    get_collection = "get_collection"
    list_collection_items = "list_collection_items"
    get_collection_item = "get_collection_item"
    update_collection_item = "update_collection_item"
    get_asset = "get_asset"
    update_asset = "update_asset"
    authenticate = "authenticate"
    register = "register"
    login = "login"
    profile = "profile"
    save_token = "save_token"
    validate_token = "validate_token"


@dataclass(frozen=True)
class RouteMatch:
    """Structural outcome of parsing a path.

    `id`, `action` and `sub_id` are the first, second and third segments after
    the category keyword. `site_scoped` is set when the path contains `/sites/`.
    """

    category: Category
    id: str | None = None
    action: str | None = None
    sub_id: str | None = None
    site_scoped: bool = False


@dataclass(frozen=True)
class Preflight:
    """CORS preflight; answered with 200 and no body."""


@dataclass(frozen=True)
class NotFound:
    reason: str


@dataclass(frozen=True)
class MethodNotAllowed:
    allowed: tuple[str, ...]


@dataclass(frozen=True)
class Matched:
    operation: Operation
    match: RouteMatch
    params: Mapping[str, str]


RouteResult = Union[Preflight, NotFound, MethodNotAllowed, Matched]

# (category, shape) -> {method: operation}
_MethodTable = dict[str, Operation]


def split_path(path: str) -> list[str]:
    """Drop the query string and return the non-empty path segments."""
    bare = path.split("?", 1)[0]
    return [seg for seg in bare.split("/") if seg]


def match_path(path: str) -> RouteMatch | NotFound:
    """Select the category and pull identifiers out of the path."""
    segments = split_path(path)
    if ANCHOR_SEGMENT not in segments:
        return NotFound("Not found: Invalid path structure")

    category = next((c for c in CATEGORY_PRECEDENCE if c.value in segments), None)
    if category is None:
        return NotFound("Endpoint not found")

    idx = segments.index(category.value)
    tail = segments[idx + 1 :]
    if len(tail) > 3:
        return NotFound(f"{category.value.capitalize()} endpoint not found")

    padded = tail + [None] * (3 - len(tail))
    bare = path.split("?", 1)[0]
    return RouteMatch(
        category=category,
        id=padded[0],
        action=padded[1],
        sub_id=padded[2],
        site_scoped="/sites/" in bare,
    )


def _site_id_from(path: str) -> str | None:
    segments = split_path(path)
    if "sites" not in segments:
        return None
    idx = segments.index("sites")
    return segments[idx + 1] if idx + 1 < len(segments) else None


def _sites_table(m: RouteMatch) -> tuple[_MethodTable, dict[str, str]] | None:
    if m.id is None:
        return {"GET": Operation.list_sites}, {}
    if m.id == "publish" and m.action is None:
        return {"POST": Operation.publish_site}, {}
    params = {"site_id": m.id}
    if m.action is None:
        return {"GET": Operation.get_site}, params
    if m.action == "publish" and m.sub_id is None:
        return {"POST": Operation.publish_site}, params
    if m.action == "assets":
        if m.sub_id is None:
            return {
                "GET": Operation.list_site_assets,
                "POST": Operation.create_site_asset,
            }, params
        if m.sub_id == "csv":
            return {"GET": Operation.export_site_assets_csv}, params
    return None


def _pages_table(m: RouteMatch) -> tuple[_MethodTable, dict[str, str]] | None:
    if m.id is None:
        return {"GET": Operation.list_pages}, {}
    if m.sub_id is not None:
        return None
    params = {"page_id": m.id}
    if m.action is None:
        return {"GET": Operation.get_page}, params
    if m.action == "dom":
        return {"GET": Operation.get_page_dom}, params
    if m.action == "custom-code":
        return {"GET": Operation.get_page_custom_code}, params
    return None


def _collections_table(m: RouteMatch) -> tuple[_MethodTable, dict[str, str]] | None:
    if m.id is None:
        return {"GET": Operation.list_collections}, {}
    params = {"collection_id": m.id}
    if m.action is None:
        return {"GET": Operation.get_collection}, params
    if m.action != "items":
        return None
    if m.sub_id is None:
        return {"GET": Operation.list_collection_items}, params
    return {
        "GET": Operation.get_collection_item,
        "PATCH": Operation.update_collection_item,
    }, {**params, "item_id": m.sub_id}


def _assets_table(
    m: RouteMatch, path: str, query: Mapping[str, str]
) -> tuple[_MethodTable, dict[str, str]] | None:
    site_assets = {"GET": Operation.list_site_assets, "POST": Operation.create_site_asset}
    if m.site_scoped:
        site_id = _site_id_from(path)
        if not site_id or m.id is not None:
            return None
        return site_assets, {"site_id": site_id}
    if m.id is None:
        site_id = query.get("siteId")
        if not site_id:
            return None
        return site_assets, {"site_id": site_id}
    if m.action is not None:
        return None
    return {"GET": Operation.get_asset, "PATCH": Operation.update_asset}, {"asset_id": m.id}


def _auth_table(m: RouteMatch) -> tuple[_MethodTable, dict[str, str]] | None:
    if m.id is None:
        return None
    if m.id == "token":
        if m.action is None:
            return {"POST": Operation.save_token}, {}
        if m.action == "validate" and m.sub_id is None:
            return {"GET": Operation.validate_token}, {}
        return None
    if m.action is not None:
        return None
    table = {
        "authenticate": {"POST": Operation.authenticate},
        "register": {"POST": Operation.register},
        "login": {"POST": Operation.login},
        "profile": {"GET": Operation.profile},
    }.get(m.id)
    return (table, {}) if table else None


def route(method: str, path: str, query: Mapping[str, str] | None = None) -> RouteResult:
    """Decide which operation handles `method path`.

    Never raises: unknown shapes and missing identifiers become `NotFound`,
    known shapes hit with an unsupported method become `MethodNotAllowed`.
    """
    method = (method or "").upper()
    if method == "OPTIONS":
        return Preflight()

    matched = match_path(path or "")
    if isinstance(matched, NotFound):
        return matched

    query = query or {}
    if matched.category is Category.sites:
        resolved = _sites_table(matched)
    elif matched.category is Category.pages:
        resolved = _pages_table(matched)
    elif matched.category is Category.collections:
        resolved = _collections_table(matched)
    elif matched.category is Category.assets:
        resolved = _assets_table(matched, path, query)
    else:
        resolved = _auth_table(matched)

    if resolved is None:
        return NotFound(f"{matched.category.value.capitalize()} endpoint not found")

    table, params = resolved
    operation = table.get(method)
    if operation is None:
        return MethodNotAllowed(tuple(sorted(table)))
    return Matched(operation=operation, match=matched, params=params)
