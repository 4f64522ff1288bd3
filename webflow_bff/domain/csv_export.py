from __future__ import annotations

import csv
import io
import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

__all__ = ["CSV_HEADER", "size_kb", "format_date", "asset_row", "assets_to_csv", "csv_filename"]

CSV_HEADER = (
    "Name",
    "Filename",
    "URL",
    "Size (KB)",
    "Content Type",
    "Alt Text",
    "Created",
    "Updated",
)


def size_kb(size: Any) -> int:
    """Bytes to kilobytes, rounded half up; anything unusable counts as 0."""
    try:
        value = float(size)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(math.floor(value / 1024 + 0.5))


def format_date(value: Any) -> str:
    """Render an ISO-8601 timestamp as YYYY-MM-DD; unparsable input is passed through."""
    if not value or not isinstance(value, str):
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def asset_row(asset: Mapping[str, Any]) -> list[str]:
    return [
        asset.get("displayName") or "",
        asset.get("originalFileName") or "",
        asset.get("hostedUrl") or "",
        str(size_kb(asset.get("size"))),
        asset.get("contentType") or "",
        asset.get("altText") or "",
        format_date(asset.get("createdOn")),
        format_date(asset.get("lastUpdated")),
    ]


def assets_to_csv(assets: Iterable[Mapping[str, Any]]) -> str:
    """Render the asset export: fixed header row, then one row per asset.

    Fields containing commas, quotes or newlines are quoted RFC 4180 style.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for asset in assets:
        writer.writerow(asset_row(asset))
    return buf.getvalue()


def csv_filename(site_id: str) -> str:
    return f"assets-{site_id}.csv"
