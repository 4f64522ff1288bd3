from __future__ import annotations

import argparse
import os


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments for the smoke runner."""
    parser = argparse.ArgumentParser(description="Webflow BFF smoke runner")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://127.0.0.1:8000"))
    parser.add_argument(
        "--webflow-token",
        default=os.getenv("WEBFLOW_TOKEN"),
        help="Webflow API token (defaults to $WEBFLOW_TOKEN)",
    )
    parser.add_argument("--site-id", default=None, help="Site to export assets for (default: first site)")
    parser.add_argument("--timeout", type=float, default=30.0)
    args = parser.parse_args(argv)
    if not args.webflow_token:
        parser.error("--webflow-token or WEBFLOW_TOKEN is required")
    return args
