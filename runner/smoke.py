#!/usr/bin/env python3
"""End-to-end smoke run against a live proxy.

Steps:
- wait for server health
- exchange the Webflow token for a session token
- list sites
- export the asset CSV of the chosen (or first) site
- emit a compact summary and exit code

The run stops at the first failed step.
"""
from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Awaitable
from typing import Any

import httpx

from runner.cli import parse_args
from runner.client import authenticate, export_csv, list_sites, wait_for_health
from runner.types import SmokeError, StepResult
from runner.utils import summarize
from webflow_bff.logging_conf import get_logger, setup_logging

logger = get_logger("runner")


async def _step(steps: list[StepResult], name: str, call: Awaitable[Any]) -> Any:
    start = time.perf_counter()
    try:
        out = await call
    except SmokeError as e:
        elapsed = (time.perf_counter() - start) * 1000.0
        steps.append(StepResult(name, False, elapsed, {"error": str(e)}))
        logger.warning("step.failed", extra={"event": "step_failed", "step": name, "error": str(e)})
        raise
    steps.append(StepResult(name, True, (time.perf_counter() - start) * 1000.0))
    return out


async def run_smoke(
    *,
    base_url: str,
    webflow_token: str,
    site_id: str | None = None,
    timeout_s: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    steps: list[StepResult] = []
    try:
        await _step(steps, "health", wait_for_health(base_url, timeout_s, transport=transport))
        session = await _step(
            steps,
            "authenticate",
            authenticate(base_url, webflow_token, timeout=timeout_s, transport=transport),
        )
        sites = await _step(
            steps, "list_sites", list_sites(base_url, session, timeout=timeout_s, transport=transport)
        )
        target = site_id or (sites[0].get("id") if sites else None)
        if not target:
            steps.append(StepResult("export_csv", False, 0.0, {"error": "no site to export"}))
        else:
            rows = await _step(
                steps,
                "export_csv",
                export_csv(base_url, session, target, timeout=timeout_s, transport=transport),
            )
            steps[-1].detail.update({"site_id": target, "rows": rows})
    except SmokeError:
        # already recorded as a failed step
        pass

    summary, exit_code = summarize(steps)
    logger.info("runner.summary", extra=summary)
    return exit_code


def main(argv: list[str] | None = None) -> None:
    setup_logging()
    args = parse_args(argv if argv is not None else sys.argv[1:])
    code = asyncio.run(
        run_smoke(
            base_url=args.base_url,
            webflow_token=args.webflow_token,
            site_id=args.site_id,
            timeout_s=args.timeout,
        )
    )
    raise SystemExit(code)


if __name__ == "__main__":
    main()
