"""Request-scoped access to the collaborators wired up in `create_app`."""
from __future__ import annotations

import json
from collections.abc import Callable
from typing import TypeVar

import httpx
from fastapi import Request
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..domain.errors import BadRequest
from ..service.credentials import SessionStore
from ..service.webflow_client import Sleep, WebflowClient

M = TypeVar("M", bound=BaseModel)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    return request.app.state.transport


def get_sleep(request: Request) -> Sleep:
    return request.app.state.sleep


def client_factory(request: Request) -> Callable[[str], WebflowClient]:
    """Build Webflow clients bound to this app's settings and transport."""
    settings = get_settings(request)
    transport = get_transport(request)

    def make(token: str) -> WebflowClient:
        return WebflowClient(
            token,
            base_url=settings.webflow_api_base,
            api_version=settings.webflow_api_version,
            timeout=settings.upstream_timeout,
            transport=transport,
        )

    return make


async def read_body(request: Request, model: type[M]) -> M:
    """Parse the JSON body into `model`; an empty body yields the model defaults."""
    raw = await request.body()
    if not raw.strip():
        data: object = {}
    else:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise BadRequest("Request body must be valid JSON") from e
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    try:
        return model(**data)
    except ValidationError as e:
        raise BadRequest(
            "Invalid request body",
            extra={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e
