from __future__ import annotations

from typing import Any

__all__ = [
    "ApiError",
    "BadRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "Conflict",
    "UpstreamError",
    "InternalError",
]


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response.

    The `code` attribute gives the client a stable machine code; `extra` is
    merged into the JSON body next to `message`.
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra: dict[str, Any] = dict(extra or {})

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message, "code": self.code}
        for key, value in self.extra.items():
            body.setdefault(key, value)
        return body


class BadRequest(ApiError):
    status_code = 400
    code = "bad_request"


class Unauthorized(ApiError):
    status_code = 401
    code = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"


class MethodNotAllowed(ApiError):
    status_code = 405
    code = "method_not_allowed"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"


class UpstreamError(ApiError):
    """A non-2xx answer (or no answer at all) from a proxied API.

    `upstream_status` is None when the request never got a response; the
    error then surfaces as a 500. `final` marks an error whose message is
    already meant for the client and must not be re-wrapped.
    """

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        payload: Any = None,
        extra: dict[str, Any] | None = None,
        final: bool = False,
    ) -> None:
        super().__init__(message, extra=extra)
        self.upstream_status = upstream_status
        self.payload = payload
        self.final = final
        self.status_code = upstream_status if upstream_status and upstream_status >= 400 else 500

    @property
    def upstream_message(self) -> str:
        """Best-effort human message pulled from the upstream payload."""
        if isinstance(self.payload, dict):
            for key in ("message", "msg", "error_description", "error"):
                val = self.payload.get(key)
                if isinstance(val, str) and val:
                    return val
        if isinstance(self.payload, str) and self.payload:
            return self.payload
        return self.message

    def wrap(self, message: str) -> "UpstreamError":
        """Return a copy carrying an operation-specific message for the client."""
        err = UpstreamError(
            message,
            upstream_status=self.upstream_status,
            payload=self.payload,
            extra={"error": self.upstream_message, **self.extra},
            final=True,
        )
        if self.upstream_status is not None:
            err.extra.setdefault("status", self.upstream_status)
            err.extra.setdefault("webflowError", self.payload)
        return err


class InternalError(ApiError):
    status_code = 500
    code = "internal_error"
